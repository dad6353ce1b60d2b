"""
``/handoff`` admin commands: assignments, roles and manual close.
"""
import logging
import re
import shlex
from typing import Awaitable, Callable, Dict, List, Optional

from ..collaborators.base import ChatPlatform, ChatUser
from ..errors import CommandError
from ..messages import HELP_TEXT, format_mentions
from ..models import ResultStatus, RouterResult, SlashCommand
from ..registry import AssignmentDirectory, ContactDirectory

logger = logging.getLogger(__name__)

# <@U123ABC> or <@U123ABC|maria>
MENTION_RE = re.compile(r"^<@([UW][A-Z0-9]+)(?:\|[^>]*)?>$")
USER_ID_RE = re.compile(r"^[UW][A-Z0-9]{5,}$")


class AdminCommands:
    """Parses and runs the text after ``/handoff``."""

    def __init__(
        self,
        contacts: ContactDirectory,
        assignments: AssignmentDirectory,
        chat: ChatPlatform,
        close_session: Callable[..., Awaitable[RouterResult]]
    ):
        self.contacts = contacts
        self.assignments = assignments
        self.chat = chat
        self.close_session = close_session

    async def execute(self, command: SlashCommand) -> RouterResult:
        """
        Raises:
            CommandError: On unknown subcommands or bad arguments
        """
        try:
            args = shlex.split(command.text or "")
        except ValueError as e:
            raise CommandError(f"Could not parse command: {e}") from e

        if not args or args[0].lower() == "help":
            return RouterResult.success(HELP_TEXT)

        group, rest = args[0].lower(), args[1:]
        logger.info(f"/handoff {group} from {command.user_id}: {rest}")

        try:
            if group == "assign":
                return await self._assign(rest)
            if group == "role":
                return await self._role(rest)
            if group == "close":
                return await self._close(rest, command.user_id)
        except ValueError as e:
            raise CommandError(str(e)) from e

        raise CommandError(f"Unknown command `{group}`. Try `/handoff help`.")

    # ===========================
    # assign
    # ===========================

    async def _assign(self, args: List[str]) -> RouterResult:
        if not args:
            raise CommandError("Usage: `/handoff assign add|remove|list ...`")

        action, rest = args[0].lower(), args[1:]

        if action == "list":
            assignments = await self.assignments.list_all()
            if not assignments:
                return RouterResult.success("No assignments yet. Everything goes to the general pool.")
            lines = [
                f"`{category} / {subcategory}`: {format_mentions(responders)}"
                for (category, subcategory), responders in assignments.items()
            ]
            return RouterResult.success("\n".join(lines), count=len(lines))

        if action not in ("add", "remove"):
            raise CommandError(f"Unknown assign action `{action}`")
        if len(rest) < 2:
            raise CommandError(f"Usage: `/handoff assign {action} <category> <subcategory> @user…`")

        category, subcategory, tokens = rest[0], rest[1], rest[2:]
        responders = await self.resolve_users(tokens)

        if action == "add":
            if not responders:
                raise CommandError("Name at least one responder to assign")
            await self.assignments.add_responders(category, subcategory, responders)
            return RouterResult.success(
                f"Assigned {format_mentions(responders)} to `{category} / {subcategory}`"
            )

        await self.assignments.remove_responders(category, subcategory, responders)
        if responders:
            return RouterResult.success(
                f"Removed {format_mentions(responders)} from `{category} / {subcategory}`"
            )
        return RouterResult.success(f"Cleared all responders for `{category} / {subcategory}`")

    async def resolve_users(self, tokens: List[str]) -> List[str]:
        """
        Turn mentions, raw ids and @handles into user ids.

        Slack rewrites ``@maria`` to ``<@U…|maria>`` only when the command
        is registered with escaping enabled, so plain handles are looked up.

        Raises:
            CommandError: If a handle matches no workspace member
        """
        resolved: List[str] = []
        directory: Optional[Dict[str, ChatUser]] = None

        for token in tokens:
            match = MENTION_RE.match(token)
            if match:
                resolved.append(match.group(1))
                continue
            if USER_ID_RE.match(token):
                resolved.append(token)
                continue

            if directory is None:
                directory = {}
                for user in await self.chat.list_users():
                    directory[user.handle.lower()] = user
                    if user.display_name:
                        directory.setdefault(user.display_name.lower(), user)

            handle = token.lstrip("@").lower()
            user = directory.get(handle)
            if user is None:
                raise CommandError(f"Unknown user `@{handle}`")
            resolved.append(user.id)

        return list(dict.fromkeys(resolved))

    # ===========================
    # role
    # ===========================

    async def _role(self, args: List[str]) -> RouterResult:
        if not args:
            raise CommandError("Usage: `/handoff role add|remove|list ...`")

        action, rest = args[0].lower(), args[1:]

        if action == "list":
            roles = await self.contacts.list_roles()
            if not roles:
                return RouterResult.success("No roles defined")
            return RouterResult.success("Roles: " + ", ".join(f"`{r}`" for r in roles), roles=roles)

        if action not in ("add", "remove"):
            raise CommandError(f"Unknown role action `{action}`")
        if len(rest) != 1:
            raise CommandError(f"Usage: `/handoff role {action} <name>`")

        if action == "add":
            role = await self.contacts.add_role(rest[0])
            return RouterResult.success(f"Role `{role}` added")

        stripped = await self.contacts.remove_role(rest[0])
        return RouterResult.success(
            f"Role `{rest[0].strip().lower()}` removed ({stripped} contacts updated)",
            stripped=stripped
        )

    # ===========================
    # close
    # ===========================

    async def _close(self, args: List[str], user_id: str) -> RouterResult:
        if len(args) != 1:
            raise CommandError("Usage: `/handoff close <session_id>`")

        result = await self.close_session(args[0], closed_by=user_id, trigger="command")
        if result.status == ResultStatus.IGNORED:
            return RouterResult.warning(f"No live session `{args[0]}`")
        return result


__all__ = ['AdminCommands']
