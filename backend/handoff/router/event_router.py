"""
Inbound event router.

Every webhook (AI Studio start/inbound, Slack events, interactions and
slash commands) ends up here. Handlers drive the registries, the timers and
the collaborators, and always answer with a RouterResult: typed failures
from the components are translated here and nowhere else.
"""
import functools
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from .. import blocks
from ..collaborators.base import AIPlatform, ChatPlatform, MediaHost
from ..collaborators.media_host import media_kind_for
from ..errors import (
    CollaboratorError,
    HandoffError,
    NotFoundError,
    SessionNotFoundError,
    UnsupportedMediaKindError,
)
from ..escalation import EscalationTimerManager
from ..messages import (
    MessageKind,
    customer_label,
    customer_media_text,
    new_request_text,
    render,
)
from ..models import (
    InboundRequest,
    MessageType,
    RouterResult,
    Session,
    SlashCommand,
    StartRequest,
    canonical_phone,
)
from ..registry import AssignmentDirectory, ContactDirectory, SessionRegistry
from ..store import KeyValueStore
from ..utils.telemetry import (
    metrics_collector,
    track_broadcast_delivery,
    track_session_closed,
    track_session_started,
)
from .commands import AdminCommands

logger = logging.getLogger(__name__)

START_CLAIM_PREFIX = "start:"
BROADCAST_PREFIX = "broadcast:"


def start_claim_key(session_id: str) -> str:
    return f"{START_CLAIM_PREFIX}{session_id}"


def broadcast_key(draft_id: str) -> str:
    return f"{BROADCAST_PREFIX}{draft_id}"


def routed(func: Callable) -> Callable:
    """
    Turn anything a handler raises into a RouterResult.

    Lookup misses become warnings, other relay errors become errors, and
    unexpected exceptions are logged with their traceback.
    """

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs) -> RouterResult:
        try:
            return await func(self, *args, **kwargs)

        except NotFoundError as e:
            logger.info(f"{func.__name__}: {e}")
            return RouterResult.warning(str(e))

        except HandoffError as e:
            logger.warning(f"{func.__name__} failed: {e}")
            return RouterResult.error(str(e))

        except Exception as e:
            metrics_collector.record_error()
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            return RouterResult.error("Internal error")

    return wrapper


class EventRouter:
    """
    Dispatches inbound events to the registries, timers and collaborators.

    One instance per process, shared by every request.
    """

    def __init__(
        self,
        store: KeyValueStore,
        sessions: SessionRegistry,
        contacts: ContactDirectory,
        assignments: AssignmentDirectory,
        timers: EscalationTimerManager,
        chat: ChatPlatform,
        ai: AIPlatform,
        media: MediaHost,
        *,
        support_channel_id: Optional[str],
        broadcast_channel_id: Optional[str] = None,
        start_claim_ttl: int = 60,
        broadcast_draft_ttl: int = 86400,
        close_reaction: str = "white_check_mark"
    ):
        self.store = store
        self.sessions = sessions
        self.contacts = contacts
        self.assignments = assignments
        self.timers = timers
        self.chat = chat
        self.ai = ai
        self.media = media

        self.support_channel_id = support_channel_id
        self.broadcast_channel_id = broadcast_channel_id
        self.start_claim_ttl = start_claim_ttl
        self.broadcast_draft_ttl = broadcast_draft_ttl
        self.close_reaction = close_reaction

        self.commands = AdminCommands(
            contacts=contacts,
            assignments=assignments,
            chat=chat,
            close_session=self.close_session
        )

    # ===========================
    # AI Studio: start / inbound
    # ===========================

    @routed
    async def handle_start(self, request: StartRequest) -> RouterResult:
        """
        Open a Slack thread for a newly escalated conversation.

        A Start for a session that is already live, or that another request
        is currently opening, creates nothing.
        """
        session_id = request.session_id

        try:
            existing = await self.sessions.get_by_session_id(session_id)
            logger.info(f"Duplicate start for live session {session_id}, keeping thread {existing.thread_id}")
            return RouterResult.success(
                "Session already active",
                thread_id=existing.thread_id,
                duplicate=True
            )
        except SessionNotFoundError:
            pass

        if not self.support_channel_id:
            return RouterResult.error("SLACK_CHANNEL_ID is not configured")

        claimed = await self.store.set_if_absent(
            start_claim_key(session_id),
            "1",
            ttl=self.start_claim_ttl
        )
        if not claimed:
            logger.info(f"Start for session {session_id} already in progress, ignoring duplicate")
            return RouterResult.success("Start already in progress", duplicate=True)

        try:
            session = await self._open_session(request)
        except Exception:
            await self.store.delete(start_claim_key(session_id))
            raise

        track_session_started(await self.sessions.count())
        return RouterResult.success(
            "Conversation started in Slack",
            thread_id=session.thread_id
        )

    async def _open_session(self, request: StartRequest) -> Session:
        session_id = request.session_id

        phone = None
        if request.sender:
            try:
                phone = canonical_phone(request.sender)
            except ValueError:
                logger.warning(f"Start for session {session_id} has unusable sender '{request.sender}'")

        responders = set()
        if request.category and request.subcategory:
            try:
                responders = await self.assignments.list_responders(
                    request.category,
                    request.subcategory
                )
            except ValueError as e:
                logger.warning(f"Cannot route session {session_id}: {e}")

        display_name = request.profile_name or phone or "Unknown"
        if phone:
            try:
                contact = await self.contacts.find_by_phone(phone)
                display_name = contact.name
            except NotFoundError:
                pass

        transcription = request.history.transcription if request.history else []
        text = new_request_text(
            customer_label(display_name, phone),
            transcription=transcription,
            category=request.category,
            subcategory=request.subcategory,
            responder_ids=responders
        )

        thread_id = await self.chat.post_message(
            text,
            blocks=blocks.session_message(text, session_id, can_save_contact=bool(phone)),
            channel_id=self.support_channel_id
        )

        session = await self.sessions.create_session(
            session_id,
            thread_id,
            display_name,
            channel_id=self.support_channel_id,
            customer_phone=phone,
            category=request.category,
            subcategory=request.subcategory
        )
        self.timers.schedule(session_id)

        logger.info(
            f"Conversation initiated in Slack, session {session_id} linked to thread {thread_id}",
            extra={"session_id": session_id, "responders": sorted(responders)}
        )
        return session

    @routed
    async def handle_inbound(self, request: InboundRequest) -> RouterResult:
        """Post a customer message into the session's thread."""
        try:
            session = await self.sessions.get_by_session_id(request.session_id)
        except SessionNotFoundError:
            logger.warning(f"Inbound message for unknown session {request.session_id}")
            return RouterResult.warning("Session not found")

        kind = request.message_type
        if kind == MessageType.TEXT:
            text = render(MessageKind.CUSTOMER_TEXT, text=request.text or "")
        elif request.url:
            text = customer_media_text(kind.value, request.url, request.caption or request.text)
        else:
            return RouterResult.warning(f"{kind.value} message without url")

        await self.chat.post_message(
            text,
            thread_id=session.thread_id,
            channel_id=session.channel_id
        )
        metrics_collector.record_message("inbound", kind.value)

        return RouterResult.success("Message forwarded to Slack")

    # ===========================
    # Slack: events
    # ===========================

    @routed
    async def handle_slack_event(self, event: Dict[str, Any]) -> RouterResult:
        """Dispatch one Events API ``event`` object."""
        event_type = event.get("type")

        if event_type == "message":
            return await self._on_message(event)
        if event_type == "reaction_added":
            return await self._on_reaction(event)
        if event_type == "app_home_opened":
            return await self._on_home_opened(event)

        return RouterResult.ignored(f"Unhandled event type: {event_type}")

    async def _on_message(self, event: Dict[str, Any]) -> RouterResult:
        # Our own posts come back as events
        if event.get("bot_id") or event.get("subtype") not in (None, "file_share"):
            return RouterResult.ignored("Bot or system message")

        thread_ts = event.get("thread_ts")
        ts = event.get("ts")

        if (
            self.broadcast_channel_id
            and event.get("channel") == self.broadcast_channel_id
            and not thread_ts
        ):
            return await self._start_broadcast(event)

        if not thread_ts or thread_ts == ts:
            return RouterResult.ignored("Not a thread reply")

        session = await self.sessions.find_by_thread_id(thread_ts)
        if session is None:
            return RouterResult.ignored("Thread has no live session")

        return await self._forward_agent_reply(session, event)

    async def _forward_agent_reply(self, session: Session, event: Dict[str, Any]) -> RouterResult:
        self.timers.cancel(session.session_id)

        forwarded = 0
        failures: List[str] = []

        text = (event.get("text") or "").strip()
        if text:
            try:
                await self.ai.send_outbound(session.session_id, "text", {"text": text})
                metrics_collector.record_message("outbound", "text")
                forwarded += 1
            except CollaboratorError as e:
                failures.append(str(e))
                await self._post_quietly(
                    render(MessageKind.DELIVERY_FAILED, detail=e.detail),
                    session.thread_id,
                    session.channel_id
                )

        for file_info in event.get("files") or []:
            try:
                await self._forward_file(session, file_info)
                forwarded += 1
            except UnsupportedMediaKindError as e:
                failures.append(str(e))
                await self._post_quietly(
                    render(
                        MessageKind.UNSUPPORTED_MEDIA,
                        filename=e.filename or "file",
                        content_type=e.content_type
                    ),
                    session.thread_id,
                    session.channel_id
                )
            except CollaboratorError as e:
                failures.append(str(e))
                await self._post_quietly(
                    render(MessageKind.DELIVERY_FAILED, detail=e.detail),
                    session.thread_id,
                    session.channel_id
                )

        if failures:
            return RouterResult.warning(
                "Reply partly delivered" if forwarded else "Reply not delivered",
                forwarded=forwarded,
                failures=failures
            )
        return RouterResult.success("Reply forwarded", forwarded=forwarded)

    async def _forward_file(self, session: Session, file_info: Dict[str, Any]) -> None:
        """
        Download a Slack attachment, host it, and send it as WhatsApp media.

        Raises:
            UnsupportedMediaKindError: For documents and other non-media files
            CollaboratorError: If any of the three hops fails
        """
        filename = file_info.get("name") or file_info.get("title") or "file"
        content_type = file_info.get("mimetype") or "application/octet-stream"
        kind = media_kind_for(content_type, filename)

        url = file_info.get("url_private_download") or file_info.get("url_private")
        if not url:
            raise CollaboratorError("slack", "files.download", f"no download url for {filename}")

        data = await self.chat.download_file(url)
        public_url = await self.media.upload(data, kind, filename, content_type)

        await self.ai.send_outbound(session.session_id, kind, {kind: {"url": public_url}})
        metrics_collector.record_message("outbound", kind)

    async def _on_reaction(self, event: Dict[str, Any]) -> RouterResult:
        if event.get("reaction") != self.close_reaction:
            return RouterResult.ignored("Not a close reaction")

        item = event.get("item") or {}
        session = await self.sessions.find_by_thread_id(item.get("ts", ""))
        if session is None:
            return RouterResult.ignored("Reaction not on a live session thread")

        return await self.close_session(
            session.session_id,
            closed_by=event.get("user"),
            trigger="reaction"
        )

    async def _on_home_opened(self, event: Dict[str, Any]) -> RouterResult:
        if event.get("tab", "home") != "home":
            return RouterResult.ignored("Not the home tab")

        await self.publish_directory(event["user"])
        return RouterResult.success("Directory published")

    async def publish_directory(self, user_id: str) -> None:
        contacts = await self.contacts.list_all()
        roles = await self.contacts.list_roles()
        await self.chat.publish_home(user_id, blocks.directory_home(contacts, roles))

    # ===========================
    # Close
    # ===========================

    @routed
    async def close_session(
        self,
        session_id: str,
        closed_by: Optional[str] = None,
        trigger: str = "command",
        parent_message: Optional[Dict[str, str]] = None
    ) -> RouterResult:
        """
        End a live session: disconnect, notify the thread, forget it.

        Closing a session that is not live is a no-op.

        Args:
            session_id: Session to close
            closed_by: Slack user id of the agent, if known
            trigger: "button", "reaction" or "command"
            parent_message: channel/ts/text of the opening message, rewritten
                to show who closed it
        """
        try:
            session = await self.sessions.get_by_session_id(session_id)
        except SessionNotFoundError:
            logger.info(f"Close for session {session_id} ignored, not live")
            return RouterResult.ignored("Session not found")

        self.timers.cancel(session_id)

        disconnect_failed = False
        try:
            await self.ai.disconnect(session_id)
        except CollaboratorError as e:
            disconnect_failed = True
            logger.warning(f"Disconnect of session {session_id} failed, closing locally: {e}")

        notice = (
            render(MessageKind.TICKET_CLOSED_BY, user_id=closed_by)
            if closed_by else render(MessageKind.TICKET_CLOSED)
        )
        await self._post_quietly(notice, session.thread_id, session.channel_id)

        await self.sessions.delete_session(session_id)
        await self.store.delete(start_claim_key(session_id))

        if parent_message and closed_by:
            try:
                await self.chat.update_message(
                    parent_message["channel_id"],
                    parent_message["ts"],
                    parent_message.get("text") or notice,
                    blocks=blocks.closed_message(parent_message.get("text") or notice, closed_by)
                )
            except CollaboratorError as e:
                logger.warning(f"Could not update opening message of session {session_id}: {e}")

        track_session_closed(trigger, await self.sessions.count())
        logger.info(f"Session {session_id} closed ({trigger})")

        if disconnect_failed:
            return RouterResult.warning(
                "Ticket closed, but AI Studio disconnect failed",
                session_id=session_id
            )
        return RouterResult.success("Ticket closed", session_id=session_id)

    # ===========================
    # Slack: interactions
    # ===========================

    @routed
    async def handle_interaction(self, payload: Dict[str, Any]) -> RouterResult:
        """Dispatch a block_actions or view_submission payload."""
        payload_type = payload.get("type")

        if payload_type == "block_actions":
            return await self._on_block_action(payload)
        if payload_type == "view_submission":
            return await self._on_view_submission(payload)

        return RouterResult.ignored(f"Unhandled interaction type: {payload_type}")

    async def _on_block_action(self, payload: Dict[str, Any]) -> RouterResult:
        actions = payload.get("actions") or []
        if not actions:
            return RouterResult.ignored("No action")

        action = actions[0]
        action_id = action.get("action_id")
        value = action.get("value", "")
        user_id = (payload.get("user") or {}).get("id")
        trigger_id = payload.get("trigger_id")

        channel_id = (payload.get("channel") or {}).get("id")
        message = payload.get("message") or {}

        if action_id == blocks.CLOSE_TICKET:
            return await self.close_session(
                value,
                closed_by=user_id,
                trigger="button",
                parent_message={
                    "channel_id": channel_id,
                    "ts": message.get("ts"),
                    "text": message.get("text"),
                } if channel_id and message.get("ts") else None
            )

        if action_id == blocks.SAVE_CONTACT:
            session = await self.sessions.get_by_session_id(value)
            if not session.customer_phone:
                return RouterResult.warning("Session has no customer phone")
            await self.chat.open_modal(trigger_id, blocks.save_contact_modal(session))
            return RouterResult.success("Save-contact modal opened")

        if action_id == blocks.EDIT_ROLES:
            contact = await self.contacts.find_by_phone(value)
            roles = await self.contacts.list_roles()
            await self.chat.open_modal(trigger_id, blocks.edit_roles_modal(contact, roles))
            return RouterResult.success("Edit-roles modal opened")

        if action_id == blocks.BROADCAST_SEND:
            selected = blocks.selected_values(
                payload.get("state") or {},
                blocks.BROADCAST_ROLES_BLOCK,
                blocks.BROADCAST_ROLES_INPUT
            )
            return await self.send_broadcast(
                value,
                selected,
                channel_id=channel_id,
                selector_ts=message.get("ts")
            )

        if action_id == blocks.BROADCAST_CANCEL:
            return await self._cancel_broadcast(value, channel_id, message.get("ts"))

        return RouterResult.ignored(f"Unhandled action: {action_id}")

    async def _on_view_submission(self, payload: Dict[str, Any]) -> RouterResult:
        view = payload.get("view") or {}
        callback_id = view.get("callback_id")
        state = view.get("state") or {}
        metadata = json.loads(view.get("private_metadata") or "{}")
        user_id = (payload.get("user") or {}).get("id")

        if callback_id == blocks.SAVE_CONTACT_MODAL:
            name = blocks.input_value(state, blocks.CONTACT_NAME_BLOCK, blocks.CONTACT_NAME_INPUT)
            if not name:
                return RouterResult.error(
                    "Name is required",
                    response_action="errors",
                    errors={blocks.CONTACT_NAME_BLOCK: "Name is required"}
                )

            contact = await self.contacts.upsert_name(metadata["phone"], name)
            if metadata.get("thread_id"):
                await self._post_quietly(
                    render(MessageKind.CONTACT_SAVED, name=contact.name, phone=contact.phone),
                    metadata["thread_id"],
                    metadata.get("channel_id")
                )
            return RouterResult.success("Contact saved", phone=contact.phone)

        if callback_id == blocks.EDIT_ROLES_MODAL:
            roles = blocks.selected_values(state, blocks.CONTACT_ROLES_BLOCK, blocks.CONTACT_ROLES_INPUT)
            contact = await self.contacts.set_roles(metadata["phone"], roles)
            if user_id:
                try:
                    await self.publish_directory(user_id)
                except CollaboratorError as e:
                    logger.warning(f"Could not refresh directory for {user_id}: {e}")
            return RouterResult.success(
                "Roles updated",
                phone=contact.phone,
                roles=sorted(contact.roles)
            )

        return RouterResult.ignored(f"Unhandled view: {callback_id}")

    # ===========================
    # Broadcast
    # ===========================

    async def _start_broadcast(self, event: Dict[str, Any]) -> RouterResult:
        text = (event.get("text") or "").strip()
        if not text:
            return RouterResult.ignored("Empty broadcast message")

        channel_id = event["channel"]
        draft_id = event["ts"]

        roles = await self.contacts.list_roles()
        if not roles:
            await self._post_quietly(render(MessageKind.BROADCAST_NO_ROLES), draft_id, channel_id)
            return RouterResult.warning("No roles defined")

        draft = {"text": text, "channel_id": channel_id, "author": event.get("user")}
        await self.store.set(broadcast_key(draft_id), json.dumps(draft), ttl=self.broadcast_draft_ttl)

        prompt = render(MessageKind.BROADCAST_PROMPT)
        await self.chat.post_message(
            prompt,
            thread_id=draft_id,
            blocks=blocks.broadcast_selector(prompt, roles, draft_id),
            channel_id=channel_id
        )

        logger.info(f"Broadcast draft {draft_id} stored, awaiting role selection")
        return RouterResult.success("Broadcast draft stored", draft_id=draft_id)

    async def send_broadcast(
        self,
        draft_id: str,
        roles: List[str],
        channel_id: Optional[str] = None,
        selector_ts: Optional[str] = None
    ) -> RouterResult:
        """
        Send a stored draft to every contact holding any of the roles.

        Each contact gets its own outcome line in the draft's thread; one
        failure never stops the rest.
        """
        raw = await self.store.get(broadcast_key(draft_id))
        if raw is None:
            if channel_id:
                await self._post_quietly(render(MessageKind.BROADCAST_EXPIRED), draft_id, channel_id)
            return RouterResult.warning("Broadcast draft not found")

        draft = json.loads(raw)
        channel_id = draft.get("channel_id") or channel_id

        if not roles:
            await self._post_quietly(render(MessageKind.BROADCAST_NO_SELECTION), draft_id, channel_id)
            return RouterResult.warning("No roles selected")

        recipients = await self.contacts.contacts_with_any_role(roles)
        if not recipients:
            await self._post_quietly(
                render(MessageKind.BROADCAST_NO_CONTACTS, roles=", ".join(sorted(roles))),
                draft_id,
                channel_id
            )
            return RouterResult.warning("No contacts match the selected roles")

        # Only the click whose delete removes the draft sends it
        if not await self.store.delete(broadcast_key(draft_id)):
            logger.info(f"Broadcast draft {draft_id} already consumed")
            return RouterResult.ignored("Broadcast draft already sent")

        if selector_ts:
            try:
                await self.chat.update_message(
                    channel_id,
                    selector_ts,
                    f"📣 Sending to roles: {', '.join(sorted(roles))}",
                    blocks=[]
                )
            except CollaboratorError as e:
                logger.warning(f"Could not update broadcast selector {selector_ts}: {e}")

        results = []
        for contact in recipients:
            try:
                await self.ai.send_to_contact(contact.phone, draft["text"])
                line = render(MessageKind.BROADCAST_SENT, name=contact.name, phone=contact.phone)
                ok = True
            except CollaboratorError as e:
                logger.warning(f"Broadcast to {contact.phone} failed: {e}")
                line = render(
                    MessageKind.BROADCAST_FAILED,
                    name=contact.name,
                    phone=contact.phone,
                    detail=e.detail
                )
                ok = False

            track_broadcast_delivery(ok)
            results.append({"phone": contact.phone, "ok": ok})
            await self._post_quietly(line, draft_id, channel_id)

        sent = sum(1 for r in results if r["ok"])
        failed = len(results) - sent
        await self._post_quietly(
            render(MessageKind.BROADCAST_SUMMARY, sent=sent, failed=failed),
            draft_id,
            channel_id
        )

        logger.info(f"Broadcast {draft_id} finished: {sent} sent, {failed} failed")
        return RouterResult.success(
            "Broadcast finished",
            sent=sent,
            failed=failed,
            results=results
        )

    async def _cancel_broadcast(
        self,
        draft_id: str,
        channel_id: Optional[str],
        selector_ts: Optional[str]
    ) -> RouterResult:
        await self.store.delete(broadcast_key(draft_id))

        if channel_id and selector_ts:
            try:
                await self.chat.update_message(
                    channel_id,
                    selector_ts,
                    render(MessageKind.BROADCAST_CANCELLED),
                    blocks=[]
                )
            except CollaboratorError as e:
                logger.warning(f"Could not update broadcast selector {selector_ts}: {e}")

        return RouterResult.success("Broadcast cancelled")

    # ===========================
    # Slash commands
    # ===========================

    @routed
    async def handle_command(self, command: SlashCommand) -> RouterResult:
        """Run a ``/handoff`` admin command."""
        return await self.commands.execute(command)

    # ===========================
    # Helpers
    # ===========================

    async def _post_quietly(
        self,
        text: str,
        thread_id: str,
        channel_id: Optional[str]
    ) -> bool:
        """Post a notice into a thread; a failure is logged, not raised."""
        try:
            await self.chat.post_message(text, thread_id=thread_id, channel_id=channel_id)
            return True
        except CollaboratorError as e:
            logger.warning(f"Could not post notice to thread {thread_id}: {e}")
            return False


__all__ = ['EventRouter', 'routed', 'start_claim_key', 'broadcast_key']
