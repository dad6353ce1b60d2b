"""
Tests for the /handoff admin commands.
"""
import pytest

from handoff.collaborators.base import ChatUser
from handoff.errors import CommandError
from handoff.messages import HELP_TEXT
from handoff.models import ResultStatus, SlashCommand


def _command(text: str) -> SlashCommand:
    return SlashCommand(command="/handoff", text=text, user_id="U_ADMIN", channel_id="C_SUPPORT")


@pytest.fixture
def commands(event_router):
    return event_router.commands


@pytest.fixture
def workspace(chat):
    chat.users = [
        ChatUser(id="U0MARIA1", handle="maria", display_name="Maria L"),
        ChatUser(id="U0JUAN01", handle="juan"),
    ]
    return chat


# ===========================
# Parsing
# ===========================

@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "help", "HELP"])
async def test_help(commands, text):
    result = await commands.execute(_command(text))

    assert result.status == ResultStatus.SUCCESS
    assert result.message == HELP_TEXT


@pytest.mark.asyncio
async def test_unknown_command(commands):
    with pytest.raises(CommandError, match="Unknown command"):
        await commands.execute(_command("dance"))


@pytest.mark.asyncio
async def test_bad_quoting(commands):
    with pytest.raises(CommandError, match="Could not parse"):
        await commands.execute(_command('assign add "academy registration @maria'))


@pytest.mark.asyncio
async def test_router_turns_command_error_into_result(event_router):
    result = await event_router.handle_command(_command("dance"))

    assert result.status == ResultStatus.ERROR
    assert "Unknown command" in result.message


# ===========================
# assign
# ===========================

@pytest.mark.asyncio
async def test_assign_add_resolves_handles(commands, workspace, assignments):
    result = await commands.execute(_command("assign add academy registration @maria @juan"))

    assert result.status == ResultStatus.SUCCESS
    assert await assignments.list_responders("academy", "registration") == {"U0MARIA1", "U0JUAN01"}
    assert workspace.list_users_calls == 1


@pytest.mark.asyncio
async def test_assign_add_accepts_mentions_without_lookup(commands, workspace, assignments):
    await commands.execute(_command("assign add academy registration <@U0MARIA1|maria> U0JUAN01"))

    assert await assignments.list_responders("academy", "registration") == {"U0MARIA1", "U0JUAN01"}
    assert workspace.list_users_calls == 0


@pytest.mark.asyncio
async def test_assign_by_display_name(commands, workspace, assignments):
    await commands.execute(_command('assign add billing refunds "@Maria L"'))

    assert await assignments.list_responders("billing", "refunds") == {"U0MARIA1"}


@pytest.mark.asyncio
async def test_assign_unknown_handle(commands, workspace, assignments):
    with pytest.raises(CommandError, match="Unknown user `@ghost`"):
        await commands.execute(_command("assign add academy registration @maria @ghost"))

    assert await assignments.list_all() == {}


@pytest.mark.asyncio
async def test_assign_add_requires_responder(commands):
    with pytest.raises(CommandError):
        await commands.execute(_command("assign add academy registration"))


@pytest.mark.asyncio
async def test_assign_rejects_separator_in_tag(commands, workspace):
    with pytest.raises(CommandError):
        await commands.execute(_command("assign add a:b registration @maria"))


@pytest.mark.asyncio
async def test_assign_remove_and_list(commands, workspace, assignments):
    await commands.execute(_command("assign add academy registration @maria @juan"))
    await commands.execute(_command("assign add billing refunds @juan"))

    removed = await commands.execute(_command("assign remove academy registration @maria"))
    assert "<@U0MARIA1>" in removed.message

    listing = await commands.execute(_command("assign list"))
    assert listing.data["count"] == 2
    assert listing.message.splitlines() == [
        "`academy / registration`: <@U0JUAN01>",
        "`billing / refunds`: <@U0JUAN01>",
    ]

    cleared = await commands.execute(_command("assign remove billing refunds"))
    assert cleared.message.startswith("Cleared all responders")
    assert list(await assignments.list_all()) == [("academy", "registration")]


@pytest.mark.asyncio
async def test_assign_list_empty(commands):
    result = await commands.execute(_command("assign list"))

    assert result.message.startswith("No assignments yet")


# ===========================
# role
# ===========================

@pytest.mark.asyncio
async def test_role_add_list_remove(commands, contacts):
    await commands.execute(_command("role add Academy"))
    await commands.execute(_command("role add vip"))
    await contacts.upsert_name("15551234567", "Maria")
    await contacts.set_roles("15551234567", {"academy", "vip"})

    listing = await commands.execute(_command("role list"))
    assert listing.data["roles"] == ["academy", "vip"]

    removed = await commands.execute(_command("role remove academy"))
    assert removed.data["stripped"] == 1
    assert (await contacts.find_by_phone("15551234567")).roles == {"vip"}


@pytest.mark.asyncio
async def test_role_list_empty(commands):
    result = await commands.execute(_command("role list"))

    assert result.message == "No roles defined"


@pytest.mark.asyncio
async def test_role_add_blank_name(commands):
    with pytest.raises(CommandError):
        await commands.execute(_command('role add "  "'))


# ===========================
# close
# ===========================

@pytest.mark.asyncio
async def test_close_live_session(commands, event_router, ai, chat, make_start):
    await event_router.handle_start(make_start())

    result = await commands.execute(_command("close abc-123"))

    assert result.status == ResultStatus.SUCCESS
    assert ai.disconnects == ["abc-123"]
    assert "<@U_ADMIN>" in chat.posts[-1]["text"]


@pytest.mark.asyncio
async def test_close_unknown_session(commands, ai):
    result = await commands.execute(_command("close zzz"))

    assert result.status == ResultStatus.WARNING
    assert ai.disconnects == []
