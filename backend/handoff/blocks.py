"""
Block Kit layouts: thread messages, modals and the app home directory.

Action and callback ids defined here are what the router dispatches on.
"""
import json
from typing import Any, Dict, Iterable, List, Optional

from .models import Contact, Session

# Action ids (block_actions)
CLOSE_TICKET = "close_ticket"
SAVE_CONTACT = "save_contact"
EDIT_ROLES = "edit_roles"
BROADCAST_SEND = "broadcast_send"
BROADCAST_CANCEL = "broadcast_cancel"

# Callback ids (view_submission)
SAVE_CONTACT_MODAL = "save_contact_modal"
EDIT_ROLES_MODAL = "edit_roles_modal"

# Input block / element ids
CONTACT_NAME_BLOCK = "contact_name"
CONTACT_NAME_INPUT = "name_input"
CONTACT_ROLES_BLOCK = "contact_roles"
CONTACT_ROLES_INPUT = "roles_input"
BROADCAST_ROLES_BLOCK = "broadcast_roles"
BROADCAST_ROLES_INPUT = "broadcast_roles_select"


def _text(text: str, kind: str = "mrkdwn") -> Dict[str, Any]:
    return {"type": kind, "text": text}


SECTION_TEXT_LIMIT = 3000


def _section(text: str) -> Dict[str, Any]:
    if len(text) > SECTION_TEXT_LIMIT:
        text = text[:SECTION_TEXT_LIMIT - 1] + "…"
    return {"type": "section", "text": _text(text)}


def _button(
    text: str,
    action_id: str,
    value: str,
    style: Optional[str] = None
) -> Dict[str, Any]:
    button = {
        "type": "button",
        "text": _text(text, "plain_text"),
        "action_id": action_id,
        "value": value,
    }
    if style:
        button["style"] = style
    return button


def _option(value: str) -> Dict[str, Any]:
    return {"text": _text(value, "plain_text"), "value": value}


# ===========================
# Thread messages
# ===========================

def session_message(text: str, session_id: str, can_save_contact: bool = True) -> List[Dict[str, Any]]:
    """Opening thread message with Close and Save-contact buttons."""
    buttons = [_button("Close ticket", CLOSE_TICKET, session_id, style="danger")]
    if can_save_contact:
        buttons.append(_button("Save contact", SAVE_CONTACT, session_id))

    return [
        _section(text),
        {"type": "actions", "block_id": "session_actions", "elements": buttons},
    ]


def closed_message(text: str, closed_by: str) -> List[Dict[str, Any]]:
    """Opening message after close: buttons replaced by who closed it."""
    return [
        _section(text),
        {"type": "context", "elements": [_text(f"✅ Closed by <@{closed_by}>")]},
    ]


def broadcast_selector(prompt: str, roles: Iterable[str], draft_id: str) -> List[Dict[str, Any]]:
    """Role checkboxes plus Send / Cancel for a broadcast draft."""
    return [
        _section(prompt),
        {
            "type": "actions",
            "block_id": BROADCAST_ROLES_BLOCK,
            "elements": [{
                "type": "checkboxes",
                "action_id": BROADCAST_ROLES_INPUT,
                "options": [_option(role) for role in roles],
            }],
        },
        {
            "type": "actions",
            "block_id": "broadcast_actions",
            "elements": [
                _button("Send", BROADCAST_SEND, draft_id, style="primary"),
                _button("Cancel", BROADCAST_CANCEL, draft_id),
            ],
        },
    ]


# ===========================
# Modals
# ===========================

def save_contact_modal(session: Session) -> Dict[str, Any]:
    metadata = {
        "session_id": session.session_id,
        "phone": session.customer_phone,
        "thread_id": session.thread_id,
        "channel_id": session.channel_id,
    }
    name_input = {
        "type": "plain_text_input",
        "action_id": CONTACT_NAME_INPUT,
    }
    if session.customer_display_name and session.customer_display_name != session.customer_phone:
        name_input["initial_value"] = session.customer_display_name

    return {
        "type": "modal",
        "callback_id": SAVE_CONTACT_MODAL,
        "private_metadata": json.dumps(metadata),
        "title": _text("Save contact", "plain_text"),
        "submit": _text("Save", "plain_text"),
        "close": _text("Cancel", "plain_text"),
        "blocks": [
            _section(f"Phone: *{session.customer_phone}*"),
            {
                "type": "input",
                "block_id": CONTACT_NAME_BLOCK,
                "label": _text("Name", "plain_text"),
                "element": name_input,
            },
        ],
    }


def edit_roles_modal(contact: Contact, defined_roles: List[str]) -> Dict[str, Any]:
    blocks: List[Dict[str, Any]] = [_section(f"*{contact.name}* ({contact.phone})")]

    if defined_roles:
        checkboxes = {
            "type": "checkboxes",
            "action_id": CONTACT_ROLES_INPUT,
            "options": [_option(role) for role in defined_roles],
        }
        current = [_option(role) for role in defined_roles if role in contact.roles]
        if current:
            checkboxes["initial_options"] = current

        blocks.append({
            "type": "input",
            "block_id": CONTACT_ROLES_BLOCK,
            "optional": True,
            "label": _text("Roles", "plain_text"),
            "element": checkboxes,
        })
    else:
        blocks.append(_section("_No roles defined. Use `/handoff role add <name>` first._"))

    return {
        "type": "modal",
        "callback_id": EDIT_ROLES_MODAL,
        "private_metadata": json.dumps({"phone": contact.phone}),
        "title": _text("Edit roles", "plain_text"),
        "submit": _text("Save", "plain_text"),
        "close": _text("Cancel", "plain_text"),
        "blocks": blocks,
    }


# ===========================
# App home
# ===========================

def directory_home(contacts: List[Contact], roles: List[str]) -> Dict[str, Any]:
    """App home view: defined roles, then every contact with an Edit roles button."""
    blocks: List[Dict[str, Any]] = [
        {"type": "header", "text": _text("Contact directory", "plain_text")},
        _section("*Roles:* " + (", ".join(f"`{r}`" for r in roles) if roles else "_none defined_")),
        {"type": "divider"},
    ]

    if not contacts:
        blocks.append(_section("_No contacts saved yet. Use *Save contact* on a support thread._"))

    for contact in contacts:
        role_text = ", ".join(sorted(contact.roles)) if contact.roles else "no roles"
        blocks.append({
            "type": "section",
            "text": _text(f"*{contact.name}*\n{contact.phone} · {role_text}"),
            "accessory": _button("Edit roles", EDIT_ROLES, contact.phone),
        })

    return {"type": "home", "blocks": blocks}


# ===========================
# Reading submitted state
# ===========================

def selected_values(state: Dict[str, Any], block_id: str, action_id: str) -> List[str]:
    """Values of the checked options of a checkboxes element."""
    element = state.get("values", {}).get(block_id, {}).get(action_id, {})
    return [opt["value"] for opt in element.get("selected_options") or []]


def input_value(state: Dict[str, Any], block_id: str, action_id: str) -> str:
    element = state.get("values", {}).get(block_id, {}).get(action_id, {})
    return (element.get("value") or "").strip()


__all__ = [
    'CLOSE_TICKET',
    'SAVE_CONTACT',
    'EDIT_ROLES',
    'BROADCAST_SEND',
    'BROADCAST_CANCEL',
    'SAVE_CONTACT_MODAL',
    'EDIT_ROLES_MODAL',
    'session_message',
    'closed_message',
    'broadcast_selector',
    'save_contact_modal',
    'edit_roles_modal',
    'directory_home',
    'selected_values',
    'input_value',
]
