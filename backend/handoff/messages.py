"""
Text templates for everything the relay says, keyed by message kind.
"""
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class MessageKind(str, Enum):
    NEW_REQUEST = "new_request"
    CUSTOMER_TEXT = "customer_text"
    CUSTOMER_MEDIA = "customer_media"
    TICKET_CLOSED = "ticket_closed"
    TICKET_CLOSED_BY = "ticket_closed_by"
    BUSY = "busy"
    BUSY_NOTICE = "busy_notice"
    DELIVERY_FAILED = "delivery_failed"
    UNSUPPORTED_MEDIA = "unsupported_media"
    CONTACT_SAVED = "contact_saved"
    BROADCAST_PROMPT = "broadcast_prompt"
    BROADCAST_NO_ROLES = "broadcast_no_roles"
    BROADCAST_NO_SELECTION = "broadcast_no_selection"
    BROADCAST_NO_CONTACTS = "broadcast_no_contacts"
    BROADCAST_SENT = "broadcast_sent"
    BROADCAST_FAILED = "broadcast_failed"
    BROADCAST_SUMMARY = "broadcast_summary"
    BROADCAST_CANCELLED = "broadcast_cancelled"
    BROADCAST_EXPIRED = "broadcast_expired"


TEMPLATES: Dict[MessageKind, str] = {
    MessageKind.NEW_REQUEST: (
        "🆕 *New WhatsApp Support Request*\n\n"
        "From: {customer}\n"
        "{routing}"
        "{responders}"
        "\n💬 Reply in this thread to respond\n"
        "✅ React with :white_check_mark: to close\n\n"
        "Transcription:{transcription}"
    ),
    MessageKind.CUSTOMER_TEXT: "📱 *Customer:*\n{text}",
    MessageKind.CUSTOMER_MEDIA: "📱 *Customer sent {kind}:*\n{url}{caption}",
    MessageKind.TICKET_CLOSED: "✅ *Ticket closed*",
    MessageKind.TICKET_CLOSED_BY: "✅ *Ticket closed* by <@{user_id}>",
    MessageKind.BUSY: (
        "All our agents are still busy. Thanks for waiting, "
        "someone will be with you as soon as possible."
    ),
    MessageKind.BUSY_NOTICE: "⏰ No agent has replied yet. The customer was told agents are busy.",
    MessageKind.DELIVERY_FAILED: "⚠️ Message could not be delivered to the customer: {detail}",
    MessageKind.UNSUPPORTED_MEDIA: (
        "⚠️ `{filename}` ({content_type}) cannot be sent over WhatsApp. "
        "Only images, videos and audio are forwarded."
    ),
    MessageKind.CONTACT_SAVED: "📇 Contact saved: *{name}* ({phone})",
    MessageKind.BROADCAST_PROMPT: "📣 Choose the roles that should receive this broadcast:",
    MessageKind.BROADCAST_NO_ROLES: (
        "📣 No roles are defined yet, so there is nobody to broadcast to. "
        "Add one with `/handoff role add <name>`."
    ),
    MessageKind.BROADCAST_NO_SELECTION: "📣 Select at least one role before sending.",
    MessageKind.BROADCAST_NO_CONTACTS: "📣 No contacts have the selected roles: {roles}",
    MessageKind.BROADCAST_SENT: "✅ {name} ({phone})",
    MessageKind.BROADCAST_FAILED: "❌ {name} ({phone}): {detail}",
    MessageKind.BROADCAST_SUMMARY: "📣 Broadcast finished: {sent} sent, {failed} failed",
    MessageKind.BROADCAST_CANCELLED: "📣 Broadcast cancelled",
    MessageKind.BROADCAST_EXPIRED: "📣 This broadcast draft has expired. Post the message again.",
}


def render(kind: MessageKind, /, **values: Any) -> str:
    """Fill the template for one message kind."""
    return TEMPLATES[kind].format(**values)


def format_transcription(transcription: Optional[Iterable[Dict[str, Any]]]) -> str:
    """
    Format the bot conversation for the opening thread message.

    Each entry is a single-key mapping, ``{"BOT": text}`` or ``{"USER": text}``.
    """
    entries = list(transcription or [])
    if not entries:
        return "\n_No previous messages_"

    lines = ["\n```"]
    for entry in entries:
        for speaker, text in entry.items():
            role = "🤖 Bot" if speaker == "BOT" else "👤 User"
            lines.append(f"{role}: {text}")
    lines.append("```")
    return "\n".join(lines)


def format_mentions(responder_ids: Iterable[str]) -> str:
    return " ".join(f"<@{rid}>" for rid in sorted(responder_ids))


def new_request_text(
    customer: str,
    transcription: Optional[List[Dict[str, Any]]] = None,
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    responder_ids: Iterable[str] = ()
) -> str:
    routing = ""
    if category or subcategory:
        routing = f"Topic: {category or '-'} / {subcategory or '-'}\n"

    mentions = format_mentions(responder_ids)
    responders = f"Assigned: {mentions}\n" if mentions else ""

    return render(
        MessageKind.NEW_REQUEST,
        customer=customer,
        routing=routing,
        responders=responders,
        transcription=format_transcription(transcription)
    )


def customer_media_text(kind: str, url: str, caption: Optional[str] = None) -> str:
    return render(
        MessageKind.CUSTOMER_MEDIA,
        kind=kind,
        url=url,
        caption=f"\n{caption}" if caption else ""
    )


def customer_label(display_name: Optional[str], phone: Optional[str]) -> str:
    """Name and phone, e.g. ``Maria (15551234567)``, or whichever half is known."""
    if display_name and phone and display_name != phone:
        return f"{display_name} ({phone})"
    return display_name or phone or "Unknown"


HELP_TEXT = """*Handoff admin commands*
`/handoff assign add <category> <subcategory> @user…` route a topic to responders
`/handoff assign remove <category> <subcategory> [@user…]` remove responders (all when none given)
`/handoff assign list` show every routing rule
`/handoff role add <name>` define a broadcast role
`/handoff role remove <name>` delete a role and strip it from every contact
`/handoff role list` show defined roles
`/handoff close <session_id>` close a live session
`/handoff help` show this message"""


__all__ = [
    'MessageKind',
    'TEMPLATES',
    'HELP_TEXT',
    'render',
    'format_transcription',
    'format_mentions',
    'new_request_text',
    'customer_media_text',
    'customer_label',
]
