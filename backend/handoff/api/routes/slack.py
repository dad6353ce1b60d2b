"""
Slack webhooks: Events API, interactivity and slash commands.

Slack gives each delivery three seconds and then retries, so events and
button clicks are acknowledged first and processed as background tasks.
"""
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from pydantic import ValidationError

from ...models import SlashCommand
from ...router import EventRouter
from ..dependencies import get_event_router

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    event_router: EventRouter = Depends(get_event_router)
):
    """Events API endpoint (message, reaction_added, app_home_opened)."""
    try:
        body: Dict[str, Any] = await request.json()
    except ValueError:
        logger.warning("Slack event with malformed JSON body")
        return {"ok": False}

    if body.get("type") == "url_verification":
        logger.info("Slack URL verification challenge answered")
        return {"challenge": body.get("challenge")}

    retry_num = request.headers.get("X-Slack-Retry-Num")
    if retry_num:
        # The first delivery was acknowledged and is already being handled
        logger.info(
            f"Dropping Slack retry #{retry_num} "
            f"({request.headers.get('X-Slack-Retry-Reason', 'unknown')})"
        )
        return {"ok": True}

    event = body.get("event")
    if body.get("type") == "event_callback" and event:
        logger.debug(f"Slack event {event.get('type')} queued")
        background_tasks.add_task(event_router.handle_slack_event, event)

    return {"ok": True}


@router.post("/interactions")
async def slack_interactions(
    request: Request,
    background_tasks: BackgroundTasks,
    event_router: EventRouter = Depends(get_event_router)
):
    """
    Interactivity endpoint (buttons, modal submissions).

    Modal submissions are handled inline because Slack reads validation
    errors from this response.
    """
    form = await request.form()
    try:
        payload = json.loads(form.get("payload") or "{}")
    except ValueError:
        logger.warning("Slack interaction with malformed payload")
        return Response(status_code=200)

    if payload.get("type") == "view_submission":
        result = await event_router.handle_interaction(payload)
        if result.data.get("response_action"):
            return {
                "response_action": result.data["response_action"],
                "errors": result.data.get("errors", {})
            }
        return Response(status_code=200)

    background_tasks.add_task(event_router.handle_interaction, payload)
    return Response(status_code=200)


@router.post("/commands")
async def slack_commands(
    request: Request,
    event_router: EventRouter = Depends(get_event_router)
):
    """Slash command endpoint; the reply is shown only to the caller."""
    form = await request.form()
    try:
        command = SlashCommand.model_validate(dict(form))
    except ValidationError:
        logger.warning("Slash command with missing fields")
        return {"response_type": "ephemeral", "text": "Malformed command request"}

    result = await event_router.handle_command(command)
    return {"response_type": "ephemeral", "text": result.message}
