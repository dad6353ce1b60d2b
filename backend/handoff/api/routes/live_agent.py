"""
AI Studio live-agent webhooks.

AI Studio treats any non-2xx answer as a failed step in the customer's
conversation, so these routes always answer 200 and carry the outcome in
the body.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError

from ...models import InboundRequest, RouterResult, StartRequest
from ...router import EventRouter
from ..dependencies import get_event_router

logger = logging.getLogger(__name__)

router = APIRouter()


def _invalid(endpoint: str, error: ValidationError) -> Dict[str, Any]:
    logger.warning(f"Invalid {endpoint} payload: {error.errors(include_url=False)}")
    return RouterResult.error(
        f"Invalid {endpoint} payload",
        errors=error.errors(include_url=False, include_context=False)
    ).model_dump(mode="json")


@router.post("/start")
async def start(
    payload: Dict[str, Any] = Body(...),
    event_router: EventRouter = Depends(get_event_router)
):
    """
    Live-agent routing started: open a Slack thread for the session.

    Returns:
        RouterResult with the thread id on success
    """
    logger.info(f"Start received for session {payload.get('sessionId')}")

    try:
        request = StartRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid("start", e)

    result = await event_router.handle_start(request)
    return result.model_dump(mode="json")


@router.post("/inbound")
async def inbound(
    payload: Dict[str, Any] = Body(...),
    event_router: EventRouter = Depends(get_event_router)
):
    """
    Customer message during a live-agent session: relay it to the thread.

    An unknown session yields a warning, never an error status.
    """
    try:
        request = InboundRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid("inbound", e)

    result = await event_router.handle_inbound(request)
    return result.model_dump(mode="json")
