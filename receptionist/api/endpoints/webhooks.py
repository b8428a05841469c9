import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse

from receptionist.api.deps import get_call_handler
from receptionist.api.schemas import VapiWebhookEvent
from receptionist.call_handler import CallEventHandler
from receptionist.rate_limit import webhook_limit

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/vapi")
@webhook_limit
def handle_vapi_webhook(
    request: Request,
    event: VapiWebhookEvent,
    background_tasks: BackgroundTasks,
    handler: CallEventHandler = Depends(get_call_handler),
):
    """
    Handles call lifecycle webhooks from Vapi. Always acknowledges with 200 so
    Vapi does not retry events we could not act on.
    """
    logger.info(f"Received Vapi webhook: {event.type}")
    result = handler.handle_webhook(event, background_tasks)
    logger.debug(f"Vapi webhook {event.type} handled: {result}")
    return {"success": True}

@router.get("/vapi")
@webhook_limit
def verify_vapi_webhook(request: Request, challenge: Optional[str] = None):
    """Vapi may verify the webhook URL with a GET carrying a challenge."""
    if challenge:
        return PlainTextResponse(challenge)
    return {"status": "ok"}
