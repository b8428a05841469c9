import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from fastapi import BackgroundTasks
from sqlmodel import Session, select

from receptionist.api.schemas import VapiWebhookEvent
from receptionist.models import Business, Call, CallDirection, CallStatus, utcnow
from receptionist.summary_generator import SummaryGenerator
from receptionist.tools import ToolRegistry, default_registry

logger = logging.getLogger(__name__)

class WebhookEventType(str, Enum):
    CALL_START = "call-start"
    CALL_END = "call-end"
    STATUS_UPDATE = "status-update"
    FUNCTION_CALL = "function-call"
    TRANSCRIPT = "transcript"

class CallNotFoundError(Exception):
    def __init__(self, vapi_call_id: str):
        super().__init__(f"No call recorded for Vapi call id {vapi_call_id}")
        self.vapi_call_id = vapi_call_id


def map_call_status(vapi_status: Optional[str]) -> CallStatus:
    """Translates Vapi's call status vocabulary into ours."""
    if vapi_status in ("ended", "completed"):
        return CallStatus.completed
    if vapi_status in ("failed", "no-answer"):
        return CallStatus.missed
    return CallStatus.answered

def parse_direction(direction: Optional[str]) -> CallDirection:
    if direction == CallDirection.outbound.value:
        return CallDirection.outbound
    return CallDirection.inbound


class CallEventHandler:
    """
    Applies Vapi webhook events to our call records.

    Every event runs in its own session. Handlers may raise; `handle_webhook`
    logs and reports the failure instead of propagating it, because Vapi
    retries any webhook that does not get a 200.
    """

    def __init__(self, engine, summary_generator: SummaryGenerator, tools: ToolRegistry = default_registry):
        self.engine = engine
        self.summary_generator = summary_generator
        self.tools = tools
        self._handlers: Dict[WebhookEventType, Callable[..., Dict[str, Any]]] = {
            WebhookEventType.CALL_START: self._handle_call_start,
            WebhookEventType.CALL_END: self._handle_call_end,
            WebhookEventType.STATUS_UPDATE: self._handle_status_update,
            WebhookEventType.FUNCTION_CALL: self._handle_function_call,
            WebhookEventType.TRANSCRIPT: self._handle_transcript,
        }

    def handle_webhook(self, event: VapiWebhookEvent, background_tasks: Optional[BackgroundTasks] = None) -> Dict[str, Any]:
        try:
            event_type = WebhookEventType(event.type)
        except ValueError:
            logger.info(f"Unhandled webhook type: {event.type}")
            return {"status": "ignored", "type": event.type}

        handler = self._handlers[event_type]
        pending_summaries = []
        try:
            with Session(self.engine) as session:
                result = handler(session, event, pending_summaries)
        except CallNotFoundError as e:
            logger.warning(f"Could not apply {event_type.value} event: {e}")
            return {"status": "call_not_found", "call_id": e.vapi_call_id}
        except Exception:
            logger.exception(f"Error handling {event_type.value} webhook")
            return {"status": "error", "type": event_type.value}

        # Summaries run outside the event's session, after it has committed
        for call_id, transcript, business_id in pending_summaries:
            self._schedule_summary(background_tasks, call_id, transcript, business_id)
        return result

    def _get_call(self, session: Session, vapi_call_id: Optional[str]) -> Call:
        call = None
        if vapi_call_id:
            call = session.exec(select(Call).where(Call.vapi_call_id == vapi_call_id)).first()
        if call is None:
            raise CallNotFoundError(vapi_call_id)
        return call

    def find_business_by_phone_number(self, session: Session, phone_number: Optional[str]) -> Optional[Business]:
        if not phone_number:
            return None
        statement = (
            select(Business)
            .where(Business.phone_number == phone_number)
            .order_by(Business.created_at)
        )
        matches = session.exec(statement).all()
        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} businesses share phone number {phone_number}; "
                f"using the oldest ({matches[0].id})"
            )
        return matches[0] if matches else None

    def _handle_call_start(self, session: Session, event: VapiWebhookEvent, pending_summaries: List) -> Dict[str, Any]:
        if not event.call or not event.call.id:
            return {"status": "ignored"}
        vapi_call = event.call

        existing = session.exec(select(Call).where(Call.vapi_call_id == vapi_call.id)).first()
        if existing:
            logger.info(f"Call {vapi_call.id} already recorded")
            return {"status": "call_started", "call_id": existing.id}

        business = self.find_business_by_phone_number(session, vapi_call.to_number)
        if not business:
            logger.error(f"Business not found for phone number: {vapi_call.to_number}")
            return {"status": "business_not_found"}

        call = Call(
            vapi_call_id=vapi_call.id,
            business_id=business.id,
            caller_phone=vapi_call.from_number,
            direction=parse_direction(vapi_call.direction),
            status=CallStatus.answered,
            timestamp=vapi_call.started_at or utcnow(),
            vapi_metadata=vapi_call.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        session.add(call)
        session.commit()

        logger.info(f"Call started: {vapi_call.id} for business: {business.name}")
        return {"status": "call_started", "call_id": call.id}

    def _handle_call_end(self, session: Session, event: VapiWebhookEvent, pending_summaries: List) -> Dict[str, Any]:
        if not event.call:
            return {"status": "ignored"}
        vapi_call = event.call

        call = self._get_call(session, vapi_call.id)
        call.status = CallStatus.completed
        # Fields missing from the event keep what earlier events stored
        if vapi_call.duration is not None:
            call.duration = round(vapi_call.duration)
        if vapi_call.recording_url is not None:
            call.audio_url = vapi_call.recording_url
        if vapi_call.transcript is not None:
            call.transcript = vapi_call.transcript
        call.vapi_metadata = vapi_call.model_dump(mode="json", by_alias=True, exclude_none=True)
        call.updated_at = utcnow()
        session.add(call)
        session.commit()

        transcript = call.transcript
        if transcript and transcript.strip():
            pending_summaries.append((call.id, transcript, call.business_id))

        if call.duration is not None:
            logger.info(f"Call ended: {vapi_call.id}, duration: {call.duration}s")
        else:
            logger.info(f"Call ended: {vapi_call.id}")
        return {"status": "call_ended", "call_id": call.id}

    def _handle_status_update(self, session: Session, event: VapiWebhookEvent, pending_summaries: List) -> Dict[str, Any]:
        if not event.call:
            return {"status": "ignored"}

        call = self._get_call(session, event.call.id)
        call.status = map_call_status(event.call.status)
        call.vapi_metadata = event.call.model_dump(mode="json", by_alias=True, exclude_none=True)
        call.updated_at = utcnow()
        session.add(call)
        session.commit()
        return {"status": "status_updated", "call_status": call.status.value}

    def _handle_transcript(self, session: Session, event: VapiWebhookEvent, pending_summaries: List) -> Dict[str, Any]:
        if not event.call or not event.message or not event.message.transcript:
            return {"status": "ignored"}

        call = self._get_call(session, event.call.id)
        call.transcript = event.message.transcript
        call.updated_at = utcnow()
        session.add(call)
        session.commit()
        return {"status": "transcript_updated"}

    def _handle_function_call(self, session: Session, event: VapiWebhookEvent, pending_summaries: List) -> Dict[str, Any]:
        if not event.message or not event.message.function_call:
            return {"status": "ignored"}
        if not event.call or not event.call.id:
            return {"status": "ignored"}

        function_call = event.message.function_call
        call = session.exec(select(Call).where(Call.vapi_call_id == event.call.id)).first()
        if call is None:
            logger.warning(f"Function call {function_call.name} for unknown call {event.call.id}")
            return {"status": "call_not_found", "call_id": event.call.id}

        return self.tools.dispatch(function_call.name, session, call, function_call.parameters)

    def _schedule_summary(self, background_tasks: Optional[BackgroundTasks], call_id: str, transcript: str, business_id: str):
        if background_tasks is not None:
            background_tasks.add_task(self.summarize_call, call_id, transcript, business_id)
        else:
            self.summarize_call(call_id, transcript, business_id)

    def summarize_call(self, call_id: str, transcript: str, business_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.summary_generator.generate_and_save(call_id, transcript, business_id)
        except Exception as e:
            logger.error(f"Error generating summary for call {call_id}: {e}")
            return None
