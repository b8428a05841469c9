"""
Handlers for tools the voice assistant can invoke mid-call.

A handler receives the open session, the call the tool was invoked on and the
raw parameters the assistant supplied. New tools only need to be registered
here; the webhook dispatcher looks them up by name.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import EmailStr, ValidationError
from sqlmodel import Session

from receptionist.api.schemas import CamelModel
from receptionist.models import Appointment, Call, utcnow

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Session, Call, Dict[str, Any]], Dict[str, Any]]

class ToolRegistry:
    def __init__(self):
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, name: str):
        def decorator(func: ToolHandler) -> ToolHandler:
            self._handlers[name] = func
            return func
        return decorator

    def get(self, name: str) -> Optional[ToolHandler]:
        return self._handlers.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def names(self):
        return sorted(self._handlers)

    def dispatch(self, name: str, session: Session, call: Call, parameters: Dict[str, Any]) -> Dict[str, Any]:
        handler = self.get(name)
        if handler is None:
            logger.info(f"Unhandled function call: {name}")
            return {"status": "unknown_tool", "tool": name}
        return handler(session, call, parameters or {})


default_registry = ToolRegistry()


class AppointmentParameters(CamelModel):
    customer_name: Optional[str] = None
    customer_phone: str
    customer_email: Optional[EmailStr] = None
    service_type: Optional[str] = None
    scheduled_at: datetime
    notes: Optional[str] = None


@default_registry.register("book_appointment")
def book_appointment(session: Session, call: Call, parameters: Dict[str, Any]) -> Dict[str, Any]:
    try:
        params = AppointmentParameters.model_validate(parameters)
    except ValidationError as e:
        logger.error(f"Invalid book_appointment parameters for call {call.vapi_call_id}: {e}")
        return {"status": "invalid_parameters"}

    appointment = Appointment(
        business_id=call.business_id,
        call_id=call.id,
        customer_name=params.customer_name,
        customer_phone=params.customer_phone,
        customer_email=params.customer_email,
        service_type=params.service_type,
        scheduled_at=params.scheduled_at,
        notes=params.notes,
        status="pending",
    )
    session.add(appointment)
    session.commit()
    session.refresh(appointment)

    logger.info(f"Appointment {appointment.id} booked via call {call.vapi_call_id}")
    return {"status": "appointment_booked", "appointment_id": appointment.id}


@default_registry.register("extract_customer_info")
def extract_customer_info(session: Session, call: Call, parameters: Dict[str, Any]) -> Dict[str, Any]:
    call.extracted_info = dict(parameters)
    call.updated_at = utcnow()
    session.add(call)
    session.commit()

    logger.info(f"Stored extracted customer info for call {call.vapi_call_id}")
    return {"status": "info_extracted"}
