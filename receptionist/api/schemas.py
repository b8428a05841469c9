from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from receptionist.models import (
    CallDirection,
    CallStatus,
    SummaryChannel,
    VoiceTone,
)


class CamelModel(BaseModel):
    """Base for payloads exchanged with the frontend and Vapi, which speak camelCase."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Vapi webhook payloads ---

class VapiFunctionCall(CamelModel):
    name: str
    parameters: Dict[str, Any] = {}

class VapiMessage(CamelModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    function_call: Optional[VapiFunctionCall] = None
    transcript: Optional[str] = None

class VapiCall(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    direction: Optional[str] = None
    status: Optional[str] = None
    # `from` is a keyword, so it is only reachable through its alias
    from_number: Optional[str] = Field(default=None, alias="from")
    to_number: Optional[str] = Field(default=None, alias="to")
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration: Optional[float] = None
    recording_url: Optional[str] = None
    transcript: Optional[str] = None

class VapiWebhookEvent(CamelModel):
    model_config = ConfigDict(extra="allow")

    type: str
    call: Optional[VapiCall] = None
    message: Optional[VapiMessage] = None


# --- Business profile ---

class ServiceSchema(CamelModel):
    name: str
    duration: Optional[float] = None
    price: Optional[float] = None

class DayHoursSchema(CamelModel):
    open: str
    close: str
    closed: Optional[bool] = None

class FaqSchema(CamelModel):
    question: str
    answer: str

class BookingRulesSchema(CamelModel):
    slots: Optional[List[str]] = None
    lead_time: Optional[float] = None
    max_advance_days: Optional[float] = None

class BusinessPayload(CamelModel):
    name: str = Field(min_length=1)
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    business_type: Optional[str] = None
    services: List[ServiceSchema]
    hours: Dict[str, DayHoursSchema]
    pricing: Optional[Dict[str, Any]] = None
    faqs: List[FaqSchema]
    voice_tone: Optional[VoiceTone] = None
    summary_channel: Optional[SummaryChannel] = None
    booking_rules: Optional[BookingRulesSchema] = None
    timezone: Optional[str] = None


# --- Responses ---

class AppointmentResponse(CamelModel):
    id: str
    business_id: str
    call_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: str
    customer_email: Optional[str] = None
    service_type: Optional[str] = None
    scheduled_at: datetime
    notes: Optional[str] = None
    status: str
    created_at: datetime

class CallResponse(CamelModel):
    id: str
    vapi_call_id: str
    business_id: str
    caller_phone: Optional[str] = None
    direction: CallDirection
    status: CallStatus
    timestamp: datetime
    duration: Optional[int] = None
    audio_url: Optional[str] = None
    transcript: Optional[str] = None
    vapi_metadata: Optional[Dict[str, Any]] = None
    summary: Optional[Dict[str, Any]] = None
    extracted_info: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

class CallListItem(CallResponse):
    appointments: List[AppointmentResponse] = []

class BusinessRef(CamelModel):
    id: str
    name: str

class CallDetailResponse(CallResponse):
    appointments: List[AppointmentResponse] = []
    business: BusinessRef

class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

class CallListResponse(CamelModel):
    calls: List[CallListItem]
    pagination: Pagination

class BusinessResponse(CamelModel):
    id: str
    user_id: str
    clerk_user_id: str
    name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    business_type: Optional[str] = None
    services: List[Dict[str, Any]] = []
    hours: Dict[str, Any] = {}
    pricing: Optional[Dict[str, Any]] = None
    faqs: List[Dict[str, Any]] = []
    voice_tone: VoiceTone
    summary_channel: SummaryChannel
    booking_rules: Optional[Dict[str, Any]] = None
    timezone: str
    vapi_assistant_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class BusinessWithCallsResponse(BusinessResponse):
    calls: List[CallResponse] = []


# --- Vapi proxy ---

class CreateAssistantRequest(CamelModel):
    name: str
    model: Optional[str] = None
    voice: Optional[Any] = None
    system_prompt: Optional[str] = None
    tools: List[Dict[str, Any]] = []

class CreateOutboundCallRequest(CamelModel):
    phone_number: str
    assistant_id: Optional[str] = None
