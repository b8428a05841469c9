import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlmodel import Field, SQLModel, JSON, Column

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def new_id() -> str:
    return uuid.uuid4().hex

class VoiceTone(str, Enum):
    friendly = "friendly"
    professional = "professional"
    casual = "casual"

class SummaryChannel(str, Enum):
    sms = "sms"
    whatsapp = "whatsapp"
    email = "email"

class CallDirection(str, Enum):
    inbound = "inbound"
    outbound = "outbound"

class CallStatus(str, Enum):
    answered = "answered"
    completed = "completed"
    missed = "missed"

class SummaryAction(str, Enum):
    callback = "callback"
    booking = "booking"
    quote = "quote"
    info = "info"


class User(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(unique=True, index=True)
    phone: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)

class Business(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    # Subject of the Clerk identity that owns this business
    clerk_user_id: str = Field(unique=True, index=True)

    name: str
    phone_number: Optional[str] = Field(default=None, index=True)
    email: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    business_type: Optional[str] = Field(default=None)

    services: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    hours: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    pricing: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    faqs: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    booking_rules: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    voice_tone: VoiceTone = Field(default=VoiceTone.friendly)
    summary_channel: SummaryChannel = Field(default=SummaryChannel.sms)
    timezone: str = Field(default="UTC")
    vapi_assistant_id: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

class Call(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    # The voice platform's call id; webhooks correlate on this, not on `id`
    vapi_call_id: str = Field(unique=True, index=True)
    business_id: str = Field(foreign_key="business.id", index=True)

    caller_phone: Optional[str] = Field(default=None)
    direction: CallDirection = Field(default=CallDirection.inbound)
    status: CallStatus = Field(default=CallStatus.answered)
    timestamp: datetime = Field(default_factory=utcnow, index=True)
    duration: Optional[int] = Field(default=None)
    audio_url: Optional[str] = Field(default=None)
    transcript: Optional[str] = Field(default=None)

    vapi_metadata: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    summary: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    extracted_info: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

class Appointment(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    business_id: str = Field(foreign_key="business.id", index=True)
    call_id: Optional[str] = Field(default=None, foreign_key="call.id", index=True)

    customer_name: Optional[str] = Field(default=None)
    customer_phone: str
    customer_email: Optional[str] = Field(default=None)
    service_type: Optional[str] = Field(default=None)
    scheduled_at: datetime
    notes: Optional[str] = Field(default=None)
    # No confirmation flow exists yet, so this stays "pending"
    status: str = Field(default="pending")

    created_at: datetime = Field(default_factory=utcnow)
