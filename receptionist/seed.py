"""
Populates the database with a demo salon so the dashboard has something to show.

    python -m receptionist.seed

Running it again leaves existing demo records untouched.
"""
import logging
from datetime import timedelta

from sqlmodel import Session, select

from receptionist.database import create_db_and_tables, engine
from receptionist.models import (
    Business,
    Call,
    CallStatus,
    SummaryChannel,
    User,
    VoiceTone,
    utcnow,
)

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@example.com"
DEMO_CLERK_USER_ID = "demo-clerk-user-id"

WEEKDAY_HOURS = {"open": "09:00", "close": "18:00", "closed": False}
WEEKEND_HOURS = {"open": "10:00", "close": "16:00", "closed": False}

DEMO_BUSINESS = {
    "name": "Demo Hair Salon",
    "phone_number": "+1234567890",
    "email": "demo@salon.com",
    "address": "123 Main St, City, State 12345",
    "business_type": "salon",
    "services": [
        {"name": "Haircut", "duration": 30, "price": 25},
        {"name": "Hair Color", "duration": 120, "price": 80},
        {"name": "Hair Styling", "duration": 45, "price": 40},
        {"name": "Manicure", "duration": 30, "price": 20},
    ],
    "hours": {
        "monday": WEEKDAY_HOURS,
        "tuesday": WEEKDAY_HOURS,
        "wednesday": WEEKDAY_HOURS,
        "thursday": WEEKDAY_HOURS,
        "friday": WEEKDAY_HOURS,
        "saturday": WEEKEND_HOURS,
        "sunday": {**WEEKEND_HOURS, "closed": True},
    },
    "pricing": {"currency": "USD", "taxRate": 0.08},
    "faqs": [
        {
            "question": "What are your operating hours?",
            "answer": "We're open Monday-Friday 9am-6pm, Saturday 10am-4pm, closed Sundays.",
        },
        {
            "question": "Do you accept walk-ins?",
            "answer": "Yes, but appointments are recommended to ensure availability.",
        },
        {
            "question": "What payment methods do you accept?",
            "answer": "We accept cash, credit cards, and digital payments.",
        },
    ],
    "voice_tone": VoiceTone.friendly,
    "summary_channel": SummaryChannel.whatsapp,
    "booking_rules": {
        "slots": ["09:00", "10:00", "11:00", "14:00", "15:00", "16:00", "17:00"],
        "leadTime": 2,
        "maxAdvanceDays": 30,
    },
    "timezone": "America/New_York",
}

SAMPLE_CALLS = [
    {
        "vapi_call_id": "demo-call-1",
        "caller_phone": "+1987654321",
        "status": CallStatus.completed,
        "duration": 120,
        "transcript": "Caller: Hi, I'd like to book a haircut for Friday afternoon. Assistant: Of course! ...",
        "summary": {
            "intent": "book appointment",
            "details": {"customerName": "Sarah", "service": "Haircut", "preferredTime": "Friday afternoon"},
            "action": "booking",
        },
        "age": timedelta(hours=2),
    },
    {
        "vapi_call_id": "demo-call-2",
        "caller_phone": "+1555123456",
        "status": CallStatus.completed,
        "duration": 75,
        "transcript": "Caller: How much is hair color? Assistant: Hair color starts at eighty dollars. ...",
        "summary": {
            "intent": "inquire about pricing",
            "details": {"service": "Hair Color"},
            "action": "quote",
        },
        "age": timedelta(days=1),
    },
    {
        "vapi_call_id": "demo-call-3",
        "caller_phone": "+1555987654",
        "status": CallStatus.missed,
        "duration": 0,
        "transcript": None,
        "summary": None,
        "age": timedelta(days=2),
    },
]

def seed(bind=None) -> Business:
    bind = bind or engine
    create_db_and_tables(bind)

    with Session(bind) as session:
        user = session.exec(select(User).where(User.email == DEMO_EMAIL)).first()
        if not user:
            user = User(email=DEMO_EMAIL, phone=DEMO_BUSINESS["phone_number"])
            session.add(user)
            session.flush()
        logger.info(f"Demo user: {user.email}")

        business = session.exec(select(Business).where(Business.clerk_user_id == DEMO_CLERK_USER_ID)).first()
        if not business:
            business = Business(user_id=user.id, clerk_user_id=DEMO_CLERK_USER_ID, **DEMO_BUSINESS)
            session.add(business)
            session.flush()
        logger.info(f"Demo business: {business.name}")

        now = utcnow()
        for sample in SAMPLE_CALLS:
            sample = dict(sample)
            age = sample.pop("age")
            exists = session.exec(select(Call).where(Call.vapi_call_id == sample["vapi_call_id"])).first()
            if exists:
                continue
            session.add(Call(business_id=business.id, timestamp=now - age, **sample))

        session.commit()
        session.refresh(business)
        logger.info(f"Seeded {len(SAMPLE_CALLS)} sample calls")
        return business

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
    seed()
