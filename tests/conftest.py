# tests/conftest.py
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from receptionist.api.deps import AuthenticatedUser, get_call_handler, get_current_user, get_vapi_client
from receptionist.call_handler import CallEventHandler
from receptionist.database import get_session
from receptionist.main import app
from receptionist.models import Business, Call, CallStatus, SummaryChannel, User
from receptionist.notification_service import NotificationService
from receptionist.rate_limit import limiter
from receptionist.summary_generator import SummaryGenerator

BUSINESS_PHONE = "+15551112222"
TWILIO_NUMBER = "+15550000000"
APP_URL = "https://app.example.com"


class FakeMessages:
    def __init__(self):
        self.sent = []

    def create(self, **kwargs):
        self.sent.append(kwargs)
        return SimpleNamespace(sid=f"SM{len(self.sent):04d}")

class FakeTwilioClient:
    def __init__(self):
        self.messages = FakeMessages()


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

class FakeOpenAI:
    def __init__(self, content=None, error=None):
        self.chat = SimpleNamespace(completions=FakeCompletions(content, error))

    @property
    def requests(self):
        return self.chat.completions.requests


class FakeVapiClient:
    def __init__(self):
        self.assistants = []
        self.outbound_calls = []
        self.error = None

    def create_assistant(self, **kwargs):
        if self.error:
            raise self.error
        self.assistants.append(kwargs)
        return {"id": f"asst_{len(self.assistants)}", "name": kwargs["name"]}

    def create_outbound_call(self, assistant_id, phone_number):
        if self.error:
            raise self.error
        self.outbound_calls.append({"assistant_id": assistant_id, "phone_number": phone_number})
        return {"id": f"vapi-out-{len(self.outbound_calls)}", "status": "queued"}

    def get_call(self, call_id):
        if self.error:
            raise self.error
        return {"id": call_id, "status": "ended"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()

@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session

@pytest.fixture
def twilio_client():
    return FakeTwilioClient()

@pytest.fixture
def llm():
    return FakeOpenAI(content='{"intent": "book appointment", "details": {"customerName": "Sarah"}, "action": "booking"}')

@pytest.fixture
def notifier(twilio_client):
    return NotificationService(
        twilio_account_sid="AC123",
        twilio_auth_token="secret",
        twilio_phone_number=TWILIO_NUMBER,
        app_url=APP_URL,
        twilio_client=twilio_client,
    )

@pytest.fixture
def summary_generator(engine, notifier, llm):
    return SummaryGenerator(engine=engine, notifier=notifier, client=llm)

@pytest.fixture
def call_handler(engine, summary_generator):
    return CallEventHandler(engine=engine, summary_generator=summary_generator)

@pytest.fixture
def vapi_client():
    return FakeVapiClient()


@pytest.fixture
def make_business(session):
    def _make_business(clerk_user_id="user_a", phone_number=BUSINESS_PHONE, **fields):
        user = User(email=f"{clerk_user_id}@example.com")
        session.add(user)
        session.flush()
        fields.setdefault("name", f"{clerk_user_id} Salon")
        fields.setdefault("business_type", "salon")
        fields.setdefault("summary_channel", SummaryChannel.sms)
        business = Business(user_id=user.id, clerk_user_id=clerk_user_id, phone_number=phone_number, **fields)
        session.add(business)
        session.commit()
        session.refresh(business)
        return business
    return _make_business

@pytest.fixture
def make_call(session):
    base = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def _make_call(business, vapi_call_id, minutes=0, **fields):
        fields.setdefault("status", CallStatus.answered)
        call = Call(
            vapi_call_id=vapi_call_id,
            business_id=business.id,
            caller_phone="+15559998888",
            timestamp=base + timedelta(minutes=minutes),
            **fields,
        )
        session.add(call)
        session.commit()
        session.refresh(call)
        return call
    return _make_call


@pytest.fixture
def login():
    """Switches the identity the API sees for subsequent requests."""
    def _login(user_id="user_a", email="user_a@example.com"):
        user = AuthenticatedUser(user_id=user_id, email=email)
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login

@pytest.fixture
def client(engine, call_handler, vapi_client, login):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_call_handler] = lambda: call_handler
    app.dependency_overrides[get_vapi_client] = lambda: vapi_client
    login()
    limiter.enabled = False

    yield TestClient(app)

    app.dependency_overrides.clear()
    limiter.enabled = True
