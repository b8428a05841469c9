import pytest
from sqlmodel import Session, select

from receptionist.api.schemas import VapiWebhookEvent
from receptionist.call_handler import map_call_status
from receptionist.models import Appointment, Call, CallDirection, CallStatus

from conftest import BUSINESS_PHONE


def event(payload):
    return VapiWebhookEvent.model_validate(payload)

def all_calls(engine):
    with Session(engine) as session:
        return session.exec(select(Call)).all()

def load_call(engine, vapi_call_id):
    with Session(engine) as session:
        return session.exec(select(Call).where(Call.vapi_call_id == vapi_call_id)).one()


@pytest.mark.parametrize("vapi_status, expected", [
    ("completed", CallStatus.completed),
    ("ended", CallStatus.completed),
    ("no-answer", CallStatus.missed),
    ("failed", CallStatus.missed),
    ("ringing", CallStatus.answered),
    ("in-progress", CallStatus.answered),
    (None, CallStatus.answered),
])
def test_status_mapping(vapi_status, expected):
    assert map_call_status(vapi_status) == expected


def test_unknown_event_type_is_ignored(call_handler, engine, make_business, make_call):
    business = make_business()
    make_call(business, "vapi-1", transcript="hello")

    result = call_handler.handle_webhook(event({"type": "speech-update", "call": {"id": "vapi-1", "status": "ended"}}))

    assert result["status"] == "ignored"
    call = load_call(engine, "vapi-1")
    assert call.status == CallStatus.answered
    assert call.transcript == "hello"
    assert len(all_calls(engine)) == 1


def test_call_start_creates_call_for_matching_business(call_handler, engine, make_business):
    business = make_business()

    result = call_handler.handle_webhook(event({
        "type": "call-start",
        "call": {"id": "vapi-1", "direction": "inbound", "from": "+15559998888", "to": BUSINESS_PHONE},
    }))

    assert result["status"] == "call_started"
    call = load_call(engine, "vapi-1")
    assert call.business_id == business.id
    assert call.caller_phone == "+15559998888"
    assert call.direction == CallDirection.inbound
    assert call.status == CallStatus.answered
    assert call.vapi_metadata["to"] == BUSINESS_PHONE


def test_call_start_without_matching_business_is_dropped(call_handler, engine, make_business):
    make_business()

    result = call_handler.handle_webhook(event({
        "type": "call-start",
        "call": {"id": "vapi-1", "from": "+15559998888", "to": "+19999999999"},
    }))

    assert result["status"] == "business_not_found"
    assert all_calls(engine) == []


def test_call_start_is_not_recorded_twice(call_handler, engine, make_business):
    make_business()
    payload = {"type": "call-start", "call": {"id": "vapi-1", "to": BUSINESS_PHONE}}

    call_handler.handle_webhook(event(payload))
    call_handler.handle_webhook(event(payload))

    assert len(all_calls(engine)) == 1


def test_shared_phone_number_resolves_to_oldest_business(call_handler, engine, make_business):
    first = make_business("user_a")
    make_business("user_b")

    call_handler.handle_webhook(event({"type": "call-start", "call": {"id": "vapi-1", "to": BUSINESS_PHONE}}))

    assert load_call(engine, "vapi-1").business_id == first.id


def test_call_end_for_unknown_call_fails_without_raising(call_handler, engine, llm):
    result = call_handler.handle_webhook(event({
        "type": "call-end",
        "call": {"id": "missing", "duration": 30, "transcript": "Hi there"},
    }))

    assert result["status"] == "call_not_found"
    assert all_calls(engine) == []
    assert llm.requests == []


def test_call_end_finalizes_and_summarizes(call_handler, engine, make_business, make_call, llm, twilio_client):
    business = make_business()
    make_call(business, "vapi-1")

    result = call_handler.handle_webhook(event({
        "type": "call-end",
        "call": {
            "id": "vapi-1",
            "duration": 95,
            "recordingUrl": "https://recordings.example.com/vapi-1.wav",
            "transcript": "Caller: I'd like a haircut on Friday.",
        },
    }))

    assert result["status"] == "call_ended"
    call = load_call(engine, "vapi-1")
    assert call.status == CallStatus.completed
    assert call.duration == 95
    assert call.audio_url == "https://recordings.example.com/vapi-1.wav"
    assert call.transcript == "Caller: I'd like a haircut on Friday."
    assert call.summary == {"intent": "book appointment", "details": {"customerName": "Sarah"}, "action": "booking"}

    assert len(llm.requests) == 1
    assert "haircut on Friday" in llm.requests[0]["messages"][1]["content"]
    assert len(twilio_client.messages.sent) == 1


def test_call_end_keeps_fields_the_event_omits(call_handler, engine, make_business, make_call, llm):
    business = make_business()
    make_call(business, "vapi-1", duration=30, audio_url="https://recordings.example.com/vapi-1.wav")
    call_handler.handle_webhook(event({
        "type": "transcript",
        "call": {"id": "vapi-1"},
        "message": {"transcript": "Caller: Do you have time on Friday?"},
    }))

    result = call_handler.handle_webhook(event({"type": "call-end", "call": {"id": "vapi-1"}}))

    assert result["status"] == "call_ended"
    call = load_call(engine, "vapi-1")
    assert call.status == CallStatus.completed
    assert call.transcript == "Caller: Do you have time on Friday?"
    assert call.duration == 30
    assert call.audio_url == "https://recordings.example.com/vapi-1.wav"
    # The streamed transcript is what gets summarized
    assert len(llm.requests) == 1
    assert "time on Friday" in llm.requests[0]["messages"][1]["content"]

def test_call_end_rounds_fractional_duration(call_handler, engine, make_business, make_call):
    business = make_business()
    make_call(business, "vapi-1")

    call_handler.handle_webhook(event({"type": "call-end", "call": {"id": "vapi-1", "duration": 42.7}}))

    assert load_call(engine, "vapi-1").duration == 43


@pytest.mark.parametrize("transcript", ["", None, "   "])
def test_call_end_without_transcript_skips_summary(call_handler, engine, make_business, make_call, llm, transcript):
    business = make_business()
    make_call(business, "vapi-1")

    call_handler.handle_webhook(event({"type": "call-end", "call": {"id": "vapi-1", "transcript": transcript}}))

    call = load_call(engine, "vapi-1")
    assert call.status == CallStatus.completed
    assert call.summary is None
    assert llm.requests == []


def test_call_end_queues_summary_on_background_tasks(call_handler, engine, make_business, make_call, llm):
    business = make_business()
    make_call(business, "vapi-1")
    queued = []

    class RecordingTasks:
        def add_task(self, func, *args, **kwargs):
            queued.append((func, args))

    call_handler.handle_webhook(
        event({"type": "call-end", "call": {"id": "vapi-1", "transcript": "Hello"}}),
        RecordingTasks(),
    )

    assert llm.requests == []
    assert len(queued) == 1
    func, args = queued[0]
    func(*args)
    assert load_call(engine, "vapi-1").summary["action"] == "booking"


def test_status_update_maps_status(call_handler, engine, make_business, make_call):
    business = make_business()
    make_call(business, "vapi-1")

    result = call_handler.handle_webhook(event({"type": "status-update", "call": {"id": "vapi-1", "status": "no-answer"}}))

    assert result["status"] == "status_updated"
    call = load_call(engine, "vapi-1")
    assert call.status == CallStatus.missed
    assert call.vapi_metadata["status"] == "no-answer"


def test_status_update_for_unknown_call(call_handler):
    result = call_handler.handle_webhook(event({"type": "status-update", "call": {"id": "nope", "status": "ended"}}))
    assert result["status"] == "call_not_found"


def test_transcript_updates_are_applied(call_handler, engine, make_business, make_call):
    business = make_business()
    make_call(business, "vapi-1")

    for text in ["Caller: Hi", "Caller: Hi\nAssistant: Hello, how can I help?"]:
        call_handler.handle_webhook(event({"type": "transcript", "call": {"id": "vapi-1"}, "message": {"transcript": text}}))

    assert load_call(engine, "vapi-1").transcript == "Caller: Hi\nAssistant: Hello, how can I help?"


def test_book_appointment_tool_creates_pending_appointment(call_handler, engine, make_business, make_call):
    business = make_business()
    call = make_call(business, "vapi-1")

    result = call_handler.handle_webhook(event({
        "type": "function-call",
        "call": {"id": "vapi-1"},
        "message": {
            "functionCall": {
                "name": "book_appointment",
                "parameters": {
                    "customerName": "Sarah",
                    "customerPhone": "+15559998888",
                    "customerEmail": "sarah@example.com",
                    "serviceType": "Haircut",
                    "scheduledAt": "2026-01-09T15:00:00Z",
                    "notes": "First visit",
                },
            },
        },
    }))

    assert result["status"] == "appointment_booked"
    with Session(engine) as session:
        appointment = session.exec(select(Appointment)).one()
    assert appointment.business_id == business.id
    assert appointment.call_id == call.id
    assert appointment.customer_name == "Sarah"
    assert appointment.service_type == "Haircut"
    assert appointment.status == "pending"


def test_book_appointment_with_invalid_parameters_creates_nothing(call_handler, engine, make_business, make_call):
    business = make_business()
    make_call(business, "vapi-1")

    result = call_handler.handle_webhook(event({
        "type": "function-call",
        "call": {"id": "vapi-1"},
        "message": {"functionCall": {"name": "book_appointment", "parameters": {"customerName": "Sarah"}}},
    }))

    assert result["status"] == "invalid_parameters"
    with Session(engine) as session:
        assert session.exec(select(Appointment)).all() == []


def test_extract_customer_info_tool_stores_parameters(call_handler, engine, make_business, make_call):
    business = make_business()
    make_call(business, "vapi-1")

    call_handler.handle_webhook(event({
        "type": "function-call",
        "call": {"id": "vapi-1"},
        "message": {"functionCall": {"name": "extract_customer_info", "parameters": {"name": "Sam", "zip": "78702"}}},
    }))

    assert load_call(engine, "vapi-1").extracted_info == {"name": "Sam", "zip": "78702"}


def test_unknown_tool_is_ignored(call_handler, engine, make_business, make_call):
    business = make_business()
    make_call(business, "vapi-1")

    result = call_handler.handle_webhook(event({
        "type": "function-call",
        "call": {"id": "vapi-1"},
        "message": {"functionCall": {"name": "transfer_call", "parameters": {}}},
    }))

    assert result["status"] == "unknown_tool"
    assert load_call(engine, "vapi-1").extracted_info is None


def test_registered_tool_is_dispatched_without_handler_changes(call_handler, engine, make_business, make_call):
    from receptionist.tools import ToolRegistry

    registry = ToolRegistry()
    seen = []

    @registry.register("check_availability")
    def check_availability(session, call, parameters):
        seen.append((call.vapi_call_id, parameters))
        return {"status": "checked"}

    call_handler.tools = registry
    business = make_business()
    make_call(business, "vapi-1")

    result = call_handler.handle_webhook(event({
        "type": "function-call",
        "call": {"id": "vapi-1"},
        "message": {"functionCall": {"name": "check_availability", "parameters": {"day": "friday"}}},
    }))

    assert result == {"status": "checked"}
    assert seen == [("vapi-1", {"day": "friday"})]

def test_call_end_log_omits_missing_duration(call_handler, make_business, make_call, caplog):
    make_call(make_business(), "vapi-1")

    with caplog.at_level("INFO", logger="receptionist.call_handler"):
        call_handler.handle_webhook(event({"type": "call-end", "call": {"id": "vapi-1"}}))

    assert "Call ended: vapi-1" in caplog.text
    assert "None" not in caplog.text
