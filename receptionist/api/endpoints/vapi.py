import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from receptionist.api.deps import AuthenticatedUser, get_current_user, get_vapi_client
from receptionist.api.schemas import CreateAssistantRequest, CreateOutboundCallRequest
from receptionist.database import get_session
from receptionist.models import Business, Call, CallDirection, CallStatus, utcnow
from receptionist.rate_limit import api_limit
from receptionist.vapi_client import VapiClient, VapiError

router = APIRouter()
logger = logging.getLogger(__name__)

def _own_business(session: Session, user: AuthenticatedUser):
    return session.exec(select(Business).where(Business.clerk_user_id == user.user_id)).first()


@router.post("/assistants")
@api_limit
def create_assistant(
    request: Request,
    payload: CreateAssistantRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    vapi: VapiClient = Depends(get_vapi_client),
):
    """Creates a Vapi assistant and links it to the caller's business."""
    try:
        assistant = vapi.create_assistant(
            name=payload.name,
            model=payload.model,
            voice=payload.voice,
            system_prompt=payload.system_prompt,
            tools=payload.tools,
        )
    except VapiError as e:
        logger.error(f"Error creating Vapi assistant: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to create assistant")

    business = _own_business(session, user)
    if business and assistant.get("id"):
        business.vapi_assistant_id = assistant["id"]
        business.updated_at = utcnow()
        session.add(business)
        session.commit()
        logger.info(f"Linked assistant {assistant['id']} to business {business.id}")

    return {"assistantId": assistant.get("id"), **assistant}

@router.post("/calls")
@api_limit
def create_outbound_call(
    request: Request,
    payload: CreateOutboundCallRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    vapi: VapiClient = Depends(get_vapi_client),
):
    """Starts an outbound call and records it so its webhooks can be matched."""
    business = _own_business(session, user)
    assistant_id = payload.assistant_id or (business.vapi_assistant_id if business else None)
    if not assistant_id:
        raise HTTPException(status_code=400, detail="assistantId is required")

    try:
        vapi_call = vapi.create_outbound_call(assistant_id=assistant_id, phone_number=payload.phone_number)
    except VapiError as e:
        logger.error(f"Error creating outbound call: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to create call")

    vapi_call_id = vapi_call.get("id")
    if business and vapi_call_id:
        call = Call(
            vapi_call_id=vapi_call_id,
            business_id=business.id,
            caller_phone=payload.phone_number,
            direction=CallDirection.outbound,
            status=CallStatus.answered,
            vapi_metadata=vapi_call,
        )
        session.add(call)
        session.commit()
        logger.info(f"Recorded outbound call {vapi_call_id} for business {business.id}")

    return {"callId": vapi_call_id, **vapi_call}

@router.get("/calls/{call_id}")
@api_limit
def get_vapi_call(
    request: Request,
    call_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    vapi: VapiClient = Depends(get_vapi_client),
):
    try:
        return vapi.get_call(call_id)
    except VapiError as e:
        logger.error(f"Error fetching call details: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to fetch call")
