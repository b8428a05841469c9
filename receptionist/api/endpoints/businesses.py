import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel
from sqlmodel import Session, col, select

from receptionist.api.deps import AuthenticatedUser, get_current_user
from receptionist.api.schemas import (
    BusinessPayload,
    BusinessResponse,
    BusinessWithCallsResponse,
    CallResponse,
)
from receptionist.database import get_session
from receptionist.models import Business, Call, User, utcnow
from receptionist.rate_limit import api_limit

router = APIRouter()
logger = logging.getLogger(__name__)

RECENT_CALLS_OWN_BUSINESS = 10
RECENT_CALLS_BY_ID = 50
NON_NULLABLE_FIELDS = ("voice_tone", "summary_channel", "timezone")

def _column_value(value: Any) -> Any:
    """Converts validated payload values into what the JSON columns store."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [_column_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _column_value(item) for key, item in value.items()}
    return value

def _recent_calls(session: Session, business_id: str, limit: int) -> List[Call]:
    statement = (
        select(Call)
        .where(Call.business_id == business_id)
        .order_by(col(Call.created_at).desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())

def _with_calls(business: Business, calls: List[Call]) -> BusinessWithCallsResponse:
    data = BusinessResponse.model_validate(business).model_dump()
    return BusinessWithCallsResponse(**data, calls=[CallResponse.model_validate(call) for call in calls])


@router.get("", response_model=BusinessWithCallsResponse)
@api_limit
def get_own_business(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Returns the caller's business with its most recent calls."""
    business = session.exec(select(Business).where(Business.clerk_user_id == user.user_id)).first()
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")

    return _with_calls(business, _recent_calls(session, business.id, RECENT_CALLS_OWN_BUSINESS))

@router.get("/{business_id}", response_model=BusinessWithCallsResponse)
@api_limit
def get_business(
    request: Request,
    business_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    # Another owner's business is indistinguishable from a missing one
    statement = select(Business).where(
        Business.id == business_id,
        Business.clerk_user_id == user.user_id,
    )
    business = session.exec(statement).first()
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")

    return _with_calls(business, _recent_calls(session, business.id, RECENT_CALLS_BY_ID))

@router.post("", response_model=BusinessResponse)
@api_limit
def upsert_business(
    request: Request,
    payload: BusinessPayload,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """
    Creates the caller's business, or updates it if one already exists for
    their identity. This is an "upsert" operation.
    """
    values = {name: _column_value(getattr(payload, name)) for name in payload.model_fields_set}
    # An explicit null keeps the column default rather than clearing it
    for name in NON_NULLABLE_FIELDS:
        if name in values and values[name] is None:
            del values[name]

    db_user = None
    if user.email:
        db_user = session.exec(select(User).where(User.email == user.email)).first()
        if not db_user:
            db_user = User(email=user.email, phone=payload.phone_number)
            session.add(db_user)
            session.flush()
            logger.info(f"Created user record for {user.user_id}")

    business = session.exec(select(Business).where(Business.clerk_user_id == user.user_id)).first()

    if business:
        for name, value in values.items():
            setattr(business, name, value)
        if db_user:
            business.user_id = db_user.id
        business.updated_at = utcnow()
        response.status_code = status.HTTP_200_OK
    else:
        if not db_user:
            raise HTTPException(status_code=400, detail="User must exist to create business")
        business = Business(user_id=db_user.id, clerk_user_id=user.user_id, **values)
        response.status_code = status.HTTP_201_CREATED

    session.add(business)
    session.commit()
    session.refresh(business)

    if response.status_code == status.HTTP_201_CREATED:
        logger.info(f"Business created: {business.id}")
    else:
        logger.info(f"Business updated: {business.id}")
    return business
