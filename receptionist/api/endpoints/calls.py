import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func
from sqlmodel import Session, col, select

from receptionist.api.deps import AuthenticatedUser, get_current_user
from receptionist.api.schemas import (
    AppointmentResponse,
    BusinessRef,
    CallDetailResponse,
    CallListItem,
    CallListResponse,
    CallResponse,
    Pagination,
)
from receptionist.database import get_session
from receptionist.models import Appointment, Business, Call, CallStatus
from receptionist.rate_limit import api_limit

router = APIRouter()
logger = logging.getLogger(__name__)

def _caller_business(session: Session, user: AuthenticatedUser) -> Business:
    business = session.exec(select(Business).where(Business.clerk_user_id == user.user_id)).first()
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business

def _latest_appointments(session: Session, call_ids: List[str]) -> Dict[str, Appointment]:
    if not call_ids:
        return {}
    statement = (
        select(Appointment)
        .where(col(Appointment.call_id).in_(call_ids))
        .order_by(col(Appointment.created_at).desc())
    )
    latest = {}
    for appointment in session.exec(statement).all():
        latest.setdefault(appointment.call_id, appointment)
    return latest


@router.get("", response_model=CallListResponse)
@api_limit
def list_calls(
    request: Request,
    status: Optional[CallStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """
    Lists the caller's calls, newest first. Always scoped to the caller's own
    business; a business id in the query string is ignored.
    """
    business = _caller_business(session, user)

    filters = [Call.business_id == business.id]
    if status:
        filters.append(Call.status == status)
    if start_date:
        filters.append(Call.timestamp >= start_date)
    if end_date:
        filters.append(Call.timestamp <= end_date)

    total = session.exec(select(func.count()).select_from(Call).where(*filters)).one()
    statement = (
        select(Call)
        .where(*filters)
        .order_by(col(Call.timestamp).desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    calls = session.exec(statement).all()

    latest = _latest_appointments(session, [call.id for call in calls])
    items = []
    for call in calls:
        data = CallResponse.model_validate(call).model_dump()
        appointments = [AppointmentResponse.model_validate(latest[call.id])] if call.id in latest else []
        items.append(CallListItem(**data, appointments=appointments))

    return CallListResponse(
        calls=items,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )

@router.get("/{call_id}", response_model=CallDetailResponse)
@api_limit
def get_call(
    request: Request,
    call_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    business = _caller_business(session, user)

    call = session.exec(select(Call).where(Call.id == call_id, Call.business_id == business.id)).first()
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")

    appointments = session.exec(
        select(Appointment).where(Appointment.call_id == call.id).order_by(Appointment.created_at)
    ).all()

    data = CallResponse.model_validate(call).model_dump()
    return CallDetailResponse(
        **data,
        appointments=[AppointmentResponse.model_validate(a) for a in appointments],
        business=BusinessRef(id=business.id, name=business.name),
    )
