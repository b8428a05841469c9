import logging
from functools import lru_cache
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from receptionist.call_handler import CallEventHandler
from receptionist.config import settings
from receptionist.database import engine
from receptionist.notification_service import NotificationService
from receptionist.summary_generator import SummaryGenerator
from receptionist.vapi_client import VapiClient

logger = logging.getLogger(__name__)

notification_service = NotificationService(
    twilio_account_sid=settings.TWILIO_ACCOUNT_SID,
    twilio_auth_token=settings.TWILIO_AUTH_TOKEN,
    twilio_phone_number=settings.TWILIO_PHONE_NUMBER,
    app_url=settings.NEXT_PUBLIC_APP_URL,
)
summary_generator = SummaryGenerator(
    engine=engine,
    notifier=notification_service,
    openai_api_key=settings.OPENAI_API_KEY,
    model=settings.OPENAI_MODEL,
)
call_handler = CallEventHandler(engine=engine, summary_generator=summary_generator)
vapi_client = VapiClient(api_url=settings.VAPI_API_URL, api_key=settings.VAPI_API_KEY)

def get_call_handler() -> CallEventHandler:
    """Dependency injector that provides the process-wide webhook handler."""
    return call_handler

def get_vapi_client() -> VapiClient:
    return vapi_client


# --- Authentication ---

class AuthenticatedUser(BaseModel):
    user_id: str
    email: Optional[str] = None

bearer_scheme = HTTPBearer(auto_error=False)

@lru_cache(maxsize=1)
def _jwks_client(jwks_url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(jwks_url)

def verify_session_token(token: str) -> dict:
    """
    Verifies a Clerk session JWT and returns its claims. Raises jwt.PyJWTError
    on any verification failure.
    """
    if settings.CLERK_JWT_KEY:
        key = settings.CLERK_JWT_KEY.replace("\\n", "\n")
    elif settings.CLERK_JWKS_URL:
        key = _jwks_client(settings.CLERK_JWKS_URL).get_signing_key_from_jwt(token).key
    else:
        raise jwt.InvalidKeyError("Neither CLERK_JWT_KEY nor CLERK_JWKS_URL is configured")

    return jwt.decode(
        token,
        key,
        algorithms=["RS256"],
        issuer=settings.CLERK_ISSUER,
        options={"verify_aud": False, "require": ["exp", "sub"]},
    )

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        claims = verify_session_token(credentials.credentials)
    except jwt.PyJWTError as e:
        logger.warning(f"Rejected session token: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    return AuthenticatedUser(user_id=claims["sub"], email=claims.get("email"))
