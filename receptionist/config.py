from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """
    DATABASE_URL: str = "sqlite:///receptionist.db"
    DATABASE_ECHO: bool = False

    VAPI_API_URL: str = "https://api.vapi.ai"
    VAPI_API_KEY: Optional[str] = None

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    # Clerk session tokens are verified either with the instance's PEM public
    # key or by fetching the JWKS.
    CLERK_JWT_KEY: Optional[str] = None
    CLERK_JWKS_URL: Optional[str] = None
    CLERK_ISSUER: Optional[str] = None

    NEXT_PUBLIC_APP_URL: str = "http://localhost:3000"
    PORT: int = 3001
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    API_RATE_LIMIT: str = "100 per 15 minutes"
    WEBHOOK_RATE_LIMIT: str = "100 per minute"

    model_config = SettingsConfigDict(env_file=".env", extra='ignore')

settings = Settings()
