import logging
import traceback
from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from receptionist import models  # noqa: F401  registers the tables
from receptionist.api.endpoints import businesses, calls, vapi, webhooks
from receptionist.config import settings
from receptionist.database import create_db_and_tables
from receptionist.models import utcnow
from receptionist.rate_limit import limiter

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info(f"Backend server ready on port {settings.PORT}")
    yield

app = FastAPI(
    title="AI Receptionist API",
    lifespan=lifespan,
    description="Webhook receiver, call history and business profile API for the AI receptionist.",
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.NEXT_PUBLIC_APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Last-resort handler; stack traces are only exposed outside production."""
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    content = {"detail": "Internal Server Error"}
    if settings.ENVIRONMENT == "development":
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)

app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(businesses.router, prefix="/api/businesses", tags=["Businesses"])
app.include_router(calls.router, prefix="/api/calls", tags=["Calls"])
app.include_router(vapi.router, prefix="/api/vapi", tags=["Vapi"])

@app.get("/health", tags=["Health"])
def health_check():
    """A simple health check endpoint."""
    return {"status": "ok", "timestamp": utcnow().isoformat()}

def run():
    uvicorn.run("receptionist.main:app", host="0.0.0.0", port=settings.PORT)

if __name__ == "__main__":
    run()
