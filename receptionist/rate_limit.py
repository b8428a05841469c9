from slowapi import Limiter
from slowapi.util import get_remote_address

from receptionist.config import settings

limiter = Limiter(key_func=get_remote_address, strategy="fixed-window")

# Every /api route draws from one counter per client; webhooks get their own.
api_limit = limiter.shared_limit(settings.API_RATE_LIMIT, scope="api")
webhook_limit = limiter.shared_limit(settings.WEBHOOK_RATE_LIMIT, scope="webhooks")
