"""Rate limiting configuration for the Credit Engine API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from credit_engine.settings import settings

# Single shared limiter applied to every route by SlowAPIMiddleware.
# create_app switches it on only for a production config.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit],
    storage_uri="memory://",
    enabled=settings.env == "production",
)
