# api/rate_limit.py
import os
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from fastapi import FastAPI

# per-client limit for the public storefront routes
VISITOR_LIMIT = os.getenv("VISITOR_RATE_LIMIT", "120/minute")

limiter = Limiter(key_func=get_remote_address)


def register_rate_limit(app: FastAPI):
    """
    Attach the per-client visitor rate limiter to the FastAPI app.

    Side Effects:
        - Sets app.state.limiter to the shared limiter instance
        - Registers the slowapi handler that turns RateLimitExceeded into
          429 Too Many Requests

    Note:
        Must be called before routes decorated with @limiter.limit are hit.
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
