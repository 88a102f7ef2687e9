# app/limiter.py
# The rate limiter instance lives in its own module to avoid circular imports
# between main.py and the routers.

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

_booking_limit = "10/minute"


def booking_limit() -> str:
    """Limit applied to the appointment booking endpoints."""
    return _booking_limit


def configure_limiter(settings):
    global _booking_limit
    limiter.enabled = settings.rate_limit_enabled
    _booking_limit = settings.booking_rate_limit
