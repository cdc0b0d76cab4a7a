# milli/limiter.py
# The rate limiter instance lives in its own module so main.py and the routers
# can both import it without a circular import.

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

limiter = Limiter(key_func=get_remote_address, enabled=get_settings().rate_limit_enabled)
