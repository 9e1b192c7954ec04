"""Shared slowapi limiter, attached to the app in main.py."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from codemarket.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
