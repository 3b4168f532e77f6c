"""Shared request limiter for the manual invocation routes."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from vendorsync.config import get_settings

settings = get_settings()

limiter = Limiter(key_func=get_remote_address)
manual_run_limit = f"{settings.rate_limit_per_minute}/minute"
