"""In-line exponential backoff for throttled vendor calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import uuid4

from vendorsync.services.vendor_client import VendorClientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ThrottleExhaustedError(Exception):
    """The in-line retry budget was spent while the vendor kept throttling."""

    def __init__(self, label: str, attempts: int, last_error: VendorClientError):
        super().__init__(f"{label} still throttled after {attempts} attempts: {last_error}")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


async def call_with_throttle_retry(
    func: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    initial_delay: float,
    label: str,
) -> T:
    """
    Call ``func``, retrying the same request while the vendor throttles it.

    Waits ``initial_delay * 2**attempt`` between attempts, for at most
    ``max_retries`` retries (``max_retries + 1`` calls). Errors that are not
    throttling propagate immediately.

    Raises:
        ThrottleExhaustedError: every attempt was throttled
        VendorClientError: any non-throttle vendor error
    """
    request_id = uuid4().hex[:12]
    last_error: VendorClientError | None = None

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except VendorClientError as e:
            if not e.throttled:
                logger.error(
                    f"[{request_id}] {label} failed ({e.kind}): {e} "
                    f"vendorRequestId={e.vendor_request_id}"
                )
                raise
            last_error = e
            if attempt < max_retries:
                wait_time = initial_delay * 2**attempt
                logger.warning(
                    f"[{request_id}] {label} throttled, retry {attempt + 1}/{max_retries} "
                    f"in {wait_time}s"
                )
                await asyncio.sleep(wait_time)

    assert last_error is not None
    logger.error(f"[{request_id}] {label} throttle retries exhausted: {last_error}")
    raise ThrottleExhaustedError(label, max_retries + 1, last_error)
