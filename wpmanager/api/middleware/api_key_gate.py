"""Deployment gate for ``/api/*``: a shared ``X-API-Key`` when one is configured.

Per-user identity arrives from the upstream authentication layer in
``X-User-Id``; this gate only decides whether a request came through an
authorised deployment. Settings drive all of it:

    api_key                      -> gate on when set (min 32 characters)
    auth_failure_limit           -> bad keys tolerated per caller
    auth_failure_window_seconds  -> how long a bad key counts against a caller

A caller is the upstream ``X-User-Id`` when present, else the client host.
"""

import hmac
import logging
import threading
import time
from collections import deque
from collections.abc import Awaitable, Callable

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from wpmanager.config import AppSettings

logger = logging.getLogger(__name__)

MIN_API_KEY_LENGTH = 32

CallNext = Callable[[Request], Awaitable[Response]]


class FailureWindow:
    """Sliding count of rejected keys per caller.

    Args:
        limit: Failures after which the caller is refused with 429.
        window_seconds: Age after which a failure stops counting.
        clock: Monotonic time source (tests pass a fake).
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._failures: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "FailureWindow":
        return cls(settings.auth_failure_limit, settings.auth_failure_window_seconds)

    def _live_count(self, caller: str, now: float) -> int:
        stamps = self._failures.get(caller)
        if stamps is None:
            return 0
        while stamps and now - stamps[0] >= self.window_seconds:
            stamps.popleft()
        if not stamps:
            del self._failures[caller]
        return len(stamps)

    def is_blocked(self, caller: str) -> bool:
        with self._lock:
            return self._live_count(caller, self._clock()) >= self.limit

    def record(self, caller: str) -> None:
        with self._lock:
            now = self._clock()
            self._live_count(caller, now)
            self._failures.setdefault(caller, deque()).append(now)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()


def validate_api_key_strength(key: str | None) -> None:
    """Reject a configured gate key shorter than ``MIN_API_KEY_LENGTH``.

    Raises:
        ValueError: If the key is set but too short.
    """
    if key and len(key) < MIN_API_KEY_LENGTH:
        raise ValueError(
            f"WPMANAGER_API_KEY is too short ({len(key)} chars). "
            f"Minimum length is {MIN_API_KEY_LENGTH} characters."
        )


def is_gated(path: str) -> bool:
    """True for API paths; health, readiness and docs live outside ``/api/``."""
    return path.startswith("/api/")


def caller_of(request: Request) -> str:
    user_id = request.headers.get("X-User-Id", "").strip()
    if user_id:
        return f"user:{user_id}"
    return f"host:{request.client.host if request.client else 'unknown'}"


def api_key_gate(
    settings: AppSettings, failures: FailureWindow
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build the HTTP middleware for one application instance.

    ``settings`` is read on every request so a key changed at runtime
    takes effect without rebuilding the app.
    """

    async def require_api_key(request: Request, call_next: CallNext) -> Response:
        expected = (settings.api_key or "").strip()
        if not expected or request.method.upper() == "OPTIONS" or not is_gated(request.url.path):
            return await call_next(request)

        caller = caller_of(request)
        if failures.is_blocked(caller):
            logger.warning("Rejected-key limit reached for %s", caller)
            return JSONResponse(
                status_code=429,
                content={"message": "Too many authentication failures. Try again later."},
            )

        provided = request.headers.get("X-API-Key", "")
        if not provided or not hmac.compare_digest(provided, expected):
            failures.record(caller)
            return JSONResponse(status_code=401, content={"message": "Invalid or missing API key"})
        return await call_next(request)

    return require_api_key
