from __future__ import annotations

"""
Startup profile reconciliation.

reconcile_profile() is the retry loop on its own: it fetches the profile for
a token, classifies failures and backs off, but never touches session state.
SessionManager applies the returned outcome.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from civiccare.core.errors import AuthError, ValidationError
from civiccare.core.session.models import OutcomeKind, SessionOutcome, coerce_profile


FetchProfile = Callable[[str], Awaitable[Any]]
Delay = Callable[[float], Awaitable[Any]]

AUTH_STATUSES = {401, 403}


def is_auth_failure(err: BaseException) -> bool:
    if isinstance(err, AuthError):
        return True
    for attr in ("status", "status_code"):
        code = getattr(err, attr, None)
        if isinstance(code, int) and code in AUTH_STATUSES:
            return True
    resp = getattr(err, "response", None)
    code = getattr(resp, "status_code", None)
    if isinstance(code, int) and code in AUTH_STATUSES:
        return True
    return "unauthorized" in str(err).lower()


async def reconcile_profile(
    token: str,
    fetch: FetchProfile,
    delay: Delay = asyncio.sleep,
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 0.4,
    is_cancelled: Callable[[], bool] = lambda: False,
    logger=None,
) -> SessionOutcome:
    attempts = 0
    last_error: Optional[BaseException] = None
    max_attempts = max(1, int(max_attempts))

    for attempt in range(1, max_attempts + 1):
        if is_cancelled():
            return SessionOutcome(kind=OutcomeKind.CANCELLED, attempts=attempts, last_error=last_error)
        attempts = attempt
        try:
            raw = await fetch(token)
            user = coerce_profile(raw)
        except Exception as e:  # noqa: BLE001
            if is_cancelled():
                return SessionOutcome(kind=OutcomeKind.CANCELLED, attempts=attempts, last_error=e)
            if not isinstance(e, ValidationError) and is_auth_failure(e):
                if logger:
                    logger.warning(f"Profile fetch rejected (attempt {attempt}): {e}")
                return SessionOutcome(kind=OutcomeKind.UNAUTHORIZED, attempts=attempts, last_error=e)
            last_error = e
            if logger:
                logger.warning(f"Profile fetch failed (attempt {attempt}/{max_attempts}): {e}")
            if attempt >= max_attempts:
                break
            await delay(float(backoff_seconds) * attempt)
            continue

        if is_cancelled():
            return SessionOutcome(kind=OutcomeKind.CANCELLED, attempts=attempts)
        return SessionOutcome(kind=OutcomeKind.VERIFIED, attempts=attempts, user=user)

    return SessionOutcome(kind=OutcomeKind.UNREACHABLE, attempts=attempts, last_error=last_error)
