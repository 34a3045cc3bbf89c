"""
Decide whether a stored CRM access token must be refreshed before use.

Tokens are refreshed proactively once less than a tenth of their issued
lifetime remains. The token is only read, never verified: the CRM is the
authority on its signature, we only need its ``exp`` claim.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from jose import jwt
from jose.exceptions import JOSEError

REFRESH_THRESHOLD_RATIO = 0.10


def read_expiration(token: str) -> Optional[float]:
    """Return the ``exp`` claim of ``token`` or ``None`` when it cannot be read."""
    try:
        claims = jwt.get_unverified_claims(token)
    except (JOSEError, ValueError, TypeError):
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return exp


class TokenValidityChecker:
    """Compare a token's remaining lifetime against its refresh threshold."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        threshold_ratio: float = REFRESH_THRESHOLD_RATIO,
        logger: logging.Logger | None = None,
    ) -> None:
        self._clock = clock
        self._threshold_ratio = threshold_ratio
        self._logger = logger or logging.getLogger(__name__)

    def remaining_seconds(self, exp: float) -> int:
        """Seconds until ``exp``, rounded half-up to a whole second."""
        remaining_ms = exp * 1000 - self._clock() * 1000
        return math.floor(remaining_ms / 1000 + 0.5)

    def is_valid(self, expires_in: int, access_token: str) -> bool:
        exp = read_expiration(access_token)
        if exp is None:
            self._logger.error("Access token has no readable expiration; refresh required.")
            return False

        remaining = self.remaining_seconds(exp)
        threshold = expires_in * self._threshold_ratio
        is_valid = remaining >= threshold

        if is_valid:
            self._logger.info("Access token valid for another %ss.", remaining)
        else:
            self._logger.info(
                "Access token needs refresh (%ss left, threshold %.0fs).",
                remaining,
                threshold,
            )
        return is_valid


__all__ = ["REFRESH_THRESHOLD_RATIO", "TokenValidityChecker", "read_expiration"]
