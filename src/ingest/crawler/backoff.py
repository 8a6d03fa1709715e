from dataclasses import dataclass
from typing import Mapping, Optional

RATE_LIMIT_STATUSES = frozenset({403, 429})


def _header_float(headers: Mapping[str, str], name: str) -> Optional[float]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class BackoffPolicy:
    page_delay: float = 1.0
    rate_limit_fallback: float = 60 * 60
    retry_base_delay: float = 30.0
    retry_max_attempts: int = 3

    def rate_limit_delay(self, headers: Mapping[str, str], now: float) -> float:
        """
        Seconds until the quota resets: max(0, x-ratelimit-reset - now).
        Falls back to Retry-After, then to a fixed delay.
        """
        reset = _header_float(headers, "x-ratelimit-reset")
        if reset is not None:
            return max(0.0, reset - now)

        retry_after = _header_float(headers, "retry-after")
        if retry_after is not None:
            return max(0.0, retry_after)

        return self.rate_limit_fallback

    def retry_delay(self, attempt: int) -> Optional[float]:
        """
        Exponential delay before retrying after `attempt` (0-based) failed,
        or None once retry_max_attempts tries have been used.
        """
        if attempt + 1 >= self.retry_max_attempts:
            return None
        return self.retry_base_delay * (2 ** attempt)
