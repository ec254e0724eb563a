"""Endpoint fallback and exponential backoff."""

from typing import List, Optional, Sequence


class ReconnectPolicy:
    """Decides which URL to try next and how long to wait.

    Every URL in the list is tried once, ``fallback_delay`` apart, before a
    backoff attempt is consumed. After the last URL fails the index wraps to
    0 and the delay grows as ``backoff_factor ** attempts`` seconds.
    """

    def __init__(
        self,
        urls: Sequence[str],
        max_attempts: int = 5,
        backoff_factor: float = 1.5,
        fallback_delay: float = 0.1,
        max_delay: Optional[float] = None,
    ):
        """Initialize reconnect policy.

        Args:
            urls: Candidate URLs in preference order
            max_attempts: Backoff attempts allowed before giving up
            backoff_factor: Exponential multiplier per attempt
            fallback_delay: Delay before trying the next URL in seconds
            max_delay: Upper bound on a backoff delay (None = uncapped)
        """
        if not urls:
            raise ValueError("At least one URL must be provided")
        self._urls: List[str] = list(urls)
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.fallback_delay = fallback_delay
        self.max_delay = max_delay
        self._index = 0
        self._attempts = 0

    @property
    def urls(self) -> List[str]:
        return list(self._urls)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current_url(self) -> str:
        return self._urls[self._index]

    @property
    def attempts(self) -> int:
        """Backoff attempts consumed since the last successful open."""
        return self._attempts

    @property
    def exhausted(self) -> bool:
        return self._attempts >= self.max_attempts

    def reset(self) -> None:
        """Forget consumed attempts. The current URL is kept."""
        self._attempts = 0

    def next_delay(self) -> Optional[float]:
        """Advance to the next attempt.

        Returns:
            Seconds to wait before connecting to ``current_url``, or None
            once the attempt budget is spent
        """
        if self._index < len(self._urls) - 1:
            self._index += 1
            return self.fallback_delay

        self._index = 0
        if self.exhausted:
            return None

        delay = self.backoff_factor ** self._attempts
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        self._attempts += 1
        return delay
