"""
In-process rate control for the chat endpoint.

These are per-process and best effort: several workers each keep their own
counters. Instances are created once per app in create_app and passed around,
never held as module globals.
"""
import logging
import math
import time
from collections import deque
from typing import Callable, Literal, Mapping

from pydantic import BaseModel

logger = logging.getLogger(__name__)

KeyStrategy = Literal["round_robin", "least_recently_used"]


class RateLimitResult(BaseModel):
    allowed: bool
    retry_after: int | None = None


class ThrottleResult(BaseModel):
    can_process: bool
    wait_seconds: float | None = None


class RateLimiter:
    """Fixed-window request counter per client key (usually the client IP)."""

    def __init__(self, max_requests: int = 20, window_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # key -> [count, window_reset_at]
        self._windows: dict[str, list] = {}

    def cleanup(self) -> None:
        now = self._clock()
        for key in [k for k, (_, reset_at) in self._windows.items() if now > reset_at]:
            del self._windows[key]

    def check(self, key: str) -> RateLimitResult:
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now > window[1]:
            if len(self._windows) > 1000:
                self.cleanup()
            self._windows[key] = [1, now + self.window_seconds]
            return RateLimitResult(allowed=True)

        if window[0] >= self.max_requests:
            retry_after = max(1, math.ceil(window[1] - now))
            logger.warning(f"Rate limit exceeded for {key}, retry in {retry_after}s")
            return RateLimitResult(allowed=False, retry_after=retry_after)

        window[0] += 1
        return RateLimitResult(allowed=True)


class RateThrottler:
    """Sliding 60 second token budget for calls to the language model."""

    WINDOW_SECONDS = 60

    def __init__(self, tokens_per_minute: int = 6000, clock: Callable[[], float] = time.monotonic):
        self.tokens_per_minute = tokens_per_minute
        self._clock = clock
        self._usage: deque[tuple[float, int]] = deque()

    @staticmethod
    def estimate_tokens(text: str) -> int:
        # ~4 characters per token
        return math.ceil(len(text or "") / 4)

    def estimate_request_tokens(self, messages: list[Mapping], max_tokens: int) -> int:
        return sum(self.estimate_tokens(m.get("content", "")) for m in messages) + max_tokens

    def _expire(self) -> None:
        cutoff = self._clock() - self.WINDOW_SECONDS
        while self._usage and self._usage[0][0] <= cutoff:
            self._usage.popleft()

    @property
    def current_usage(self) -> int:
        self._expire()
        return sum(tokens for _, tokens in self._usage)

    def check_capacity(self, estimated_tokens: int) -> ThrottleResult:
        available = self.tokens_per_minute - self.current_usage
        if available >= estimated_tokens or not self._usage:
            return ThrottleResult(can_process=True)

        oldest_at = self._usage[0][0]
        wait = max(0.0, self.WINDOW_SECONDS - (self._clock() - oldest_at))
        return ThrottleResult(can_process=False, wait_seconds=wait)

    def record_usage(self, input_tokens: int, output_tokens: int) -> None:
        self._usage.append((self._clock(), input_tokens + output_tokens))
        self._expire()


class ApiKeyManager:
    """Rotates between several provider API keys, round-robin or least recently used."""

    def __init__(
        self,
        keys: list[str],
        strategy: KeyStrategy = "round_robin",
        clock: Callable[[], float] = time.monotonic,
    ):
        if not keys:
            logger.warning("No LLM API keys configured")
        self._keys = list(keys)
        self._last_used = [0.0] * len(self._keys)
        self._index = 0
        self.strategy = strategy
        self._clock = clock

    @classmethod
    def from_settings(cls, settings) -> "ApiKeyManager":
        return cls(settings.api_keys, strategy=settings.llm_key_strategy)

    @property
    def key_count(self) -> int:
        return len(self._keys)

    def _mark_used(self, i: int) -> str:
        self._last_used[i] = self._clock()
        return self._keys[i]

    def next_key(self) -> str | None:
        """Round-robin."""
        if not self._keys:
            return None
        i = self._index
        self._index = (self._index + 1) % len(self._keys)
        return self._mark_used(i)

    def least_used_key(self) -> str | None:
        """Least recently used; ties go to the earliest configured key."""
        if not self._keys:
            return None
        i = min(range(len(self._keys)), key=lambda k: self._last_used[k])
        return self._mark_used(i)

    def get_key(self) -> str | None:
        if self.strategy == "least_recently_used":
            return self.least_used_key()
        return self.next_key()


def get_client_ip(headers: Mapping[str, str], fallback: str = "unknown") -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return fallback
