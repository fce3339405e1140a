import time
from dataclasses import dataclass, field
from typing import Callable, Tuple, Type, TypeVar

from contact_core.domain.exceptions import NetworkError, RateLimitError, Timeout
from contact_core.infrastructure.logging.logger import logger

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """有界重试：最多 max_attempts 次，第 n 次重试前等待 delay * multiplier**(n-1) 秒。

    只对 retry_on 中的异常重试，其余异常立即抛出。
    """

    max_attempts: int = 3
    delay: float = 2.0
    multiplier: float = 2.0
    retry_on: Tuple[Type[Exception], ...] = (NetworkError, RateLimitError, Timeout)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def from_settings(cls, cfg) -> "RetryPolicy":
        return cls(
            max_attempts=cfg.assist_max_attempts,
            delay=cfg.assist_retry_delay,
            multiplier=cfg.assist_retry_multiplier,
        )

    def run(self, fn: Callable[[], T], label: str = "call") -> T:
        wait = self.delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "retry.attempt_failed",
                    extra={"extra": {"label": label, "attempt": attempt, "error": repr(e), "wait": wait}},
                )
                self.sleep(wait)
                wait *= self.multiplier
        raise AssertionError("unreachable")
