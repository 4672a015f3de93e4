import time
import logging
from dataclasses import dataclass
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    Attempt N (1-based) that fails with one of `retry_on` sleeps
    delay * backoff ** (N - 1) seconds, capped at max_delay, before the next
    attempt. The last failure is re-raised once max_attempts is reached.
    """

    max_attempts: int = 3
    delay: float = 0.5
    backoff: float = 2.0
    max_delay: float = 10.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0 or self.backoff < 1.0:
            raise ValueError("delay must be >= 0 and backoff >= 1.0")

    def wait_time(self, attempt: int) -> float:
        return min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)

    def call(self,
             func: Callable[[], T],
             retry_on: Tuple[Type[BaseException], ...] = (Exception,),
             label: str = "operation",
             sleep: Callable[[float], None] = time.sleep) -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func()
            except retry_on as e:
                if attempt == self.max_attempts:
                    logger.error(f"[{label}] Failed after {attempt} attempts: {e}")
                    raise
                wait = self.wait_time(attempt)
                logger.warning(f"[{label}] Attempt {attempt}/{self.max_attempts} failed ({e}). Retrying in {wait:.2f}s...")
                sleep(wait)
        # unreachable: the loop either returns or raises
        raise RuntimeError("RetryPolicy exhausted without result")
