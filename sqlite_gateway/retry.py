from __future__ import annotations

# sqlite_gateway/retry.py
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """单次尝试的结果：成功 / 可重试失败 / 致命失败。"""

    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    retryable: bool = False

    @classmethod
    def success(cls, value: Any = None) -> "Attempt":
        return cls(ok=True, value=value)

    @classmethod
    def transient(cls, error: BaseException) -> "Attempt":
        return cls(ok=False, error=error, retryable=True)

    @classmethod
    def fatal(cls, error: BaseException) -> "Attempt":
        return cls(ok=False, error=error, retryable=False)


@dataclass
class RetryOutcome(Generic[T]):
    succeeded: bool
    attempts: int
    value: Optional[T] = None
    last_error: Optional[BaseException] = None
    errors: List[BaseException] = field(default_factory=list)
    exhausted: bool = False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay: float = 1.0
    backoff: float = 1.0  # 1.0 = fixed delay; >1 = exponential

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0 or self.backoff <= 0:
            raise ValueError("delay must be >= 0 and backoff > 0")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return self.delay * (self.backoff ** (attempt - 1))

    def run(
        self,
        attempt_fn: Callable[[int], Attempt],
        sleep: Callable[[float], None] = time.sleep,
        label: str = "operation",
    ) -> RetryOutcome:
        errors: List[BaseException] = []
        for i in range(1, self.max_attempts + 1):
            res = attempt_fn(i)
            if res.ok:
                return RetryOutcome(succeeded=True, attempts=i, value=res.value, errors=errors)
            errors.append(res.error)
            if not res.retryable:
                return RetryOutcome(succeeded=False, attempts=i, last_error=res.error, errors=errors)
            if i < self.max_attempts:
                d = self.delay_for(i)
                logger.warning("%s failed, retrying (%d/%d) in %.2fs: %s", label, i, self.max_attempts, d, res.error)
                sleep(d)
        logger.error("%s failed after %d attempts: %s", label, self.max_attempts, errors[-1])
        return RetryOutcome(
            succeeded=False,
            attempts=self.max_attempts,
            last_error=errors[-1],
            errors=errors,
            exhausted=True,
        )
