"""
Report Results

Reports degrade to empty data instead of raising so the dashboard stays up.
ReportResult keeps "nothing matched" and "the store failed" apart for
callers and tests even though the HTTP layer returns the same empty payload
for both.
"""

import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog

from spend_analytics.errors import ValidationError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ReportStatus(str, Enum):
    """Outcome of a report call"""
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class ReportResult(Generic[T]):
    """Report data tagged with how it was obtained"""
    status: ReportStatus
    data: T
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "ReportResult[T]":
        return cls(ReportStatus.OK, data)

    @classmethod
    def empty(cls, data: T) -> "ReportResult[T]":
        return cls(ReportStatus.EMPTY, data)

    @classmethod
    def failed(cls, data: T, error: BaseException) -> "ReportResult[T]":
        return cls(ReportStatus.FAILED, data, f"{type(error).__name__}: {error}")

    @property
    def is_ok(self) -> bool:
        return self.status == ReportStatus.OK

    @property
    def is_empty(self) -> bool:
        return self.status == ReportStatus.EMPTY

    @property
    def is_failed(self) -> bool:
        return self.status == ReportStatus.FAILED


def report(name: str, empty: Callable[[], Any]):
    """
    Wrap a report coroutine so it always returns a ReportResult.

    Plain return values are tagged OK, or EMPTY when they are an empty
    list/dict or None. Any exception other than ValidationError is logged
    and turned into a FAILED result carrying ``empty()``.
    """
    def decorator(func: Callable[..., Awaitable[Any]]):
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> ReportResult:
            try:
                result = await func(*args, **kwargs)
            except ValidationError:
                raise
            except Exception as e:
                logger.warning(
                    "Report failed, returning empty result",
                    report=name,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return ReportResult.failed(empty(), e)

            if isinstance(result, ReportResult):
                return result
            if result is None or (isinstance(result, (list, dict)) and not result):
                return ReportResult.empty(empty() if result is None else result)
            return ReportResult.ok(result)

        return wrapper
    return decorator
