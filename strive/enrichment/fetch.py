"""Best-effort result type and timeout wrapper for external calls."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 8.0  # seconds


class FetchError(str, Enum):
    """Why an external lookup produced no data."""

    DISABLED = "disabled"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    HTTP = "http"
    NETWORK = "network"
    PARSE = "parse"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Either a value or the reason there is none.

    Not found and timed out are ordinary outcomes for third-party lookups,
    so they travel as values instead of exceptions.
    """

    value: Optional[T] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: FetchError) -> "FetchResult[T]":
        return cls(error=error)


async def call_with_timeout(
    func: Callable[..., FetchResult[T]],
    *args: Any,
    timeout: float = DEFAULT_TIMEOUT,
) -> FetchResult[T]:
    """Run a blocking fetch in a worker thread, racing it against ``timeout``.

    Never raises: a timeout or an unexpected exception becomes a failed
    FetchResult. The worker thread is abandoned on timeout; the underlying
    request carries its own socket timeout.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout)
    except asyncio.TimeoutError:
        logger.debug(f"{getattr(func, '__name__', func)} timed out after {timeout}s")
        return FetchResult.failure(FetchError.TIMEOUT)
    except Exception as e:
        logger.warning(f"Unexpected error in {getattr(func, '__name__', func)}: {e}")
        return FetchResult.failure(FetchError.UNEXPECTED)
