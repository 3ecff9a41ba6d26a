"""Coalescing of concurrent calls that share a key."""

from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

import anyio

from ..domain.exceptions import UpstreamUnavailableError
from ..logging import debug, LogRecord, LogEvent

T = TypeVar("T")


class _InFlightCall(Generic[T]):
    def __init__(self) -> None:
        self.done = anyio.Event()
        self.result: Optional[T] = None
        self.error: Optional[BaseException] = None
        self.followers = 0


class SingleFlight:
    """
    Runs at most one call per key at a time.

    The first caller for a key (the leader) runs the function; callers that
    arrive while it is in flight wait for the leader and receive its result
    or its exception. The key is released as soon as the leader finishes, so
    a later caller starts a new call.
    """

    def __init__(self) -> None:
        self._calls: Dict[str, _InFlightCall[Any]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._calls

    async def run(
        self,
        key: str,
        func: Callable[[], Awaitable[T]],
        request_id: Optional[str] = None,
    ) -> T:
        call = self._calls.get(key)
        if call is not None:
            call.followers += 1
            debug(
                LogRecord(
                    event=LogEvent.INFLIGHT_JOINED.value,
                    message="Joined in-flight upstream call",
                    request_id=request_id,
                    data={"key": key, "followers": call.followers},
                )
            )
            await call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result  # type: ignore[return-value]

        call = _InFlightCall()
        self._calls[key] = call
        try:
            call.result = await func()
            return call.result
        except anyio.get_cancelled_exc_class():
            call.error = UpstreamUnavailableError(
                "In-flight upstream call was cancelled"
            )
            raise
        except Exception as exc:
            call.error = exc
            raise
        finally:
            if self._calls.get(key) is call:
                del self._calls[key]
            call.done.set()
