from typing import Any, Awaitable, Callable, Optional, TypeVar
import asyncio
import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _settle(link: asyncio.Future):
    if not link.done():
        link.set_result(None)


class CallSequencer:
    """Runs submitted operations one at a time, in submission order.

    Keeps a single reference to the tail of a chain of futures. Each
    submission swaps itself in as the new tail before suspending, waits for
    the previous link to settle (success or failure) and settles its own link
    when done. Failures are delivered to their own caller only.
    """

    def __init__(self):
        self._tail: Optional[asyncio.Future] = None

    @property
    def pending(self) -> bool:
        return self._tail is not None and not self._tail.done()

    async def submit(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        previous = self._tail
        link = asyncio.get_running_loop().create_future()
        self._tail = link

        try:
            if previous is not None and not previous.done():
                # shield: a cancelled waiter must not cancel its predecessor
                await asyncio.shield(previous)
            return await operation(*args, **kwargs)
        finally:
            if previous is not None and not previous.done():
                # Cancelled while waiting; keep the chain ordered behind the predecessor
                logger.debug("Queued call cancelled before running")
                previous.add_done_callback(lambda _: _settle(link))
            else:
                _settle(link)
            if self._tail is link and link.done():
                self._tail = None
