import asyncio
import json
import logging
from collections.abc import Callable
from typing import Final

from ._client import Observation, Push
from ._encryption import decodeMessage
from ._session import SessionID
from ._status import ReportedStatus
from .errors import FormatError, PhilipsAirError, TransportError

_CLOSED: Final = object()


def decodeStatus(frame: bytes) -> ReportedStatus:
    """Decode a pushed status frame.

    The frame carries the device's own view of the session, which is used for the
    key instead of the local session.

    :raises FormatError: The frame or the JSON inside it is malformed.
    """
    plaintext = decodeMessage(frame)
    try:
        data = json.loads(plaintext)
    except ValueError as e:
        raise FormatError(f"Status isn't valid JSON: {plaintext!r}") from e
    return ReportedStatus.fromDict(data)


class StatusSubscription:
    """A running observation of ``/sys/dev/status``.

    Decoded statuses are passed to ``onUpdate`` if given. Otherwise they are queued
    and can be consumed with ``async for``. Iteration ends once the subscription is
    cancelled or the device stops the observation and can't be restarted.
    """

    def __init__(
        self,
        observation: Observation,
        onUpdate: Callable[[ReportedStatus], None] | None = None,
        onError: Callable[[PhilipsAirError], None] | None = None,
    ) -> None:
        self._observation = observation
        self._onUpdate = onUpdate
        self._onError = onError

        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

        self._cancelled = False
        self._released = False
        self._closed = False
        self._exhausted = False
        self._logger = logging.getLogger(__name__)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        """Whether pushes are still being delivered."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Subscription already started.")
        self._task = self._loop.create_task(self._run())

    async def _run(self) -> None:
        try:
            async for push in self._observation:
                await self._handlePush(push)
        except TransportError as e:
            self._logger.error(f"Status observation ended: {e}")
            self._report(e)
        finally:
            self._release()
            self._close()
        self._logger.info("Status observation stopped.")

    async def _handlePush(self, push: Push) -> None:
        # Acknowledge first so the device keeps sending even if decoding fails.
        if push.confirmable and push.acknowledge is not None:
            try:
                await push.acknowledge()
            except TransportError:
                self._logger.error("Failed to acknowledge status push.", exc_info=True)

        try:
            status = decodeStatus(push.payload)
        except FormatError as e:
            self._logger.error(f"Dropping status push {push.payload!r}: {e}")
            self._report(e)
            return

        self._logger.debug(
            f"Status with session {SessionID.parse(push.payload).hex()}: {status}"
        )

        if self._onUpdate is None:
            self._queue.put_nowait(status)
            return
        try:
            self._onUpdate(status)
        except Exception:
            self._logger.error(
                f"Exception occurred in status callback {self._onUpdate}.",
                exc_info=True,
            )

    def _report(self, error: PhilipsAirError) -> None:
        if self._onError is None:
            return
        try:
            self._onError(error)
        except Exception:
            self._logger.error(
                f"Exception occurred in error callback {self._onError}.",
                exc_info=True,
            )

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._observation.cancel()
        except Exception:
            self._logger.error("Failed to cancel observation.", exc_info=True)

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def _cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._logger.info("Cancelling status observation...")

        self._release()
        if (
            self._task is not None
            and not self._task.done()
            and self._task is not asyncio.current_task()
        ):
            self._task.cancel()
        self._close()

    def cancel(self) -> None:
        """Stop the subscription and release the observation.

        Can be called multiple times and from any thread.
        """
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._cancel()
        elif self._loop.is_closed():
            self._cancelled = True
        else:
            self._loop.call_soon_threadsafe(self._cancel)

    def __aiter__(self) -> "StatusSubscription":
        return self

    async def __anext__(self) -> ReportedStatus:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        return item  # type: ignore[return-value]
