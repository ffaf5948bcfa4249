"""Shared fixtures for the PhilipsAirCoap tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
from aiocoap.numbers.contentformat import ContentFormat

from PhilipsAirCoap import Push, SessionID, encodeMessage
from PhilipsAirCoap._constants import CONTROL_PATH, INFO_PATH, SYNC_PATH

INFO_PAYLOAD = json.dumps(
    {
        "name": "Living room",
        "type": "AirCombi",
        "modelid": "HU5710/10",
        "swversion": "0.2.1",
        "device_id": "0123456789abcdef",
        "model_id": "HU5710/10",
        "product_id": "fedcba9876543210",
        "option": "0",
    }
).encode()


def statusFrame(reported: dict[str, Any], session: int = 0x1234) -> bytes:
    """Build a status push the way the device does."""

    message = json.dumps({"state": {"reported": reported}}).encode()
    return encodeMessage(SessionID(session), message)


class FakeObservation:
    """Observation fed by the test."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Push | None] = asyncio.Queue()
        self.cancelled = False
        self.cancelCount = 0

    def push(
        self,
        payload: bytes,
        confirmable: bool = False,
        acknowledge: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._queue.put_nowait(Push(payload, confirmable, acknowledge))

    def end(self) -> None:
        self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[Push]:
        while True:
            push = await self._queue.get()
            if push is None or self.cancelled:
                return
            yield push

    def cancel(self) -> None:
        self.cancelCount += 1
        self.cancelled = True
        self._queue.put_nowait(None)


class FakeTransport:
    """In-memory transport that answers like the device."""

    def __init__(self) -> None:
        self.syncResponse = b"0000000A"
        self.ackResponse = b'{"status":"success"}'
        self.infoResponse = INFO_PAYLOAD
        self.postError: Exception | None = None
        self.postDelay = 0.0

        self.posts: list[tuple[str, bytes, ContentFormat]] = []
        self.gets: list[str] = []
        self.observations: list[FakeObservation] = []
        self.connectCount = 0
        self.closed = False

    async def connect(self) -> None:
        self.connectCount += 1
        self.closed = False

    async def get(self, path: str) -> bytes:
        self.gets.append(path)
        assert path == INFO_PATH
        return self.infoResponse

    async def post(self, path: str, payload: bytes, contentFormat: ContentFormat) -> bytes:
        self.posts.append((path, payload, contentFormat))
        if path == SYNC_PATH:
            return self.syncResponse
        assert path == CONTROL_PATH
        if self.postDelay:
            await asyncio.sleep(self.postDelay)
        if self.postError is not None:
            raise self.postError
        return self.ackResponse

    async def observe(self, path: str) -> FakeObservation:
        observation = FakeObservation()
        self.observations.append(observation)
        return observation

    async def close(self) -> None:
        self.closed = True

    @property
    def controlPosts(self) -> list[bytes]:
        return [payload for path, payload, _ in self.posts if path == CONTROL_PATH]


@pytest.fixture
def transport() -> FakeTransport:
    """Return a fresh fake transport."""

    return FakeTransport()
