import logging
from binascii import b2a_hex as b2a
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from aiocoap import CON, GET, POST, Context, Message
from aiocoap.error import Error as CoapError
from aiocoap.error import ObservationCancelled
from aiocoap.numbers.contentformat import ContentFormat

from .errors import TransportError


@dataclass(frozen=True)
class Push:
    """One notification received on an observed resource.

    :ivar payload: The raw payload.
    :ivar confirmable: Whether the device asked for an acknowledgement.
    :ivar acknowledge: Sends the acknowledgement. ``None`` if the transport already did.
    """

    payload: bytes
    confirmable: bool = False
    acknowledge: Callable[[], Awaitable[None]] | None = None


class Observation(Protocol):
    def __aiter__(self) -> AsyncIterator[Push]:
        ...

    def cancel(self) -> None:
        ...


class Transport(Protocol):
    """The request/response messaging layer used by ``Device``."""

    async def connect(self) -> None:
        ...

    async def get(self, path: str) -> bytes:
        ...

    async def post(self, path: str, payload: bytes, contentFormat: ContentFormat) -> bytes:
        ...

    async def observe(self, path: str) -> Observation:
        ...

    async def close(self) -> None:
        ...


def _toPush(response: Message) -> Push:
    # aiocoap acknowledges confirmable notifications in its message layer before
    # handing them to the observation, so delivery continues even if the payload
    # later fails to decode.
    return Push(payload=response.payload, confirmable=response.mtype == CON)


class CoapObservation:
    def __init__(self, requester, first: Message) -> None:
        self._requester = requester
        self._first = first
        self._cancelled = False
        self._logger = logging.getLogger(__name__)

    async def __aiter__(self) -> AsyncIterator[Push]:
        yield _toPush(self._first)
        try:
            async for response in self._requester.observation:
                yield _toPush(response)
        except ObservationCancelled:
            self._logger.debug("Observation cancelled.")
        except CoapError as e:
            if not self._cancelled:
                raise TransportError(f"Observation failed: {e}") from e

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._requester.observation.cancel()


class CoapClient:
    """``Transport`` on top of an aiocoap client context."""

    def __init__(self, address: str) -> None:
        self.address = address
        self._context: Context | None = None
        self._logger = logging.getLogger(__name__)

    def _uri(self, path: str) -> str:
        return f"coap://{self.address}{path}"

    def _getContext(self) -> Context:
        if self._context is None:
            raise TransportError("Transport isn't connected.")
        return self._context

    async def connect(self) -> None:
        if self._context is not None:
            return
        try:
            self._context = await Context.create_client_context()
        except OSError as e:
            self._logger.error("Failed to create CoAP context.", exc_info=True)
            raise TransportError(e.args) from e
        self._logger.debug(f"CoAP context for {self.address} ready.")

    async def _request(self, message: Message) -> Message:
        try:
            response = await self._getContext().request(message).response
        except CoapError as e:
            raise TransportError(f"Request to {message.get_request_uri()} failed: {e}") from e
        except OSError as e:
            raise TransportError(e.args) from e

        if not response.code.is_successful():
            raise TransportError(
                f"Request to {message.get_request_uri()} failed with {response.code}."
            )
        return response

    async def get(self, path: str) -> bytes:
        self._logger.debug(f"GET {path}")
        response = await self._request(Message(code=GET, uri=self._uri(path)))
        self._logger.debug(f"Response for {path}: {b2a(response.payload)}")
        return response.payload

    async def post(self, path: str, payload: bytes, contentFormat: ContentFormat) -> bytes:
        self._logger.debug(f"POST {path}: {payload!r}")
        response = await self._request(
            Message(
                code=POST,
                uri=self._uri(path),
                payload=payload,
                content_format=contentFormat,
            )
        )
        self._logger.debug(f"Response for {path}: {b2a(response.payload)}")
        return response.payload

    async def observe(self, path: str) -> CoapObservation:
        self._logger.debug(f"Observing {path}")
        requester = self._getContext().request(
            Message(code=GET, uri=self._uri(path), observe=0)
        )
        try:
            first = await requester.response
        except CoapError as e:
            raise TransportError(f"Failed to observe {path}: {e}") from e
        except OSError as e:
            raise TransportError(e.args) from e

        if not first.code.is_successful():
            raise TransportError(f"Failed to observe {path}: {first.code}.")
        return CoapObservation(requester, first)

    async def close(self) -> None:
        if self._context is None:
            return
        context, self._context = self._context, None
        await context.shutdown()
        self._logger.debug(f"CoAP context for {self.address} closed.")
