import asyncio
import json
import logging
import random
from binascii import b2a_hex as b2a
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from aiocoap.numbers.contentformat import ContentFormat

from ._client import CoapClient, Transport
from ._constants import (
    CONTROL_PATH,
    DEFAULT_PORT,
    INFO_PATH,
    REQUEST_TIMEOUT,
    STATUS_PATH,
    SYNC_PATH,
    ConnectionState,
)
from ._encryption import encodeMessage
from ._session import SessionID
from ._status import DesiredState, DeviceInfo, ReportedStatus
from ._subscription import StatusSubscription
from .errors import (
    CommandError,
    ConnectError,
    ConnectionStateError,
    FormatError,
    PhilipsAirError,
    ProtocolError,
    RequestTimeoutError,
    TransportError,
)

_T = TypeVar("_T")


class Device:
    """Class to manage the connection to one device.

    The device has to be connected with ``connect`` before it can be used. Commands
    are sent with ``set`` and status updates are received with ``observeStatus``.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        rng: random.Random | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        """Create a new device.

        :param transport: The transport to use. By default an aiocoap client is created on connect.
        :param rng: Random generator for the initial session id.
        :param timeout: Timeout in seconds for each request.
        """
        self._transport = transport
        self._ownTransport = transport is None
        self._rng = rng
        self._timeout = timeout

        self._session: SessionID | None = None
        self._sessionLock = asyncio.Lock()
        self._subscriptions: list[StatusSubscription] = []

        self.address: str | None = None
        self._connectionState = ConnectionState.NONE
        self._logger = logging.getLogger(__name__)

    def _checkState(self, *allowed: ConnectionState) -> None:
        if self._connectionState not in allowed:
            raise ConnectionStateError(allowed[-1], self._connectionState)

    @property
    def state(self) -> ConnectionState:
        return self._connectionState

    @property
    def connected(self) -> bool:
        """Check whether the session with the device is established."""
        return self._connectionState == ConnectionState.SYNCED

    @property
    def session(self) -> str | None:
        """The session id the next command will be sent with."""
        if self._session is None:
            return None
        return self._session.hex()

    async def _request(self, request: Awaitable[_T], path: str) -> _T:
        try:
            return await asyncio.wait_for(request, self._timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"No answer for {path} within {self._timeout} seconds."
            ) from e

    def _getTransport(self) -> Transport:
        if self._transport is None:
            raise ConnectionStateError(ConnectionState.CONNECTED, self._connectionState)
        return self._transport

    async def connect(self, address: str) -> None:
        """Connect to a device and establish a session.

        :param address: ``host`` or ``host:port`` of the device. The port defaults to 5683.
        :raises ConnectError: The transport failed or the sync handshake failed.
        :raises ConnectionStateError: The device is already connected.
        """
        self._checkState(ConnectionState.NONE)

        if ":" not in address:
            address = f"{address}:{DEFAULT_PORT}"
        self.address = address
        self._logger.info(f"Connecting to {address}...")

        if self._ownTransport:
            self._transport = CoapClient(address)

        try:
            await self._request(self._getTransport().connect(), address)
        except TransportError as e:
            self._logger.error(f"Failed to connect to {address}.")
            raise ConnectError(f"Failed to connect to {address}.") from e
        self._connectionState = ConnectionState.CONNECTED

        try:
            await self._sync()
        except (TransportError, ProtocolError) as e:
            self._logger.error(f"Sync handshake with {address} failed.", exc_info=True)
            self._connectionState = ConnectionState.ERROR
            await self._closeTransport()
            self._connectionState = ConnectionState.NONE
            raise ConnectError(f"Sync handshake with {address} failed.") from e

        self._logger.info(f"Connected to {address}")

    async def _sync(self) -> None:
        self._checkState(ConnectionState.CONNECTED)

        proposal = SessionID.generate(self._rng)
        self._logger.debug(f"Syncing with session {proposal.hex()}")
        payload = await self._request(
            self._getTransport().post(
                SYNC_PATH, proposal.hex().encode("ascii"), ContentFormat.TEXT
            ),
            SYNC_PATH,
        )
        if not payload.strip():
            raise ProtocolError("Empty response to sync request.")

        # The device answers with the id it last saw, the next command uses the one after.
        session = SessionID.parse(payload.strip())
        session.increment()
        async with self._sessionLock:
            self._session = session

        self._connectionState = ConnectionState.SYNCED
        self._logger.info(f"Session synced. Next session id is {session.hex()}.")

    async def info(self) -> DeviceInfo:
        """Get the static device information.

        This request isn't encrypted and doesn't use the session.

        :return: The decoded contents of ``/sys/dev/info``.
        :raises ProtocolError: The response isn't a valid JSON object.
        :raises TransportError: The request failed or timed out.
        """
        self._checkState(ConnectionState.CONNECTED, ConnectionState.SYNCED)

        payload = await self._request(self._getTransport().get(INFO_PATH), INFO_PATH)
        self._logger.debug(f"Raw info: {payload!r}")
        try:
            return DeviceInfo.fromDict(json.loads(payload))
        except (ValueError, FormatError) as e:
            raise ProtocolError(f"Could not decode info {payload!r}.") from e

    async def set(self, desired: DesiredState) -> None:
        """Apply a desired state to the device.

        The session id is advanced for every command, whether it succeeds or not.

        The device also answers with success for commands it can't make sense of, or
        that don't change anything, such as turning it on while it is already on. A
        successful return only means the device accepted the message.

        :param desired: The changes to apply. At least one field must be set.
        :raises CommandError: The device didn't acknowledge the command.
        :raises TransportError: The request failed or timed out.
        :raises ConnectionStateError: There is no session with the device.
        :raises ValueError: ``desired`` is empty.
        """
        self._checkState(ConnectionState.SYNCED)

        message = json.dumps(
            {"state": {"desired": desired.toDict()}}, separators=(",", ":")
        ).encode()

        async with self._sessionLock:
            session = self._session
            if session is None:
                raise ConnectionStateError(ConnectionState.SYNCED, self._connectionState)
            try:
                frame = encodeMessage(session, message)
                self._logger.debug(
                    f"Sending {message!r} with session {session.hex()}: {b2a(frame)}"
                )
                response = await self._request(
                    self._getTransport().post(CONTROL_PATH, frame, ContentFormat.JSON),
                    CONTROL_PATH,
                )
            finally:
                session.increment()

        self._checkAcknowledgement(response)

    def _checkAcknowledgement(self, response: bytes) -> None:
        try:
            ack: Any = json.loads(response)
        except ValueError as e:
            raise CommandError(f"Could not decode acknowledgement {response!r}.") from e

        if not isinstance(ack, dict) or ack.get("status") != "success":
            raise CommandError(f"Device did not accept the command: {response!r}")
        self._logger.debug("Command acknowledged.")

    async def observeStatus(
        self,
        onUpdate: Callable[[ReportedStatus], None] | None = None,
        onError: Callable[[PhilipsAirError], None] | None = None,
    ) -> StatusSubscription:
        """Subscribe to status updates.

        The device pushes its full state whenever something changes. A push that
        can't be decoded is logged, passed to ``onError`` and skipped. The
        subscription keeps running.

        :param onUpdate: Called with every decoded status. If not given, iterate the subscription instead.
        :param onError: Called with the error for every push that couldn't be decoded.
        :return: The running subscription. Call ``cancel`` on it once done.
        :raises TransportError: The observation couldn't be set up.
        """
        self._checkState(ConnectionState.SYNCED)

        observation = await self._request(
            self._getTransport().observe(STATUS_PATH), STATUS_PATH
        )
        subscription = StatusSubscription(observation, onUpdate, onError)
        subscription.start()

        self._subscriptions = [s for s in self._subscriptions if not s.cancelled]
        self._subscriptions.append(subscription)
        self._logger.info(f"Observing {STATUS_PATH}")
        return subscription

    async def _closeTransport(self) -> None:
        if self._transport is None:
            return
        try:
            await asyncio.shield(self._transport.close())
        except Exception:
            self._logger.error("Failed to close transport.", exc_info=True)
        if self._ownTransport:
            self._transport = None

    async def disconnect(self) -> None:
        """Cancel all subscriptions and close the connection."""
        self._logger.info("Disconnecting...")

        for s in self._subscriptions:
            s.cancel()
        self._subscriptions.clear()

        await self._closeTransport()

        async with self._sessionLock:
            self._session = None
        self._connectionState = ConnectionState.NONE
        self._logger.info("Disconnected.")
