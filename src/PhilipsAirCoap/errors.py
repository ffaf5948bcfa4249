"""Error types for PhilipsAirCoap."""

from ._constants import ConnectionState


class PhilipsAirError(RuntimeError):
    """Base class for all PhilipsAirCoap errors."""

    pass


class TransportError(PhilipsAirError):
    """Exception that is raised when the CoAP transport fails."""

    pass


class ConnectError(TransportError):
    """Exception that is raised when the connection or sync handshake with the device fails."""

    pass


class RequestTimeoutError(TransportError):
    """Exception that is raised when the device doesn't answer a request in time."""

    pass


class FormatError(PhilipsAirError):
    """Exception that is raised when a wire frame or payload is malformed."""

    pass


class CryptoError(FormatError):
    """Exception that is raised when the cipher can't be set up."""

    pass


class CommandError(PhilipsAirError):
    """Exception that is raised when the device doesn't acknowledge a command."""

    pass


class ProtocolError(PhilipsAirError):
    """Exception that is raised when communication with the device doesn't follow the expected protocol."""

    pass


class ConnectionStateError(PhilipsAirError):
    """Exception that is raised when the connection isn't in the required state."""

    def __init__(
        self,
        expected: ConnectionState,
        got: ConnectionState,
        expl: str | None = None,
    ) -> None:
        """Create a new `ConnectionStateError`."""
        self.expected = expected
        self.got = got

        msg = f"Expected state {expected.name}. Current state {got.name}."
        if expl:
            msg += " " + expl

        super().__init__(msg)
