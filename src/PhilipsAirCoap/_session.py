import logging
import random
import time
from string import hexdigits
from typing import Final

_LOGGER = logging.getLogger(__name__)

SESSION_MAX: Final = 2**32 - 1

# Only needs to be unique per session, not unguessable.
_defaultRng = random.Random(time.time_ns())


class SessionID:
    """The sequence number every encrypted exchange is keyed on.

    The device hands out its current counter on ``/sys/dev/sync``. Every command
    sent afterwards has to use the next value, so the id is incremented after each
    command. It plays the role of the CoAP message id, which the firmware always
    sets to 1.
    """

    __slots__ = ("_value",)

    def __init__(self, value: int = 0) -> None:
        self._value = value & SESSION_MAX

    @classmethod
    def parse(cls, data: bytes | str) -> "SessionID":
        """Parse the first 8 hex characters of ``data``.

        Malformed input gives a session of 0 instead of an error.
        """
        if isinstance(data, bytes):
            data = data[:8].decode("ascii", errors="replace")
        else:
            data = data[:8]

        # int() would also accept signs, whitespace, underscores and a 0x prefix.
        if not data or any(c not in hexdigits for c in data):
            _LOGGER.debug(f"Unparsable session id {data!r}, using 0.")
            return cls(0)
        return cls(int(data, 16))

    @classmethod
    def generate(cls, rng: random.Random | None = None) -> "SessionID":
        """Create a new random session id.

        :param rng: The generator to draw from. Defaults to a generator seeded at import.
        """
        if rng is None:
            rng = _defaultRng
        return cls(rng.getrandbits(32))

    @property
    def value(self) -> int:
        return self._value

    def hex(self) -> str:
        return f"{self._value:08X}"

    def increment(self) -> None:
        self._value = (self._value + 1) & SESSION_MAX

    def copy(self) -> "SessionID":
        return SessionID(self._value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SessionID):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"SessionID({self.hex()})"
