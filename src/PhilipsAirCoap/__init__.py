"""Top-level module for PhilipsAirCoap."""

# Import everything that should be public
# ruff: noqa: F401

from ._client import CoapClient, Observation, Push, Transport
from ._constants import ConnectionState
from ._device import Device
from ._encryption import (
    Encryptor,
    decodeMessage,
    deriveKeyIV,
    encodeMessage,
    pad,
    unpad,
)
from ._session import SessionID
from ._status import (
    Brightness,
    DesiredState,
    DeviceInfo,
    DisplayMode,
    ErrorCode,
    FanSpeed,
    Function,
    Mode,
    Power,
    ReportedStatus,
    airQualityLevel,
    describeError,
)
from ._subscription import StatusSubscription, decodeStatus
