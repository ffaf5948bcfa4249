import logging
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum, unique
from typing import Any, Final

from ._constants import FILTER_WARNING_HOURS
from .errors import FormatError

_LOGGER = logging.getLogger(__name__)


@unique
class FanSpeed(Enum):
    """Speed at which the fan runs."""

    SILENT = "s"
    """The lowest fan speed."""

    SPEED_1 = "1"
    SPEED_2 = "2"
    SPEED_3 = "3"

    TURBO = "t"
    """The highest fan speed."""

    @property
    def rotationSpeed(self) -> str:
        """The fan speed as percentage of the maximum rotation speed."""
        return _ROTATION_SPEED[self]


_ROTATION_SPEED: Final = {
    FanSpeed.SILENT: "5",
    FanSpeed.SPEED_1: "20",
    FanSpeed.SPEED_2: "40",
    FanSpeed.SPEED_3: "80",
    FanSpeed.TURBO: "100",
}


@unique
class Power(Enum):
    OFF = "0"
    ON = "1"


@unique
class Mode(Enum):
    """Operating mode of the device. Which modes are supported depends on the model."""

    AUTO = "P"
    ALLERGEN = "A"
    SLEEP = "S"
    MANUAL = "M"
    BACTERIA = "B"
    NIGHT = "N"


@unique
class Function(Enum):
    PURIFICATION = "P"
    """Only purifying."""

    PURIFICATION_HUMIDIFICATION = "PH"
    """Purifying and humidifying."""

    @property
    def humidifierState(self) -> str:
        return "2" if self == Function.PURIFICATION_HUMIDIFICATION else "0"


@unique
class DisplayMode(Enum):
    """The value shown on the display."""

    IAQ = "0"
    PM25 = "1"
    HUMIDITY = "3"


@unique
class Brightness(IntEnum):
    """Brightness of the display and light ring."""

    OFF = 0
    LEVEL_25 = 25
    LEVEL_50 = 50
    LEVEL_75 = 75
    FULL = 100


@unique
class ErrorCode(IntEnum):
    NO_ERROR = 0
    WATER_TANK_OPEN = 32768
    CLEAN_FILTER = 49155
    NO_WATER = 49408


_ERROR_DESCRIPTIONS: Final = {
    ErrorCode.CLEAN_FILTER: "one of the filters/wick needs cleaning",
    ErrorCode.NO_WATER: "refill water tank",
    ErrorCode.WATER_TANK_OPEN: "water tank is open",
}


def describeError(code: int) -> str:
    """Return a human readable description for an error code."""
    if code == ErrorCode.NO_ERROR:
        return "No error"
    return f"Error: {int(code)}, {_ERROR_DESCRIPTIONS.get(code, 'unknown')}"  # type: ignore[call-overload]


def airQualityLevel(iaql: int) -> str:
    """Map the indoor air quality index (1-12) onto the levels 1-5.

    Everything outside of the known range is reported as the worst level.
    """
    if iaql == 1:
        return "1"
    if 2 <= iaql <= 3:
        return "2"
    if 4 <= iaql <= 6:
        return "3"
    if 7 <= iaql <= 9:
        return "4"
    return "5"


def _parseStr(value: Any) -> str:
    return "" if value is None else str(value)


def _parseInt(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Expected an integer, got {value!r}.") from e


def _parseBool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("1", "true")
    return bool(value)


def _enumParser(enumType: type[Enum]) -> Callable[[Any], Any]:
    def parse(value: Any) -> Enum | None:
        if value is None:
            return None
        # Codes are strings on the wire, accept numbers as well.
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        try:
            return enumType(value)
        except ValueError:
            _LOGGER.warning(f"Unknown {enumType.__name__} value {value!r}.")
            return None

    return parse


def _tag(name: str, parse: Callable[[Any], Any] = _parseStr) -> dict[str, Any]:
    return {"tag": name, "parse": parse}


def _fromTagged(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for f in fields(cls):
        if "tag" not in f.metadata:
            continue
        raw = data.get(f.metadata["tag"])
        if raw is None and f.default is not None:
            # Leave missing values at their default.
            continue
        values[f.name] = f.metadata["parse"](raw)
    return values


@dataclass(frozen=True, repr=True)
class DeviceInfo:
    """Static information returned by ``/sys/dev/info``.

    :ivar deviceId: Unique id of the device.
    :ivar modelId: Model number, e.g. ``HU5710/10``.
    :ivar name: User assigned name of the device.
    :ivar swVersion: Firmware version.
    """

    deviceId: str = field(default="", metadata=_tag("device_id"))
    modelId: str = field(default="", metadata=_tag("model_id"))
    name: str = field(default="", metadata=_tag("name"))
    option: str = field(default="", metadata=_tag("option"))
    productId: str = field(default="", metadata=_tag("product_id"))
    swVersion: str = field(default="", metadata=_tag("swversion"))
    type: str = field(default="", metadata=_tag("type"))

    @classmethod
    def fromDict(cls, data: dict[str, Any]) -> "DeviceInfo":
        if not isinstance(data, dict):
            raise FormatError(f"Expected a JSON object for device info, got {data!r}.")
        return cls(**_fromTagged(cls, data))


@dataclass(frozen=True, repr=True)
class ReportedStatus:
    """The state the device pushes on ``/sys/dev/status``.

    Every push carries the complete state, so a new instance replaces the old one.
    Sensor readings are only meaningful while the device is powered on.
    """

    name: str = field(default="", metadata=_tag("name"))
    type: str = field(default="", metadata=_tag("type"))
    modelId: str = field(default="", metadata=_tag("modelid"))
    firmwareVersion: str = field(default="", metadata=_tag("swversion"))
    deviceVersion: str = field(default="", metadata=_tag("DeviceVersion"))
    ota: str = field(default="", metadata=_tag("ota"))
    runtime: int = field(default=0, metadata=_tag("Runtime", _parseInt))
    """Hours the device has been powered on."""
    wifiVersion: str = field(default="", metadata=_tag("WifiVersion"))
    productId: str = field(default="", metadata=_tag("ProductId"))
    deviceId: str = field(default="", metadata=_tag("DeviceId"))
    statusType: str = field(default="", metadata=_tag("StatusType"))
    connectType: str = field(default="", metadata=_tag("ConnectType"))

    fanSpeed: FanSpeed | None = field(
        default=None, metadata=_tag("om", _enumParser(FanSpeed))
    )
    power: Power | None = field(default=None, metadata=_tag("pwr", _enumParser(Power)))
    childLock: bool = field(default=False, metadata=_tag("cl", _parseBool))
    brightness: int = field(default=0, metadata=_tag("aqil", _parseInt))
    buttonBacklight: str = field(default="", metadata=_tag("uil"))
    timer: int = field(default=0, metadata=_tag("dt", _parseInt))
    """Hours set on the timer."""
    timerTimeLeft: int = field(default=0, metadata=_tag("dtrs", _parseInt))
    """Minutes left on the timer."""
    mode: Mode | None = field(default=None, metadata=_tag("mode", _enumParser(Mode)))
    function: Function | None = field(
        default=None, metadata=_tag("func", _enumParser(Function))
    )
    displayMode: DisplayMode | None = field(
        default=None, metadata=_tag("ddp", _enumParser(DisplayMode))
    )
    rddp: str = field(default="", metadata=_tag("rddp"))

    humidityTarget: int = field(default=0, metadata=_tag("rhset", _parseInt))
    humidity: int = field(default=0, metadata=_tag("rh", _parseInt))
    temperature: int = field(default=0, metadata=_tag("temp", _parseInt))
    pm25: int = field(default=0, metadata=_tag("pm25", _parseInt))
    airQuality: int = field(default=0, metadata=_tag("iaql", _parseInt))
    airQualityThreshold: int = field(default=0, metadata=_tag("aqit", _parseInt))
    """Air quality index above which the app sends a notification."""
    waterLevel: int = field(default=0, metadata=_tag("wl", _parseInt))
    error: int = field(default=0, metadata=_tag("err", _parseInt))

    hepaFilterCode: str = field(default="", metadata=_tag("fltt1"))
    carbonFilterCode: str = field(default="", metadata=_tag("fltt2"))
    prefilterCleanIn: int = field(default=0, metadata=_tag("fltsts0", _parseInt))
    hepaFilterReplaceIn: int = field(default=0, metadata=_tag("fltsts1", _parseInt))
    carbonFilterReplaceIn: int = field(default=0, metadata=_tag("fltsts2", _parseInt))
    wickReplaceIn: int = field(default=0, metadata=_tag("wicksts", _parseInt))

    @classmethod
    def fromDict(cls, data: dict[str, Any]) -> "ReportedStatus":
        """Parse the full status message, i.e. ``{"state": {"reported": {...}}}``.

        :raises FormatError: The message has no reported state or a field has the wrong type.
        """
        try:
            reported = data["state"]["reported"]
        except (KeyError, TypeError) as e:
            raise FormatError(f"No reported state in {data!r}.") from e
        if not isinstance(reported, dict):
            raise FormatError(f"Reported state isn't an object: {reported!r}.")
        return cls(**_fromTagged(cls, reported))

    @property
    def isOn(self) -> bool:
        return self.power == Power.ON

    @property
    def airQualityLevel(self) -> str:
        return airQualityLevel(self.airQuality)

    @property
    def errorDescription(self) -> str:
        return describeError(self.error)

    @property
    def needsFilterChange(self) -> bool:
        """Whether any of the filters or the wick needs to be replaced or cleaned soon."""
        return (
            self.carbonFilterReplaceIn <= FILTER_WARNING_HOURS
            or self.hepaFilterReplaceIn <= FILTER_WARNING_HOURS
            or self.wickReplaceIn <= FILTER_WARNING_HOURS
            or self.prefilterCleanIn <= 0
            or self.error == ErrorCode.CLEAN_FILTER
        )


@dataclass(repr=True)
class DesiredState:
    """A set of changes to apply to the device.

    Only the fields that are set are sent. The device applies them and leaves
    everything else untouched.
    """

    power: Power | None = field(default=None, metadata={"tag": "pwr"})
    mode: Mode | None = field(default=None, metadata={"tag": "mode"})
    function: Function | None = field(default=None, metadata={"tag": "func"})
    fanSpeed: FanSpeed | None = field(default=None, metadata={"tag": "om"})
    brightness: Brightness | int | None = field(default=None, metadata={"tag": "aqil"})
    displayMode: DisplayMode | None = field(default=None, metadata={"tag": "ddp"})
    childLock: bool | None = field(default=None, metadata={"tag": "cl"})
    humidityTarget: int | None = field(default=None, metadata={"tag": "rhset"})

    def toDict(self) -> dict[str, Any]:
        """Convert the set fields into their device representation.

        :raises ValueError: No field is set.
        """
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, IntEnum):
                value = int(value)
            elif isinstance(value, Enum):
                value = value.value
            result[f.metadata["tag"]] = value

        if not result:
            raise ValueError("Desired state is empty.")
        return result
