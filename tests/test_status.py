"""Tests for the status model."""

from __future__ import annotations

import json

import pytest

from PhilipsAirCoap import (
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
    decodeStatus,
    describeError,
)
from PhilipsAirCoap.errors import FormatError

from .conftest import INFO_PAYLOAD, statusFrame

REPORTED = {
    "name": "Living room",
    "type": "AirCombi",
    "modelid": "HU5710/10",
    "swversion": "0.2.1",
    "DeviceVersion": "0.0.0",
    "Runtime": 123456,
    "ProductId": "fedcba9876543210",
    "DeviceId": "0123456789abcdef",
    "StatusType": "localcontrol",
    "ConnectType": "Localcontrol",
    "om": "2",
    "pwr": "1",
    "cl": False,
    "aqil": 75,
    "uil": "1",
    "dt": 0,
    "dtrs": 0,
    "mode": "P",
    "func": "PH",
    "rhset": 50,
    "rh": 45,
    "temp": 22,
    "pm25": 4,
    "iaql": 3,
    "aqit": 4,
    "ddp": "3",
    "rddp": "1",
    "err": 0,
    "wl": 100,
    "fltt1": "A3",
    "fltt2": "C7",
    "fltsts0": 287,
    "fltsts1": 4487,
    "fltsts2": 4487,
    "wicksts": 4487,
}


@pytest.mark.parametrize(
    "iaql, level",
    [(1, "1"), (2, "2"), (3, "2"), (4, "3"), (6, "3"), (7, "4"), (9, "4"), (10, "5"), (12, "5"), (0, "5"), (42, "5")],
)
def test_air_quality_level(iaql: int, level: str) -> None:
    assert airQualityLevel(iaql) == level


def test_reported_status_from_dict() -> None:
    status = ReportedStatus.fromDict({"state": {"reported": REPORTED}})

    assert status.name == "Living room"
    assert status.modelId == "HU5710/10"
    assert status.runtime == 123456
    assert status.fanSpeed == FanSpeed.SPEED_2
    assert status.power == Power.ON
    assert status.isOn
    assert status.childLock is False
    assert status.brightness == 75
    assert status.mode == Mode.AUTO
    assert status.function == Function.PURIFICATION_HUMIDIFICATION
    assert status.displayMode == DisplayMode.HUMIDITY
    assert status.humidityTarget == 50
    assert status.humidity == 45
    assert status.temperature == 22
    assert status.pm25 == 4
    assert status.airQuality == 3
    assert status.airQualityLevel == "2"
    assert status.waterLevel == 100
    assert status.prefilterCleanIn == 287
    assert status.wickReplaceIn == 4487
    assert not status.needsFilterChange


def test_reported_status_missing_fields_use_defaults() -> None:
    status = ReportedStatus.fromDict({"state": {"reported": {"pwr": "0"}}})
    assert status.power == Power.OFF
    assert status.fanSpeed is None
    assert status.name == ""
    assert status.humidity == 0


def test_reported_status_unknown_enum_value() -> None:
    status = ReportedStatus.fromDict({"state": {"reported": {"om": "x", "mode": "Z"}}})
    assert status.fanSpeed is None
    assert status.mode is None


@pytest.mark.parametrize(
    "data",
    [{}, {"state": {}}, {"state": {"desired": {"pwr": "1"}}}, {"state": {"reported": []}}, []],
)
def test_reported_status_requires_reported_state(data) -> None:
    with pytest.raises(FormatError):
        ReportedStatus.fromDict(data)


def test_reported_status_rejects_wrong_types() -> None:
    with pytest.raises(FormatError):
        ReportedStatus.fromDict({"state": {"reported": {"rh": "wet"}}})


@pytest.mark.parametrize(
    "changes",
    [
        {"fltsts2": 336},
        {"fltsts1": 10},
        {"wicksts": 0},
        {"fltsts0": 0},
        {"err": int(ErrorCode.CLEAN_FILTER)},
    ],
)
def test_needs_filter_change(changes: dict) -> None:
    status = ReportedStatus.fromDict({"state": {"reported": {**REPORTED, **changes}}})
    assert status.needsFilterChange


def test_decode_status_push_normalizes_air_quality() -> None:
    status = decodeStatus(statusFrame({"iaql": 3, "pwr": "1"}))
    assert status.airQuality == 3
    assert status.airQualityLevel == "2"


def test_decode_status_rejects_non_json() -> None:
    from PhilipsAirCoap import SessionID, encodeMessage

    with pytest.raises(FormatError):
        decodeStatus(encodeMessage(SessionID(1), b"definitely not json"))


def test_fan_speed_rotation() -> None:
    assert FanSpeed.SILENT.rotationSpeed == "5"
    assert FanSpeed.SPEED_1.rotationSpeed == "20"
    assert FanSpeed.SPEED_2.rotationSpeed == "40"
    assert FanSpeed.SPEED_3.rotationSpeed == "80"
    assert FanSpeed.TURBO.rotationSpeed == "100"


def test_function_humidifier_state() -> None:
    assert Function.PURIFICATION_HUMIDIFICATION.humidifierState == "2"
    assert Function.PURIFICATION.humidifierState == "0"


def test_describe_error() -> None:
    assert describeError(0) == "No error"
    assert describeError(ErrorCode.NO_WATER) == "Error: 49408, refill water tank"
    assert describeError(32768) == "Error: 32768, water tank is open"
    assert describeError(1) == "Error: 1, unknown"


def test_device_info_from_dict() -> None:
    info = DeviceInfo.fromDict(json.loads(INFO_PAYLOAD))
    assert info.deviceId == "0123456789abcdef"
    assert info.modelId == "HU5710/10"
    assert info.name == "Living room"
    assert info.productId == "fedcba9876543210"
    assert info.swVersion == "0.2.1"
    assert info.type == "AirCombi"
    assert info.option == "0"


def test_desired_state_only_contains_set_fields() -> None:
    assert DesiredState(power=Power.ON).toDict() == {"pwr": "1"}

    desired = DesiredState(
        mode=Mode.MANUAL,
        function=Function.PURIFICATION,
        fanSpeed=FanSpeed.TURBO,
        brightness=Brightness.LEVEL_50,
        displayMode=DisplayMode.PM25,
        childLock=True,
        humidityTarget=60,
    )
    assert desired.toDict() == {
        "mode": "M",
        "func": "P",
        "om": "t",
        "aqil": 50,
        "ddp": "1",
        "cl": True,
        "rhset": 60,
    }


def test_desired_state_serializes_plain_values() -> None:
    assert json.dumps(DesiredState(brightness=Brightness.FULL).toDict()) == '{"aqil": 100}'


def test_empty_desired_state() -> None:
    with pytest.raises(ValueError):
        DesiredState().toDict()
