import asyncio
import logging
import sys
from importlib.metadata import version

from PhilipsAirCoap import DesiredState, Device, Power, ReportedStatus

formatter = logging.Formatter(
    fmt="%(asctime)s %(name)-8s %(levelname)-8s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
stream = logging.StreamHandler()
stream.setFormatter(formatter)
logging.getLogger().addHandler(stream)
_LOGGER = logging.getLogger(__name__)


def printStatus(status: ReportedStatus) -> None:
    print(f"Power: {status.power}, mode: {status.mode}, fan: {status.fanSpeed}")
    if status.isOn:
        print(
            f"  Humidity {status.humidity}% (target {status.humidityTarget}%), "
            f"temperature {status.temperature}, PM2.5 {status.pm25}, "
            f"air quality level {status.airQualityLevel}"
        )
    if status.needsFilterChange:
        print("  A filter needs attention.")
    if status.error:
        print(f"  {status.errorDescription}")


async def main() -> None:
    logLevel = logging.INFO
    if "-d" in sys.argv:
        logLevel = logging.DEBUG
        logging.getLogger("coap").setLevel(logging.DEBUG)

    _LOGGER.setLevel(logLevel)
    logging.getLogger("PhilipsAirCoap").setLevel(logLevel)

    _LOGGER.debug(f"aiocoap version: {version('aiocoap')}")

    address = input("Device address: ")

    device = Device()
    try:
        await device.connect(address)
        info = await device.info()
        print(f"Connected to {info.name} ({info.modelId}), firmware {info.swVersion}")

        subscription = await device.observeStatus(printStatus)

        # Turn the device on
        await device.set(DesiredState(power=Power.ON))
        await asyncio.sleep(30)

        subscription.cancel()
    finally:
        await device.disconnect()


if __name__ == "__main__":
    loop = asyncio.new_event_loop()
    loop.run_until_complete(main())
