from enum import IntEnum, unique
from typing import Final

DEFAULT_PORT: Final = 5683

INFO_PATH: Final = "/sys/dev/info"
SYNC_PATH: Final = "/sys/dev/sync"
CONTROL_PATH: Final = "/sys/dev/control"
STATUS_PATH: Final = "/sys/dev/status"

# Seconds. Applies to info, sync, control and observe setup individually.
REQUEST_TIMEOUT: Final = 5.0

MAGIC_WORD: Final = b"JiangPan"
BLOCK_SIZE: Final = 16
HEADER_LEN: Final = 4
CHECKSUM_LEN: Final = 32

# Hours of filter life left before a change is flagged.
FILTER_WARNING_HOURS: Final = 336


@unique
class ConnectionState(IntEnum):
    NONE = 0
    CONNECTED = 1
    SYNCED = 2
    ERROR = 99
