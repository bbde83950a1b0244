"""homectl constants."""

from enum import Enum
from typing import Final


class LevelWriteMode(Enum):
    ALL = 0x00
    COLORS = 0xF0
    WHITES = 0x0F


# Network
DEFAULT_PORT: Final = 5577
DEFAULT_TIMEOUT: Final = 2
DISCOVERY_PORT: Final = 48899
DISCOVERY_TIMEOUT: Final = 2
DISCOVERY_MESSAGE: Final = b"HF-A11ASSISTHREAD"

# Only tested against the RGBWW controller
SUPPORTED_MODELS: Final = frozenset({"HF-LPB100-ZJ200"})
DEVICE_NAME_PREFIX: Final = "LEDNET"

# Opcodes
OP_SET_COLOR: Final = 0x31
OP_SET_COLOR_VOLATILE: Final = 0x41
OP_SET_POWER: Final = 0x71
OP_GET_STATE: Final = 0x81

# Words
WORD_TERMINATOR: Final = 0x0F
WORD_ON: Final = 0x23
WORD_OFF: Final = 0x24

# Color modes
COLOR_MODE_RGB: Final = "RGB"
COLOR_MODE_CCT: Final = "CCT"

# The white channels of the supported model span this range
MIN_TEMP: Final = 2800
MAX_TEMP: Final = 6500

MIN_BRIGHTNESS: Final = 0
MAX_BRIGHTNESS: Final = 100
