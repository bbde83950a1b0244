"""LEDENET wire protocol."""

import colorsys
from dataclasses import dataclass
import logging
from typing import NamedTuple, Optional, Tuple

from .color import RGBTuple
from .const import (
    COLOR_MODE_CCT,
    COLOR_MODE_RGB,
    MAX_BRIGHTNESS,
    OP_GET_STATE,
    OP_SET_COLOR,
    OP_SET_COLOR_VOLATILE,
    OP_SET_POWER,
    WORD_OFF,
    WORD_ON,
    WORD_TERMINATOR,
    LevelWriteMode,
)
from .exceptions import BadChecksum, ProtocolError, Truncated, UnknownOpcode
from .utils import (
    color_temp_to_white_levels,
    utils,
    validate_brightness,
    validate_level,
    white_levels_to_color_temp,
)

_LOGGER = logging.getLogger(__name__)


LEDENET_STATE_QUERY_LEN = 4
LEDENET_STATE_RESPONSE_LEN = 14
LEDENET_POWER_LEN = 4
LEDENET_POWER_RESPONSE_LEN = 4
LEDENET_LEVELS_LEN = 9

# The two trailing bytes of the query have no known meaning
STATE_QUERY_PAYLOAD = (0x8A, 0x8B)


class LEDENETRawState(NamedTuple):
    head: int
    model_num: int
    power_state: int
    preset_pattern: int
    mode: int
    speed: int
    red: int
    green: int
    blue: int
    warm_white: int
    version_number: int
    cool_white: int
    color_mode: int
    check_sum: int


# response from a 5-channel LEDENET controller:
# pos  0  1  2  3  4  5  6  7  8  9 10 11 12 13
#    81 25 23 61 21 06 38 05 06 f9 01 00 0f 9d
#     |  |  |  |  |  |  |  |  |  |  |  |  |  |
#     |  |  |  |  |  |  |  |  |  |  |  |  |  checksum
#     |  |  |  |  |  |  |  |  |  |  |  |  color mode (f0 colors were set, 0f whites, 00 all were set)
#     |  |  |  |  |  |  |  |  |  |  |  cool-white  0x00 to 0xFF
#     |  |  |  |  |  |  |  |  |  |  version number
#     |  |  |  |  |  |  |  |  |  warmwhite  0x00 to 0xFF
#     |  |  |  |  |  |  |  |  blue  0x00 to 0xFF
#     |  |  |  |  |  |  |  green  0x00 to 0xFF
#     |  |  |  |  |  |  red 0x00 to 0xFF
#     |  |  |  |  |  speed: 0x01 = highest 0x1f is lowest
#     |  |  |  |  mode
#     |  |  |  preset pattern
#     |  |  off(24)/on(23)
#     |  model_num (type)
#     msg head
#


def checksum(data: bytes) -> int:
    """Sum of all bytes modulo 256."""
    return sum(data) & 0xFF


def _split_brightness(rgb: RGBTuple) -> Tuple[RGBTuple, int]:
    """Split raw levels into the full brightness color and its brightness."""
    h, s, v = colorsys.rgb_to_hsv(*(channel / 255 for channel in rgb))
    r, g, b = colorsys.hsv_to_rgb(h, s, 1.0)
    return (round(r * 255), round(g * 255), round(b * 255)), round(
        v * MAX_BRIGHTNESS
    )


def _apply_brightness(rgb: RGBTuple, brightness: int) -> RGBTuple:
    """Keep hue and saturation, use brightness as the HSV value."""
    h, s, _ = colorsys.rgb_to_hsv(*(channel / 255 for channel in rgb))
    r, g, b = colorsys.hsv_to_rgb(h, s, brightness / MAX_BRIGHTNESS)
    return round(r * 255), round(g * 255), round(b * 255)


@dataclass(frozen=True)
class DeviceState:
    """State of a device as reported by one state query."""

    raw_state: LEDENETRawState

    @property
    def is_on(self) -> bool:
        return self.raw_state.power_state == WORD_ON

    @property
    def model_num(self) -> int:
        return self.raw_state.model_num

    @property
    def version_num(self) -> int:
        return self.raw_state.version_number

    @property
    def rgb_exact(self) -> RGBTuple:
        """The raw red, green and blue levels."""
        return self.raw_state.red, self.raw_state.green, self.raw_state.blue

    @property
    def rgb(self) -> RGBTuple:
        """The color at full brightness."""
        return _split_brightness(self.rgb_exact)[0]

    @property
    def rgb_brightness(self) -> int:
        return _split_brightness(self.rgb_exact)[1]

    @property
    def white_levels(self) -> Tuple[int, int]:
        return self.raw_state.warm_white, self.raw_state.cool_white

    @property
    def cct_temperature(self) -> int:
        return white_levels_to_color_temp(*self.white_levels).temperature

    @property
    def cct_brightness(self) -> int:
        return white_levels_to_color_temp(*self.white_levels).brightness

    @property
    def color_mode(self) -> str:
        """The channel the driver is currently showing."""
        write_mode = self.raw_state.color_mode
        if write_mode == LevelWriteMode.COLORS.value:
            return COLOR_MODE_RGB
        if write_mode == LevelWriteMode.WHITES.value:
            return COLOR_MODE_CCT
        if any(self.white_levels) and not any(self.rgb_exact):
            return COLOR_MODE_CCT
        return COLOR_MODE_RGB

    @property
    def brightness(self) -> int:
        """Brightness of the active channel."""
        if self.color_mode == COLOR_MODE_CCT:
            return self.cct_brightness
        return self.rgb_brightness

    def __str__(self) -> str:
        return "{} [RGB: {} @ {}% CCT: {}K @ {}% Mode: {} raw state: {}]".format(
            "ON " if self.is_on else "OFF",
            self.rgb,
            self.rgb_brightness,
            self.cct_temperature,
            self.cct_brightness,
            self.color_mode,
            utils.raw_state_to_dec(self.raw_state),
        )


class ProtocolLEDENET:
    """The LEDENET protocol with checksums that uses 9 bytes to set levels."""

    state_response_length = LEDENET_STATE_RESPONSE_LEN
    power_response_length = LEDENET_POWER_RESPONSE_LEN

    @property
    def on_byte(self) -> int:
        """The on byte."""
        return WORD_ON

    @property
    def off_byte(self) -> int:
        """The off byte."""
        return WORD_OFF

    def construct_message(self, raw_bytes: bytearray) -> bytearray:
        """Calculate checksum of byte array and add to end."""
        raw_bytes.append(checksum(raw_bytes))
        return raw_bytes

    def is_checksum_correct(self, msg: bytes) -> bool:
        """Check a checksum of a message."""
        expected_sum = checksum(msg[0:-1])
        if expected_sum != msg[-1]:
            _LOGGER.warning(
                "Checksum mismatch: Expected %s, got %s", expected_sum, msg[-1]
            )
            return False
        return True

    def _check_frame(self, msg: bytes, head: int, length: int, name: str) -> None:
        if not msg:
            raise Truncated(f"empty {name}")
        if msg[0] != head:
            raise UnknownOpcode(
                f"{name} starts with 0x{msg[0]:02X}, expected 0x{head:02X}"
            )
        if len(msg) < length:
            raise Truncated(f"{name} has {len(msg)} of {length} bytes")
        if len(msg) > length:
            raise ProtocolError(f"{name} has {len(msg)} bytes, expected {length}")
        if not self.is_checksum_correct(msg):
            raise BadChecksum(f"{name} checksum mismatch: {utils.bytes_to_hex(msg)}")

    def encode_get_status(self) -> bytearray:
        """The bytes to send for a query request."""
        return self.construct_message(bytearray([OP_GET_STATE, *STATE_QUERY_PAYLOAD]))

    def decode_status(self, raw_state: bytes) -> DeviceState:
        """Decode a state response."""
        self._check_frame(
            raw_state, OP_GET_STATE, self.state_response_length, "state response"
        )
        return DeviceState(LEDENETRawState(*raw_state))

    def encode_set_power(self, turn_on: bool) -> bytearray:
        """The bytes to send for a state change request."""
        return self.construct_message(
            bytearray(
                [OP_SET_POWER, self.on_byte if turn_on else self.off_byte, WORD_TERMINATOR]
            )
        )

    def decode_power_response(self, msg: bytes) -> bool:
        """Decode the acknowledgement of a state change.

        0F 71 [23|24] [CHECK DIGIT]
        """
        self._check_frame(
            msg, WORD_TERMINATOR, self.power_response_length, "power response"
        )
        if msg[1] != OP_SET_POWER or msg[2] not in (self.on_byte, self.off_byte):
            raise ProtocolError(f"unexpected power response: {utils.bytes_to_hex(msg)}")
        return msg[2] == self.on_byte

    def encode_set_levels(
        self,
        red: Optional[int] = None,
        green: Optional[int] = None,
        blue: Optional[int] = None,
        warm_white: Optional[int] = None,
        cool_white: Optional[int] = None,
        write_mode: LevelWriteMode = LevelWriteMode.ALL,
        persist: bool = True,
    ) -> bytearray:
        """The bytes to send for a level change request."""
        # sample message for 9-byte LEDENET protocol (w/ checksum at end)
        #  0  1  2  3  4  5  6  7
        # 31 bc c1 ff 00 00 f0 0f
        #  |  |  |  |  |  |  |  |
        #  |  |  |  |  |  |  |  terminator
        #  |  |  |  |  |  |  write mode (f0 colors, 0f whites, 00 colors & whites)
        #  |  |  |  |  |  cold white
        #  |  |  |  |  warm white
        #  |  |  |  blue
        #  |  |  green
        #  |  red
        #  persistence (31 for true / 41 for false)
        levels = {
            "Red": red,
            "Green": green,
            "Blue": blue,
            "Warm White": warm_white,
            "Cool White": cool_white,
        }
        for name, level in levels.items():
            if level is not None:
                validate_level(name, level)
        return self.construct_message(
            bytearray(
                [
                    OP_SET_COLOR if persist else OP_SET_COLOR_VOLATILE,
                    red or 0x00,
                    green or 0x00,
                    blue or 0x00,
                    warm_white or 0x00,
                    cool_white or 0x00,
                    write_mode.value,
                    WORD_TERMINATOR,
                ]
            )
        )

    def encode_set_rgb(
        self, red: int, green: int, blue: int, brightness: int, persist: bool = True
    ) -> bytearray:
        """The bytes to show a color at a brightness percentage."""
        validate_brightness(brightness)
        for name, level in (("Red", red), ("Green", green), ("Blue", blue)):
            validate_level(name, level)
        r, g, b = _apply_brightness((red, green, blue), brightness)
        return self.encode_set_levels(
            r, g, b, write_mode=LevelWriteMode.COLORS, persist=persist
        )

    def encode_set_temperature(
        self, temperature: int, brightness: int, persist: bool = True
    ) -> bytearray:
        """The bytes to show white at a color temperature and brightness percentage."""
        warm, cold = color_temp_to_white_levels(temperature, brightness)
        return self.encode_set_levels(
            warm_white=warm,
            cool_white=cold,
            write_mode=LevelWriteMode.WHITES,
            persist=persist,
        )
