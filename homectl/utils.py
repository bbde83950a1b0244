from collections import namedtuple
from typing import Iterable

from .const import MAX_BRIGHTNESS, MAX_TEMP, MIN_BRIGHTNESS, MIN_TEMP
from .exceptions import ValidationError

MAX_MIN_TEMP_DIFF = MAX_TEMP - MIN_TEMP


WhiteLevels = namedtuple(
    "WhiteLevels",
    [
        "warm_white",
        "cool_white",
    ],
)


TemperatureBrightness = namedtuple(
    "TemperatureBrightness",
    [
        "temperature",
        "brightness",
    ],
)


class utils:
    @staticmethod
    def raw_state_to_dec(rx: Iterable[int]) -> str:
        raw_state_str = ""
        for _r in rx:
            raw_state_str += str(_r) + ","
        return raw_state_str

    @staticmethod
    def bytes_to_hex(data: Iterable[int]) -> str:
        return " ".join(f"0x{x:02X}" for x in data)


def validate_brightness(brightness: int) -> int:
    if not (MIN_BRIGHTNESS <= brightness <= MAX_BRIGHTNESS):
        raise ValidationError(
            f"Brightness of {brightness} is not valid and must be between {MIN_BRIGHTNESS} and {MAX_BRIGHTNESS}"
        )
    return brightness


def validate_level(name: str, level: int) -> int:
    if not (0 <= level <= 255):
        raise ValidationError(
            f"{name} of {level} is not valid and must be between 0 and 255"
        )
    return level


def validate_temperature(temperature: int) -> int:
    if not (MIN_TEMP <= temperature <= MAX_TEMP):
        raise ValidationError(
            f"Temperature of {temperature} is not valid and must be between {MIN_TEMP} and {MAX_TEMP}"
        )
    return temperature


def color_temp_to_white_levels(temperature: int, brightness: int) -> WhiteLevels:
    # Scale the warm and cold LEDs linearly across the supported range,
    # brightness is a percentage of the combined output
    validate_temperature(temperature)
    validate_brightness(brightness)
    scale = brightness / MAX_BRIGHTNESS
    warm = ((MAX_TEMP - temperature) / MAX_MIN_TEMP_DIFF) * scale
    cold = scale - warm
    return WhiteLevels(round(255 * warm), round(255 * cold))


def white_levels_to_color_temp(
    warm_white: int, cool_white: int
) -> TemperatureBrightness:
    validate_level("Warm White", warm_white)
    validate_level("Cool White", cool_white)
    warm = warm_white / 255
    cold = cool_white / 255
    brightness = warm + cold
    if brightness == 0:
        temperature: float = MIN_TEMP
    else:
        temperature = ((cold / brightness) * MAX_MIN_TEMP_DIFF) + MIN_TEMP
    return TemperatureBrightness(
        round(temperature), min(MAX_BRIGHTNESS, round(brightness * MAX_BRIGHTNESS))
    )
