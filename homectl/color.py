"""Color values in several notations and their conversion to RGB.

A color is one of five plain value types, ``RGB``, ``CMYK``, ``HSV``,
``ColorTemperature`` and ``NamedColor``. Nothing is shared between them;
``to_rgb`` maps every one of them to the ``(red, green, blue)`` triple the
device understands.
"""

import colorsys
from dataclasses import dataclass
import math
import re
from typing import List, Tuple, Union, cast

import webcolors  # type: ignore

from .exceptions import ParseError

RGBTuple = Tuple[int, int, int]

# Range in which the blackbody approximation below holds
MIN_KELVIN = 1000
MAX_KELVIN = 40000

_FUNCTION_RE = re.compile(r"^(?P<name>[a-z]+)\s*\((?P<args>[^()]*)\)$")
_KELVIN_RE = re.compile(r"^(?P<kelvin>\d+)\s*k$", re.ASCII)
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$", re.ASCII)
_DIGITS_RE = re.compile(r"^\d+$", re.ASCII)


@dataclass(frozen=True)
class RGB:
    red: int
    green: int
    blue: int


@dataclass(frozen=True)
class CMYK:
    cyan: float
    magenta: float
    yellow: float
    key: float


@dataclass(frozen=True)
class HSV:
    hue: float
    saturation: float
    value: float


@dataclass(frozen=True)
class ColorTemperature:
    kelvin: int


@dataclass(frozen=True)
class NamedColor:
    name: str


Color = Union[RGB, CMYK, HSV, ColorTemperature, NamedColor]


def _to_byte(value: float) -> int:
    return max(0, min(255, round(value)))


def _number(text: str, what: str) -> float:
    text = text.strip()
    if text.endswith("%"):
        text = text[:-1].rstrip()
    if not _NUMBER_RE.match(text):
        raise ParseError(f"{what} '{text}' is not a number")
    return float(text)


def _in_range(value: float, low: float, high: float, what: str) -> float:
    if not (low <= value <= high):
        raise ParseError(f"{what} of {value:g} must be between {low} and {high}")
    return value


def _split_args(args: str, count: int, notation: str) -> List[str]:
    parts = [part.strip() for part in args.split(",")]
    if len(parts) != count:
        raise ParseError(f"{notation}() takes {count} components, got {len(parts)}")
    return parts


def _parse_rgb(args: str) -> RGB:
    components = []
    for name, part in zip(("red", "green", "blue"), _split_args(args, 3, "rgb")):
        value = _number(part, name)
        if not value.is_integer():
            raise ParseError(f"{name} '{part}' must be an integer")
        components.append(int(_in_range(value, 0, 255, name)))
    return RGB(*components)


def _parse_cmyk(args: str) -> CMYK:
    names = ("cyan", "magenta", "yellow", "key")
    return CMYK(
        *(
            _in_range(_number(part, name), 0, 100, name)
            for name, part in zip(names, _split_args(args, 4, "cmyk"))
        )
    )


def _parse_hsv(args: str) -> HSV:
    hue, saturation, value = _split_args(args, 3, "hsv")
    return HSV(
        _in_range(_number(hue, "hue"), 0, 360, "hue"),
        _in_range(_number(saturation, "saturation"), 0, 100, "saturation"),
        _in_range(_number(value, "value"), 0, 100, "value"),
    )


def _parse_kelvin(text: str) -> ColorTemperature:
    kelvin = int(text)
    if not (MIN_KELVIN <= kelvin <= MAX_KELVIN):
        raise ParseError(
            f"Temperature of {kelvin}K must be between {MIN_KELVIN}K and {MAX_KELVIN}K"
        )
    return ColorTemperature(kelvin)


_FUNCTIONS = {
    "rgb": _parse_rgb,
    "cmyk": _parse_cmyk,
    "hsv": _parse_hsv,
}


def parse_color(text: str, temperature: bool = False) -> Color:
    """Parse a color.

    Accepts rgb(r,g,b), cmyk(c%,m%,y%,k%), hsv(h,s%,v%), NK, #rrggbb and
    CSS color names, case-insensitively. A bare integer is a Kelvin
    temperature when ``temperature`` is set.
    """
    color = text.strip().lower()
    if not color:
        raise ParseError("empty color")

    match = _FUNCTION_RE.match(color)
    if match:
        parser = _FUNCTIONS.get(match.group("name"))
        if parser is None:
            raise ParseError(f"unknown color notation '{match.group('name')}'")
        return cast(Color, parser(match.group("args")))

    match = _KELVIN_RE.match(color)
    if match:
        return _parse_kelvin(match.group("kelvin"))

    if _DIGITS_RE.match(color):
        if temperature:
            return _parse_kelvin(color)
        raise ParseError(f"'{text}' is not a color")

    if color.startswith("#"):
        try:
            red, green, blue = webcolors.hex_to_rgb(color)
        except ValueError as ex:
            raise ParseError(f"'{text}' is not a valid hex color") from ex
        return RGB(red, green, blue)

    try:
        webcolors.name_to_rgb(color)
    except ValueError as ex:
        raise ParseError(f"'{text}' is not a known color") from ex
    return NamedColor(color)


def _kelvin_to_rgb(kelvin: int) -> RGBTuple:
    # Tanner Helland's fit of the blackbody (Planckian locus) colors,
    # red falls and blue rises with temperature
    temp = max(MIN_KELVIN, min(MAX_KELVIN, kelvin)) / 100
    if temp <= 66:
        red = 255.0
        green = 99.4708025861 * math.log(temp) - 161.1195681661
        if temp <= 19:
            blue = 0.0
        else:
            blue = 138.5177312231 * math.log(temp - 10) - 305.0447927307
    else:
        red = 329.698727446 * ((temp - 60) ** -0.1332047592)
        green = 288.1221695283 * ((temp - 60) ** -0.0755148492)
        blue = 255.0
    return _to_byte(red), _to_byte(green), _to_byte(blue)


def to_rgb(color: Color) -> RGBTuple:
    """Convert any color to a (red, green, blue) triple."""
    if isinstance(color, RGB):
        return color.red, color.green, color.blue
    if isinstance(color, CMYK):
        key = 1 - color.key / 100
        return (
            _to_byte(255 * (1 - color.cyan / 100) * key),
            _to_byte(255 * (1 - color.magenta / 100) * key),
            _to_byte(255 * (1 - color.yellow / 100) * key),
        )
    if isinstance(color, HSV):
        red, green, blue = colorsys.hsv_to_rgb(
            (color.hue % 360) / 360, color.saturation / 100, color.value / 100
        )
        return _to_byte(red * 255), _to_byte(green * 255), _to_byte(blue * 255)
    if isinstance(color, ColorTemperature):
        return _kelvin_to_rgb(color.kelvin)
    if isinstance(color, NamedColor):
        red, green, blue = webcolors.name_to_rgb(color.name)
        return red, green, blue
    raise TypeError(f"{color!r} is not a color")


def to_cmyk(rgb: RGBTuple) -> CMYK:
    red, green, blue = (channel / 255 for channel in rgb)
    key = 1 - max(red, green, blue)
    if key == 1:
        return CMYK(0, 0, 0, 100)
    return CMYK(
        100 * (1 - red - key) / (1 - key),
        100 * (1 - green - key) / (1 - key),
        100 * (1 - blue - key) / (1 - key),
        100 * key,
    )


def to_hsv(rgb: RGBTuple) -> HSV:
    hue, saturation, value = colorsys.rgb_to_hsv(*(channel / 255 for channel in rgb))
    return HSV(hue * 360, saturation * 100, value * 100)


def _fmt(value: float) -> str:
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_color(color: Color) -> str:
    """Render a color in its own notation."""
    if isinstance(color, RGB):
        return f"rgb({color.red}, {color.green}, {color.blue})"
    if isinstance(color, CMYK):
        return "cmyk({}%, {}%, {}%, {}%)".format(
            _fmt(color.cyan), _fmt(color.magenta), _fmt(color.yellow), _fmt(color.key)
        )
    if isinstance(color, HSV):
        return f"hsv({_fmt(color.hue)}, {_fmt(color.saturation)}%, {_fmt(color.value)}%)"
    if isinstance(color, ColorTemperature):
        return f"{color.kelvin}K"
    if isinstance(color, NamedColor):
        return color.name
    raise TypeError(f"{color!r} is not a color")
