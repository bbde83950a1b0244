"""Commands and the resolution of abbreviated command tokens.

Every token is looked up in a fixed table. A token resolves when it is
either an exact choice or a prefix of exactly one choice, so ``set c b 80``
means ``set cct brightness 80``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

from .color import Color, ColorTemperature, parse_color
from .exceptions import AmbiguousAbbreviation, ParseError, UnknownToken
from .utils import validate_brightness, validate_temperature


class CommandType(Enum):
    ON = "on"
    OFF = "off"
    STATUS = "status"
    IS_ON = "get on"
    GET_ADDRESS = "get address"
    GET_PORT = "get port"
    RGB_SET = "set rgb full"
    RGB_SET_COLOR = "set rgb color"
    RGB_SET_BRIGHTNESS = "set rgb brightness"
    RGB_SET_EXACT = "set rgb exact"
    RGB_GET_COLOR = "get rgb color"
    RGB_GET_BRIGHTNESS = "get rgb brightness"
    RGB_GET_EXACT = "get rgb exact"
    CCT_SET = "set cct full"
    CCT_SET_TEMPERATURE = "set cct temperature"
    CCT_SET_BRIGHTNESS = "set cct brightness"
    CCT_GET_TEMPERATURE = "get cct temperature"
    CCT_GET_BRIGHTNESS = "get cct brightness"


# Commands that read the current state before changing it
READ_MODIFY_WRITE = {
    CommandType.RGB_SET_COLOR,
    CommandType.RGB_SET_BRIGHTNESS,
    CommandType.CCT_SET_TEMPERATURE,
    CommandType.CCT_SET_BRIGHTNESS,
}

LEVEL_WRITES = {
    CommandType.RGB_SET,
    CommandType.RGB_SET_EXACT,
    CommandType.CCT_SET,
    *READ_MODIFY_WRITE,
}

# Commands answered without talking to the device
OFFLINE = {CommandType.GET_ADDRESS, CommandType.GET_PORT}

QUERIES = {
    CommandType.STATUS,
    CommandType.IS_ON,
    CommandType.GET_ADDRESS,
    CommandType.GET_PORT,
    CommandType.RGB_GET_COLOR,
    CommandType.RGB_GET_BRIGHTNESS,
    CommandType.RGB_GET_EXACT,
    CommandType.CCT_GET_TEMPERATURE,
    CommandType.CCT_GET_BRIGHTNESS,
}


@dataclass(frozen=True)
class Command:
    """A fully resolved command."""

    type: CommandType
    color: Optional[Color] = None
    brightness: Optional[int] = None
    temperature: Optional[int] = None

    @property
    def is_query(self) -> bool:
        return self.type in QUERIES

    @property
    def connections(self) -> int:
        """Number of connections the command opens to each device."""
        if self.type in OFFLINE:
            return 0
        if self.type in READ_MODIFY_WRITE:
            return 3
        if self.type in LEVEL_WRITES:
            return 2
        return 1


def match_abbreviation(token: str, choices: Sequence[str]) -> str:
    """Return the choice a token stands for."""
    token = token.lower()
    if token in choices:
        return token
    matches = tuple(choice for choice in choices if token and choice.startswith(token))
    if not matches:
        raise UnknownToken(token, tuple(choices))
    if len(matches) > 1:
        raise AmbiguousAbbreviation(token, matches)
    return matches[0]


def _parse_brightness(text: str) -> int:
    value = text.strip()
    if value.endswith("%"):
        value = value[:-1]
    try:
        brightness = int(value)
    except ValueError as ex:
        raise ParseError(f"brightness '{text}' is not an integer") from ex
    return validate_brightness(brightness)


def _parse_temperature(text: str) -> int:
    color = parse_color(text, temperature=True)
    if not isinstance(color, ColorTemperature):
        raise ParseError(f"'{text}' is not a color temperature")
    return validate_temperature(color.kelvin)


class _Argument(NamedTuple):
    name: str
    parse: Callable[[str], object]


COLOR = _Argument("color", parse_color)
BRIGHTNESS = _Argument("brightness", _parse_brightness)
TEMPERATURE = _Argument("temperature", _parse_temperature)


class _Leaf(NamedTuple):
    type: CommandType
    arguments: Tuple[_Argument, ...] = ()


_Node = Union[_Leaf, Dict[str, "_Node"]]  # type: ignore[misc]

GRAMMAR: Dict[str, _Node] = {
    "on": _Leaf(CommandType.ON),
    "off": _Leaf(CommandType.OFF),
    "status": _Leaf(CommandType.STATUS),
    "set": {
        "rgb": {
            "full": _Leaf(CommandType.RGB_SET, (COLOR, BRIGHTNESS)),
            "color": _Leaf(CommandType.RGB_SET_COLOR, (COLOR,)),
            "brightness": _Leaf(CommandType.RGB_SET_BRIGHTNESS, (BRIGHTNESS,)),
            "exact": _Leaf(CommandType.RGB_SET_EXACT, (COLOR,)),
        },
        "cct": {
            "full": _Leaf(CommandType.CCT_SET, (TEMPERATURE, BRIGHTNESS)),
            "temperature": _Leaf(CommandType.CCT_SET_TEMPERATURE, (TEMPERATURE,)),
            "brightness": _Leaf(CommandType.CCT_SET_BRIGHTNESS, (BRIGHTNESS,)),
        },
    },
    "get": {
        "rgb": {
            "color": _Leaf(CommandType.RGB_GET_COLOR),
            "brightness": _Leaf(CommandType.RGB_GET_BRIGHTNESS),
            "exact": _Leaf(CommandType.RGB_GET_EXACT),
        },
        "cct": {
            "temperature": _Leaf(CommandType.CCT_GET_TEMPERATURE),
            "brightness": _Leaf(CommandType.CCT_GET_BRIGHTNESS),
        },
        "on": _Leaf(CommandType.IS_ON),
        "address": _Leaf(CommandType.GET_ADDRESS),
        "port": _Leaf(CommandType.GET_PORT),
    },
}


def resolve(tokens: Sequence[str]) -> Command:
    """Resolve command line tokens into a command."""
    remaining = list(tokens)
    node: _Node = GRAMMAR
    path: List[str] = []
    while isinstance(node, dict):
        choices = tuple(node)
        if not remaining:
            where = " ".join(path) or "command"
            raise ParseError(f"{where}: expected one of: {', '.join(choices)}")
        word = match_abbreviation(remaining.pop(0), choices)
        path.append(word)
        node = node[word]

    if len(remaining) != len(node.arguments):
        expected = " ".join(f"<{argument.name}>" for argument in node.arguments)
        raise ParseError(
            f"{' '.join(path)} takes {len(node.arguments)} argument(s): {expected}".rstrip()
        )
    values = {
        argument.name: argument.parse(text)
        for argument, text in zip(node.arguments, remaining)
    }
    return Command(node.type, **values)  # type: ignore[arg-type]
