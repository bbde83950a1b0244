"""Init file for homectl"""
from .color import (
    CMYK,
    HSV,
    RGB,
    Color,
    ColorTemperature,
    NamedColor,
    format_color,
    parse_color,
    to_rgb,
)
from .commands import Command, CommandType, resolve
from .device import DeviceAddress, LedNetDevice
from .dispatcher import CommandDispatcher, DeviceResult
from .protocol import DeviceState, ProtocolLEDENET
from .scanner import DiscoveredDevice, LedNetScanner

__all__ = [
    "CMYK",
    "HSV",
    "RGB",
    "Color",
    "ColorTemperature",
    "NamedColor",
    "format_color",
    "parse_color",
    "to_rgb",
    "Command",
    "CommandType",
    "resolve",
    "DeviceAddress",
    "LedNetDevice",
    "CommandDispatcher",
    "DeviceResult",
    "DeviceState",
    "ProtocolLEDENET",
    "DiscoveredDevice",
    "LedNetScanner",
]
