"""Errors raised by homectl."""

from typing import Optional, Tuple


class HomectlError(Exception):
    """Base class for homectl errors."""


class ParseError(HomectlError, ValueError):
    """Text could not be turned into a value."""


class UnknownToken(ParseError):
    """A command token matched nothing."""

    def __init__(self, token: str, choices: Tuple[str, ...]) -> None:
        super().__init__(
            f"unknown token '{token}', expected one of: {', '.join(choices)}"
        )
        self.token = token
        self.choices = choices


class AmbiguousAbbreviation(ParseError):
    """A command token is a prefix of more than one choice."""

    def __init__(self, token: str, matches: Tuple[str, ...]) -> None:
        super().__init__(f"'{token}' is ambiguous: {', '.join(matches)}")
        self.token = token
        self.matches = matches


class ValidationError(HomectlError, ValueError):
    """A value was parsed but lies outside its allowed range."""


class ProtocolError(HomectlError):
    """A device sent a malformed frame."""


class Truncated(ProtocolError):
    """The frame is shorter than its opcode requires."""


class UnknownOpcode(ProtocolError):
    """The frame starts with an unexpected opcode."""


class BadChecksum(ProtocolError):
    """The trailing checksum byte does not match the frame."""


class DeviceUnreachable(HomectlError):
    """The device could not be connected to or did not answer in time."""

    def __init__(self, address: object, reason: Optional[object] = None) -> None:
        message = f"{address} is unreachable"
        if reason is not None:
            message += f": {reason}"
        super().__init__(message)
        self.address = address
        self.reason = reason


class UnsupportedDevice(HomectlError):
    """The device answered discovery with a model that cannot be driven."""

    def __init__(self, address: object, model: Optional[str] = None) -> None:
        message = "Device not supported"
        if model:
            message += f" ({model})"
        super().__init__(message)
        self.address = address
        self.model = model
