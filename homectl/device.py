import logging
import select
import socket
import time
from typing import NamedTuple, Optional

from .color import Color, to_rgb
from .const import (
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DEVICE_NAME_PREFIX,
    MAX_BRIGHTNESS,
    LevelWriteMode,
)
from .exceptions import DeviceUnreachable
from .protocol import DeviceState, ProtocolLEDENET
from .sock import _socket_errors
from .utils import color_temp_to_white_levels, utils

_LOGGER = logging.getLogger(__name__)


class DeviceAddress(NamedTuple):
    host: str
    port: int = DEFAULT_PORT

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class LedNetDevice:
    """A LEDENET Wifi LED controller.

    Every operation opens its own connection, performs a single exchange
    and closes the connection again, so an instance holds no session.
    """

    def __init__(
        self,
        ipaddr: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        model: Optional[str] = None,
        persist: bool = True,
    ) -> None:
        self.ipaddr = ipaddr
        self.port = port
        self.timeout = timeout
        self.model = model
        self.persist = persist
        self._protocol = ProtocolLEDENET()
        self._socket: Optional[socket.socket] = None

    @property
    def address(self) -> DeviceAddress:
        return DeviceAddress(self.ipaddr, self.port)

    @property
    def name(self) -> str:
        if self.model:
            return f"{DEVICE_NAME_PREFIX}:{self.model}"
        return DEVICE_NAME_PREFIX

    @property
    def description(self) -> str:
        return f"{self.name} @ {self.ipaddr}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.description}>"

    def connect(self) -> None:
        self.close()
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.settimeout(self.timeout)
        _LOGGER.debug("%s: connect", self.ipaddr)
        self._socket.connect((self.ipaddr, self.port))

    def close(self) -> None:
        if self._socket is None:
            return
        try:
            self._socket.close()
        except OSError as ex:
            _LOGGER.debug("%s: error while closing: %s", self.ipaddr, ex)
        finally:
            self._socket = None

    def _send_msg(self, msg: bytearray) -> None:
        assert self._socket is not None
        _LOGGER.debug("%s => %s (%d)", self.ipaddr, utils.bytes_to_hex(msg), len(msg))
        self._socket.sendall(msg)

    def _read_msg(self, expected: int) -> bytearray:
        assert self._socket is not None
        remaining = expected
        rx = bytearray()
        begin = time.monotonic()
        while remaining > 0:
            timeout_left = self.timeout - (time.monotonic() - begin)
            if timeout_left <= 0:
                break
            self._socket.setblocking(False)
            try:
                read_ready, _, _ = select.select([self._socket], [], [], timeout_left)
                if not read_ready:
                    _LOGGER.debug(
                        "%s: timed out reading %d bytes", self.ipaddr, expected
                    )
                    break
                chunk = self._socket.recv(remaining)
            finally:
                self._socket.setblocking(True)
            _LOGGER.debug(
                "%s <= %s (%d)", self.ipaddr, utils.bytes_to_hex(chunk), len(chunk)
            )
            if not chunk:
                _LOGGER.debug("%s: connection closed by device", self.ipaddr)
                break
            remaining -= len(chunk)
            rx.extend(chunk)
        if not rx:
            raise DeviceUnreachable(
                self.address, f"no response within {self.timeout} seconds"
            )
        return rx

    def _read_state(self) -> DeviceState:
        rx = self._read_msg(self._protocol.state_response_length)
        state = self._protocol.decode_status(rx)
        _LOGGER.debug("%s: state %s", self.ipaddr, state)
        return state

    @_socket_errors
    def get_status(self) -> DeviceState:
        """Read the current state of the device."""
        self.connect()
        self._send_msg(self._protocol.encode_get_status())
        return self._read_state()

    @_socket_errors
    def set_power(self, turn_on: bool) -> bool:
        """Turn the device on or off, returns the acknowledged power state."""
        msg = self._protocol.encode_set_power(turn_on)
        _LOGGER.debug("%s: Changing state to %s", self.ipaddr, turn_on)
        self.connect()
        self._send_msg(msg)
        rx = self._read_msg(self._protocol.power_response_length)
        return self._protocol.decode_power_response(rx)

    @_socket_errors
    def _set_levels(self, msg: bytearray) -> DeviceState:
        self.connect()
        self._send_msg(msg)
        # Level changes are not acknowledged, the state that follows
        # confirms what the device is now showing. Recycle the connection
        # so a stale push from the device cannot be read as the answer.
        self.connect()
        self._send_msg(self._protocol.encode_get_status())
        return self._read_state()

    def set_color(self, color: Color, brightness: int) -> DeviceState:
        """Show a color at a brightness percentage on the RGB channel."""
        red, green, blue = to_rgb(color)
        return self._set_levels(
            self._protocol.encode_set_rgb(
                red, green, blue, brightness, persist=self.persist
            )
        )

    def set_temperature(self, temperature: int, brightness: int) -> DeviceState:
        """Show white at a color temperature and brightness percentage."""
        return self._set_levels(
            self._protocol.encode_set_temperature(
                temperature, brightness, persist=self.persist
            )
        )

    def set_rgb_exact(self, color: Color) -> DeviceState:
        """Write the red, green and blue levels as given."""
        red, green, blue = to_rgb(color)
        return self._set_levels(
            self._protocol.encode_set_levels(
                red,
                green,
                blue,
                write_mode=LevelWriteMode.COLORS,
                persist=self.persist,
            )
        )

    def set_ww_cw(self, warm_white: int, cool_white: int) -> DeviceState:
        """Write the warm and cool white levels as given."""
        return self._set_levels(
            self._protocol.encode_set_levels(
                warm_white=warm_white,
                cool_white=cool_white,
                write_mode=LevelWriteMode.WHITES,
                persist=self.persist,
            )
        )

    def set_rgb_cct(self, color: Color, temperature: int) -> DeviceState:
        """Drive the RGB and white channels at the same time."""
        red, green, blue = to_rgb(color)
        warm, cold = color_temp_to_white_levels(temperature, MAX_BRIGHTNESS)
        return self._set_levels(
            self._protocol.encode_set_levels(
                red,
                green,
                blue,
                warm,
                cold,
                write_mode=LevelWriteMode.ALL,
                persist=self.persist,
            )
        )
