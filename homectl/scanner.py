from dataclasses import dataclass
import ipaddress
import logging
import select
import socket
import time
from typing import Dict, List, Optional, Tuple

from .const import (
    DEFAULT_PORT,
    DISCOVERY_MESSAGE,
    DISCOVERY_PORT,
    DISCOVERY_TIMEOUT,
    SUPPORTED_MODELS,
)
from .device import DeviceAddress

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveredDevice:
    """A device that answered a discovery request."""

    address: DeviceAddress
    id: Optional[str]  # aka mac
    model: Optional[str]
    raw: bytes

    @property
    def is_supported(self) -> bool:
        return self.model in SUPPORTED_MODELS


def create_udp_socket() -> socket.socket:
    """Create a udp socket used for communicating with the device."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    sock.bind(("", 0))
    sock.setblocking(False)
    return sock


def _process_discovery_message(
    from_address: Tuple[str, int], data: bytes
) -> Optional[DiscoveredDevice]:
    """Process response from b'HF-A11ASSISTHREAD'

    b'192.168.1.212,F0FE6B5A6D68,HF-LPB100-ZJ200'
    """
    try:
        decoded_data = data.decode("ascii")
    except UnicodeDecodeError:
        _LOGGER.debug("discover: ignoring undecodable reply from %s", from_address)
        return None
    data_split = decoded_data.strip().split(",")
    if len(data_split) < 3:
        return None
    return DiscoveredDevice(
        address=DeviceAddress(from_address[0], DEFAULT_PORT),
        id=data_split[1] or None,
        model=data_split[2] or None,
        raw=data,
    )


def _sort_key(device: DiscoveredDevice) -> Tuple[int, str]:
    try:
        return int(ipaddress.ip_address(device.address.host)), ""
    except ValueError:
        return 0, device.address.host


class LedNetScanner:

    RESPONSE_SIZE = 128
    BROADCAST_ADDRESS = "<broadcast>"

    def __init__(self) -> None:
        self._discoveries: Dict[DeviceAddress, DiscoveredDevice] = {}

    @property
    def found_devices(self) -> List[DiscoveredDevice]:
        """Return the discovered devices ordered by address."""
        return sorted(self._discoveries.values(), key=_sort_key)

    @property
    def supported_devices(self) -> List[DiscoveredDevice]:
        return [device for device in self.found_devices if device.is_supported]

    def _create_socket(self) -> socket.socket:
        return create_udp_socket()

    def _destination_from_address(self, address: Optional[str]) -> Tuple[str, int]:
        if address is None:
            address = self.BROADCAST_ADDRESS
        return (address, DISCOVERY_PORT)

    def _process_response(
        self,
        data: bytes,
        from_address: Tuple[str, int],
        address: Optional[str],
    ) -> bool:
        """Process a response.

        Returns True if processing should stop
        """
        if data == DISCOVERY_MESSAGE:
            return False
        device = _process_discovery_message(from_address, data)
        if device is None:
            return False
        self._discoveries.setdefault(device.address, device)
        return address is not None and device.address.host == address

    def scan(
        self, timeout: float = DISCOVERY_TIMEOUT, address: Optional[str] = None
    ) -> List[DiscoveredDevice]:
        """Scan for devices.

        One request is sent and replies are collected until the timeout
        passes. If an address is provided, the request goes to that
        address only and the scan returns as soon as it answers.
        """
        sock = self._create_socket()
        destination = self._destination_from_address(address)
        # set the time at which we will quit the search
        quit_time = time.monotonic() + timeout
        try:
            _LOGGER.debug("udp: %s => %s", destination, DISCOVERY_MESSAGE)
            sock.sendto(DISCOVERY_MESSAGE, destination)
            while True:
                time_out = quit_time - time.monotonic()
                if time_out <= 0:
                    break
                read_ready, _, _ = select.select([sock], [], [], time_out)
                if not read_ready:
                    break
                try:
                    data, addr = sock.recvfrom(self.RESPONSE_SIZE)
                except BlockingIOError:
                    continue
                _LOGGER.debug("discover: %s <= %s", addr, data)
                if self._process_response(data, addr, address):
                    break
        finally:
            sock.close()

        return self.found_devices
