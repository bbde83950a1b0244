"""Run a command against many devices at once."""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
import logging
import math
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from .color import RGB
from .commands import Command, CommandType
from .const import DEFAULT_TIMEOUT, DISCOVERY_TIMEOUT
from .device import DeviceAddress, LedNetDevice
from .exceptions import DeviceUnreachable, HomectlError, UnsupportedDevice
from .scanner import DiscoveredDevice, LedNetScanner

_LOGGER = logging.getLogger(__name__)

# Slack on top of the socket timeouts before a task is given up on
TASK_GRACE_SECONDS = 1.0

Target = Union[DeviceAddress, DiscoveredDevice]


@dataclass
class DeviceResult:
    """Outcome of a command on one device."""

    address: DeviceAddress
    name: str
    value: Any = None
    error: Optional[HomectlError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def description(self) -> str:
        return f"{self.name} @ {self.address.host}"


def execute(device: LedNetDevice, command: Command) -> Any:  # noqa: C901
    """Execute a command on a single device and return what it asked for."""
    kind = command.type
    if kind is CommandType.ON:
        return device.set_power(True)
    if kind is CommandType.OFF:
        return device.set_power(False)
    if kind is CommandType.GET_ADDRESS:
        return device.address.host
    if kind is CommandType.GET_PORT:
        return device.address.port

    if kind is CommandType.RGB_SET:
        assert command.color is not None and command.brightness is not None
        return device.set_color(command.color, command.brightness)
    if kind is CommandType.RGB_SET_EXACT:
        assert command.color is not None
        return device.set_rgb_exact(command.color)
    if kind is CommandType.CCT_SET:
        assert command.temperature is not None and command.brightness is not None
        return device.set_temperature(command.temperature, command.brightness)

    state = device.get_status()
    if kind is CommandType.STATUS:
        return state
    if kind is CommandType.IS_ON:
        return state.is_on
    if kind is CommandType.RGB_GET_COLOR:
        return RGB(*state.rgb)
    if kind is CommandType.RGB_GET_EXACT:
        return RGB(*state.rgb_exact)
    if kind is CommandType.RGB_GET_BRIGHTNESS:
        return state.rgb_brightness
    if kind is CommandType.CCT_GET_TEMPERATURE:
        return state.cct_temperature
    if kind is CommandType.CCT_GET_BRIGHTNESS:
        return state.cct_brightness

    # The rest change one half of a channel and keep the other
    if kind is CommandType.RGB_SET_COLOR:
        assert command.color is not None
        return device.set_color(command.color, state.rgb_brightness)
    if kind is CommandType.RGB_SET_BRIGHTNESS:
        assert command.brightness is not None
        return device.set_color(RGB(*state.rgb), command.brightness)
    if kind is CommandType.CCT_SET_TEMPERATURE:
        assert command.temperature is not None
        return device.set_temperature(command.temperature, state.cct_brightness)
    if kind is CommandType.CCT_SET_BRIGHTNESS:
        assert command.brightness is not None
        return device.set_temperature(state.cct_temperature, command.brightness)
    raise ValueError(f"Unsupported command {command}")


class CommandDispatcher:
    """Run a command on every target, one worker thread per target.

    Each task owns its own device connection. A failing or slow device
    only affects its own result, and results come back in target order.
    With ``identify`` set, a bare address is first asked what it is with a
    targeted discovery request, inside its own task.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_workers: Optional[int] = None,
        persist: bool = True,
        device_factory: Callable[..., LedNetDevice] = LedNetDevice,
        identify: bool = False,
        discovery_timeout: float = DISCOVERY_TIMEOUT,
        scanner_factory: Callable[[], LedNetScanner] = LedNetScanner,
    ) -> None:
        self.timeout = timeout
        self.max_workers = max_workers
        self.persist = persist
        self.identify = identify
        self.discovery_timeout = discovery_timeout
        self._device_factory = device_factory
        self._scanner_factory = scanner_factory

    def _create_device(self, target: Target) -> LedNetDevice:
        if isinstance(target, DiscoveredDevice):
            address, model = target.address, target.model
        else:
            address, model = target, None
        return self._device_factory(
            address.host,
            address.port,
            timeout=self.timeout,
            model=model,
            persist=self.persist,
        )

    def identify_address(self, address: DeviceAddress) -> DiscoveredDevice:
        """Ask a single address what it is and return it as a supported device."""
        scanner = self._scanner_factory()
        try:
            found = scanner.scan(timeout=self.discovery_timeout, address=address.host)
        except OSError as ex:
            raise DeviceUnreachable(address, ex) from ex
        for device in found:
            if device.address.host != address.host:
                continue
            if not device.is_supported:
                raise UnsupportedDevice(address, device.model)
            # Keep the port the caller asked for
            return replace(device, address=address)
        raise DeviceUnreachable(address, "no answer to the discovery request")

    def _run(self, target: Target, command: Command) -> Tuple[LedNetDevice, Any]:
        if self.identify and isinstance(target, DeviceAddress):
            target = self.identify_address(target)
        device = self._create_device(target)
        return device, execute(device, command)

    def task_timeout(self, command: Command) -> float:
        """Time a single task may take, each connection may spend the
        timeout once connecting and once reading."""
        budget = 2 * self.timeout * max(1, command.connections) + TASK_GRACE_SECONDS
        if self.identify:
            budget += self.discovery_timeout
        return budget

    def dispatch(self, command: Command, targets: Sequence[Target]) -> List[DeviceResult]:
        if not targets:
            return []
        workers = min(self.max_workers or len(targets), len(targets))
        # Tasks beyond the pool size wait for a free worker
        rounds = math.ceil(len(targets) / workers)
        deadline = time.monotonic() + self.task_timeout(command) * rounds
        results: List[DeviceResult] = []
        executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="homectl"
        )
        try:
            futures = [
                executor.submit(self._run, target, command) for target in targets
            ]
            for target, future in zip(targets, futures):
                # Named from the target until the task has identified it
                device = self._create_device(target)
                result = DeviceResult(device.address, device.name)
                try:
                    device, result.value = future.result(
                        timeout=max(0.0, deadline - time.monotonic())
                    )
                    result.name = device.name
                except FutureTimeoutError:
                    future.cancel()
                    result.error = DeviceUnreachable(
                        device.address, "timed out waiting for the device"
                    )
                except HomectlError as ex:
                    result.error = ex
                if result.error is not None:
                    _LOGGER.debug("%s: %s failed: %s", device.ipaddr, command, result.error)
                results.append(result)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return results
