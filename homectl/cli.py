#!/usr/bin/env python
"""
Control LEDENET ("Magic Home") Wi-Fi LED controllers from the command line.

The devices speak a small binary protocol over TCP port 5577 and answer
a UDP discovery request on port 48899. Commands may be abbreviated to any
unambiguous prefix, so "set c b 80" is "set cct brightness 80".

##### Available:
* Discovering devices on the LAN
* Turning devices on and off
* Reading power, color, color temperature and brightness
* Setting color (rgb, cmyk, hsv, hex, names) and brightness
* Setting white color temperature and brightness
"""

import ipaddress
import logging
from optparse import OptionParser, Values
import sys
from typing import Any, List, Optional, Sequence, Tuple

from .color import RGB, format_color
from .commands import Command, CommandType, resolve
from .const import DEFAULT_PORT, DEFAULT_TIMEOUT, DISCOVERY_TIMEOUT
from .device import DeviceAddress
from .dispatcher import CommandDispatcher, DeviceResult, Target
from .exceptions import UnsupportedDevice
from .protocol import DeviceState
from .scanner import LedNetScanner

_LOGGER = logging.getLogger(__name__)

FAILURE = 1


# =======================================================================
def showUsageExamples() -> None:
    example_text = """
Examples:

Turn on:
    %prog% 192.168.1.100 on
    %prog% 192.168.1.100 192.168.1.101 on

Turn off every device on the LAN:
    %prog% -d off

Show everything about a device:
    %prog% 192.168.1.100 status

Set a color at 75% brightness:
    %prog% 192.168.1.100 set rgb full "rgb(255,135,30)" 75
    %prog% 192.168.1.100 set rgb full "hsv(26,88%,100%)" 75
    %prog% 192.168.1.100 set rgb full "cmyk(0%,47%,88%,0%)" 75
    %prog% 192.168.1.100 set rgb full "#ff871e" 75

Change only the color or only the brightness:
    %prog% 192.168.1.100 set rgb color green
    %prog% 192.168.1.100 set rgb brightness 40

Set white to 3500K at 85%:
    %prog% 192.168.1.100 set cct full 3500 85

Abbreviated, set the white brightness to 80%:
    %prog% 192.168.1.100 set c b 80

Read the color temperature:
    %prog% 192.168.1.100 get cct temperature
    """

    print(example_text.replace("%prog%", sys.argv[0]))


def parseArgs(argv: Sequence[str]) -> Tuple[Values, List[Target], Command]:
    parser = OptionParser(
        usage="usage: %prog [options] ADDRESS... COMMAND\n"
        "       %prog [options] -d COMMAND\n\n"
        "COMMAND is one of: on, off, status, get ..., set ..."
    )
    parser.disable_interspersed_args()

    parser.add_option(
        "-e",
        "--examples",
        action="store_true",
        dest="showexamples",
        default=False,
        help="Show usage examples",
    )
    parser.add_option(
        "-d",
        "--discover",
        action="store_true",
        dest="discover",
        default=False,
        help="Discover devices on the LAN, then apply the command to all",
    )
    parser.add_option(
        "-t",
        "--timeout",
        type="float",
        dest="timeout",
        default=DEFAULT_TIMEOUT,
        metavar="SECONDS",
        help="Seconds to wait for each device [default: %default]",
    )
    parser.add_option(
        "--discovery-timeout",
        type="float",
        dest="discovery_timeout",
        default=DISCOVERY_TIMEOUT,
        metavar="SECONDS",
        help="Seconds to collect discovery replies [default: %default]",
    )
    parser.add_option(
        "--volatile",
        action="store_true",
        dest="volatile",
        default=False,
        help="Don't persist level changes on the device",
    )
    parser.add_option(
        "-v",
        "--verbose",
        action="store_true",
        dest="verbose",
        default=False,
        help="Show debug output",
    )

    (options, args) = parser.parse_args(list(argv))

    if options.showexamples:
        showUsageExamples()
        sys.exit(0)

    if options.timeout <= 0:
        parser.error("timeout must be positive")

    addresses: List[Target] = []
    while args and _is_address(args[0]):
        addresses.append(_to_address(args.pop(0)))
    if options.discover:
        # Discovery replaces any addresses given
        addresses = []
    elif not addresses:
        parser.error(
            "You must specify at least one IP address as an argument, or use --discover"
        )

    if not args:
        parser.error("A command must be specified")

    try:
        command = resolve(args)
    except ValueError as ex:
        parser.error(str(ex))

    return (options, addresses, command)


def _split_address(text: str) -> Tuple[str, int]:
    host, sep, port = text.rpartition(":")
    if sep and "." in host:
        return host, int(port)
    return text, DEFAULT_PORT


def _is_address(text: str) -> bool:
    try:
        host, _ = _split_address(text)
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _to_address(text: str) -> DeviceAddress:
    return DeviceAddress(*_split_address(text))


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, str)):
        return str(value)
    return format_color(value)


def format_status(result: DeviceResult) -> str:
    state: DeviceState = result.value
    return (
        "{name} -- Address: {address} Power: {power} "
        "RGB: [{rgb} @ {rgb_b}%] CCT: [{white_t}K @ {white_b}%]".format(
            name=result.name,
            address=result.address,
            power="ON" if state.is_on else "OFF",
            rgb=format_color(RGB(*state.rgb)),
            rgb_b=state.rgb_brightness,
            white_t=state.cct_temperature,
            white_b=state.cct_brightness,
        )
    )


def show_results(command: Command, results: List[DeviceResult]) -> bool:
    """Print results in target order, return True if all succeeded."""
    all_succeeded = True
    for result in results:
        if isinstance(result.error, UnsupportedDevice):
            print(f"{result.address.host}: {result.error}")
        elif not result.ok:
            all_succeeded = False
            print(f"{result.description}: {result.error}", file=sys.stderr)
        elif command.type is CommandType.STATUS:
            print(format_status(result))
        elif command.is_query:
            print(f"{result.description}: {format_value(result.value)}")
    return all_succeeded


# -------------------------------------------
def main(argv: Optional[Sequence[str]] = None) -> None:

    (options, targets, command) = parseArgs(sys.argv[1:] if argv is None else argv)

    if options.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if options.discover:
        scanner = LedNetScanner()
        try:
            scanner.scan(timeout=options.discovery_timeout)
        except OSError as ex:
            print(f"Could not discover devices: {ex}", file=sys.stderr)
            sys.exit(FAILURE)
        for device in scanner.found_devices:
            if not device.is_supported:
                print(
                    f"{device.address.host}: "
                    f"{UnsupportedDevice(device.address, device.model)}"
                )
        targets = list(scanner.supported_devices)
        if not targets:
            print("No devices found.")
            sys.exit(0)

    dispatcher = CommandDispatcher(
        timeout=options.timeout,
        persist=not options.volatile,
        identify=not options.discover,
        discovery_timeout=options.discovery_timeout,
    )
    _LOGGER.debug("Running %s on %s", command, targets)
    results = dispatcher.dispatch(command, targets)

    if not show_results(command, results):
        sys.exit(FAILURE)
    sys.exit(0)


if __name__ == "__main__":
    main()
