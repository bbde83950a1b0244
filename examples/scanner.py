import logging
import pprint

from homectl.scanner import LedNetScanner

logging.basicConfig(level=logging.DEBUG)

scanner = LedNetScanner()
pprint.pprint(scanner.scan(timeout=5))
pprint.pprint([device.address.host for device in scanner.supported_devices])
