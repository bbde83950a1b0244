import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar, cast

from .exceptions import DeviceUnreachable

_LOGGER = logging.getLogger(__name__)


WrapFuncType = TypeVar("WrapFuncType", bound=Callable[..., Any])


if TYPE_CHECKING:
    from .device import LedNetDevice


def _socket_errors(func: WrapFuncType) -> WrapFuncType:
    """Define a wrapper that reports socket failures as an unreachable device.

    There are no retries, the caller decides whether to try again.
    """

    def _wrap(self: "LedNetDevice", *args: Any, **kwargs: Any) -> Any:
        try:
            return func(self, *args, **kwargs)
        except OSError as ex:
            _LOGGER.debug(
                "%s: socket error while calling %s: %s", self.ipaddr, func.__name__, ex
            )
            raise DeviceUnreachable(self.address, ex) from ex
        finally:
            self.close()

    return cast(WrapFuncType, _wrap)
