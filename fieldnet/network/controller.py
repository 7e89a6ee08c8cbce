"""Controller capabilities the field network core depends on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fieldnet.network.assignment import DesiredAssignment
    from fieldnet.schemas import ConfiguredSsids

# Controller statuses that mean "busy, ask again shortly".
TRANSIENT_STATUS_CODES = {429, 502, 503, 504}


class DeviceControllerError(Exception):
    """Base exception for controller communication errors."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def transient(self) -> bool:
        return self.status_code in TRANSIENT_STATUS_CODES


class DeviceRequestError(DeviceControllerError):
    """The request never got a response (connect failure, timeout)."""


class DeviceResponseError(DeviceControllerError):
    """The controller answered with an error status or an unreadable body."""


class DeviceController(ABC):
    """Authenticated configuration pushes and status reads against one device.

    Every call may be slow and may fail independently. Implementations own
    their session and must not interleave calls made from different tasks.
    """

    @abstractmethod
    async def login(self) -> None:
        """Authenticate the session."""
        ...

    @abstractmethod
    async def configure(self, teams: DesiredAssignment) -> None:
        """Push the wireless network for every non-empty slot.

        Empty slots are left as they are.
        """
        ...

    @abstractmethod
    async def read_status(self) -> ConfiguredSsids:
        """Read back the network name bound to every slot."""
        ...


class EthernetController(ABC):
    """Wired per-slot network configuration."""

    @abstractmethod
    async def login(self) -> None:
        ...

    @abstractmethod
    async def configure_networks(self, teams: DesiredAssignment) -> None:
        """Point every non-empty slot's network at its team subnet."""
        ...
