"""Team network configuration against the field's network controller."""

from fieldnet.network.access_point import AccessPoint, ConfigBufferFullError, LoopState
from fieldnet.network.assignment import (
    SLOTS,
    DesiredAssignment,
    Slot,
    StatusCache,
    TeamWifiStatus,
    converged,
    make_assignment,
)
from fieldnet.network.controller import (
    DeviceController,
    DeviceControllerError,
    DeviceRequestError,
    DeviceResponseError,
    EthernetController,
)
from fieldnet.network.switch import Switch
from fieldnet.network.unifi import UnifiClient, UnifiIds

__all__ = [
    # Reconciliation
    "AccessPoint",
    "ConfigBufferFullError",
    "LoopState",
    # Data model
    "SLOTS",
    "DesiredAssignment",
    "Slot",
    "StatusCache",
    "TeamWifiStatus",
    "converged",
    "make_assignment",
    # Controller boundary
    "DeviceController",
    "DeviceControllerError",
    "DeviceRequestError",
    "DeviceResponseError",
    "EthernetController",
    "UnifiClient",
    "UnifiIds",
    # Ethernet
    "Switch",
]
