"""Wired team networks on the field switch.

Unlike WiFi, wired configuration is a straight passthrough: no queue and no
read-back. Errors go back to the caller, who decides whether to retry.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from fieldnet.config import settings
from fieldnet.network.assignment import format_assignment, make_assignment
from fieldnet.network.controller import EthernetController

logger = logging.getLogger(__name__)


class Switch:
    """Configures per-team VLAN subnets through the controller."""

    def __init__(self, controller: EthernetController, server_ip_address: str | None = None):
        self._controller = controller
        # The driver stations will only try to connect to this address.
        self.server_ip_address = server_ip_address or settings.server_ip_address

    async def configure_team_ethernet(self, teams: Sequence[int | None]) -> None:
        """Set up wired networks for the given set of teams."""
        request = make_assignment(teams)
        await self._controller.login()
        await self._controller.configure_networks(request)
        logger.info(f"Configured team Ethernet: {format_assignment(request)}")
