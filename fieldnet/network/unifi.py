"""UniFi controller client for team SSIDs and VLAN subnets.

Each field slot has one network (``networkconf``) and one wireless network
(``wlanconf``) pre-provisioned on the controller. Configuring a team means
renaming the slot's SSID to the team number and re-addressing its network
to the team subnet ``10.TE.AM.0/24``; reading status means listing the
wlans and mapping their names back to slots.

All calls share one cookie-authenticated session and are serialized by a
single lock, so the access point loop and the switch can share a client.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx
from pydantic import ValidationError

from fieldnet.config import Settings, settings
from fieldnet.network.assignment import SLOT_COUNT, SLOTS, DesiredAssignment, Slot
from fieldnet.network.controller import (
    DeviceController,
    DeviceControllerError,
    DeviceRequestError,
    DeviceResponseError,
    EthernetController,
)
from fieldnet.schemas import (
    ConfiguredSsids,
    LoginPayload,
    NetworkConfPayload,
    WlanConfPayload,
    WlanConfResponse,
)

logger = logging.getLogger(__name__)

SITE_PATH = "/api/s/default/rest"


def team_subnet_octets(team_id: int) -> tuple[int, int]:
    """Split a team number into the middle octets of its subnet (254 -> 2, 54)."""
    return team_id // 100, team_id % 100


def reset_subnet_octets(slot: Slot) -> tuple[int, int]:
    """Neutral subnet a slot's network is parked on before re-addressing."""
    return 0, 101 + slot.position


@dataclass(frozen=True)
class UnifiIds:
    """Controller resource ids for each slot, in slot order."""

    network_ids: tuple[str, ...]
    wifi_ids: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.network_ids) != SLOT_COUNT or len(self.wifi_ids) != SLOT_COUNT:
            raise ValueError(f"Expected {SLOT_COUNT} network and wifi ids")

    @classmethod
    def from_settings(cls, config: Settings) -> "UnifiIds":
        return cls(
            network_ids=tuple(getattr(config, f"{slot.value}_network_id") for slot in SLOTS),
            wifi_ids=tuple(getattr(config, f"{slot.value}_wifi_id") for slot in SLOTS),
        )

    def network_id(self, slot: Slot) -> str:
        return self.network_ids[slot.position]

    def wifi_id(self, slot: Slot) -> str:
        return self.wifi_ids[slot.position]


class UnifiClient(DeviceController, EthernetController):
    """Talks to one UniFi controller over its REST API."""

    def __init__(
        self,
        address: str,
        username: str,
        password: str,
        ids: UnifiIds,
        *,
        passphrase: str = "bluegold",
        verify_tls: bool = False,
        connect_timeout: float = 1.0,
        command_timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.address = address
        self._username = username
        self._password = password
        self._ids = ids
        self._passphrase = passphrase
        self._verify_tls = verify_tls
        self._timeout = httpx.Timeout(command_timeout, connect=connect_timeout)
        self._client = client
        self._owns_client = client is None
        self._lock: asyncio.Lock | None = None

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "UnifiClient":
        return cls(
            config.unifi_address,
            config.unifi_username,
            config.unifi_password,
            UnifiIds.from_settings(config),
            passphrase=config.wifi_passphrase,
            verify_tls=config.unifi_verify_tls,
            connect_timeout=config.connect_timeout,
            command_timeout=config.command_timeout,
        )

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"https://{self.address}",
                verify=self._verify_tls,
                timeout=self._timeout,
            )
        return self._client

    @asynccontextmanager
    async def _locked(self) -> AsyncIterator[None]:
        """Hold the session lock; created on first use inside the running loop."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            yield

    async def _request(
        self,
        method: str,
        path: str,
        description: str,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._get_client().request(method, path, json=json_body)
        except httpx.HTTPError as e:
            raise DeviceRequestError(f"executing {description} request: {e}") from e

        if response.status_code != 200:
            raise DeviceResponseError(
                f"unexpected {description} status code {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def aclose(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # DeviceController
    # ------------------------------------------------------------------

    async def login(self) -> None:
        payload = LoginPayload(username=self._username, password=self._password)
        async with self._locked():
            await self._request("POST", "/api/login", "login", payload.model_dump())
        logger.debug(f"Logged into UniFi controller at {self.address}")

    async def configure(self, teams: DesiredAssignment) -> None:
        async with self._locked():
            for slot, team_id in zip(SLOTS, teams):
                if team_id is None:
                    continue
                await self._configure_wlan(slot, team_id)

    async def read_status(self) -> ConfiguredSsids:
        async with self._locked():
            response = await self._request("GET", f"{SITE_PATH}/wlanconf", "wifi status")

        try:
            listing = WlanConfResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise DeviceResponseError(f"parsing wifi status response body: {e}") from e

        slot_by_wifi_id = {
            self._ids.wifi_id(slot): slot for slot in SLOTS if self._ids.wifi_id(slot)
        }
        names: dict[str, str] = {}
        for wlan in listing.data:
            slot = slot_by_wifi_id.get(wlan.id)
            if slot is not None:
                names[slot.value] = wlan.name
        return ConfiguredSsids(**names)

    # ------------------------------------------------------------------
    # EthernetController
    # ------------------------------------------------------------------

    async def configure_networks(self, teams: DesiredAssignment) -> None:
        async with self._locked():
            for slot, team_id in zip(SLOTS, teams):
                if team_id is None:
                    continue
                network_id = self._ids.network_id(slot)
                # Park the network on its neutral block first so the
                # controller never sees two networks on one subnet.
                await self._configure_network(slot, reset_subnet_octets(slot), network_id)
                await self._configure_network(slot, team_subnet_octets(team_id), network_id)

    # ------------------------------------------------------------------
    # Individual pushes (caller holds the lock)
    # ------------------------------------------------------------------

    async def _configure_wlan(self, slot: Slot, team_id: int) -> None:
        try:
            payload = WlanConfPayload(
                networkconf_id=self._ids.network_id(slot),
                name=str(team_id),
                x_passphrase=self._passphrase,
            )
        except ValidationError as e:
            raise DeviceControllerError(
                f"invalid wlan config for team {team_id} on {slot.value}: {e}"
            ) from e

        wifi_id = self._ids.wifi_id(slot)
        if not wifi_id:
            raise DeviceControllerError(f"no wlan provisioned for slot {slot.value}")

        await self._request(
            "PUT",
            f"{SITE_PATH}/wlanconf/{wifi_id}",
            f"wlan config for team {team_id}",
            payload.model_dump(),
        )
        logger.info(f"Configured wlan for team {team_id} on {slot.value}")

    async def _configure_network(
        self,
        slot: Slot,
        octets: tuple[int, int],
        network_id: str,
    ) -> None:
        if not network_id:
            raise DeviceControllerError(f"no network provisioned for slot {slot.value}")

        try:
            payload = NetworkConfPayload.for_octets(*octets)
        except ValidationError as e:
            raise DeviceControllerError(
                f"no valid subnet 10.{octets[0]}.{octets[1]}.0/24 for {slot.value}"
            ) from e

        await self._request(
            "PUT",
            f"{SITE_PATH}/networkconf/{network_id}",
            "network config",
            payload.model_dump(),
        )
        logger.info(f"Configured network for 10.{octets[0]}.{octets[1]}.0 on {slot.value}")
