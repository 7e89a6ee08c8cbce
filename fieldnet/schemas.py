"""Controller wire payloads and service API schemas.

The first half of this module models the JSON exchanged with the UniFi
controller; the second half models the field network service's own HTTP
API.
"""

from __future__ import annotations

import ipaddress

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Controller wire payloads ---

class LoginPayload(BaseModel):
    """Body of ``POST /api/login``."""
    username: str = Field(min_length=1)
    password: str


class NetworkConfPayload(BaseModel):
    """Body of ``PUT /api/s/default/rest/networkconf/{id}``."""
    dhcpd_start: str
    dhcpd_stop: str
    ip_subnet: str  # gateway address with prefix, e.g. "10.2.54.4/24"

    @field_validator("dhcpd_start", "dhcpd_stop")
    @classmethod
    def _check_address(cls, value: str) -> str:
        ipaddress.IPv4Address(value)
        return value

    @field_validator("ip_subnet")
    @classmethod
    def _check_subnet(cls, value: str) -> str:
        ipaddress.IPv4Interface(value)
        return value

    @classmethod
    def for_octets(cls, octet1: int, octet2: int) -> "NetworkConfPayload":
        """Build the standard team /24: DHCP .20-.199, gateway .4."""
        return cls(
            dhcpd_start=f"10.{octet1}.{octet2}.20",
            dhcpd_stop=f"10.{octet1}.{octet2}.199",
            ip_subnet=f"10.{octet1}.{octet2}.4/24",
        )


class WlanConfPayload(BaseModel):
    """Body of ``PUT /api/s/default/rest/wlanconf/{id}``."""
    networkconf_id: str = Field(min_length=1)
    name: str = Field(pattern=r"^[1-9][0-9]*$")  # SSID is the team number
    x_passphrase: str = Field(min_length=8, max_length=63)


class WlanConf(BaseModel):
    """One entry of the ``wlanconf`` listing."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field("", alias="_id")
    name: str = ""

    @field_validator("id", "name", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        # Guest and admin SSIDs may carry a null name or no id at all.
        return "" if value is None else str(value)


class WlanConfResponse(BaseModel):
    """Response of ``GET /api/s/default/rest/wlanconf``."""
    model_config = ConfigDict(extra="ignore")

    data: list[WlanConf] = Field(default_factory=list)


class ConfiguredSsids(BaseModel):
    """Network name currently bound to each slot's wlan, as read back."""
    red1: str = ""
    red2: str = ""
    red3: str = ""
    blue1: str = ""
    blue2: str = ""
    blue3: str = ""

    def for_slot(self, slot) -> str:
        """Return the SSID read for a :class:`~fieldnet.network.assignment.Slot`."""
        return getattr(self, slot.value)


# --- Service API ---

class WifiTeamsRequest(BaseModel):
    """Caller -> service: desired team per slot, ``null`` for an empty slot."""
    teams: list[int | None] = Field(min_length=6, max_length=6)


class EthernetTeamsRequest(BaseModel):
    """Caller -> service: wired networks to set up per slot."""
    teams: list[int | None] = Field(min_length=6, max_length=6)


class SlotStatus(BaseModel):
    """Observed state of one slot."""
    slot: str
    team_id: int
    radio_linked: bool


class WifiStatusResponse(BaseModel):
    """Service -> caller: last status read from the controller."""
    initialized: bool
    slots: list[SlotStatus]


class AcceptedResponse(BaseModel):
    """Service -> caller: request accepted for processing."""
    accepted: bool = True
    detail: str = ""
