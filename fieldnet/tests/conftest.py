from __future__ import annotations

import pytest

from fieldnet.config import settings
from fieldnet.network.access_point import AccessPoint
from fieldnet.network.assignment import SLOTS
from fieldnet.network.controller import DeviceController, EthernetController
from fieldnet.schemas import ConfiguredSsids


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    """Pin loop settings so an operator's environment can't leak into tests."""
    monkeypatch.setattr(settings, "poll_interval", 0.01)
    monkeypatch.setattr(settings, "config_retry_interval", 5.0)
    monkeypatch.setattr(settings, "request_buffer_size", 10)
    monkeypatch.setattr(settings, "max_config_attempts", None)
    yield


def ssids_for(teams) -> ConfiguredSsids:
    """Build a read-back where each slot's SSID is its team number."""
    return ConfiguredSsids(
        **{slot.value: str(team) for slot, team in zip(SLOTS, teams) if team is not None}
    )


class FakeController(DeviceController, EthernetController):
    """Scripted controller that records every call.

    ``reads`` and the ``*_errors`` lists are consumed one entry per call
    before falling back to the default behavior. With ``apply_on_configure``
    the device "takes" every push, so later reads return it.
    """

    def __init__(self, apply_on_configure: bool = True):
        self.apply_on_configure = apply_on_configure
        self.calls: list[str] = []
        self.configured: list[tuple] = []
        self.configured_networks: list[tuple] = []
        self.ssids = ConfiguredSsids()
        self.reads: list = []
        self.login_errors: list[Exception] = []
        self.configure_errors: list[Exception] = []
        self.read_errors: list[Exception] = []

    def count(self, name: str) -> int:
        return self.calls.count(name)

    async def login(self) -> None:
        self.calls.append("login")
        if self.login_errors:
            raise self.login_errors.pop(0)

    async def configure(self, teams) -> None:
        self.calls.append("configure")
        self.configured.append(teams)
        if self.configure_errors:
            raise self.configure_errors.pop(0)
        if self.apply_on_configure:
            self.ssids = ssids_for(teams)

    async def read_status(self) -> ConfiguredSsids:
        self.calls.append("read_status")
        if self.read_errors:
            raise self.read_errors.pop(0)
        if self.reads:
            return self.reads.pop(0)
        return self.ssids

    async def configure_networks(self, teams) -> None:
        self.calls.append("configure_networks")
        self.configured_networks.append(teams)
        if self.configure_errors:
            raise self.configure_errors.pop(0)


class FakeClock:
    """Stands in for asyncio.sleep; records delays without waiting."""

    def __init__(self):
        self.sleeps: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)


@pytest.fixture
def controller() -> FakeController:
    return FakeController()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def access_point(controller, clock) -> AccessPoint:
    return AccessPoint(controller, name="test-ap", sleep=clock.sleep)


@pytest.fixture
def make_ssids():
    return ssids_for


@pytest.fixture
def make_controller():
    return FakeController
