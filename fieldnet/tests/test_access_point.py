"""Tests for the access point request queue and reconciliation loop."""
from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from fieldnet.config import settings
from fieldnet.network.access_point import AccessPoint, ConfigBufferFullError, LoopState
from fieldnet.network.controller import DeviceRequestError, DeviceResponseError

TEAMS_A = (254, None, None, None, None, None)
TEAMS_B = (254, 1114, None, None, None, None)
TEAMS_C = (254, 1114, 1678, 971, 2056, 118)


class TestRequestQueue:
    """Non-blocking intake with a fixed-size buffer."""

    def test_eleventh_submission_is_rejected(self, access_point):
        for _ in range(10):
            access_point.configure_team_wifi(TEAMS_A)

        with pytest.raises(ConfigBufferFullError):
            access_point.configure_team_wifi(TEAMS_A)
        assert access_point.pending_requests == 10

    def test_invalid_assignment_is_not_queued(self, access_point):
        with pytest.raises(ValueError):
            access_point.configure_team_wifi([254, None])
        assert access_point.pending_requests == 0

    def test_buffer_size_is_configurable(self, controller, clock):
        ap = AccessPoint(controller, request_buffer_size=2, sleep=clock.sleep)
        ap.configure_team_wifi(TEAMS_A)
        ap.configure_team_wifi(TEAMS_B)
        with pytest.raises(ConfigBufferFullError):
            ap.configure_team_wifi(TEAMS_C)

    @pytest.mark.asyncio
    async def test_only_latest_request_is_applied(self, access_point, controller):
        access_point.configure_team_wifi(TEAMS_A)
        access_point.configure_team_wifi(TEAMS_B)
        access_point.configure_team_wifi(TEAMS_C)

        await access_point.process_next()

        assert controller.configured == [TEAMS_C]
        assert access_point.pending_requests == 0

    @pytest.mark.asyncio
    async def test_pending_request_wins_over_poll(self, access_point, controller):
        access_point.configure_team_wifi(TEAMS_A)

        await access_point.process_next()

        # Straight to applying: no drift-detection read came first.
        assert controller.calls[:2] == ["login", "configure"]


class TestReconciliation:
    """Apply, wait, read back, repeat until the device matches."""

    @pytest.mark.asyncio
    async def test_retries_until_read_back_matches(
        self, access_point, controller, clock, make_ssids, caplog
    ):
        stale = make_ssids((1, 2, 3, 4, 5, 6))
        controller.reads = [stale, stale]
        access_point.configure_team_wifi(TEAMS_C)

        with caplog.at_level(logging.INFO, logger="fieldnet.network.access_point"):
            await access_point.process_next()

        assert controller.count("configure") == 3
        assert controller.count("read_status") == 3
        assert clock.sleeps == [5.0, 5.0, 5.0]
        assert "still incorrect after 1 attempts" in caplog.text
        assert "still incorrect after 2 attempts" in caplog.text
        assert "still incorrect after 3 attempts" not in caplog.text
        assert "Successfully configured WiFi after 3 attempts." in caplog.text
        assert tuple(s.team_id for s in access_point.team_wifi_statuses) == TEAMS_C
        assert access_point.state == LoopState.IDLE

    @pytest.mark.asyncio
    async def test_converged_resubmission_is_a_no_op(self, access_point, controller):
        access_point.configure_team_wifi(TEAMS_C)
        await access_point.process_next()
        calls_after_first = list(controller.calls)

        access_point.configure_team_wifi(TEAMS_C)
        await access_point.process_next()

        assert controller.calls == calls_after_first

    @pytest.mark.asyncio
    async def test_configure_failure_still_reads_back(
        self, access_point, controller, make_ssids
    ):
        """A push that errors is still verified; the device may already be right."""
        controller.configure_errors = [DeviceResponseError("unexpected status code 500", 500)]
        controller.ssids = make_ssids(TEAMS_B)
        access_point.configure_team_wifi(TEAMS_B)

        await access_point.process_next()

        assert controller.count("configure") == 1
        assert controller.count("read_status") == 1
        assert access_point.initialized is True

    @pytest.mark.asyncio
    async def test_login_failure_costs_one_attempt(self, access_point, controller, caplog):
        controller.login_errors = [DeviceRequestError("connection refused")]
        access_point.configure_team_wifi(TEAMS_A)

        with caplog.at_level(logging.INFO, logger="fieldnet.network.access_point"):
            await access_point.process_next()

        # First attempt never reached configure; second one applied it.
        assert controller.count("configure") == 1
        assert "Error configuring WiFi: connection refused" in caplog.text
        assert "Successfully configured WiFi after 2 attempts." in caplog.text

    @pytest.mark.asyncio
    async def test_read_failure_triggers_another_attempt(self, access_point, controller, caplog):
        controller.read_errors = [DeviceResponseError("parsing wifi status response body")]
        access_point.configure_team_wifi(TEAMS_A)

        with caplog.at_level(logging.INFO, logger="fieldnet.network.access_point"):
            await access_point.process_next()

        assert controller.count("configure") == 2
        assert "Successfully configured WiFi after 2 attempts." in caplog.text

    @pytest.mark.asyncio
    async def test_max_attempts_escape_hatch(self, make_controller, clock, caplog):
        controller = make_controller(apply_on_configure=False)
        ap = AccessPoint(controller, max_config_attempts=2, sleep=clock.sleep)
        ap.configure_team_wifi(TEAMS_A)

        with caplog.at_level(logging.INFO, logger="fieldnet.network.access_point"):
            await ap.process_next()

        assert controller.count("configure") == 2
        assert "Giving up on WiFi configuration after 2 attempts" in caplog.text
        assert ap.state == LoopState.IDLE

    def test_max_attempts_defaults_to_setting(self, controller, monkeypatch):
        monkeypatch.setattr(settings, "max_config_attempts", 2)

        assert AccessPoint(controller).max_config_attempts == 2

    def test_explicit_none_retries_forever_despite_setting(self, controller, monkeypatch):
        monkeypatch.setattr(settings, "max_config_attempts", 2)

        assert AccessPoint(controller, max_config_attempts=None).max_config_attempts is None

    @pytest.mark.parametrize("attempts", [0, -1])
    def test_max_attempts_must_be_positive(self, controller, attempts):
        with pytest.raises(ValueError):
            AccessPoint(controller, max_config_attempts=attempts)

    @pytest.mark.asyncio
    async def test_backoff_interval_is_injectable(self, controller, clock):
        ap = AccessPoint(controller, config_retry_interval=0.5, sleep=clock.sleep)
        ap.configure_team_wifi(TEAMS_A)

        await ap.process_next()

        assert clock.sleeps == [0.5]


class TestPolling:
    """Idle wake-ups read the device to catch drift."""

    @pytest.mark.asyncio
    async def test_idle_poll_updates_status(self, access_point, controller, make_ssids):
        controller.ssids = make_ssids(TEAMS_B)

        await access_point.process_next()

        assert controller.calls == ["login", "read_status"]
        assert access_point.initialized is True
        assert access_point.team_wifi_statuses[1].team_id == 1114
        assert access_point.state == LoopState.IDLE

    @pytest.mark.asyncio
    async def test_failed_poll_keeps_last_snapshot(self, access_point, controller, make_ssids):
        controller.ssids = make_ssids(TEAMS_B)
        await access_point.process_next()

        controller.read_errors = [DeviceRequestError("timed out")]
        await access_point.process_next()

        assert access_point.initialized is True
        assert access_point.team_wifi_statuses[0].team_id == 254

    @pytest.mark.asyncio
    async def test_poll_picks_up_external_change(self, access_point, controller, make_ssids):
        access_point.configure_team_wifi(TEAMS_A)
        await access_point.process_next()

        # Someone edits the device by hand.
        controller.ssids = make_ssids((999, None, None, None, None, None))
        await access_point.process_next()

        assert access_point.team_wifi_statuses[0].team_id == 999

        # The same request is no longer a no-op.
        access_point.configure_team_wifi(TEAMS_A)
        await access_point.process_next()
        assert controller.configured == [TEAMS_A, TEAMS_A]


class TestWorkerLifecycle:

    @pytest.mark.asyncio
    async def test_start_services_requests_in_background(self, access_point, controller):
        await access_point.start()
        try:
            access_point.configure_team_wifi(TEAMS_C)
            for _ in range(200):
                if controller.configured:
                    break
                await asyncio.sleep(0.01)
        finally:
            await access_point.stop()

        assert controller.configured == [TEAMS_C]
        assert access_point._task is None

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, access_point):
        await access_point.start()
        task = access_point._task
        await access_point.start()
        assert access_point._task is task
        await access_point.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, access_point):
        await access_point.stop()
        assert access_point._task is None

    @pytest.mark.asyncio
    async def test_run_survives_unexpected_errors(self, access_point):
        access_point.process_next = AsyncMock(
            side_effect=[RuntimeError("boom"), asyncio.CancelledError()]
        )

        with pytest.raises(asyncio.CancelledError):
            await access_point.run()

        assert access_point.process_next.call_count == 2
