"""Team WiFi reconciliation against a slow-to-converge access point.

Writes to the controller do not take effect right away and reads can lag or
fail, so configuration is driven by a single background worker per device:

- Callers submit the desired assignment with :meth:`AccessPoint.configure_team_wifi`,
  which never blocks. Requests land in a small bounded buffer.
- The worker takes the newest buffered request (older ones are dropped,
  since each request describes a complete end state), pushes it, waits,
  reads it back and repeats until the read-back matches.
- With nothing to do, the worker polls the controller on a timer so that
  changes made behind our back (manual edits, a device reset) show up in
  :attr:`AccessPoint.team_wifi_statuses`.

Only the worker touches the controller and the status cache.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Any

from fieldnet.config import settings
from fieldnet.metrics import (
    config_attempts,
    convergence_duration,
    requests_rejected,
    status_reads,
)
from fieldnet.network.assignment import (
    DesiredAssignment,
    StatusCache,
    TeamWifiStatus,
    converged,
    format_assignment,
    make_assignment,
)
from fieldnet.network.controller import DeviceController, DeviceControllerError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]

# Marks "not given" where None already means "retry forever".
_FROM_SETTINGS: Any = object()


class ConfigBufferFullError(Exception):
    """Too many configuration requests are waiting; submit again later."""


class LoopState(str, Enum):
    """What the reconciliation worker is doing right now."""
    IDLE = "idle"
    APPLYING = "applying"
    VERIFYING = "verifying"
    POLLING = "polling"


class AccessPoint:
    """Reconciliation worker for one access point.

    Args:
        controller: Device the worker configures and reads.
        name: Label used in logs and metrics.
        poll_interval: Seconds of idleness before a drift-detection read.
        config_retry_interval: Seconds to wait after a push before reading
            it back.
        request_buffer_size: Requests that may wait before submissions are
            rejected.
        max_config_attempts: Give up on a request after this many failed
            verifications. ``None`` retries until the device matches; left
            out, the configured setting applies.
        sleep: Coroutine used for the post-push wait; tests pass a fake
            clock here.
    """

    def __init__(
        self,
        controller: DeviceController,
        *,
        name: str = "access-point",
        poll_interval: float | None = None,
        config_retry_interval: float | None = None,
        request_buffer_size: int | None = None,
        max_config_attempts: int | None = _FROM_SETTINGS,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.name = name
        self.poll_interval = settings.poll_interval if poll_interval is None else poll_interval
        self.config_retry_interval = (
            settings.config_retry_interval
            if config_retry_interval is None
            else config_retry_interval
        )
        if max_config_attempts is _FROM_SETTINGS:
            max_config_attempts = settings.max_config_attempts
        if max_config_attempts is not None and max_config_attempts < 1:
            raise ValueError(f"max_config_attempts must be at least 1, got {max_config_attempts}")
        self.max_config_attempts = max_config_attempts
        buffer_size = settings.request_buffer_size if request_buffer_size is None else request_buffer_size

        self._controller = controller
        self._sleep = sleep
        self._requests: asyncio.Queue[DesiredAssignment] = asyncio.Queue(maxsize=buffer_size)
        self._status = StatusCache()
        self._task: asyncio.Task | None = None
        self.state = LoopState.IDLE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def configure_team_wifi(self, teams: Sequence[int | None]) -> None:
        """Queue a request to set up wireless networks for the given teams.

        Raises:
            ValueError: the assignment is malformed.
            ConfigBufferFullError: the request buffer is full.
        """
        request = make_assignment(teams)
        try:
            self._requests.put_nowait(request)
        except asyncio.QueueFull:
            requests_rejected.labels(device=self.name).inc()
            raise ConfigBufferFullError("WiFi config request buffer full") from None

    @property
    def team_wifi_statuses(self) -> tuple[TeamWifiStatus, ...]:
        """Last status read from the device, converged or not."""
        return self._status.snapshot()

    @property
    def initialized(self) -> bool:
        """Whether any status read has succeeded yet."""
        return self._status.initialized

    @property
    def pending_requests(self) -> int:
        return self._requests.qsize()

    async def start(self) -> None:
        """Start the worker in a background task."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self.run())
        logger.info(
            "Access point worker %s started (poll=%.1fs, retry=%.1fs)",
            self.name,
            self.poll_interval,
            self.config_retry_interval,
        )

    async def stop(self) -> None:
        """Cancel the worker and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.state = LoopState.IDLE
        logger.info(f"Access point worker {self.name} stopped")

    async def run(self) -> None:
        """Service requests and poll status forever."""
        while True:
            try:
                await self.process_next()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.state = LoopState.IDLE
                logger.exception(f"Access point worker {self.name} error")

    async def process_next(self) -> None:
        """Handle one wake-up: the newest pending request, or a status poll."""
        # A request that is already waiting always wins over the poll timer.
        if self._requests.empty():
            try:
                request = await asyncio.wait_for(self._requests.get(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                await self._poll()
                return
        else:
            request = self._requests.get_nowait()

        # If several requests queued up, only the latest one matters.
        dropped = 0
        while True:
            try:
                request = self._requests.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped += 1
        if dropped:
            logger.debug(f"Discarded {dropped} superseded WiFi config request(s)")

        await self._handle_team_wifi_configuration(request)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _poll(self) -> None:
        self.state = LoopState.POLLING
        try:
            await self._update_team_wifi_statuses()
        except Exception as e:
            logger.warning(f"Error getting wifi info from AP: {e}")
        finally:
            self.state = LoopState.IDLE

    async def _handle_team_wifi_configuration(self, teams: DesiredAssignment) -> None:
        """Write the configuration and read it back until it is applied."""
        logger.info(f"WiFi configuration requested: {format_assignment(teams)}")
        if converged(teams, self._status):
            logger.info("WiFi configuration already correct; nothing to do")
            return

        started = time.monotonic()
        attempt_count = 1
        try:
            while True:
                self.state = LoopState.APPLYING
                await self._apply(teams)

                # The controller applies writes asynchronously; give it time
                # before reading back, and space out retries on failure.
                await self._sleep(self.config_retry_interval)

                self.state = LoopState.VERIFYING
                if await self._verify(teams):
                    config_attempts.labels(device=self.name, outcome="success").inc()
                    convergence_duration.labels(device=self.name).observe(
                        time.monotonic() - started
                    )
                    logger.info("Successfully configured WiFi after %d attempts.", attempt_count)
                    return

                config_attempts.labels(device=self.name, outcome="mismatch").inc()
                if self.max_config_attempts is not None and attempt_count >= self.max_config_attempts:
                    logger.error(
                        "Giving up on WiFi configuration after %d attempts: %s",
                        attempt_count,
                        format_assignment(teams),
                    )
                    return

                logger.warning(
                    "WiFi configuration still incorrect after %d attempts; trying again.",
                    attempt_count,
                )
                attempt_count += 1
        finally:
            self.state = LoopState.IDLE

    async def _apply(self, teams: DesiredAssignment) -> None:
        """Log in and push; failures only cost this attempt."""
        try:
            await self._controller.login()
            await self._controller.configure(teams)
        except DeviceControllerError as e:
            logger.warning(f"Error configuring WiFi: {e}")
        except Exception:
            logger.exception("Unexpected error configuring WiFi")

    async def _verify(self, teams: DesiredAssignment) -> bool:
        """Read the device back even after a failed push; it may have been fixed externally."""
        try:
            await self._update_team_wifi_statuses()
        except DeviceControllerError as e:
            logger.warning(f"Error reading back WiFi configuration: {e}")
            return False
        except Exception:
            logger.exception("Unexpected error reading back WiFi configuration")
            return False
        return converged(teams, self._status)

    async def _update_team_wifi_statuses(self) -> None:
        """Fetch the current wifi status from the device into the cache."""
        try:
            await self._controller.login()
            ssids = await self._controller.read_status()
        except Exception:
            status_reads.labels(device=self.name, outcome="error").inc()
            raise
        self._status.update(ssids)
        status_reads.labels(device=self.name, outcome="success").inc()
