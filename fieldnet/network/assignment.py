"""Slot assignments and the observed-status cache.

A field has six fixed slots, three per alliance. Callers describe what they
want as a *desired assignment*: one optional team number per slot. The
controller is read back into a :class:`StatusCache`, and :func:`converged`
decides whether what was read matches what was asked for.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fieldnet.schemas import ConfiguredSsids

logger = logging.getLogger(__name__)


class Slot(str, Enum):
    """Field slots in their fixed index order."""
    RED1 = "red1"
    RED2 = "red2"
    RED3 = "red3"
    BLUE1 = "blue1"
    BLUE2 = "blue2"
    BLUE3 = "blue3"

    @property
    def position(self) -> int:
        return SLOTS.index(self)


SLOTS: tuple[Slot, ...] = tuple(Slot)
SLOT_COUNT = len(SLOTS)

# One optional team number per slot, in SLOTS order.
DesiredAssignment = tuple[int | None, ...]


def make_assignment(teams: Sequence[int | None]) -> DesiredAssignment:
    """Validate and freeze a per-slot team list.

    Raises:
        ValueError: wrong number of slots, or a team that is not a positive
            integer.
    """
    if isinstance(teams, (str, bytes)) or len(teams) != SLOT_COUNT:
        raise ValueError(f"Expected {SLOT_COUNT} slots, got {teams!r}")
    for team in teams:
        if team is None:
            continue
        if isinstance(team, bool) or not isinstance(team, int) or team <= 0:
            raise ValueError(f"Invalid team number: {team!r}")
    return tuple(teams)


def format_assignment(teams: DesiredAssignment) -> str:
    """Render an assignment for log lines, e.g. ``red1=254 red2=- ...``."""
    return " ".join(
        f"{slot.value}={'-' if team is None else team}"
        for slot, team in zip(SLOTS, teams)
    )


@dataclass(frozen=True)
class TeamWifiStatus:
    """Observed state of one slot's wireless network."""
    team_id: int = 0  # 0 means no team (or an unreadable name)
    radio_linked: bool = False


def parse_team_id(name: str) -> int:
    """Parse a network name into a team number, 0 if it is not numeric."""
    try:
        return int(name)
    except (TypeError, ValueError):
        return 0


class StatusCache:
    """Last-known state of every slot as read from the controller.

    Only the reconciliation loop writes here. ``initialized`` turns true on
    the first successful read and stays true, so a later failed read keeps
    comparing against the last good snapshot.
    """

    def __init__(self) -> None:
        self._statuses: list[TeamWifiStatus] = [TeamWifiStatus() for _ in SLOTS]
        self.initialized = False

    def update(self, ssids: ConfiguredSsids) -> None:
        """Store a successful read."""
        for slot in SLOTS:
            name = ssids.for_slot(slot)
            team_id = parse_team_id(name)
            if name and team_id == 0:
                logger.debug(f"Unparseable network name {name!r} on slot {slot.value}")
            previous = self._statuses[slot.position]
            self._statuses[slot.position] = TeamWifiStatus(
                team_id=team_id,
                radio_linked=previous.radio_linked,
            )
        self.initialized = True

    def snapshot(self) -> tuple[TeamWifiStatus, ...]:
        return tuple(self._statuses)

    def team_id(self, slot: Slot) -> int:
        return self._statuses[slot.position].team_id


def converged(desired: DesiredAssignment, cache: StatusCache) -> bool:
    """Return True if the cached status matches every non-empty desired slot.

    Empty slots are not checked: whatever network is still bound there does
    not block convergence. Nothing converges before the first successful read.
    """
    if not cache.initialized:
        return False

    for slot, team in zip(SLOTS, desired):
        if team is not None and cache.team_id(slot) != team:
            return False

    return True
