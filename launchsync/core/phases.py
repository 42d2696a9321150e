"""
The ordered phases of a bootstrap run and the tracker enforcing their order.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from launchsync.exceptions import PhaseTransitionError

log = logging.getLogger(__name__)


class Phase(Enum):
    """A named stage of the bootstrap sequence."""

    START = "Start"
    MANIFEST_LOAD = "Manifest Load"
    UPDATE_WRAPPER_CREATION = "Update Wrapper Creation"
    FILE_SYNC = "File Sync"
    ENVIRONMENT_PREPARE = "Environment Prepare"
    APPLICATION_INIT = "Application Init"
    APPLICATION_START = "Application Start"
    RUNNING = "Running"

    @property
    def label(self) -> str:
        return self.value


# The only moves a bootstrap run can make. No cycles, no skipping, except that
# ManifestLoad may bypass the update phases when the remote could not be loaded.
TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.START: frozenset({Phase.MANIFEST_LOAD}),
    Phase.MANIFEST_LOAD: frozenset(
        {Phase.UPDATE_WRAPPER_CREATION, Phase.FILE_SYNC, Phase.ENVIRONMENT_PREPARE}
    ),
    Phase.UPDATE_WRAPPER_CREATION: frozenset({Phase.FILE_SYNC}),
    Phase.FILE_SYNC: frozenset({Phase.ENVIRONMENT_PREPARE}),
    Phase.ENVIRONMENT_PREPARE: frozenset({Phase.APPLICATION_INIT}),
    Phase.APPLICATION_INIT: frozenset({Phase.APPLICATION_START}),
    Phase.APPLICATION_START: frozenset({Phase.RUNNING}),
    Phase.RUNNING: frozenset(),
}


@dataclass(frozen=True)
class PhaseRecord:
    phase: Phase
    entered_at: float


class PhaseTracker:
    """
    Holds the current phase of one bootstrap run.

    The phase is updated on entry, before any work of that phase runs, so a
    failure is always attributed to the phase it happened in. It is never
    rolled back.
    """

    def __init__(self, listener: Callable[[Phase], None] | None = None):
        self._current = Phase.START
        self._history: list[PhaseRecord] = [PhaseRecord(Phase.START, time.monotonic())]
        self._listener = listener

    @property
    def current(self) -> Phase:
        return self._current

    @property
    def history(self) -> list[Phase]:
        """Every phase entered so far, in order."""
        return [record.phase for record in self._history]

    def enter(self, phase: Phase) -> None:
        """
        Moves to `phase`.

        Raises:
            PhaseTransitionError: If `phase` cannot follow the current phase.
        """
        if phase not in TRANSITIONS[self._current]:
            raise PhaseTransitionError(
                f"Cannot enter '{phase.label}' from '{self._current.label}'."
            )
        self._current = phase
        self._history.append(PhaseRecord(phase, time.monotonic()))
        log.debug(f"Entering phase: {phase.label}")
        if self._listener:
            self._listener(phase)

    def durations(self) -> dict[Phase, float]:
        """Seconds spent in each completed phase."""
        return {
            record.phase: following.entered_at - record.entered_at
            for record, following in zip(self._history, self._history[1:])
        }
