from __future__ import annotations

import pytest

from launchsync.core.phases import Phase, PhaseTracker
from launchsync.exceptions import PhaseTransitionError


def test_full_sequence_with_update() -> None:
    seen: list[Phase] = []
    tracker = PhaseTracker(listener=seen.append)

    for phase in (
        Phase.MANIFEST_LOAD,
        Phase.UPDATE_WRAPPER_CREATION,
        Phase.FILE_SYNC,
        Phase.ENVIRONMENT_PREPARE,
        Phase.APPLICATION_INIT,
        Phase.APPLICATION_START,
        Phase.RUNNING,
    ):
        tracker.enter(phase)

    assert tracker.current is Phase.RUNNING
    assert tracker.history[0] is Phase.START
    assert tracker.history[1:] == seen
    assert set(tracker.durations()) == set(tracker.history[:-1])


def test_offline_run_skips_update_phases() -> None:
    tracker = PhaseTracker()
    tracker.enter(Phase.MANIFEST_LOAD)
    tracker.enter(Phase.ENVIRONMENT_PREPARE)

    assert tracker.current is Phase.ENVIRONMENT_PREPARE


@pytest.mark.parametrize(
    "sequence",
    [
        [Phase.FILE_SYNC],
        [Phase.MANIFEST_LOAD, Phase.APPLICATION_INIT],
        [Phase.MANIFEST_LOAD, Phase.FILE_SYNC, Phase.UPDATE_WRAPPER_CREATION],
        [Phase.MANIFEST_LOAD, Phase.MANIFEST_LOAD],
    ],
)
def test_illegal_transitions_raise(sequence: list[Phase]) -> None:
    tracker = PhaseTracker()
    *allowed, illegal = sequence
    for phase in allowed:
        tracker.enter(phase)

    with pytest.raises(PhaseTransitionError):
        tracker.enter(illegal)

    # The current phase is never rolled back or advanced by a rejected move
    assert tracker.current is (allowed[-1] if allowed else Phase.START)


def test_phase_labels() -> None:
    assert Phase.UPDATE_WRAPPER_CREATION.label == "Update Wrapper Creation"
    assert Phase.ENVIRONMENT_PREPARE.label == "Environment Prepare"
