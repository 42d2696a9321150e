"""
Decides whether a bootstrap failure is fatal and builds the report shown for it.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from launchsync.core.phases import Phase

log = logging.getLogger(__name__)

DEFAULT_ERROR_TITLE = "Error"
DEFAULT_ERROR_HEADER = "Unable to connect to application server."
DEFAULT_ERROR_BODY = "Check your network connection and try again."


@dataclass(frozen=True)
class ErrorReport:
    """A single user-visible failure message."""

    title: str
    header: str
    body: str
    phase: Phase
    detail: str


@dataclass(frozen=True)
class ErrorMessages:
    """Configured overrides for the text of an error report."""

    title: str | None = None
    header: str | None = None
    body: str | None = None


def build_report(
    phase: Phase, error: BaseException, messages: ErrorMessages | None = None
) -> ErrorReport:
    """Builds the report for `error`, falling back to the default texts."""
    messages = messages or ErrorMessages()
    return ErrorReport(
        title=messages.title or DEFAULT_ERROR_TITLE,
        header=messages.header or DEFAULT_ERROR_HEADER,
        body=messages.body or DEFAULT_ERROR_BODY,
        phase=phase,
        detail=f"{phase.label}: {str(error) or type(error).__name__}",
    )


class GateAction(Enum):
    PROCEED = "proceed"
    ABORT = "abort"


@dataclass(frozen=True)
class GateDecision:
    """
    The verdict on a failure.

    `report` is set whenever the failure has to be shown to the user, which
    can also be the case for a failure the run proceeds past.
    """

    action: GateAction
    report: ErrorReport | None = None

    @property
    def is_fatal(self) -> bool:
        return self.action is GateAction.ABORT


class ErrorPolicyGate:
    """
    Applies the error policy to failures of the bootstrap phases.

    - Manifest Load: proceeds silently when a cached manifest exists,
      otherwise fatal.
    - Update Wrapper Creation and File Sync: always reported; proceeds with
      the files on disk only when update errors are ignored.
    - Every other phase is fatal.
    """

    def __init__(
        self, ignore_update_errors: bool = False, messages: ErrorMessages | None = None
    ):
        self.ignore_update_errors = ignore_update_errors
        self.messages = messages or ErrorMessages()

    def evaluate(
        self, phase: Phase, error: BaseException, has_cached_manifest: bool
    ) -> GateDecision:
        report = build_report(phase, error, self.messages)

        if phase is Phase.MANIFEST_LOAD:
            if has_cached_manifest:
                log.warning(
                    f"[yellow]Could not load the remote manifest, starting the "
                    f"installed version:[/yellow] {error}"
                )
                return GateDecision(GateAction.PROCEED)
            return GateDecision(GateAction.ABORT, report)

        if phase in (Phase.UPDATE_WRAPPER_CREATION, Phase.FILE_SYNC):
            if self.ignore_update_errors:
                log.warning(
                    f"[yellow]Update failed during {phase.label}; starting with "
                    f"the files on disk:[/yellow] {error}"
                )
                return GateDecision(GateAction.PROCEED, report)
            return GateDecision(GateAction.ABORT, report)

        return GateDecision(GateAction.ABORT, report)
