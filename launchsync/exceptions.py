"""
Defines custom exceptions for the launcher to allow for more specific error handling.
"""

from enum import Enum


class LaunchSyncError(Exception):
    """Base exception for all launcher-specific errors."""


class ConfigurationError(LaunchSyncError):
    """Raised for issues related to configuration loading or validation."""


class FetchError(LaunchSyncError):
    """Raised when a manifest document is unreachable or malformed."""

    def __init__(self, message: str, uri: str | None = None):
        super().__init__(message)
        self.uri = uri


class SyncErrorKind(Enum):
    """Categories of file synchronization failures."""

    CHECKSUM_MISMATCH = "checksum_mismatch"
    IO = "io"
    NETWORK = "network"


class SyncError(LaunchSyncError):
    """
    Raised when the file synchronization step cannot complete.

    Attributes:
        kind: What went wrong.
        path: Relative manifest path of the affected file, if any.
        failures: Every failure of the run when several downloads failed.
    """

    def __init__(
        self,
        kind: SyncErrorKind,
        message: str,
        path: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.path = path
        self.failures: list["SyncError"] = [self]


class EnvironmentPrepareError(LaunchSyncError):
    """Raised when the synchronized file set cannot host the application."""


class ApplicationLaunchError(LaunchSyncError):
    """Raised when the entry point cannot be constructed or a lifecycle hook fails."""


class PhaseTransitionError(LaunchSyncError):
    """Raised when the bootstrap tries to enter a phase out of order."""


class CircuitBreakerError(LaunchSyncError):
    """Raised when the download host has failed too often and is cooling down."""
