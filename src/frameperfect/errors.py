"""
Error Taxonomy
==============

Exceptions shared across the curation pipeline.

Capability errors (raised by analysis/enhancement backends):
    - TransientCapabilityError: rate limited or overloaded, retried with backoff
    - MalformedResponseError: schema violation or unparseable payload, terminal
    - NoImageProducedError: enhancement returned no image, terminal
    - MissingCredentialsError: backend has no API key, terminal per call
    - RetryExhaustedError: transient failures outlasted the retry budget

User-input errors (raised before any side effect):
    - ProjectNameRequiredError, NoKeepersError, ScanInProgressError,
      FrameNotFoundError

I/O errors:
    - ExportError, PersistenceError

Design Rules:
    - Orchestrators catch CapabilityError and never re-raise it
    - CurationInputError surfaces to the caller as a blocking notice
"""

from enum import Enum


class TransientReason(str, Enum):
    """Why a capability call is worth retrying."""

    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"


# =============================================================================
# Capability Errors
# =============================================================================

class CapabilityError(Exception):
    """Base class for analysis/enhancement backend failures."""
    pass


class TransientCapabilityError(CapabilityError):
    """Raised when the backend signals rate limiting or overload."""

    def __init__(self, reason: TransientReason, message: str = "") -> None:
        self.reason = reason
        super().__init__(message or reason.value)


class MalformedResponseError(CapabilityError):
    """Raised when a backend response violates the expected contract."""
    pass


class NoImageProducedError(CapabilityError):
    """Raised when the enhancement backend returns no image part."""
    pass


class MissingCredentialsError(CapabilityError):
    """Raised when no API key is configured for a backend."""
    pass


class RetryExhaustedError(CapabilityError):
    """Raised when every retry attempt ended in a transient failure."""

    def __init__(self, attempts: int, last_error: TransientCapabilityError) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error}"
        )


# =============================================================================
# User-Input Errors
# =============================================================================

class CurationInputError(Exception):
    """Base class for user errors that abort an operation up front."""
    pass


class ProjectNameRequiredError(CurationInputError):
    """Raised when exporting without a project name."""

    def __init__(self) -> None:
        super().__init__("Please enter a project name.")


class NoKeepersError(CurationInputError):
    """Raised when an operation needs selected frames and there are none."""

    def __init__(self, operation: str = "this operation") -> None:
        super().__init__(f"No frames are selected for {operation}.")


class ScanInProgressError(CurationInputError):
    """Raised when a scan is requested while another is still running."""

    def __init__(self) -> None:
        super().__init__("A scan is already in progress.")


class FrameNotFoundError(CurationInputError):
    """Raised when a frame id is not present in the store."""

    def __init__(self, frame_id: str) -> None:
        self.frame_id = frame_id
        super().__init__(f"Frame not found: {frame_id}")


# =============================================================================
# I/O Errors
# =============================================================================

class ExportError(Exception):
    """Raised when the export bundle cannot be written."""
    pass


class PersistenceError(Exception):
    """Raised when the project cannot be loaded, saved or cleared."""
    pass
