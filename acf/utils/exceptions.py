"""
Exception handling utilities.

Defines the placement error hierarchy and categorized exception tuples.
"""

from sqlalchemy.exc import OperationalError


class PlacementError(Exception):
    """Base class for placement and aggregation failures."""

    error_code = "PLACEMENT_ERROR"

    def __init__(self, message: str | None = None, **context: object) -> None:
        """
        Initialize placement error.

        Args:
            message: Human readable description
            **context: Extra fields attached for logging
        """
        super().__init__(message or self.__class__.__name__)
        self.context = context


class NoOpenParent(PlacementError):
    """No candidate in the requested scope is Open."""

    error_code = "NO_OPEN_PARENT"


class InvalidInvitor(PlacementError):
    """Invitor (or aggregation root) is unknown or unreachable."""

    error_code = "INVALID_INVITOR"


class InvalidRegistration(PlacementError):
    """Unknown registration mode or scope."""

    error_code = "INVALID_REGISTRATION"


class RootAlreadyExists(PlacementError):
    """The network already has its single system root."""

    error_code = "ROOT_ALREADY_EXISTS"


class DepthLimitExceeded(PlacementError):
    """A placement would create a node below the depth ceiling."""

    error_code = "DEPTH_LIMIT_EXCEEDED"


class CapacityConflict(PlacementError):
    """Chosen parent filled up between snapshot and commit. Internal only."""

    error_code = "CAPACITY_CONFLICT"


class AllocationTimeout(PlacementError):
    """Traversal budget or conflict retry ceiling exhausted."""

    error_code = "ALLOCATION_TIMEOUT"


# Exception categories based on handling strategy

# Retried inside the engine, never surfaced
RETRYABLE = (
    CapacityConflict,
)

# Must log but can continue - non-critical failures
MUST_LOG = (
    OperationalError,  # Database errors
)

# Surfaced to the registration caller as a failed result
USER_VISIBLE = (
    InvalidRegistration,
    NoOpenParent,
    InvalidInvitor,
    DepthLimitExceeded,
    AllocationTimeout,
)


def must_log(exc: Exception) -> bool:
    """
    Check if exception must be logged.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be logged
    """
    return isinstance(exc, MUST_LOG)


def is_user_visible(exc: Exception) -> bool:
    """
    Check if exception may be reported to the registrant.

    Args:
        exc: Exception to check

    Returns:
        True if exception maps to a registration failure
    """
    return isinstance(exc, USER_VISIBLE)
