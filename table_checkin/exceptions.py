"""
Check-in Error Taxonomy

Resolution errors (permission, position, zone, matching, QR, manual lookup)
are recoverable: the customer can retry or switch to another method.
Orchestration errors abort the current attempt; recovery is a full restart
from customer creation.

Each error carries a machine-readable ``code`` and human ``guidance``.

Version: 1.0.0
"""

from typing import Optional


class CheckinError(Exception):
    """Base for all check-in errors."""

    code = "checkin_error"
    guidance = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, guidance: Optional[str] = None):
        self.message = message or self.guidance
        if guidance is not None:
            self.guidance = guidance
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "guidance": self.guidance,
        }


# =============================================================================
# RESOLUTION ERRORS
# =============================================================================

class ResolutionError(CheckinError):
    """Failure while turning a signal into a table. Always recoverable."""

    code = "resolution_error"


class PermissionDenied(ResolutionError):
    code = "permission_denied"
    guidance = "Location permission denied. Enable location access or scan the table QR code."


class PositionUnavailable(ResolutionError):
    code = "position_unavailable"
    guidance = "Location unavailable. Check your device settings or scan the table QR code."


class LocationTimeout(ResolutionError):
    code = "timeout"
    guidance = "Location request timed out. Please try again or scan the table QR code."


class OutOfZone(ResolutionError):
    """Coordinate is outside every service zone. Not retryable."""

    code = "out_of_zone"
    guidance = "You are outside the cafe zone. Please come closer to check in."


class NoNearbyTable(ResolutionError):
    code = "no_nearby_table"
    guidance = "No tables found nearby. Please scan the QR code or move closer to your table."


class Ambiguous(ResolutionError):
    """A single table was required but the outcome still needs a human choice."""

    code = "ambiguous"
    guidance = "Several tables match. Select yours from the list or scan the QR code."


class InvalidPayload(ResolutionError):
    code = "invalid_payload"
    guidance = "Invalid QR code. Please scan the table QR code or try another method."

    def __init__(self, payload: str, message: Optional[str] = None):
        self.payload = payload
        super().__init__(message or "QR payload is neither a table URL nor a table JSON object")


class VerificationFailed(ResolutionError):
    code = "verification_failed"
    guidance = "This QR code is not valid for this restaurant. Ask staff for help or enter your table number."


class TableNotFound(ResolutionError):
    code = "not_found"
    guidance = "Table not found. Check the number on your table and try again."

    def __init__(self, entry: str, message: Optional[str] = None):
        self.entry = entry
        super().__init__(message or f"No table matches '{entry}'")


# =============================================================================
# TRANSPORT
# =============================================================================

class NetworkError(CheckinError):
    """
    Backend call failed.

    Attributes:
        status_code: HTTP status, or None when the request never completed
        operation: Backend operation name
    """

    code = "network_error"
    guidance = "Connection problem. Please check your network and try again."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        self.status_code = status_code
        self.operation = operation
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """Transport failures and 5xx responses may succeed on retry."""
        return self.status_code is None or self.status_code >= 500

    @property
    def is_rejection(self) -> bool:
        """The backend understood the request and refused it (4xx)."""
        return self.status_code is not None and 400 <= self.status_code < 500

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["operation"] = self.operation
        return data


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================

class OrchestrationError(CheckinError):
    """Critical stage failed. The attempt is over; restart from the beginning."""

    code = "orchestration_error"
    guidance = "We couldn't start your session. Tap retry to start over."

    def __init__(self, stage: str, message: Optional[str] = None):
        self.stage = stage
        super().__init__(message)


class CustomerCreateFailed(OrchestrationError):
    code = "customer_create_failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__("creating_customer", message or "Failed to create customer")


class SessionCreateFailed(OrchestrationError):
    code = "session_create_failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__("creating_session", message or "Failed to create table session")


# =============================================================================
# INPUT / GUARDS
# =============================================================================

class InvalidDisplayName(CheckinError):
    code = "invalid_name"
    guidance = "Please enter your name (at least 2 characters)."


class FlowInProgress(CheckinError):
    code = "flow_in_progress"
    guidance = "Check-in is already in progress."
