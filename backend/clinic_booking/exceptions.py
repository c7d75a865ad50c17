"""
Error taxonomy for the availability and booking core.

Every error carries the HTTP status it maps to at the API boundary and a
client-safe ``detail`` message. Context (professional, date, operation) is
kept separately for logs.
"""


class BookingCoreError(Exception):
    """Base class for all core errors."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None, **context):
        self.detail = detail or self.default_detail
        self.context = context
        super().__init__(self.detail)

    def __str__(self) -> str:
        if not self.context:
            return self.detail
        ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.detail} ({ctx})"


class ValidationError(BookingCoreError):
    """Malformed or missing input. Never retried."""

    status_code = 400
    default_detail = "Missing or invalid data"


class NotFoundError(BookingCoreError):
    status_code = 404
    default_detail = "Not found"


class OrganizationNotFound(NotFoundError):
    default_detail = "Organization not found"


class ProfessionalNotFound(NotFoundError):
    default_detail = "Professional not found"


class ServiceNotFound(NotFoundError):
    default_detail = "Service not found"


class ClientNotFound(NotFoundError):
    default_detail = "Client not found or does not belong to the organization"


class BookingNotFound(NotFoundError):
    default_detail = "Booking not found"


class ConflictError(BookingCoreError):
    """The slot is no longer free at commit time."""

    status_code = 409
    default_detail = "slot no longer available"


class UpstreamSyncError(BookingCoreError):
    """External calendar failure. Logged, never propagated to the caller."""

    status_code = 502
    default_detail = "Calendar sync failed"


class InternalError(BookingCoreError):
    status_code = 500
    default_detail = "Internal server error"


class InvalidDuration(InternalError):
    """Service record has a non-positive or unparsable duration."""

    default_detail = "Invalid service duration"


__all__ = [
    "BookingCoreError",
    "ValidationError",
    "NotFoundError",
    "OrganizationNotFound",
    "ProfessionalNotFound",
    "ServiceNotFound",
    "ClientNotFound",
    "BookingNotFound",
    "ConflictError",
    "UpstreamSyncError",
    "InternalError",
    "InvalidDuration",
]
