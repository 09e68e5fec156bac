"""Error taxonomy for the service layer. Routes translate these into HTTP responses."""
from typing import Optional


class TicketServiceError(Exception):
    """Base error for business operations."""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundError(TicketServiceError):
    """The requested entity id does not resolve."""
    status_code = 404


class UnauthenticatedError(TicketServiceError):
    """No valid principal."""
    status_code = 401


class ForbiddenError(TicketServiceError):
    """
    Principal resolved but lacks permission.
    Kept distinct from NotFoundError so callers can tell the two apart.
    """
    status_code = 403


class InvalidInputError(TicketServiceError):
    """Malformed payload, e.g. an unparsable chemical configuration."""
    status_code = 400


class AuditWriteFailure(Exception):
    """
    Raised inside the audit recorder when an entry cannot be persisted.
    Never leaves the recorder.
    """
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)
