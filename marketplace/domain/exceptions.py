"""Error taxonomy of the engine.

Every error carries a stable ``code`` and the HTTP-equivalent ``status_code``
so an adapter can map it without inspecting the class hierarchy:

- NotFoundError (404): the addressed entity does not exist
- ForbiddenError (403): ownership or role check failed
- ValidationFailedError (400): malformed input, caller must correct it
- PreconditionFailedError (400/409): business rule violated, not blindly retryable
- SystemFailureError (500): datastore failure, see the operation for retry safety
"""

from typing import List, Optional


class MarketplaceError(Exception):
    """Base exception for all engine errors."""

    code = "marketplace.error"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(MarketplaceError):
    code = "notFound"
    status_code = 404
    default_message = "Resource not found."


class RequestNotFoundError(NotFoundError):
    code = "request.notFound"
    default_message = "Request not found."


class CompanyNotFoundError(NotFoundError):
    code = "company.notFound"
    default_message = "You must have a registered company to submit offers."


class OfferNotFoundError(NotFoundError):
    code = "offer.notFound"
    default_message = "Offer not found."


class ProjectNotFoundError(NotFoundError):
    code = "project.notFound"
    default_message = "Project not found."


class ForbiddenError(MarketplaceError):
    code = "forbidden"
    status_code = 403
    default_message = "You do not have permission to perform this action."


class ValidationFailedError(MarketplaceError):
    """Malformed input; ``errors`` lists one message per offending field."""

    code = "validation.failed"
    status_code = 400
    default_message = "Please check your input and try again."

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])

    @classmethod
    def from_pydantic(cls, error) -> "ValidationFailedError":
        """Build from a pydantic ValidationError, one "field: message" entry per error."""
        errors = []
        for item in error.errors():
            location = ".".join(str(part) for part in item.get("loc", ()))
            message = item.get("msg", "invalid value")
            errors.append(f"{location}: {message}" if location else message)
        return cls(errors=errors)


class PreconditionFailedError(MarketplaceError):
    code = "precondition.failed"
    status_code = 400
    default_message = "The operation is not allowed in the current state."


class CompanyInactiveError(PreconditionFailedError):
    code = "company.inactive"
    default_message = "Your company is not active."


class CompanyNotVerifiedError(PreconditionFailedError):
    code = "company.notVerified"
    default_message = "This request requires a verified company."


class RequestNotOpenError(PreconditionFailedError):
    code = "request.notOpen"
    default_message = "This request is not accepting offers."


class OfferAlreadyExistsError(PreconditionFailedError):
    code = "offer.exists"
    status_code = 409
    default_message = "You have already submitted an offer for this request."


class OfferNotPendingError(PreconditionFailedError):
    code = "offer.alreadyProcessed"
    default_message = "This offer has already been processed."


class OfferExpiredError(PreconditionFailedError):
    code = "offer.expired"
    default_message = "This offer has expired."


class OfferAlreadyAcceptedError(PreconditionFailedError):
    """Another offer on the same request won; expected under concurrent accepts."""

    code = "offer.alreadyAccepted"
    status_code = 409
    default_message = "Another offer has already been accepted for this request."


class ProjectClosedError(PreconditionFailedError):
    code = "project.closed"
    default_message = "This project is closed and can no longer be changed."


class InvalidTransitionError(PreconditionFailedError):
    """Status change not listed in the entity's transition table."""

    code = "status.invalidTransition"

    def __init__(self, current, target, entity: str = "status"):
        self.current = getattr(current, "value", current)
        self.target = getattr(target, "value", target)
        self.entity = entity
        super().__init__(f"Cannot transition from {self.current} to {self.target}")


class SystemFailureError(MarketplaceError):
    code = "server.error"
    status_code = 500
    default_message = "An unexpected error occurred. Please try again later."
