"""Request parsing and response payloads for the HTTP adapter.

The HTTP layer itself lives elsewhere; these helpers fix the JSON shapes it
returns (camelCase keys, ISO timestamps) and map engine errors to status codes.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from marketplace.domain.exceptions import (
    InvalidTransitionError,
    MarketplaceError,
    SystemFailureError,
    ValidationFailedError,
)
from marketplace.domain.models import Company, Offer, Project
from marketplace.domain.states import allowed_transitions
from marketplace.matching.models import MatchedCompany, MatchOutcome
from marketplace.offers.models import AcceptanceResult, OfferSubmission, OfferUpdate
from marketplace.persistence.exceptions import PersistenceError
from marketplace.projects.models import ProjectUpdate
from marketplace.utils.timestamps import format_timestamp

logger = logging.getLogger(__name__)


def _amount(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def company_payload(company: Company) -> Dict[str, Any]:
    return {
        "id": company.id,
        "ownerUserId": company.owner_user_id,
        "name": company.name,
        "countryId": company.country_id,
        "cityId": company.city_id,
        "verificationStatus": company.verification_status.value,
        "isActive": company.is_active,
        "rating": company.rating,
        "reviewCount": company.review_count,
        "projectsCompletedCount": company.projects_completed_count,
        "services": [
            {"name": service.name, "description": service.description, "tags": list(service.tags)}
            for service in company.services
        ],
    }


def offer_payload(offer: Offer) -> Dict[str, Any]:
    return {
        "id": offer.id,
        "requestId": offer.request_id,
        "companyId": offer.company_id,
        "price": _amount(offer.price),
        "currency": offer.currency,
        "description": offer.description,
        "message": offer.message,
        "estimatedDays": offer.estimated_days,
        "attachments": list(offer.attachments),
        "status": offer.status.value,
        "createdAt": format_timestamp(offer.created_at),
        "updatedAt": format_timestamp(offer.updated_at),
        "expiresAt": format_timestamp(offer.expires_at),
    }


def project_payload(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "requestId": project.request_id,
        "ownerId": project.owner_id,
        "companyId": project.company_id,
        "title": project.title,
        "budget": _amount(project.budget),
        "currency": project.currency,
        "status": project.status.value,
        "progress": project.progress,
        "allowedTransitions": sorted(status.value for status in allowed_transitions(project.status)),
        "createdAt": format_timestamp(project.created_at),
        "updatedAt": format_timestamp(project.updated_at),
    }


def match_payload(match: MatchedCompany) -> Dict[str, Any]:
    payload = company_payload(match.company)
    payload.update(
        {
            "matchScore": match.match_score,
            "matchReasons": list(match.match_reasons),
            "averageRating": match.average_rating,
        }
    )
    return payload


def match_response(outcome: MatchOutcome) -> Dict[str, Any]:
    """Body of ``POST /requests/{id}/match``.

    Example:
        >>> match_response(outcome)
        {'matches': [{'id': 'c1', ..., 'matchScore': 85, ...}], 'totalMatches': 1}
    """
    return {
        "matches": [match_payload(match) for match in outcome.matches],
        "totalMatches": outcome.total_matches,
    }


def offer_response(offer: Offer) -> Dict[str, Any]:
    """Body of ``POST /requests/{id}/offers`` (201) and single-offer reads."""
    return {"offer": offer_payload(offer)}


def offers_response(offers: List[Offer]) -> Dict[str, Any]:
    return {"offers": [offer_payload(offer) for offer in offers]}


def acceptance_response(result: AcceptanceResult) -> Dict[str, Any]:
    """Body of ``PUT /offers/{id}`` with status ACCEPTED."""
    return {
        "offer": offer_payload(result.offer),
        "project": project_payload(result.project),
        "rejectedCount": result.rejected_count,
    }


def project_response(project: Project) -> Dict[str, Any]:
    """Body of ``PUT /projects/{id}``."""
    return {"project": project_payload(project)}


def error_response(exc: Exception) -> Tuple[int, Dict[str, Any]]:
    """Map an exception to an HTTP status code and error body.

    Engine errors carry their own code and status. Persistence failures and
    anything unexpected become a 500 without leaking internals.

    Args:
        exc: Exception raised by an engine operation

    Returns:
        Tuple of (status_code, body)
    """
    if isinstance(exc, PersistenceError):
        logger.error(f"Persistence failure surfaced to client: {exc}", exc_info=exc)
        exc = SystemFailureError()
    elif not isinstance(exc, MarketplaceError):
        logger.error(f"Unexpected error surfaced to client: {exc}", exc_info=exc)
        exc = SystemFailureError()

    body: Dict[str, Any] = {"error": exc.message, "code": exc.code}

    if isinstance(exc, ValidationFailedError) and exc.errors:
        body["errors"] = list(exc.errors)
    if isinstance(exc, InvalidTransitionError):
        body["currentStatus"] = exc.current
        body["targetStatus"] = exc.target

    return exc.status_code, body


def parse_offer_submission(body: Optional[Dict[str, Any]]) -> OfferSubmission:
    """Validate a JSON offer body (camelCase keys accepted).

    Raises:
        ValidationFailedError: If the body is not an object or fails validation
    """
    return _parse(OfferSubmission, body)


def parse_offer_update(body: Optional[Dict[str, Any]]) -> OfferUpdate:
    return _parse(OfferUpdate, body)


def parse_project_update(body: Optional[Dict[str, Any]]) -> ProjectUpdate:
    """Validate a JSON project change body ({"status": ..., "progress": ...})."""
    return _parse(ProjectUpdate, body)


def _parse(model_cls, body):
    if not isinstance(body, dict):
        raise ValidationFailedError(errors=["body: must be a JSON object"])
    try:
        return model_cls.model_validate(body)
    except ValidationError as e:
        raise ValidationFailedError.from_pydantic(e) from e
