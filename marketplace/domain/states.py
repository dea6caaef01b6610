"""Transition tables for requests, offers and projects.

Each table is closed: a (current, target) pair that is not listed is illegal.
Every status write in the engine goes through ``ensure_transition`` so the
rules live in exactly one place.
"""

from typing import Dict, FrozenSet, Mapping, Union

from .exceptions import InvalidTransitionError
from .models import OfferStatus, ProjectStatus, RequestStatus

StatusEnum = Union[RequestStatus, OfferStatus, ProjectStatus]

PROJECT_TRANSITIONS: Mapping[ProjectStatus, FrozenSet[ProjectStatus]] = {
    ProjectStatus.PENDING: frozenset({ProjectStatus.ACTIVE, ProjectStatus.CANCELLED}),
    ProjectStatus.ACTIVE: frozenset(
        {ProjectStatus.ON_HOLD, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED}
    ),
    ProjectStatus.ON_HOLD: frozenset({ProjectStatus.ACTIVE, ProjectStatus.CANCELLED}),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.CANCELLED: frozenset(),
}

OFFER_TRANSITIONS: Mapping[OfferStatus, FrozenSet[OfferStatus]] = {
    OfferStatus.PENDING: frozenset(
        {
            OfferStatus.ACCEPTED,
            OfferStatus.REJECTED,
            OfferStatus.WITHDRAWN,
            OfferStatus.EXPIRED,
        }
    ),
    OfferStatus.ACCEPTED: frozenset(),
    OfferStatus.REJECTED: frozenset(),
    OfferStatus.WITHDRAWN: frozenset(),
    OfferStatus.EXPIRED: frozenset(),
}

# MATCHING and REVIEWING_OFFERS loop onto themselves: re-running the matcher or
# re-submitting the only live offer is harmless.
REQUEST_TRANSITIONS: Mapping[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.DRAFT: frozenset(
        {RequestStatus.PENDING, RequestStatus.ACTIVE, RequestStatus.CANCELLED}
    ),
    RequestStatus.PENDING: frozenset(
        {
            RequestStatus.ACTIVE,
            RequestStatus.MATCHING,
            RequestStatus.REVIEWING_OFFERS,
            RequestStatus.ACCEPTED,
            RequestStatus.CANCELLED,
            RequestStatus.EXPIRED,
        }
    ),
    RequestStatus.ACTIVE: frozenset(
        {
            RequestStatus.MATCHING,
            RequestStatus.REVIEWING_OFFERS,
            RequestStatus.ACCEPTED,
            RequestStatus.CANCELLED,
            RequestStatus.EXPIRED,
        }
    ),
    RequestStatus.MATCHING: frozenset(
        {
            RequestStatus.MATCHING,
            RequestStatus.REVIEWING_OFFERS,
            RequestStatus.ACCEPTED,
            RequestStatus.CANCELLED,
            RequestStatus.EXPIRED,
        }
    ),
    RequestStatus.REVIEWING_OFFERS: frozenset(
        {
            RequestStatus.REVIEWING_OFFERS,
            RequestStatus.ACCEPTED,
            RequestStatus.CANCELLED,
            RequestStatus.EXPIRED,
        }
    ),
    RequestStatus.ACCEPTED: frozenset(
        {RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED, RequestStatus.CANCELLED}
    ),
    RequestStatus.IN_PROGRESS: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
    RequestStatus.EXPIRED: frozenset(),
}

OPEN_REQUEST_STATUSES: FrozenSet[RequestStatus] = frozenset(
    {
        RequestStatus.PENDING,
        RequestStatus.ACTIVE,
        RequestStatus.MATCHING,
        RequestStatus.REVIEWING_OFFERS,
    }
)

TERMINAL_PROJECT_STATUSES: FrozenSet[ProjectStatus] = frozenset(
    status for status, targets in PROJECT_TRANSITIONS.items() if not targets
)

_TABLES: Dict[type, Mapping] = {
    RequestStatus: REQUEST_TRANSITIONS,
    OfferStatus: OFFER_TRANSITIONS,
    ProjectStatus: PROJECT_TRANSITIONS,
}

_ENTITY_NAMES = {
    RequestStatus: "request",
    OfferStatus: "offer",
    ProjectStatus: "project",
}


def allowed_transitions(current: StatusEnum) -> FrozenSet[StatusEnum]:
    """Return the statuses reachable from ``current`` in one step."""
    return _TABLES[type(current)][current]


def can_transition(current: StatusEnum, target: StatusEnum) -> bool:
    """Check a transition without raising."""
    if type(current) is not type(target):
        return False
    return target in allowed_transitions(current)


def ensure_transition(current: StatusEnum, target: StatusEnum) -> StatusEnum:
    """Validate a transition against its entity's table.

    Returns:
        ``target``, so callers can write ``status = ensure_transition(a, b)``

    Raises:
        InvalidTransitionError: If the pair is not in the table
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(
            current, target, entity=_ENTITY_NAMES.get(type(current), "status")
        )
    return target


def is_open_for_offers(status: RequestStatus) -> bool:
    return status in OPEN_REQUEST_STATUSES


def is_terminal(status: StatusEnum) -> bool:
    return not allowed_transitions(status)
