"""Offer lifecycle: submission, acceptance, rejection, withdrawal and expiry.

Accepting an offer is the one operation where concurrency matters: the
PENDING to ACCEPTED write is a conditional update, and the datastore's
one-accepted-offer-per-request index and one-project-per-request key back it
up. Whichever accept loses sees ``OfferAlreadyAcceptedError``.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import ValidationError

from marketplace.config.duration import humanize
from marketplace.config.models import OffersConfig
from marketplace.domain.access import (
    require_company_owner_or_admin,
    require_owner_or_admin,
)
from marketplace.domain.exceptions import (
    CompanyInactiveError,
    CompanyNotFoundError,
    CompanyNotVerifiedError,
    ForbiddenError,
    OfferAlreadyAcceptedError,
    OfferAlreadyExistsError,
    OfferExpiredError,
    OfferNotFoundError,
    OfferNotPendingError,
    RequestNotFoundError,
    RequestNotOpenError,
    ValidationFailedError,
)
from marketplace.domain.models import (
    ActingUser,
    Company,
    Offer,
    OfferStatus,
    Project,
    ProjectStatus,
    RequestStatus,
)
from marketplace.domain.states import ensure_transition, is_open_for_offers
from marketplace.logging import get_logger
from marketplace.logging.context import log_context
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.notifications.models import MessageKind
from marketplace.persistence.exceptions import DataIntegrityError
from marketplace.persistence.unit_of_work import UnitOfWork
from marketplace.utils.timestamps import utc_now

from .models import AcceptanceResult, OfferSubmission, OfferUpdate

logger = get_logger(__name__, component="offers")


class OfferService:
    """Governs offers from submission to a terminal status.

    Every public method runs in one unit of work; notifications are queued
    to run after the commit and can never undo it.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        config: Optional[OffersConfig] = None,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize OfferService.

        Args:
            dispatcher: Notification dispatcher used after commits
            config: Offer settings such as the validity period (defaults if None)
            uow_factory: Callable returning a fresh UnitOfWork
            clock: Source of the current UTC time
            logger_instance: Optional logger instance (defaults to module logger)
        """
        self.dispatcher = dispatcher
        self.config = config or OffersConfig()
        self.uow_factory = uow_factory
        self.clock = clock
        self.logger = logger_instance or logger

    def create_offer(
        self,
        request_id: str,
        company_id: str,
        submission: Union[OfferSubmission, Dict[str, Any]],
        actor: ActingUser,
    ) -> Offer:
        """Submit a new PENDING offer on behalf of a company.

        Preconditions are checked in order and the first failure wins:
        company exists, actor may act for it, company active, request exists
        and is active, request open, no live offer from this company yet,
        verification when the request requires it.

        Args:
            request_id: Request the offer is for
            company_id: Submitting company
            submission: Offer terms, as a model or a JSON-like dict
            actor: Authenticated caller

        Returns:
            The stored offer

        Raises:
            ValidationFailedError: If the submission is malformed
            CompanyNotFoundError, ForbiddenError, CompanyInactiveError,
            RequestNotFoundError, RequestNotOpenError, OfferAlreadyExistsError,
            CompanyNotVerifiedError: On the first failed precondition
            PersistenceError: If database error occurs
        """
        terms = _coerce(OfferSubmission, submission)

        with log_context(request_id=request_id, company_id=company_id, actor_id=actor.user_id):
            try:
                with self.uow_factory() as uow:
                    company = uow.companies.get(company_id)
                    if company is None:
                        raise CompanyNotFoundError()
                    require_company_owner_or_admin(
                        company, actor, "Only the company owner can submit offers."
                    )
                    if not company.is_active:
                        raise CompanyInactiveError()

                    request = uow.requests.get(request_id)
                    if request is None or not request.is_active:
                        raise RequestNotFoundError()
                    if not is_open_for_offers(request.status):
                        raise RequestNotOpenError()

                    if uow.offers.find_live(request_id, company_id) is not None:
                        raise OfferAlreadyExistsError()

                    if request.require_verification and not company.is_verified:
                        raise CompanyNotVerifiedError()

                    now = self.clock()
                    offer = uow.offers.add(
                        Offer(
                            id=uuid4().hex,
                            request_id=request_id,
                            company_id=company_id,
                            price=terms.price,
                            currency=terms.currency,
                            description=terms.description,
                            message=terms.message,
                            estimated_days=terms.estimated_days,
                            attachments=terms.attachments,
                            status=OfferStatus.PENDING,
                            created_at=now,
                            updated_at=now,
                            expires_at=now + self.config.validity,
                        )
                    )

                    # Only the first live offer moves the request; withdrawn ones don't count
                    if uow.offers.count_live(request_id) == 1:
                        target = ensure_transition(request.status, RequestStatus.REVIEWING_OFFERS)
                        uow.requests.update_status(request_id, target, now)

                    uow.after_commit(
                        self.dispatcher.notify,
                        MessageKind.OFFER_RECEIVED,
                        request.owner_id,
                        {
                            "company_name": company.name,
                            "request_title": request.title,
                            "price": offer.price,
                            "currency": offer.currency,
                        },
                        {"offer_id": offer.id, "request_id": request_id},
                    )
            except DataIntegrityError as e:
                # Lost a race against a concurrent submission from the same company
                raise OfferAlreadyExistsError() from e

            self.logger.info(
                f"Offer {offer.id} submitted by company {company_id}, "
                f"valid for {humanize(self.config.validity)}",
                extra={"event": "offer.created", "offer_id": offer.id},
            )
            return offer

    def accept_offer(self, offer_id: str, actor: ActingUser) -> AcceptanceResult:
        """Accept a PENDING offer and start a project from it.

        In one unit of work the offer becomes ACCEPTED, every other PENDING
        offer on the request becomes REJECTED, the request becomes ACCEPTED
        and a PENDING project is created. The winning company's owner is
        notified after the commit.

        Args:
            offer_id: Offer to accept
            actor: Authenticated caller (request owner or administrator)

        Returns:
            AcceptanceResult with the accepted offer, new project and the
            number of auto-rejected offers

        Raises:
            OfferNotFoundError: If the offer does not exist
            ForbiddenError: If the actor is neither request owner nor administrator
            OfferAlreadyAcceptedError: If another offer on the request won
            OfferNotPendingError: If the offer was otherwise processed already
            RequestNotOpenError: If the request no longer takes offers
            OfferExpiredError: If the offer's expires_at has passed
            PersistenceError: If database error occurs
        """
        with log_context(offer_id=offer_id, actor_id=actor.user_id):
            try:
                with self.uow_factory() as uow:
                    offer = uow.offers.get(offer_id)
                    if offer is None:
                        raise OfferNotFoundError()
                    request = uow.requests.get(offer.request_id)
                    if request is None:
                        raise RequestNotFoundError()
                    require_owner_or_admin(
                        request, actor, "Only the request owner can accept or reject offers."
                    )

                    if offer.status != OfferStatus.PENDING:
                        if uow.offers.has_accepted(request.id):
                            raise OfferAlreadyAcceptedError()
                        raise OfferNotPendingError(
                            f"This offer has already been {offer.status.value.lower()}."
                        )
                    if not is_open_for_offers(request.status):
                        raise RequestNotOpenError()

                    now = self.clock()
                    if offer.is_expired(now):
                        raise OfferExpiredError()

                    ensure_transition(offer.status, OfferStatus.ACCEPTED)
                    if not uow.offers.transition_if_pending(offer.id, OfferStatus.ACCEPTED, now):
                        raise OfferAlreadyAcceptedError()

                    rejected_count = uow.offers.reject_pending_for_request(
                        request.id, offer.id, now
                    )
                    uow.requests.update_status(
                        request.id, ensure_transition(request.status, RequestStatus.ACCEPTED), now
                    )

                    project = uow.projects.add(
                        Project(
                            id=uuid4().hex,
                            request_id=request.id,
                            owner_id=request.owner_id,
                            company_id=offer.company_id,
                            title=request.title,
                            budget=offer.price,
                            currency=offer.currency,
                            status=ProjectStatus.PENDING,
                            progress=0,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    accepted = uow.offers.get(offer.id)

                    company = uow.companies.get(offer.company_id)
                    uow.after_commit(
                        self.dispatcher.notify,
                        MessageKind.OFFER_ACCEPTED,
                        company.owner_user_id if company is not None else None,
                        {"request_title": request.title},
                        {"project_id": project.id, "offer_id": offer.id},
                    )
            except DataIntegrityError as e:
                # Accepted-offer index or project key: a concurrent accept committed first
                raise OfferAlreadyAcceptedError() from e

            self.logger.info(
                f"Offer {offer_id} accepted, project {project.id} created, "
                f"{rejected_count} competing offers rejected",
                extra={
                    "event": "offer.accepted",
                    "project_id": project.id,
                    "rejected_count": rejected_count,
                },
            )
            return AcceptanceResult(offer=accepted, project=project, rejected_count=rejected_count)

    def reject_offer(self, offer_id: str, actor: ActingUser) -> Offer:
        """Reject a PENDING offer; the request owner or an administrator only.

        Raises:
            OfferNotFoundError, ForbiddenError, OfferNotPendingError
        """
        with log_context(offer_id=offer_id, actor_id=actor.user_id):
            with self.uow_factory() as uow:
                offer = uow.offers.get(offer_id)
                if offer is None:
                    raise OfferNotFoundError()
                request = uow.requests.get(offer.request_id)
                if request is None:
                    raise RequestNotFoundError()
                require_owner_or_admin(
                    request, actor, "Only the request owner can accept or reject offers."
                )

                rejected = self._finish(uow, offer, OfferStatus.REJECTED)

                company = uow.companies.get(offer.company_id)
                uow.after_commit(
                    self.dispatcher.notify,
                    MessageKind.OFFER_REJECTED,
                    company.owner_user_id if company is not None else None,
                    {"request_title": request.title},
                    {"offer_id": offer.id, "request_id": request.id},
                )

            self.logger.info(
                f"Offer {offer_id} rejected", extra={"event": "offer.rejected"}
            )
            return rejected

    def withdraw_offer(self, offer_id: str, actor: ActingUser) -> Offer:
        """Withdraw a PENDING offer; the submitting company's owner or an administrator only.

        A withdrawn offer no longer blocks the company from submitting again.

        Raises:
            OfferNotFoundError, ForbiddenError, OfferNotPendingError
        """
        with log_context(offer_id=offer_id, actor_id=actor.user_id):
            with self.uow_factory() as uow:
                offer = uow.offers.get(offer_id)
                if offer is None:
                    raise OfferNotFoundError()
                company = self._company_for(uow, offer)
                require_company_owner_or_admin(
                    company, actor, "You do not have permission to withdraw this offer."
                )

                if offer.status != OfferStatus.PENDING:
                    raise OfferNotPendingError("This offer cannot be withdrawn.")
                withdrawn = self._finish(uow, offer, OfferStatus.WITHDRAWN)

                request = uow.requests.get(offer.request_id)
                if request is not None:
                    uow.after_commit(
                        self.dispatcher.notify,
                        MessageKind.OFFER_WITHDRAWN,
                        request.owner_id,
                        {"company_name": company.name, "request_title": request.title},
                        {"offer_id": offer.id, "request_id": request.id},
                    )

            self.logger.info(
                f"Offer {offer_id} withdrawn", extra={"event": "offer.withdrawn"}
            )
            return withdrawn

    def update_offer(
        self, offer_id: str, actor: ActingUser, changes: Union[OfferUpdate, Dict[str, Any]]
    ) -> Offer:
        """Change price, description or estimated days of a PENDING offer.

        Raises:
            ValidationFailedError: If the changes are malformed
            OfferNotFoundError, ForbiddenError, OfferNotPendingError
        """
        update = _coerce(OfferUpdate, changes)

        with log_context(offer_id=offer_id, actor_id=actor.user_id):
            with self.uow_factory() as uow:
                offer = uow.offers.get(offer_id)
                if offer is None:
                    raise OfferNotFoundError()
                company = self._company_for(uow, offer)
                require_company_owner_or_admin(
                    company, actor, "You do not have permission to update this offer."
                )
                if offer.status != OfferStatus.PENDING:
                    raise OfferNotPendingError("This offer cannot be modified.")

                updated = uow.offers.update_terms(
                    offer.id,
                    self.clock(),
                    price=update.price,
                    description=update.description,
                    estimated_days=update.estimated_days,
                )
                if updated is None:
                    raise OfferNotPendingError("This offer cannot be modified.")

            self.logger.info(f"Offer {offer_id} updated", extra={"event": "offer.updated"})
            return updated

    def get_offer(self, offer_id: str, actor: ActingUser) -> Offer:
        """Read one offer; visible to the request owner, the company owner and administrators."""
        with self.uow_factory() as uow:
            offer = uow.offers.get(offer_id)
            if offer is None:
                raise OfferNotFoundError()
            if actor.is_admin:
                return offer

            request = uow.requests.get(offer.request_id)
            if request is not None and request.owner_id == actor.user_id:
                return offer
            company = uow.companies.get(offer.company_id)
            if company is not None and company.owner_user_id == actor.user_id:
                return offer

        raise ForbiddenError("You do not have permission to view this offer.")

    def list_offers(self, request_id: str, actor: ActingUser) -> List[Offer]:
        """All offers on a request, newest first; request owner or administrator only."""
        with self.uow_factory() as uow:
            request = uow.requests.get(request_id)
            if request is None:
                raise RequestNotFoundError()
            require_owner_or_admin(
                request, actor, "You do not have permission to view these offers."
            )
            return uow.offers.list_for_request(request_id)

    def expire_overdue_offers(self) -> int:
        """Mark PENDING offers past their expires_at as EXPIRED.

        Runs on demand only; acceptance checks expiry on its own regardless.

        Returns:
            Number of offers expired
        """
        with self.uow_factory() as uow:
            expired = uow.offers.expire_overdue(self.clock())

        self.logger.info(
            f"Expired {expired} overdue offers",
            extra={"event": "offers.expired", "expired_count": expired},
        )
        return expired

    def _finish(self, uow: UnitOfWork, offer: Offer, target: OfferStatus) -> Offer:
        """Move a PENDING offer to a terminal status or raise OfferNotPendingError."""
        if offer.status != OfferStatus.PENDING:
            raise OfferNotPendingError(
                f"This offer has already been {offer.status.value.lower()}."
            )
        ensure_transition(offer.status, target)
        if not uow.offers.transition_if_pending(offer.id, target, self.clock()):
            raise OfferNotPendingError("This offer has already been processed by another action.")
        return uow.offers.get(offer.id)

    @staticmethod
    def _company_for(uow: UnitOfWork, offer: Offer) -> Company:
        company = uow.companies.get(offer.company_id)
        if company is None:
            raise CompanyNotFoundError("Company not found.")
        return company


def _coerce(model_cls, value):
    """Validate a dict into ``model_cls``; models pass through unchanged."""
    if isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value or {})
    except ValidationError as e:
        raise ValidationFailedError.from_pydantic(e) from e
