"""Data access layer (repositories) for persistence operations.

Repositories wrap one SQLAlchemy session each and return domain models rather
than ORM models. They flush but never commit: the unit of work owns the
transaction boundary.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.domain.models import (
    Company,
    Notification,
    Offer,
    OfferStatus,
    Project,
    ProjectStatus,
    RequestStatus,
    ServiceRequest,
    VerificationStatus,
)
from marketplace.utils.timestamps import to_storage

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    CategoryModel,
    CompanyModel,
    CompanyServiceModel,
    NotificationModel,
    OfferModel,
    ProjectModel,
    ReviewModel,
    ServiceRequestModel,
    ServiceTagModel,
)

logger = logging.getLogger(__name__)


def _constraint_name(error: IntegrityError) -> Optional[str]:
    """Best-effort name of the violated constraint, for logs and callers."""
    diag = getattr(error.orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name
    # SQLite only reports the columns: "UNIQUE constraint failed: offers.request_id"
    text = str(error.orig)
    if "failed:" in text:
        return text.split("failed:", 1)[1].strip()
    return None


def _like_pattern(value: str) -> str:
    escaped = value.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class CategoryRepository:
    """Repository for categories; only needed to seed and resolve names."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, category_id: str, name: str) -> None:
        try:
            self.session.add(CategoryModel(id=category_id, name=name))
            self.session.flush()
        except IntegrityError as e:
            logger.error(f"Integrity error adding category {category_id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add category due to constraint violation: {e}",
                constraint=_constraint_name(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding category {category_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add category: {e}") from e

    def get_name(self, category_id: str) -> Optional[str]:
        try:
            model = self.session.get(CategoryModel, category_id)
            return model.name if model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving category {category_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve category: {e}") from e


class ServiceRequestRepository:
    """Repository for service request operations."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def get(self, request_id: str) -> Optional[ServiceRequest]:
        """Retrieve a request together with its category name.

        Args:
            request_id: Request identifier

        Returns:
            ServiceRequest domain model if found, None otherwise

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(ServiceRequestModel, request_id)
            if model is None:
                return None
            return model.to_domain()

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving request {request_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve request: {e}") from e

    def add(self, request: ServiceRequest) -> ServiceRequest:
        """Insert a new request.

        Raises:
            DataIntegrityError: If the id already exists or the category is unknown
            PersistenceError: If database error occurs
        """
        try:
            model = ServiceRequestModel.from_domain(request)
            self.session.add(model)
            self.session.flush()
            self.session.refresh(model)
            return model.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error adding request {request.id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add request due to constraint violation: {e}",
                constraint=_constraint_name(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding request {request.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add request: {e}") from e

    def update_status(self, request_id: str, status: RequestStatus, timestamp: datetime) -> None:
        """Write a new request status.

        Transition legality is checked by the caller against the request table.

        Raises:
            RecordNotFoundError: If request_id doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                update(ServiceRequestModel)
                .where(ServiceRequestModel.id == request_id)
                .values(status=status.value, updated_at=to_storage(timestamp))
            )
            result = self.session.execute(stmt)
            self.session.flush()

            if result.rowcount == 0:
                raise RecordNotFoundError(f"Request with id {request_id} not found")

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating status of request {request_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update request status: {e}") from e


class CompanyRepository:
    """Repository for company reads and denormalized counters."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, company_id: str) -> Optional[Company]:
        """Retrieve a company with its services and review ratings.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(CompanyModel, company_id)
            if model is None:
                return None
            return model.to_domain()

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving company {company_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve company: {e}") from e

    def get_by_owner(self, owner_user_id: str) -> Optional[Company]:
        try:
            stmt = select(CompanyModel).where(CompanyModel.owner_user_id == owner_user_id)
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving company of user {owner_user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve company: {e}") from e

    def add(self, company: Company) -> Company:
        """Insert a company with its services and tags.

        Raises:
            DataIntegrityError: If the id or owning user is already taken
            PersistenceError: If database error occurs
        """
        try:
            model = CompanyModel.from_domain(company)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error adding company {company.id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add company due to constraint violation: {e}",
                constraint=_constraint_name(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding company {company.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add company: {e}") from e

    def add_review(self, company_id: str, rating: float, timestamp: datetime) -> Company:
        """Record a review rating and refresh the denormalized rating columns.

        Raises:
            RecordNotFoundError: If company_id doesn't exist
            DataIntegrityError: If the rating is outside 1..5
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(CompanyModel, company_id)
            if model is None:
                raise RecordNotFoundError(f"Company with id {company_id} not found")

            model.reviews.append(
                ReviewModel(id=uuid4().hex, rating=rating, created_at=to_storage(timestamp))
            )
            self.session.flush()

            ratings = [review.rating for review in model.reviews]
            model.review_count = len(ratings)
            model.rating = round(sum(ratings) / len(ratings), 2)
            self.session.flush()
            return model.to_domain()

        except RecordNotFoundError:
            raise
        except IntegrityError as e:
            logger.error(f"Integrity error adding review to {company_id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add review due to constraint violation: {e}",
                constraint=_constraint_name(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding review to company {company_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add review: {e}") from e

    def find_match_candidates(self, request: ServiceRequest, limit: int) -> List[Company]:
        """Coarse, recall-oriented candidate filter for matching.

        A company qualifies when it is verified and active and at least one of
        these holds: a service name or description contains the category name,
        same country, same city, or a service tag appears in the request tags.
        Conditions whose request side is missing are skipped. Candidates come
        back oldest company first so that the cap is first-come.

        Args:
            request: Request being matched
            limit: Maximum number of candidates to return

        Returns:
            List of Company domain models (empty if no condition can apply)

        Raises:
            PersistenceError: If database error occurs
        """
        conditions = []

        if request.category_name and request.category_name.strip():
            pattern = _like_pattern(request.category_name)
            conditions.append(
                CompanyModel.services.any(
                    or_(
                        CompanyServiceModel.name.ilike(pattern, escape="\\"),
                        CompanyServiceModel.description.ilike(pattern, escape="\\"),
                    )
                )
            )
        if request.country_id is not None:
            conditions.append(CompanyModel.country_id == request.country_id)
        if request.city_id is not None:
            conditions.append(CompanyModel.city_id == request.city_id)
        if request.tags:
            conditions.append(
                CompanyModel.services.any(
                    CompanyServiceModel.tags.any(ServiceTagModel.tag.in_(request.tags))
                )
            )

        if not conditions:
            return []

        try:
            stmt = (
                select(CompanyModel)
                .where(
                    CompanyModel.verification_status == VerificationStatus.VERIFIED.value,
                    CompanyModel.is_active.is_(True),
                    or_(*conditions),
                )
                .order_by(CompanyModel.created_at, CompanyModel.id)
                .limit(limit)
            )
            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]

        except SQLAlchemyError as e:
            logger.error(
                f"Error finding match candidates for request {request.id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to find match candidates: {e}") from e

    def increment_completed_projects(self, company_id: str) -> None:
        """Add one to the company's completed projects counter.

        Raises:
            RecordNotFoundError: If company_id doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                update(CompanyModel)
                .where(CompanyModel.id == company_id)
                .values(projects_completed_count=CompanyModel.projects_completed_count + 1)
                .execution_options(synchronize_session="fetch")
            )
            result = self.session.execute(stmt)
            self.session.flush()

            if result.rowcount == 0:
                raise RecordNotFoundError(f"Company with id {company_id} not found")

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error incrementing projects of company {company_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update company counters: {e}") from e


class OfferRepository:
    """Repository for offer operations.

    Status writes are conditional on the row still being PENDING, so a
    concurrent change is observed as zero affected rows instead of being
    overwritten.
    """

    def __init__(self, session: Session):
        self.session = session

    def get(self, offer_id: str) -> Optional[Offer]:
        try:
            model = self.session.get(OfferModel, offer_id)
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving offer {offer_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve offer: {e}") from e

    def add(self, offer: Offer) -> Offer:
        """Insert a new offer.

        Raises:
            DataIntegrityError: If the company already holds a live offer on the
                request (partial unique index) or a reference is dangling
            PersistenceError: If database error occurs
        """
        try:
            model = OfferModel.from_domain(offer)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error adding offer {offer.id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add offer due to constraint violation: {e}",
                constraint=_constraint_name(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding offer {offer.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add offer: {e}") from e

    def list_for_request(self, request_id: str) -> List[Offer]:
        """All offers on a request, newest first."""
        try:
            stmt = (
                select(OfferModel)
                .where(OfferModel.request_id == request_id)
                .order_by(OfferModel.created_at.desc(), OfferModel.id.desc())
            )
            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]

        except SQLAlchemyError as e:
            logger.error(f"Error listing offers of request {request_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list offers: {e}") from e

    def find_live(self, request_id: str, company_id: str) -> Optional[Offer]:
        """The company's non-withdrawn offer on the request, if any."""
        try:
            stmt = select(OfferModel).where(
                OfferModel.request_id == request_id,
                OfferModel.company_id == company_id,
                OfferModel.status != OfferStatus.WITHDRAWN.value,
            )
            model = self.session.execute(stmt).scalars().first()
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(
                f"Error finding live offer of {company_id} on {request_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to find offer: {e}") from e

    def count_live(self, request_id: str) -> int:
        """Number of non-withdrawn offers on the request."""
        try:
            stmt = select(func.count(OfferModel.id)).where(
                OfferModel.request_id == request_id,
                OfferModel.status != OfferStatus.WITHDRAWN.value,
            )
            return self.session.execute(stmt).scalar_one()

        except SQLAlchemyError as e:
            logger.error(f"Error counting offers of request {request_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count offers: {e}") from e

    def has_accepted(self, request_id: str) -> bool:
        try:
            stmt = select(func.count(OfferModel.id)).where(
                OfferModel.request_id == request_id,
                OfferModel.status == OfferStatus.ACCEPTED.value,
            )
            return self.session.execute(stmt).scalar_one() > 0

        except SQLAlchemyError as e:
            logger.error(f"Error checking accepted offer of {request_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to check offers: {e}") from e

    def transition_if_pending(
        self, offer_id: str, status: OfferStatus, timestamp: datetime
    ) -> bool:
        """Move an offer out of PENDING only if it is still PENDING.

        Args:
            offer_id: Offer identifier
            status: Target status
            timestamp: Value for updated_at

        Returns:
            True when the row was updated, False when it was no longer PENDING

        Raises:
            DataIntegrityError: If the write violates the one-accepted-offer index
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                update(OfferModel)
                .where(
                    OfferModel.id == offer_id,
                    OfferModel.status == OfferStatus.PENDING.value,
                )
                .values(status=status.value, updated_at=to_storage(timestamp))
                .execution_options(synchronize_session="fetch")
            )
            result = self.session.execute(stmt)
            self.session.flush()
            return result.rowcount == 1

        except IntegrityError as e:
            logger.error(f"Integrity error moving offer {offer_id} to {status.value}: {e}")
            raise DataIntegrityError(
                f"Failed to update offer due to constraint violation: {e}",
                constraint=_constraint_name(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error updating status of offer {offer_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update offer status: {e}") from e

    def reject_pending_for_request(
        self, request_id: str, exclude_offer_id: str, timestamp: datetime
    ) -> int:
        """Reject every other PENDING offer on the request.

        Returns:
            Number of offers rejected
        """
        try:
            stmt = (
                update(OfferModel)
                .where(
                    OfferModel.request_id == request_id,
                    OfferModel.id != exclude_offer_id,
                    OfferModel.status == OfferStatus.PENDING.value,
                )
                .values(status=OfferStatus.REJECTED.value, updated_at=to_storage(timestamp))
                .execution_options(synchronize_session="fetch")
            )
            result = self.session.execute(stmt)
            self.session.flush()
            return result.rowcount

        except SQLAlchemyError as e:
            logger.error(f"Error rejecting offers of request {request_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to reject competing offers: {e}") from e

    def update_terms(
        self,
        offer_id: str,
        timestamp: datetime,
        price: Optional[Decimal] = None,
        description: Optional[str] = None,
        estimated_days: Optional[int] = None,
    ) -> Optional[Offer]:
        """Change the editable terms of a PENDING offer.

        Returns:
            The updated offer, or None when the offer is no longer PENDING

        Raises:
            PersistenceError: If database error occurs
        """
        values = {"updated_at": to_storage(timestamp)}
        if price is not None:
            values["price"] = price
        if description is not None:
            values["description"] = description
        if estimated_days is not None:
            values["estimated_days"] = estimated_days

        try:
            stmt = (
                update(OfferModel)
                .where(
                    OfferModel.id == offer_id,
                    OfferModel.status == OfferStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            result = self.session.execute(stmt)
            self.session.flush()

            if result.rowcount == 0:
                return None
            return self.get(offer_id)

        except SQLAlchemyError as e:
            logger.error(f"Error updating terms of offer {offer_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update offer: {e}") from e

    def expire_overdue(self, now: datetime) -> int:
        """Mark PENDING offers whose expires_at has passed as EXPIRED.

        Stored timestamps are fixed-width, so string comparison orders them
        chronologically.

        Returns:
            Number of offers expired
        """
        cutoff = to_storage(now)
        try:
            stmt = (
                update(OfferModel)
                .where(
                    OfferModel.status == OfferStatus.PENDING.value,
                    OfferModel.expires_at.is_not(None),
                    OfferModel.expires_at <= cutoff,
                )
                .values(status=OfferStatus.EXPIRED.value, updated_at=cutoff)
                .execution_options(synchronize_session="fetch")
            )
            result = self.session.execute(stmt)
            self.session.flush()
            return result.rowcount

        except SQLAlchemyError as e:
            logger.error(f"Error expiring overdue offers: {e}", exc_info=True)
            raise PersistenceError(f"Failed to expire offers: {e}") from e


class ProjectRepository:
    """Repository for project operations."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, project_id: str) -> Optional[Project]:
        try:
            model = self.session.get(ProjectModel, project_id)
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving project {project_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve project: {e}") from e

    def get_by_request(self, request_id: str) -> Optional[Project]:
        try:
            stmt = select(ProjectModel).where(ProjectModel.request_id == request_id)
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving project of request {request_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve project: {e}") from e

    def add(self, project: Project) -> Project:
        """Insert a project.

        Raises:
            DataIntegrityError: If the request already has a project
            PersistenceError: If database error occurs
        """
        try:
            model = ProjectModel.from_domain(project)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error adding project {project.id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add project due to constraint violation: {e}",
                constraint=_constraint_name(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding project {project.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add project: {e}") from e

    def update_status(
        self, project_id: str, status: ProjectStatus, timestamp: datetime
    ) -> Project:
        """Write a new project status.

        Raises:
            RecordNotFoundError: If project_id doesn't exist
            PersistenceError: If database error occurs
        """
        return self._update(project_id, timestamp, status=status.value)

    def update_progress(self, project_id: str, progress: int, timestamp: datetime) -> Project:
        return self._update(project_id, timestamp, progress=progress)

    def _update(self, project_id: str, timestamp: datetime, **values) -> Project:
        try:
            model = self.session.get(ProjectModel, project_id)
            if model is None:
                raise RecordNotFoundError(f"Project with id {project_id} not found")

            for key, value in values.items():
                setattr(model, key, value)
            model.updated_at = to_storage(timestamp)
            self.session.flush()
            return model.to_domain()

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating project {project_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update project: {e}") from e


class NotificationRepository:
    """Repository for notification records."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, notification: Notification) -> Notification:
        """Insert a notification, assigning an id when it has none.

        Raises:
            PersistenceError: If database error occurs
        """
        if notification.id is None:
            notification = notification.model_copy(update={"id": uuid4().hex})

        try:
            model = NotificationModel.from_domain(notification)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except SQLAlchemyError as e:
            logger.error(
                f"Error adding notification for user {notification.user_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to add notification: {e}") from e

    def list_for_user(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        """Notifications addressed to a user, newest first."""
        try:
            stmt = select(NotificationModel).where(NotificationModel.user_id == user_id)
            if unread_only:
                stmt = stmt.where(NotificationModel.is_read.is_(False))
            stmt = stmt.order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())

            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]

        except SQLAlchemyError as e:
            logger.error(f"Error listing notifications of user {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list notifications: {e}") from e
