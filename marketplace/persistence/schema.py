"""Database schema definition and ORM models.

Defines the SQLAlchemy ORM models and their conversion to and from domain
models. Timestamps are stored as fixed-width ISO 8601 strings (see
``marketplace.utils.timestamps.to_storage``) and statuses as their enum values.
"""

import logging
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    inspect,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from marketplace.domain.models import (
    Company,
    CompanyService,
    Notification,
    NotificationType,
    Offer,
    OfferStatus,
    Project,
    ProjectStatus,
    RequestStatus,
    ServiceRequest,
    VerificationStatus,
)
from marketplace.utils.timestamps import from_storage, to_storage

logger = logging.getLogger(__name__)

Base = declarative_base()

_LIVE_OFFER = "status != 'WITHDRAWN'"
_ACCEPTED_OFFER = "status = 'ACCEPTED'"


class CategoryModel(Base):
    """ORM model for the categories table (only the name matters to matching)."""

    __tablename__ = "categories"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)


class ServiceRequestModel(Base):
    """ORM model for the service_requests table."""

    __tablename__ = "service_requests"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)
    category_id = Column(String(64), ForeignKey("categories.id"), nullable=True)
    country_id = Column(String(64), nullable=True)
    city_id = Column(String(64), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    status = Column(String(32), nullable=False, default=RequestStatus.PENDING.value)
    is_active = Column(Boolean, nullable=False, default=True)
    require_verification = Column(Boolean, nullable=False, default=False)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    category = relationship(CategoryModel, lazy="joined")

    __table_args__ = (
        Index("idx_requests_owner", "owner_id"),
        Index("idx_requests_status", "status"),
    )

    def to_domain(self) -> ServiceRequest:
        return ServiceRequest(
            id=self.id,
            owner_id=self.owner_id,
            title=self.title or "",
            description=self.description,
            category_id=self.category_id,
            category_name=self.category.name if self.category is not None else None,
            country_id=self.country_id,
            city_id=self.city_id,
            tags=list(self.tags or []),
            status=RequestStatus(self.status),
            is_active=self.is_active,
            require_verification=self.require_verification,
            created_at=from_storage(self.created_at),
            updated_at=from_storage(self.updated_at),
        )

    @classmethod
    def from_domain(cls, request: ServiceRequest) -> "ServiceRequestModel":
        return cls(
            id=request.id,
            owner_id=request.owner_id,
            title=request.title,
            description=request.description,
            category_id=request.category_id,
            country_id=request.country_id,
            city_id=request.city_id,
            tags=list(request.tags),
            status=request.status.value,
            is_active=request.is_active,
            require_verification=request.require_verification,
            created_at=to_storage(request.created_at),
            updated_at=to_storage(request.updated_at or request.created_at),
        )


class ServiceTagModel(Base):
    """One tag of a company service; a table so the matcher can filter in SQL."""

    __tablename__ = "company_service_tags"

    service_id = Column(
        String(64), ForeignKey("company_services.id", ondelete="CASCADE"), primary_key=True
    )
    tag = Column(String(100), primary_key=True)

    __table_args__ = (Index("idx_service_tags_tag", "tag"),)


class CompanyServiceModel(Base):
    """ORM model for the company_services table."""

    __tablename__ = "company_services"

    id = Column(String(64), primary_key=True)
    company_id = Column(
        String(64), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    tags = relationship(
        ServiceTagModel, lazy="selectin", cascade="all, delete-orphan", order_by=ServiceTagModel.tag
    )

    def to_domain(self) -> CompanyService:
        return CompanyService(
            name=self.name,
            description=self.description,
            tags=[tag.tag for tag in self.tags],
        )


class ReviewModel(Base):
    """ORM model for the reviews table; only the rating is read by the engine."""

    __tablename__ = "reviews"

    id = Column(String(64), primary_key=True)
    company_id = Column(
        String(64), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    rating = Column(Float, nullable=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        Index("idx_reviews_company", "company_id"),
    )


class CompanyModel(Base):
    """ORM model for the companies table."""

    __tablename__ = "companies"

    id = Column(String(64), primary_key=True)
    owner_user_id = Column(String(64), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    country_id = Column(String(64), nullable=True)
    city_id = Column(String(64), nullable=True)
    verification_status = Column(
        String(32), nullable=False, default=VerificationStatus.PENDING.value
    )
    is_active = Column(Boolean, nullable=False, default=True)
    rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)
    projects_completed_count = Column(Integer, nullable=False, default=0)
    created_at = Column(String(50), nullable=False)

    services = relationship(
        CompanyServiceModel,
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=CompanyServiceModel.position,
    )
    reviews = relationship(ReviewModel, lazy="selectin", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_companies_verification", "verification_status", "is_active"),
        Index("idx_companies_location", "country_id", "city_id"),
    )

    def to_domain(self) -> Company:
        return Company(
            id=self.id,
            owner_user_id=self.owner_user_id,
            name=self.name,
            country_id=self.country_id,
            city_id=self.city_id,
            services=[service.to_domain() for service in self.services],
            verification_status=VerificationStatus(self.verification_status),
            is_active=self.is_active,
            rating=self.rating or 0.0,
            review_count=self.review_count or 0,
            review_ratings=[review.rating for review in self.reviews],
            projects_completed_count=self.projects_completed_count or 0,
            created_at=from_storage(self.created_at),
        )

    @classmethod
    def from_domain(cls, company: Company) -> "CompanyModel":
        model = cls(
            id=company.id,
            owner_user_id=company.owner_user_id,
            name=company.name,
            country_id=company.country_id,
            city_id=company.city_id,
            verification_status=company.verification_status.value,
            is_active=company.is_active,
            rating=company.rating,
            review_count=company.review_count,
            projects_completed_count=company.projects_completed_count,
            created_at=to_storage(company.created_at),
        )
        for position, service in enumerate(company.services):
            model.services.append(
                CompanyServiceModel(
                    id=f"{company.id}-svc-{position}",
                    position=position,
                    name=service.name,
                    description=service.description,
                    tags=[ServiceTagModel(tag=tag) for tag in service.tags],
                )
            )
        return model


class OfferModel(Base):
    """ORM model for the offers table.

    Two partial unique indexes carry the offer invariants at datastore level:
    one live (non-withdrawn) offer per company and request, and one accepted
    offer per request.
    """

    __tablename__ = "offers"

    id = Column(String(64), primary_key=True)
    request_id = Column(String(64), ForeignKey("service_requests.id"), nullable=False)
    company_id = Column(String(64), ForeignKey("companies.id"), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    description = Column(Text, nullable=True)
    message = Column(Text, nullable=True)
    estimated_days = Column(Integer, nullable=True)
    attachments = Column(JSON, nullable=False, default=list)
    status = Column(String(32), nullable=False, default=OfferStatus.PENDING.value)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)
    expires_at = Column(String(50), nullable=True)

    __table_args__ = (
        Index(
            "uq_offers_live_per_company",
            "request_id",
            "company_id",
            unique=True,
            sqlite_where=text(_LIVE_OFFER),
            postgresql_where=text(_LIVE_OFFER),
        ),
        Index(
            "uq_offers_accepted_per_request",
            "request_id",
            unique=True,
            sqlite_where=text(_ACCEPTED_OFFER),
            postgresql_where=text(_ACCEPTED_OFFER),
        ),
        Index("idx_offers_request_status", "request_id", "status"),
        Index("idx_offers_expires_at", "status", "expires_at"),
    )

    def to_domain(self) -> Offer:
        return Offer(
            id=self.id,
            request_id=self.request_id,
            company_id=self.company_id,
            price=Decimal(self.price),
            currency=self.currency,
            description=self.description,
            message=self.message,
            estimated_days=self.estimated_days,
            attachments=list(self.attachments or []),
            status=OfferStatus(self.status),
            created_at=from_storage(self.created_at),
            updated_at=from_storage(self.updated_at),
            expires_at=from_storage(self.expires_at),
        )

    @classmethod
    def from_domain(cls, offer: Offer) -> "OfferModel":
        return cls(
            id=offer.id,
            request_id=offer.request_id,
            company_id=offer.company_id,
            price=offer.price,
            currency=offer.currency,
            description=offer.description,
            message=offer.message,
            estimated_days=offer.estimated_days,
            attachments=list(offer.attachments),
            status=offer.status.value,
            created_at=to_storage(offer.created_at),
            updated_at=to_storage(offer.updated_at or offer.created_at),
            expires_at=to_storage(offer.expires_at),
        )


class ProjectModel(Base):
    """ORM model for the projects table; one project per request, ever."""

    __tablename__ = "projects"

    id = Column(String(64), primary_key=True)
    request_id = Column(
        String(64), ForeignKey("service_requests.id"), nullable=False, unique=True
    )
    owner_id = Column(String(64), nullable=False)
    company_id = Column(String(64), ForeignKey("companies.id"), nullable=False)
    title = Column(String(255), nullable=False, default="")
    budget = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(32), nullable=False, default=ProjectStatus.PENDING.value)
    progress = Column(Integer, nullable=False, default=0)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_projects_progress_range"),
        Index("idx_projects_company_status", "company_id", "status"),
        Index("idx_projects_owner", "owner_id"),
    )

    def to_domain(self) -> Project:
        return Project(
            id=self.id,
            request_id=self.request_id,
            owner_id=self.owner_id,
            company_id=self.company_id,
            title=self.title or "",
            budget=Decimal(self.budget) if self.budget is not None else None,
            currency=self.currency,
            status=ProjectStatus(self.status),
            progress=self.progress,
            created_at=from_storage(self.created_at),
            updated_at=from_storage(self.updated_at),
        )

    @classmethod
    def from_domain(cls, project: Project) -> "ProjectModel":
        return cls(
            id=project.id,
            request_id=project.request_id,
            owner_id=project.owner_id,
            company_id=project.company_id,
            title=project.title,
            budget=project.budget,
            currency=project.currency,
            status=project.status.value,
            progress=project.progress,
            created_at=to_storage(project.created_at),
            updated_at=to_storage(project.updated_at or project.created_at),
        )


class NotificationModel(Base):
    """ORM model for the notifications table."""

    __tablename__ = "notifications"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False)
    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_notifications_user", "user_id", "is_read"),)

    def to_domain(self) -> Notification:
        return Notification(
            id=self.id,
            user_id=self.user_id,
            type=NotificationType(self.type),
            title=self.title,
            message=self.message,
            data=dict(self.data or {}),
            is_read=self.is_read,
            created_at=from_storage(self.created_at),
        )

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationModel":
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            data=dict(notification.data),
            is_read=notification.is_read,
            created_at=to_storage(notification.created_at),
        )


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
