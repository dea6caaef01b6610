"""Core domain models for requests, companies, offers, projects and notifications.

Services exchange these pydantic models; ORM models live in
``marketplace.persistence.schema`` and convert to and from them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from statistics import fmean
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from marketplace.utils.text import normalize_tags
from marketplace.utils.timestamps import ensure_utc


class RequestStatus(str, Enum):
    """Lifecycle of a customer's service request."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    MATCHING = "MATCHING"
    REVIEWING_OFFERS = "REVIEWING_OFFERS"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class OfferStatus(str, Enum):
    """Lifecycle of a company's bid; everything but PENDING is terminal."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    EXPIRED = "EXPIRED"


class ProjectStatus(str, Enum):
    """Lifecycle of an engagement created from an accepted offer."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class NotificationType(str, Enum):
    OFFER = "OFFER"
    PROJECT = "PROJECT"
    SYSTEM = "SYSTEM"


class UserRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    COMPANY = "COMPANY"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class ActingUser(BaseModel):
    """Identity of the caller, supplied by the authentication collaborator."""

    user_id: str = Field(..., min_length=1, description="Authenticated user id")
    role: UserRole = Field(UserRole.CUSTOMER, description="Role of the authenticated user")

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)


def _utc(v: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(v)


class CompanyService(BaseModel):
    """A service line offered by a company."""

    name: str = Field(..., description="Service name")
    description: Optional[str] = Field(None, description="Free-text service description")
    tags: List[str] = Field(default_factory=list, description="Service tags")

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


class Company(BaseModel):
    """Service provider as seen by the engine (read-only except counters)."""

    id: str
    owner_user_id: str
    name: str
    country_id: Optional[str] = None
    city_id: Optional[str] = None
    services: List[CompanyService] = Field(default_factory=list)
    verification_status: VerificationStatus = VerificationStatus.PENDING
    is_active: bool = True
    rating: float = Field(0.0, description="Denormalized display rating")
    review_count: int = 0
    review_ratings: List[float] = Field(
        default_factory=list, description="Ratings of all reviews, source of the average"
    )
    projects_completed_count: int = Field(0, ge=0)
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)

    @property
    def average_rating(self) -> float:
        """Arithmetic mean of review ratings, 0.0 without reviews."""
        if not self.review_ratings:
            return 0.0
        return fmean(self.review_ratings)

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED


class ServiceRequest(BaseModel):
    """A customer's posted need for a service."""

    id: str
    owner_id: str
    title: str = ""
    description: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = Field(None, description="Resolved from the category")
    country_id: Optional[str] = None
    city_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: RequestStatus = RequestStatus.PENDING
    is_active: bool = True
    require_verification: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)


class Offer(BaseModel):
    """A company's priced bid on a service request."""

    id: str
    request_id: str
    company_id: str
    price: Decimal = Field(..., ge=0)
    currency: str = "USD"
    description: Optional[str] = None
    message: Optional[str] = None
    estimated_days: Optional[int] = Field(None, ge=1)
    attachments: List[str] = Field(default_factory=list)
    status: OfferStatus = OfferStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "expires_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)

    @property
    def is_live(self) -> bool:
        """Live offers (anything but WITHDRAWN) count for uniqueness."""
        return self.status != OfferStatus.WITHDRAWN

    def is_expired(self, now: datetime) -> bool:
        """True once expires_at is not in the future."""
        if self.expires_at is None:
            return False
        return self.expires_at <= _utc(now)


class Project(BaseModel):
    """Engagement derived from exactly one (request, accepted offer) pair."""

    id: str
    request_id: str
    owner_id: str
    company_id: str
    title: str = ""
    budget: Optional[Decimal] = None
    currency: str = "USD"
    status: ProjectStatus = ProjectStatus.PENDING
    progress: int = Field(0, ge=0, le=100)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)


class Notification(BaseModel):
    """Side-effect record addressed to a user; delivery is handled elsewhere."""

    id: Optional[str] = None
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict, description="Referenced entity ids")
    is_read: bool = False
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)
