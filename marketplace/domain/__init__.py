"""Domain models, transition tables and errors of the marketplace engine."""

from .models import (
    ActingUser,
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
    UserRole,
    VerificationStatus,
)

__all__ = [
    "ActingUser",
    "Company",
    "CompanyService",
    "Notification",
    "NotificationType",
    "Offer",
    "OfferStatus",
    "Project",
    "ProjectStatus",
    "RequestStatus",
    "ServiceRequest",
    "UserRole",
    "VerificationStatus",
]
