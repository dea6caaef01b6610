"""Persistence layer: schema, repositories, sessions and the unit of work."""

from .database import close_database, get_engine, get_session, get_session_factory, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    CategoryRepository,
    CompanyRepository,
    NotificationRepository,
    OfferRepository,
    ProjectRepository,
    ServiceRequestRepository,
)
from .unit_of_work import UnitOfWork

__all__ = [
    "init_database",
    "get_session",
    "get_session_factory",
    "get_engine",
    "close_database",
    "PersistenceError",
    "DatabaseConnectionError",
    "DataIntegrityError",
    "RecordNotFoundError",
    "CategoryRepository",
    "ServiceRequestRepository",
    "CompanyRepository",
    "OfferRepository",
    "ProjectRepository",
    "NotificationRepository",
    "UnitOfWork",
]
