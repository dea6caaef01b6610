"""Unit of work: one session, one transaction, one set of repositories.

Every public engine operation runs inside exactly one unit of work. The
transaction commits when the block exits normally and rolls back on any
exception. Callbacks registered with ``after_commit`` run only once the commit
has succeeded and the session is closed, which is where notification dispatch
happens so that it never shares the atomic boundary.
"""

from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from marketplace.logging import get_logger

from .database import get_session_factory
from .exceptions import DataIntegrityError, PersistenceError
from .repositories import (
    CategoryRepository,
    CompanyRepository,
    NotificationRepository,
    OfferRepository,
    ProjectRepository,
    ServiceRequestRepository,
)

logger = get_logger(__name__, component="unit_of_work")


class UnitOfWork:
    """Context manager bundling a session with the engine's repositories.

    Example:
        >>> with UnitOfWork() as uow:
        ...     offer = uow.offers.get(offer_id)
        ...     uow.after_commit(dispatcher.dispatch, notification)
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory
        self._hooks: List[Tuple[Callable[..., Any], tuple, dict]] = []
        self.session: Optional[Session] = None

    def __enter__(self) -> "UnitOfWork":
        factory = self._session_factory or get_session_factory()
        self.session = factory()
        self._hooks = []

        self.categories = CategoryRepository(self.session)
        self.requests = ServiceRequestRepository(self.session)
        self.companies = CompanyRepository(self.session)
        self.offers = OfferRepository(self.session)
        self.projects = ProjectRepository(self.session)
        self.notifications = NotificationRepository(self.session)
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        committed = False
        try:
            if exc_type is None:
                self._commit()
                committed = True
            else:
                self.session.rollback()
                logger.debug(
                    f"Unit of work rolled back: {exc_type.__name__}",
                    extra={"event": "uow.rolled_back", "error_type": exc_type.__name__},
                )
        finally:
            self.session.close()

        if committed:
            self._run_hooks()
        else:
            self._hooks = []

        return False

    def after_commit(self, callback: Callable[..., Any], *args, **kwargs) -> None:
        """Register a callback to run after a successful commit."""
        self._hooks.append((callback, args, kwargs))

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Integrity error on commit: {e}", extra={"event": "uow.commit.failed"})
            raise DataIntegrityError(f"Commit failed due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(
                f"Commit failed: {e}", exc_info=True, extra={"event": "uow.commit.failed"}
            )
            raise PersistenceError(f"Failed to commit transaction: {e}") from e

    def _run_hooks(self) -> None:
        hooks, self._hooks = self._hooks, []
        for callback, args, kwargs in hooks:
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"After-commit callback failed: {e}",
                    exc_info=True,
                    extra={"event": "uow.after_commit.failed", "error_type": type(e).__name__},
                )
