"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers can catch
datastore failures with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database initialization or connection fails.

    Examples:
    - Invalid database URL
    - Database file not accessible
    - Database used before init_database() was called
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when a write targets a record that does not exist.

    Lookups return None instead of raising this.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a database constraint is violated.

    The engine relies on constraints for its race-sensitive invariants: the
    live-offer partial unique index, the one-accepted-offer-per-request index
    and the one-project-per-request unique key all surface as this error.
    """

    def __init__(self, message: str, constraint: str = None):
        super().__init__(message)
        self.constraint = constraint
