"""Project lifecycle controller."""

from .models import ProjectUpdate
from .service import ProjectService

__all__ = ["ProjectService", "ProjectUpdate"]
