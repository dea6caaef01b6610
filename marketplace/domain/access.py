"""Capability checks run at the top of every operation.

Each check either returns quietly or raises ForbiddenError, so services never
branch on roles inline.
"""

from typing import Optional

from .exceptions import ForbiddenError
from .models import ActingUser, Company, Project, ServiceRequest


def require_owner_or_admin(
    request: ServiceRequest, actor: ActingUser, message: Optional[str] = None
) -> None:
    """Only the request owner or an administrator may continue."""
    if actor.is_admin or request.owner_id == actor.user_id:
        return
    raise ForbiddenError(message or "Only the request owner can perform this action.")


def require_company_owner_or_admin(
    company: Company, actor: ActingUser, message: Optional[str] = None
) -> None:
    """Only the user owning the company or an administrator may continue."""
    if actor.is_admin or company.owner_user_id == actor.user_id:
        return
    raise ForbiddenError(message or "Only the company owner can perform this action.")


def require_project_participant(
    project: Project, company: Optional[Company], actor: ActingUser
) -> None:
    """Project requester, the company's owning user, or an administrator."""
    if actor.is_admin or project.owner_id == actor.user_id:
        return
    if company is not None and company.owner_user_id == actor.user_id:
        return
    raise ForbiddenError("You do not have access to this project.")


def project_counterparty(
    project: Project, company: Optional[Company], actor: ActingUser
) -> Optional[str]:
    """User id of the party that did not initiate a project change.

    The requester acting notifies the company's owner; anyone else (company
    owner or an administrator) notifies the requester.
    """
    if actor.user_id == project.owner_id:
        return company.owner_user_id if company is not None else None
    return project.owner_id
