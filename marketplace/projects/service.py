"""Project lifecycle: status transitions mirrored onto the originating request."""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from marketplace.domain.access import project_counterparty, require_project_participant
from marketplace.domain.exceptions import (
    ProjectClosedError,
    ProjectNotFoundError,
    ValidationFailedError,
)
from marketplace.domain.models import ActingUser, Project, ProjectStatus, RequestStatus
from marketplace.domain.states import can_transition, ensure_transition, is_terminal
from marketplace.logging import get_logger
from marketplace.logging.context import log_context
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.notifications.models import MessageKind
from marketplace.persistence.unit_of_work import UnitOfWork
from marketplace.utils.timestamps import utc_now

logger = get_logger(__name__, component="projects")

# Terminal project statuses copied onto the originating request
_REQUEST_MIRROR = {
    ProjectStatus.COMPLETED: RequestStatus.COMPLETED,
    ProjectStatus.CANCELLED: RequestStatus.CANCELLED,
}


class ProjectService:
    """Moves projects through their state machine.

    Access is symmetric: the requester, the owning user of the project's
    company and administrators may all read and change a project.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.dispatcher = dispatcher
        self.uow_factory = uow_factory
        self.clock = clock
        self.logger = logger_instance or logger

    def transition(
        self, project_id: str, actor: ActingUser, new_status: ProjectStatus
    ) -> Project:
        """Change a project's status.

        Effects, all in one unit of work:
        - COMPLETED: request becomes COMPLETED, company's completed counter +1
        - CANCELLED: request becomes CANCELLED
        - ACTIVE while the request is ACCEPTED: request becomes IN_PROGRESS
        - the party that did not act gets a PROJECT notification after commit

        Args:
            project_id: Project to change
            actor: Authenticated caller
            new_status: Target status

        Returns:
            The updated project

        Raises:
            ProjectNotFoundError: If the project does not exist
            ForbiddenError: If the actor is not a participant or administrator
            InvalidTransitionError: If the project table does not list the change
            PersistenceError: If database error occurs
        """
        try:
            new_status = ProjectStatus(new_status)
        except ValueError as e:
            raise ValidationFailedError(errors=[f"status: unknown status {new_status!r}"]) from e

        with log_context(project_id=project_id, actor_id=actor.user_id):
            with self.uow_factory() as uow:
                project = uow.projects.get(project_id)
                if project is None:
                    raise ProjectNotFoundError()
                company = uow.companies.get(project.company_id)
                require_project_participant(project, company, actor)

                previous = project.status
                ensure_transition(previous, new_status)

                now = self.clock()
                updated = uow.projects.update_status(project.id, new_status, now)

                request = uow.requests.get(project.request_id)
                if request is not None:
                    mirrored = _REQUEST_MIRROR.get(new_status)
                    if mirrored is None and new_status == ProjectStatus.ACTIVE:
                        if request.status == RequestStatus.ACCEPTED:
                            mirrored = RequestStatus.IN_PROGRESS
                    if mirrored is not None and request.status != mirrored:
                        uow.requests.update_status(
                            request.id, ensure_transition(request.status, mirrored), now
                        )

                if new_status == ProjectStatus.COMPLETED:
                    uow.companies.increment_completed_projects(project.company_id)

                uow.after_commit(
                    self.dispatcher.notify,
                    MessageKind.PROJECT_STATUS,
                    project_counterparty(project, company, actor),
                    {"project_title": project.title, "status": new_status.value},
                    {"project_id": project.id},
                )

            self.logger.info(
                f"Project {project_id} moved from {previous.value} to {new_status.value}",
                extra={
                    "event": "project.transitioned",
                    "from_status": previous.value,
                    "to_status": new_status.value,
                },
            )
            return updated

    def update_progress(self, project_id: str, actor: ActingUser, progress: int) -> Project:
        """Set the completion percentage of an open project.

        Raises:
            ValidationFailedError: If progress is not an integer in 0..100
            ProjectNotFoundError, ForbiddenError
            ProjectClosedError: If the project is COMPLETED or CANCELLED
        """
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise ValidationFailedError(errors=["progress: must be an integer between 0 and 100"])

        with log_context(project_id=project_id, actor_id=actor.user_id):
            with self.uow_factory() as uow:
                project = uow.projects.get(project_id)
                if project is None:
                    raise ProjectNotFoundError()
                company = uow.companies.get(project.company_id)
                require_project_participant(project, company, actor)

                if is_terminal(project.status):
                    raise ProjectClosedError()

                updated = uow.projects.update_progress(project.id, progress, self.clock())

            self.logger.info(
                f"Project {project_id} progress set to {progress}",
                extra={"event": "project.progress_updated", "progress": progress},
            )
            return updated

    def get_project(self, project_id: str, actor: ActingUser) -> Project:
        """Read one project; participants and administrators only."""
        with self.uow_factory() as uow:
            project = uow.projects.get(project_id)
            if project is None:
                raise ProjectNotFoundError()
            company = uow.companies.get(project.company_id)
            require_project_participant(project, company, actor)
            return project

    @staticmethod
    def allowed_targets(project: Project) -> List[ProjectStatus]:
        """Statuses the project may move to next, in declaration order."""
        return [status for status in ProjectStatus if can_transition(project.status, status)]
