"""Input models of the project lifecycle."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from marketplace.domain.models import ProjectStatus


class ProjectUpdate(BaseModel):
    """Body of a project change: a new status, a new progress value, or both."""

    model_config = ConfigDict(extra="ignore")

    status: Optional[ProjectStatus] = None
    progress: Optional[int] = Field(None, ge=0, le=100)

    @model_validator(mode="after")
    def validate_not_empty(self):
        if self.status is None and self.progress is None:
            raise ValueError("status or progress is required")
        return self
