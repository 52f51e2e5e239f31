"""Pydantic models for HTTP API responses."""

from typing import Optional

from pydantic import BaseModel, Field

from ota_agent.models.status import OutcomeEnum, StageEnum, StatusEvent


class ProgressData(BaseModel):
    """Current pipeline status nested in responses."""

    stage: StageEnum = Field(..., description="Current pipeline stage")
    message: str = Field(..., description="Latest human-readable status line")
    outcome: Optional[OutcomeEnum] = Field(
        None, description="Outcome of the last finished run"
    )
    error: Optional[str] = Field(
        None, description="Error kind and detail if the last run failed"
    )
    running: bool = Field(False, description="A run is in progress")


class ProgressResponse(BaseModel):
    """GET /api/v1.0/progress response.

    Returns current status with application-level status code.
    """

    code: int = Field(..., description="Application-level status code (200/500)")
    msg: str = Field(..., description="Status message or error description")
    data: ProgressData = Field(..., description="Progress data")


class EventsResponse(BaseModel):
    """GET /api/v1.0/events response."""

    code: int = Field(200, description="Application-level status code")
    msg: str = Field("success", description="Status message")
    data: list[StatusEvent] = Field(
        default_factory=list, description="Ordered events of the current or last run"
    )


class RunResponse(BaseModel):
    """POST /api/v1.0/run response.

    HTTP status code is always 200, real status in 'code' field.
    """

    code: int = Field(..., description="Application-level status code (200/409)")
    msg: str = Field(..., description="Result message")
    stage: Optional[StageEnum] = Field(
        None, description="Current stage (when a run is already active)"
    )
