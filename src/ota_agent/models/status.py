"""Status enums and models for the OTA agent pipeline."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StageEnum(str, Enum):
    """Pipeline stages.

    State transitions (single forward path, no cycles):
    idle → locating → gate_checking → staging → verifying → installing → finished
              ↓             ↓            ↓           ↓            ↓
           finished ←──────────────────────────────────────────────
    """

    IDLE = "idle"
    LOCATING = "locating"
    GATE_CHECKING = "gate_checking"
    STAGING = "staging"
    VERIFYING = "verifying"
    INSTALLING = "installing"
    FINISHED = "finished"


class OutcomeEnum(str, Enum):
    """Terminal value of a single pipeline run."""

    NO_CANDIDATE_FOUND = "no_candidate_found"
    ALREADY_UPGRADED = "already_upgraded"
    STAGING_FAILED = "staging_failed"
    VERIFICATION_FAILED = "verification_failed"
    INSTALL_FAILED = "install_failed"
    INSTALL_INVOKED = "install_invoked"

    @property
    def exit_code(self) -> int:
        """Process exit code reported by the CLI for this outcome."""
        return _EXIT_CODES[self]

    @property
    def is_failure(self) -> bool:
        return self in (
            OutcomeEnum.STAGING_FAILED,
            OutcomeEnum.VERIFICATION_FAILED,
            OutcomeEnum.INSTALL_FAILED,
        )


_EXIT_CODES = {
    OutcomeEnum.INSTALL_INVOKED: 0,
    OutcomeEnum.ALREADY_UPGRADED: 0,
    OutcomeEnum.NO_CANDIDATE_FOUND: 3,
    OutcomeEnum.STAGING_FAILED: 4,
    OutcomeEnum.VERIFICATION_FAILED: 5,
    OutcomeEnum.INSTALL_FAILED: 6,
}


class ErrorKind(str, Enum):
    """Error kinds reported in the ``error`` field of status events."""

    SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
    NO_CANDIDATE = "NO_CANDIDATE"
    ALREADY_UPGRADED = "ALREADY_UPGRADED"
    STAGING_IO_ERROR = "STAGING_IO_ERROR"
    VERIFICATION_ERROR = "VERIFICATION_ERROR"
    INSTALL_INVOCATION_ERROR = "INSTALL_INVOCATION_ERROR"


class StatusEvent(BaseModel):
    """One entry of the ordered status stream published to sinks."""

    stage: StageEnum = Field(..., description="Stage the pipeline is in")
    message: str = Field(..., description="Human-readable status line")
    outcome: Optional[OutcomeEnum] = Field(
        None, description="Set on the terminal event of a run"
    )
    error: Optional[str] = Field(
        None, description="Error kind and detail if the run failed"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now, description="When the event was emitted"
    )

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not None
