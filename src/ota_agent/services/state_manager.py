"""In-memory status stream shared by the pipeline and the HTTP API."""

import logging
from typing import Optional

from ota_agent.api.models import ProgressData
from ota_agent.models.status import OutcomeEnum, StageEnum, StatusEvent


class StateManager:
    """Singleton status sink for pipeline runs.

    Manages:
    - Ordered event stream of the current (or last) run, for GET /events
    - Current stage/message/outcome, for GET /progress
    - Single-run guard used before starting a run

    Nothing is persisted: the pipeline is stateless between runs.
    """

    _instance: Optional["StateManager"] = None

    def __new__(cls):
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize state manager (only once due to singleton)."""
        if self._initialized:
            return

        self.logger = logging.getLogger("ota_agent.state_manager")
        self._events: list[StatusEvent] = []
        self._running = False
        self._current_stage: StageEnum = StageEnum.IDLE
        self._current_message: str = "Agent ready"
        self._current_outcome: Optional[OutcomeEnum] = None
        self._current_error: Optional[str] = None

        self._initialized = True
        self.logger.info("StateManager initialized")

    async def publish(self, event: StatusEvent) -> None:
        """Append ``event`` to the stream and make it the current status."""
        self._events.append(event)
        self._current_stage = event.stage
        self._current_message = event.message
        if event.outcome is not None:
            self._current_outcome = event.outcome
            self._current_error = event.error
        self.logger.debug(
            f"Status updated: stage={event.stage.value}, message={event.message}"
        )

    def begin_run(self) -> bool:
        """Claim the single run slot.

        Returns:
            False if a run is already active
        """
        if self._running:
            return False
        self._running = True
        self._events = []
        self._current_stage = StageEnum.IDLE
        self._current_outcome = None
        self._current_error = None
        return True

    def end_run(self) -> None:
        self._running = False

    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> ProgressData:
        """Get current status for GET /progress endpoint."""
        return ProgressData(
            stage=self._current_stage,
            message=self._current_message,
            outcome=self._current_outcome,
            error=self._current_error,
            running=self._running,
        )

    def get_events(self) -> list[StatusEvent]:
        """Ordered events of the current or last run."""
        return list(self._events)

    def reset(self) -> None:
        """Reset to idle state."""
        self._events = []
        self._running = False
        self._current_stage = StageEnum.IDLE
        self._current_message = "Agent ready"
        self._current_outcome = None
        self._current_error = None
        self.logger.info("State reset to idle")
