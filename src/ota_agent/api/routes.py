"""API route handlers for the OTA agent status service."""

import logging

from fastapi import APIRouter, BackgroundTasks, Request

from ota_agent.api.models import EventsResponse, ProgressResponse, RunResponse
from ota_agent.config import AgentConfig
from ota_agent.models.package import DeviceIdentity
from ota_agent.services.pipeline import build_pipeline
from ota_agent.services.reporter import ReportService
from ota_agent.services.state_manager import StateManager

logger = logging.getLogger("ota_agent.api")

router = APIRouter(prefix="/api/v1.0")


@router.get("/progress", response_model=ProgressResponse)
async def get_progress():
    """GET /api/v1.0/progress - Query current pipeline status.

    Response format (failed run):
        {
            "code": 500,
            "msg": "Update failed: STAGING_IO_ERROR: ...",
            "data": {
                "stage": "finished",
                "message": "Error when copying OTA file to /cache/recovery",
                "outcome": "staging_failed",
                "error": "STAGING_IO_ERROR: ...",
                "running": false
            }
        }
    """
    status = StateManager().get_status()

    if status.outcome is not None and status.outcome.is_failure:
        msg = f"Update failed: {status.error}" if status.error else "Update failed"
        return ProgressResponse(code=500, msg=msg, data=status)
    return ProgressResponse(code=200, msg="success", data=status)


@router.get("/events", response_model=EventsResponse)
async def get_events():
    """GET /api/v1.0/events - Ordered status events of the current or last run."""
    return EventsResponse(data=StateManager().get_events())


@router.post("/run", response_model=RunResponse)
async def post_run(request: Request, background_tasks: BackgroundTasks):
    """POST /api/v1.0/run - Start one pipeline run in the background.

    Returns code 409 if a run is already active.
    """
    state_manager = StateManager()
    if not state_manager.begin_run():
        status = state_manager.get_status()
        return RunResponse(
            code=409,
            msg=f"Run already in progress: {status.stage.value}",
            stage=status.stage,
        )

    background_tasks.add_task(
        _run_workflow, request.app.state.config, request.app.state.identity
    )
    return RunResponse(code=200, msg="success")


async def _run_workflow(config: AgentConfig, identity: DeviceIdentity) -> None:
    """Background task running the pipeline once."""
    state_manager = StateManager()
    try:
        sinks = [state_manager]
        if config.report_url:
            sinks.append(ReportService(config.report_url))
        result = await build_pipeline(config, identity, sinks).run()
        logger.info(f"Background run finished: {result.outcome.value}")
    except Exception as e:
        logger.error(f"Background run aborted: {e}", exc_info=True)
    finally:
        state_manager.end_run()
