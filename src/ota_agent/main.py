"""FastAPI application exposing the OTA agent status and run trigger."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import uvicorn

from ota_agent.api.routes import router
from ota_agent.config import AgentConfig, load_config
from ota_agent.services.device import detect_device_identity
from ota_agent.services.state_manager import StateManager
from ota_agent.utils.logging import setup_logger

SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown hooks.

    Startup:
    - Load configuration (unless main() already set it)
    - Read device identity once for the process lifetime
    - Reset StateManager singleton to idle
    """
    logger = logging.getLogger("ota_agent")
    logger.info("OTA agent service starting up...")

    config: Optional[AgentConfig] = getattr(app.state, "config", None)
    if config is None:
        config = load_config()
        app.state.config = config

    app.state.identity = detect_device_identity(config.device)

    state_manager = StateManager()
    state_manager.reset()

    logger.info(f"OTA agent service ready on {config.host}:{config.port}")

    yield

    logger.info("OTA agent service shutting down...")


app = FastAPI(
    title="OTA Agent",
    description="Side-loaded OTA package agent for embedded devices",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "ota-agent", "version": SERVICE_VERSION}


def main(config: AgentConfig) -> None:
    """Run the status service with uvicorn."""
    setup_logger(
        "ota_agent",
        config.logging.log_file,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        level=config.logging.level,
    )
    app.state.config = config
    uvicorn.run(
        app,  # Pass app object directly so app.state survives
        host=config.host,
        port=config.port,
        log_level="info",
        access_log=True,
    )
