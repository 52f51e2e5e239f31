"""Status event reporting to the device-api."""

import logging

import httpx

from ota_agent.models.status import StatusEvent


class ReportService:
    """Forwards each status event to the device-api as JSON."""

    def __init__(self, device_api_url: str = "http://localhost:9080", timeout: float = 5.0):
        """Initialize report service.

        Args:
            device_api_url: Base URL of device-api service (default: http://localhost:9080)
            timeout: Per-request timeout in seconds
        """
        self.logger = logging.getLogger("ota_agent.reporter")
        self.device_api_url = device_api_url.rstrip("/")
        self.report_endpoint = f"{self.device_api_url}/api/v1.0/ota/report"
        self.timeout = timeout

    async def publish(self, event: StatusEvent) -> None:
        """Send ``event`` to device-api.

        Note:
            Failures are logged but not raised so reporting never blocks the pipeline
        """
        self.logger.debug(
            f"Reporting to device-api: stage={event.stage.value}, message={event.message}"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.report_endpoint,
                    json=event.model_dump(mode="json"),
                )
                response.raise_for_status()
                self.logger.debug("Report sent successfully")

        except httpx.HTTPError as e:
            self.logger.warning(
                f"Failed to report status to device-api: {e}. Continuing..."
            )
        except Exception as e:
            self.logger.error(
                f"Unexpected error reporting to device-api: {e}",
                exc_info=True,
            )
