"""Verify-then-install hand-off of the staged package."""

import logging
import os

import aiofiles.os

from ota_agent.models.package import StagedPackage
from ota_agent.services.platform import InstallSurface
from ota_agent.utils.errors import InstallInvocationError, VerificationError


class InstallInvoker:
    """Verifies the staged package and hands it to the platform installer.

    Callers run ``install`` only after ``verify`` returned. A successful
    ``install`` means the installer accepted the package; applying it happens
    outside this process (often after a reboot).
    """

    def __init__(self, platform: InstallSurface):
        self.logger = logging.getLogger("ota_agent.installer")
        self.platform = platform

    async def verify(self, staged: StagedPackage) -> None:
        """Check the staged package against the host trust root.

        Raises:
            VerificationError: Signature or integrity check failed
            InstallInvocationError: Staged package could not be read
        """
        path = staged.path
        self.logger.info(f"Verifying the package {path}")
        try:
            if not await aiofiles.os.access(path, os.R_OK):
                raise InstallInvocationError(f"{path.name}: staged package is not readable")
            await self.platform.verify(path)
        except VerificationError:
            self.logger.error(f"Verification failed for {path.name}")
            raise
        except OSError as e:
            self.logger.error(f"I/O error while verifying {path.name}: {e}")
            raise InstallInvocationError(f"{path.name}: {e}") from e

    async def install(self, staged: StagedPackage) -> None:
        """Hand the verified package to the platform installer.

        Raises:
            InstallInvocationError: Hand-off failed
        """
        path = staged.path
        self.logger.info(f"Installing {path}")
        try:
            await self.platform.install(path)
        except OSError as e:
            self.logger.error(f"I/O error while installing {path.name}: {e}")
            raise InstallInvocationError(f"{path.name}: {e}") from e
