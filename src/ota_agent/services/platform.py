"""Platform verify/install surface.

The host platform owns the trust root and the install mechanism; this module
only invokes them. ``InstallSurface`` is the seam tests replace with a fake.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import aiofiles
import aiofiles.os

from ota_agent.config import PlatformConfig
from ota_agent.utils.errors import InstallInvocationError, VerificationError

PACKAGE_PLACEHOLDER = "{package}"


class InstallSurface(Protocol):
    """Verify and install operations consumed from the host platform."""

    async def verify(self, package_path: Path) -> None:
        """Raise VerificationError if the package is not trusted."""
        ...

    async def install(self, package_path: Path) -> None:
        """Raise InstallInvocationError if the hand-off fails."""
        ...


class CommandInstallSurface:
    """Verifies and installs by running host commands.

    Commands are argument lists; ``{package}`` is replaced by the staged
    package path. No key material is passed, the commands use whatever trust
    store the host is configured with.
    """

    def __init__(
        self,
        verify_command: list[str],
        install_command: list[str],
        timeout: float = 600.0,
    ):
        self.logger = logging.getLogger("ota_agent.platform")
        self.verify_command = verify_command
        self.install_command = install_command
        self.timeout = timeout

    async def verify(self, package_path: Path) -> None:
        returncode, stderr = await self._run(self.verify_command, package_path)
        if returncode != 0:
            raise VerificationError(
                f"{package_path.name}: verifier exited with code {returncode}: {stderr}"
            )
        self.logger.info(f"Package verification passed for {package_path.name}")

    async def install(self, package_path: Path) -> None:
        returncode, stderr = await self._run(self.install_command, package_path)
        if returncode != 0:
            raise InstallInvocationError(
                f"{package_path.name}: installer exited with code {returncode}: {stderr}"
            )
        self.logger.info(f"Installer accepted {package_path.name}")

    async def _run(self, command: list[str], package_path: Path) -> tuple[int, str]:
        """Run ``command`` for ``package_path``.

        Returns:
            (exit code, decoded stderr)

        Raises:
            OSError: If the command cannot be started
            InstallInvocationError: If the command times out
        """
        argv = [arg.replace(PACKAGE_PLACEHOLDER, str(package_path)) for arg in command]
        self.logger.debug(f"Running: {' '.join(argv)}")

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise InstallInvocationError(
                f"{argv[0]} did not finish within {self.timeout}s"
            )

        return process.returncode, stderr.decode(errors="replace").strip()


class RecoveryInstallSurface(CommandInstallSurface):
    """Hands the package to recovery through its command file, then reboots."""

    def __init__(
        self,
        verify_command: list[str],
        command_file: Path,
        reboot_command: list[str],
        timeout: float = 600.0,
    ):
        super().__init__(verify_command, reboot_command, timeout)
        self.command_file = Path(command_file)

    async def install(self, package_path: Path) -> None:
        await aiofiles.os.makedirs(self.command_file.parent, exist_ok=True)
        async with aiofiles.open(self.command_file, "w", encoding="utf-8") as f:
            await f.write(f"--update_package={package_path}\n")
        self.logger.info(f"Wrote recovery command to {self.command_file}")

        await super().install(package_path)


def build_install_surface(config: PlatformConfig) -> InstallSurface:
    """Create the install surface selected by ``config.mode``."""
    if config.mode == "recovery":
        return RecoveryInstallSurface(
            verify_command=config.verify_command,
            command_file=config.recovery_command_file,
            reboot_command=config.reboot_command,
            timeout=config.timeout,
        )
    return CommandInstallSurface(
        verify_command=config.verify_command,
        install_command=config.install_command,
        timeout=config.timeout,
    )
