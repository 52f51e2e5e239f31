"""Pipeline controller: locate, gate, stage, verify and install."""

import logging
from typing import Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from ota_agent.config import AgentConfig
from ota_agent.models.package import DeviceIdentity, StagedPackage, UpdateCandidate
from ota_agent.models.status import ErrorKind, OutcomeEnum, StageEnum, StatusEvent
from ota_agent.services.installer import InstallInvoker
from ota_agent.services.locator import PackageLocator
from ota_agent.services.platform import InstallSurface, build_install_surface
from ota_agent.services.staging import StagingCopier
from ota_agent.services.version_gate import VersionGate
from ota_agent.utils.errors import (
    InstallInvocationError,
    SourceUnavailableError,
    StagingIOError,
    VerificationError,
)


class StatusSink(Protocol):
    """Consumer of the ordered status stream."""

    async def publish(self, event: StatusEvent) -> None:
        ...


class PipelineResult(BaseModel):
    """Terminal result of one run."""

    outcome: OutcomeEnum
    candidate: Optional[UpdateCandidate] = None
    staged: Optional[StagedPackage] = None
    events: list[StatusEvent] = Field(default_factory=list)


class PipelineController:
    """Runs one update attempt from discovery to installer hand-off.

    State machine (single forward path):
    locating → gate_checking → staging → verifying → installing → finished

    Every stage failure is caught here, reported once and ends the run; the
    caller always gets a PipelineResult, never a raw I/O error.
    """

    def __init__(
        self,
        locator: PackageLocator,
        gate: VersionGate,
        copier: StagingCopier,
        invoker: InstallInvoker,
        identity: DeviceIdentity,
        sinks: Sequence[StatusSink] = (),
    ):
        self.logger = logging.getLogger("ota_agent.pipeline")
        self.locator = locator
        self.gate = gate
        self.copier = copier
        self.invoker = invoker
        self.identity = identity
        self.sinks = list(sinks)
        self._events: list[StatusEvent] = []
        self._candidate: Optional[UpdateCandidate] = None
        self._staged: Optional[StagedPackage] = None

    async def run(self) -> PipelineResult:
        self._events = []
        self._candidate = None
        self._staged = None

        await self._emit(StageEnum.IDLE, "Loading ...")

        candidate = await self._locate()
        if candidate is None:
            return self._result(OutcomeEnum.NO_CANDIDATE_FOUND)
        self._candidate = candidate

        if await self._already_upgraded(candidate):
            return self._result(OutcomeEnum.ALREADY_UPGRADED)

        staged = await self._stage(candidate)
        if staged is None:
            return self._result(OutcomeEnum.STAGING_FAILED)
        self._staged = staged

        outcome = await self._verify_and_install(staged)
        return self._result(outcome)

    async def _locate(self) -> Optional[UpdateCandidate]:
        model = self.identity.model
        await self._emit(
            StageEnum.LOCATING,
            f"Looking for OTA package in {self.locator.source_dir}",
        )
        try:
            located = await self.locator.locate(model)
        except SourceUnavailableError as e:
            await self._finish(
                OutcomeEnum.NO_CANDIDATE_FOUND,
                f"Unable to access source directory {self.locator.source_dir}",
                error=str(e),
            )
            return None

        for name in located.skipped:
            await self._emit(
                StageEnum.LOCATING, f"Skipping {name}: not built for model {model}"
            )
        for name in located.ignored:
            await self._emit(StageEnum.LOCATING, f"Ignoring {name}")

        if located.candidate is None:
            await self._finish(
                OutcomeEnum.NO_CANDIDATE_FOUND,
                "OTA package not found",
                error=(
                    f"{ErrorKind.NO_CANDIDATE.value}: no '{self.locator.prefix}' package "
                    f"for model '{model}' among {located.scanned} entries"
                ),
            )
            return None

        await self._emit(StageEnum.LOCATING, f"Found OTA package {located.candidate.name}")
        return located.candidate

    async def _already_upgraded(self, candidate: UpdateCandidate) -> bool:
        await self._emit(StageEnum.GATE_CHECKING, "Validation in progress")
        if not self.identity.version:
            await self._emit(
                StageEnum.GATE_CHECKING,
                "Running version is unknown, continuing with the upgrade",
            )

        if self.gate.check(candidate, self.identity):
            await self._finish(
                OutcomeEnum.ALREADY_UPGRADED,
                f"Device already upgraded to {candidate.name}",
            )
            return True
        return False

    async def _stage(self, candidate: UpdateCandidate) -> Optional[StagedPackage]:
        staging_dir = self.copier.staging_dir
        await self._emit(StageEnum.STAGING, f"Starting to copy OTA file to: {staging_dir}")
        if self.copier.has_stale_copy(candidate):
            await self._emit(StageEnum.STAGING, "OTA file already exists, deleting it.")

        try:
            staged = await self.copier.stage(candidate)
        except StagingIOError as e:
            await self._finish(
                OutcomeEnum.STAGING_FAILED,
                f"Error when copying OTA file to {staging_dir}",
                error=str(e),
            )
            return None

        await self._emit(StageEnum.STAGING, f"OTA file copied to {staging_dir}")
        return staged

    async def _verify_and_install(self, staged: StagedPackage) -> OutcomeEnum:
        await self._emit(StageEnum.VERIFYING, "Starting OTA")
        await self._emit(StageEnum.VERIFYING, "Verifying the package")
        try:
            await self.invoker.verify(staged)
        except VerificationError as e:
            await self._finish(
                OutcomeEnum.VERIFICATION_FAILED, "Package verification failed", error=str(e)
            )
            return OutcomeEnum.VERIFICATION_FAILED
        except InstallInvocationError as e:
            await self._finish(
                OutcomeEnum.INSTALL_FAILED, "Verification could not be completed", error=str(e)
            )
            return OutcomeEnum.INSTALL_FAILED

        await self._emit(
            StageEnum.INSTALLING,
            "Package verification completed successfully, handing over to installer",
        )
        try:
            await self.invoker.install(staged)
        except InstallInvocationError as e:
            await self._finish(
                OutcomeEnum.INSTALL_FAILED, "Installer rejected the package", error=str(e)
            )
            return OutcomeEnum.INSTALL_FAILED

        await self._finish(
            OutcomeEnum.INSTALL_INVOKED, f"Install invoked for {staged.path.name}"
        )
        return OutcomeEnum.INSTALL_INVOKED

    async def _finish(
        self, outcome: OutcomeEnum, message: str, error: Optional[str] = None
    ) -> None:
        await self._emit(StageEnum.FINISHED, message, outcome=outcome, error=error)

    async def _emit(
        self,
        stage: StageEnum,
        message: str,
        outcome: Optional[OutcomeEnum] = None,
        error: Optional[str] = None,
    ) -> None:
        event = StatusEvent(stage=stage, message=message, outcome=outcome, error=error)
        if error:
            self.logger.error(f"{message}: {error}")
        else:
            self.logger.info(message)

        self._events.append(event)
        for sink in self.sinks:
            await sink.publish(event)

    def _result(self, outcome: OutcomeEnum) -> PipelineResult:
        self.logger.info(f"Pipeline finished: {outcome.value}")
        return PipelineResult(
            outcome=outcome,
            candidate=self._candidate,
            staged=self._staged,
            events=list(self._events),
        )


def build_pipeline(
    config: AgentConfig,
    identity: DeviceIdentity,
    sinks: Sequence[StatusSink] = (),
    platform: Optional[InstallSurface] = None,
) -> PipelineController:
    """Wire a PipelineController from configuration.

    Args:
        config: Agent configuration
        identity: Device identity read at startup
        sinks: Status sinks, fed in order
        platform: Install surface override (defaults to config.platform)
    """
    return PipelineController(
        locator=PackageLocator(config.source_dir, prefix=config.package_prefix),
        gate=VersionGate(delimiters=config.version_delimiters),
        copier=StagingCopier(
            config.staging_dir,
            chunk_size=config.copy_chunk_size,
            verify_copy=config.verify_copy,
        ),
        invoker=InstallInvoker(platform or build_install_surface(config.platform)),
        identity=identity,
        sinks=sinks,
    )
