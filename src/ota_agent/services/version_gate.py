"""Already-applied detection by version marker in the package name."""

import logging

from ota_agent.models.package import DeviceIdentity, UpdateCandidate

LEGACY_DELIMITERS = "."


def wrapped_versions(version: str, delimiters: str = LEGACY_DELIMITERS) -> list[str]:
    """Return every delimiter-wrapped form of ``version``.

    With the legacy delimiter ``"."`` this is the single form ``".<version>."``.
    """
    return [f"{left}{version}{right}" for left in delimiters for right in delimiters]


def is_already_upgraded(
    candidate_name: str, version: str, delimiters: str = LEGACY_DELIMITERS
) -> bool:
    """True if ``candidate_name`` carries the wrapped ``version`` marker.

    The wrapping keeps version "1" from matching a name built for "12". An
    empty version never matches. A version containing a delimiter can still
    match inside a longer one ("9.9" in "-9.9.9.zip").
    """
    if not version:
        return False
    return any(form in candidate_name for form in wrapped_versions(version, delimiters))


class VersionGate:
    """Decides whether the device already runs the candidate's build."""

    def __init__(self, delimiters: str = LEGACY_DELIMITERS):
        self.logger = logging.getLogger("ota_agent.version_gate")
        self.delimiters = delimiters

    def check(self, candidate: UpdateCandidate, identity: DeviceIdentity) -> bool:
        if not identity.version:
            self.logger.warning(
                "Running version marker is empty, treating device as not upgraded"
            )
            return False

        applied = is_already_upgraded(candidate.name, identity.version, self.delimiters)
        self.logger.info(
            f"Version gate: {candidate.name} vs running {identity.version} -> "
            f"{'already upgraded' if applied else 'upgrade needed'}"
        )
        return applied
