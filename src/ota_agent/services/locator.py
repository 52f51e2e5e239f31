"""Package discovery in the side-load source directory."""

import logging
import os
from pathlib import Path

import aiofiles.os

from ota_agent.models.package import LocateResult, UpdateCandidate
from ota_agent.utils.errors import SourceUnavailableError


class PackageLocator:
    """Selects at most one update candidate from the source directory.

    Entries are visited in directory listing order and the first one that
    starts with the prefix and contains the model token wins. This is a
    tie-break, not a "best match": the listing is never sorted.
    """

    def __init__(self, source_dir: Path, prefix: str = "delta-sdcard"):
        """Initialize package locator.

        Args:
            source_dir: Directory update files are dropped into
            prefix: Fixed file name prefix of update packages
        """
        self.logger = logging.getLogger("ota_agent.locator")
        self.source_dir = Path(source_dir)
        self.prefix = prefix

    async def locate(self, model: str) -> LocateResult:
        """Scan the source directory for a package built for ``model``.

        Every entry is inspected, so prefix matches for other models are all
        reported in ``skipped`` whatever the position of the winning entry.

        Args:
            model: Device model token; empty disables model filtering

        Returns:
            LocateResult with the selected candidate (or None) and diagnostics

        Raises:
            SourceUnavailableError: If the directory is missing or unreadable
        """
        try:
            names = await aiofiles.os.listdir(self.source_dir)
        except OSError as e:
            self.logger.error(f"Unable to list {self.source_dir}: {e}")
            raise SourceUnavailableError(
                f"{self.source_dir}: {e.strerror or e}"
            ) from e

        self.logger.info(f"Number of files in {self.source_dir} = {len(names)}")
        if not model:
            self.logger.warning("Model token is empty, accepting any model")

        result = LocateResult(scanned=len(names))
        for name in names:
            shown = _display_name(name)
            self.logger.debug(f"File name: {shown}")
            if not name.startswith(self.prefix):
                continue

            if shown != name:
                self.logger.warning(f"Ignoring {shown}: file name is not valid UTF-8")
                result.ignored.append(shown)
                continue

            if model and model not in name:
                self.logger.info(f"Skipping {name}: not built for model {model}")
                result.skipped.append(name)
                continue

            path = self.source_dir / name
            if not await aiofiles.os.path.isfile(path):
                self.logger.warning(f"Ignoring {name}: not a regular file")
                result.ignored.append(name)
                continue

            if result.candidate is not None:
                self.logger.info(
                    f"Ignoring {name}: {result.candidate.name} already selected"
                )
                result.ignored.append(name)
                continue

            try:
                size = await aiofiles.os.path.getsize(path)
            except OSError as e:
                self.logger.warning(f"Ignoring {name}: cannot stat ({e})")
                result.ignored.append(name)
                continue

            result.candidate = UpdateCandidate(
                name=name, path=path.absolute(), size_bytes=size
            )
            self.logger.info(f"Selected update candidate {name} ({size} bytes)")

        if result.candidate is None:
            self.logger.warning(
                f"No package matching prefix '{self.prefix}' and model "
                f"'{model}' in {self.source_dir}"
            )
        return result


def _display_name(name: str) -> str:
    """``name`` with undecodable bytes shown as ``\\xNN`` escapes."""
    return os.fsencode(name).decode("utf-8", errors="backslashreplace")
