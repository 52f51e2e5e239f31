"""Staging copy of the selected package into the installer directory."""

import errno
import logging
import os
from pathlib import Path

import aiofiles
import aiofiles.os

from ota_agent.models.package import StagedPackage, UpdateCandidate
from ota_agent.utils.errors import StagingIOError
from ota_agent.utils.verification import files_match

# sendfile() refuses these file combinations, fall back to a buffered copy
_SENDFILE_UNSUPPORTED = {errno.EINVAL, errno.ENOSYS, errno.ENOTSUP, errno.EOPNOTSUPP}


class StagingCopier:
    """Copies a candidate into the staging directory under its own name.

    The copy is written to a hidden ``.partial`` sibling and renamed into
    place once the transferred byte count equals the source size, so a
    half-written file never appears under the package name.
    """

    def __init__(
        self,
        staging_dir: Path,
        chunk_size: int = 1024 * 1024,
        verify_copy: bool = True,
    ):
        """Initialize staging copier.

        Args:
            staging_dir: Privileged directory the platform installer reads
            chunk_size: Bytes per sendfile/read call
            verify_copy: Compare SHA-256 of source and copy before publishing
        """
        self.logger = logging.getLogger("ota_agent.staging")
        self.staging_dir = Path(staging_dir)
        self.chunk_size = chunk_size
        self.verify_copy = verify_copy

    def target_path(self, candidate: UpdateCandidate) -> Path:
        return self.staging_dir / candidate.name

    def has_stale_copy(self, candidate: UpdateCandidate) -> bool:
        """True if a file with the candidate's name is already staged."""
        try:
            return self.target_path(candidate).is_file()
        except OSError:
            return False

    async def stage(self, candidate: UpdateCandidate) -> StagedPackage:
        """Copy ``candidate`` into the staging directory.

        Args:
            candidate: Selected update candidate

        Returns:
            StagedPackage describing the complete copy

        Raises:
            StagingIOError: On any I/O failure, short copy or digest mismatch
        """
        target = self.target_path(candidate)
        tmp_path = self.staging_dir / f".{candidate.name}.partial"
        self.logger.info(f"Staging {candidate.path} -> {target}")

        try:
            await aiofiles.os.makedirs(self.staging_dir, exist_ok=True)
        except OSError as e:
            raise StagingIOError(f"cannot create {self.staging_dir}: {e}") from e

        replaced_stale = await self._remove_stale(target)
        await self._remove_stale(tmp_path)

        try:
            copied, expected = await self._copy(candidate.path, tmp_path)
            if copied != expected:
                raise StagingIOError(
                    f"{candidate.name}: short copy, {copied} of {expected} bytes transferred"
                )

            digest = None
            if self.verify_copy:
                match, digest = files_match(candidate.path, tmp_path)
                if not match:
                    raise StagingIOError(
                        f"{candidate.name}: staged copy differs from source"
                    )

            await aiofiles.os.replace(tmp_path, target)
        except OSError as e:
            self._discard(tmp_path)
            self.logger.error(f"Failed to stage {candidate.name}: {e}")
            raise StagingIOError(f"{candidate.name}: {e}") from e
        except StagingIOError as e:
            self._discard(tmp_path)
            self.logger.error(f"Failed to stage {candidate.name}: {e}")
            raise

        self.logger.info(f"Staged {candidate.name} ({copied} bytes) at {target}")
        return StagedPackage(
            path=target,
            source=candidate,
            size_bytes=copied,
            replaced_stale=replaced_stale,
            sha256=digest,
        )

    async def _remove_stale(self, path: Path) -> bool:
        """Delete ``path`` if present. Returns True if a file was removed."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StagingIOError(f"cannot delete stale {path}: {e}") from e

        self.logger.info(f"Deleted stale staged file {path}")
        return True

    async def _copy(self, source: Path, target: Path) -> tuple[int, int]:
        """Copy ``source`` to a freshly created ``target``.

        Returns:
            (bytes transferred, source size when opened)
        """
        async with aiofiles.open(source, "rb") as src, aiofiles.open(target, "xb") as dst:
            self.logger.debug(f"Opened {source} and {target}")
            expected = os.fstat(src.fileno()).st_size
            copied = await self._transfer(src, dst, expected)
            await dst.flush()
            os.fsync(dst.fileno())
            self.logger.debug(f"Transfer of {copied} bytes complete")
        return copied, expected

    async def _transfer(self, src, dst, size: int) -> int:
        if size > 0 and hasattr(aiofiles.os, "sendfile"):
            try:
                return await self._sendfile(src, dst, size)
            except OSError as e:
                if e.errno not in _SENDFILE_UNSUPPORTED:
                    raise
                self.logger.debug(f"sendfile unavailable ({e}), using buffered copy")
                await dst.seek(0)
                await dst.truncate()
        return await self._copy_chunks(src, dst)

    async def _sendfile(self, src, dst, size: int) -> int:
        offset = 0
        while offset < size:
            count = min(self.chunk_size, size - offset)
            sent = await aiofiles.os.sendfile(dst.fileno(), src.fileno(), offset, count)
            if sent == 0:
                break
            offset += sent
        return offset

    async def _copy_chunks(self, src, dst) -> int:
        copied = 0
        while chunk := await src.read(self.chunk_size):
            await dst.write(chunk)
            copied += len(chunk)
        return copied

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(f"Could not remove partial copy {path}: {e}")
