"""Digest helpers for checking staged copies against their source."""

import hashlib
import logging
from pathlib import Path


def compute_sha256(file_path: Path, chunk_size: int = 1024 * 1024) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to file to hash
        chunk_size: Read buffer size (default 1MB)

    Returns:
        64-character lowercase hex digest

    Raises:
        FileNotFoundError: If file doesn't exist
        OSError: If file read fails
    """
    logger = logging.getLogger("ota_agent.verification")
    digest = hashlib.sha256()

    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                digest.update(chunk)
    except OSError as e:
        logger.error(f"Failed to read file {file_path}: {e}")
        raise

    result = digest.hexdigest()
    logger.debug(f"Computed SHA-256 for {file_path.name}: {result}")
    return result


def files_match(source: Path, copy: Path) -> tuple[bool, str]:
    """Compare two files by size and SHA-256.

    Returns:
        (match, digest of ``copy``)
    """
    logger = logging.getLogger("ota_agent.verification")

    copy_digest = compute_sha256(copy)
    if source.stat().st_size != copy.stat().st_size:
        logger.error(f"Size mismatch between {source} and {copy}")
        return False, copy_digest

    source_digest = compute_sha256(source)
    match = source_digest == copy_digest
    if not match:
        logger.error(
            f"SHA-256 mismatch for {copy.name}: "
            f"source {source_digest}, copy {copy_digest}"
        )
    return match, copy_digest
