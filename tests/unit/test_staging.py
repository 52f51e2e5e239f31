"""Unit tests for StagingCopier."""

import errno
import hashlib

import aiofiles.os
import pytest
from unittest.mock import AsyncMock, patch

from ota_agent.models.status import ErrorKind
from ota_agent.services.staging import StagingCopier
from ota_agent.utils.errors import StagingIOError


PAYLOAD = bytes(range(256)) * 40  # 10KB


@pytest.mark.unit
class TestStagingCopier:
    """Test StagingCopier on a temporary filesystem."""

    @pytest.fixture
    def copier(self, staging_dir):
        return StagingCopier(staging_dir, chunk_size=4096)

    @pytest.mark.asyncio
    async def test_stage_copies_content(self, copier, make_candidate, staging_dir):
        """暂存目录不存在时自动创建，内容与源文件逐字节一致。"""
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        staged = await copier.stage(candidate)

        assert staged.path == staging_dir / candidate.name
        assert staged.path.read_bytes() == PAYLOAD
        assert staged.size_bytes == len(PAYLOAD)
        assert staged.source == candidate
        assert staged.replaced_stale is False
        assert staged.sha256 == hashlib.sha256(PAYLOAD).hexdigest()

    @pytest.mark.asyncio
    async def test_stage_twice_is_idempotent(self, copier, make_candidate):
        """连续暂存两次，目标文件始终与源文件一致，不会追加内容。"""
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        first = await copier.stage(candidate)
        assert first.path.read_bytes() == PAYLOAD

        second = await copier.stage(candidate)
        assert second.path.read_bytes() == PAYLOAD
        assert second.replaced_stale is True
        assert second.path.stat().st_size == len(PAYLOAD)

    @pytest.mark.asyncio
    async def test_stale_file_replaced(self, copier, make_candidate, staging_dir):
        """已存在的同名旧文件先被删除，新内容与源完全一致。"""
        staging_dir.mkdir(parents=True)
        stale = staging_dir / "delta-sdcard-deviceX-9.9.9.zip"
        stale.write_bytes(b"stale" * 10000)
        candidate = make_candidate(stale.name, PAYLOAD)

        staged = await copier.stage(candidate)

        assert staged.replaced_stale is True
        assert stale.read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_interrupted_transfer_leaves_no_package(self, copier, make_candidate, staging_dir):
        """传输中途 I/O 失败时不留下可用的暂存包，也不留下临时文件。"""
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        async def broken_transfer(src, dst, size):
            await dst.write(PAYLOAD[: size // 2])
            raise OSError(errno.EIO, "Input/output error")

        with patch.object(copier, "_transfer", side_effect=broken_transfer):
            with pytest.raises(StagingIOError) as exc_info:
                await copier.stage(candidate)

        assert exc_info.value.kind == ErrorKind.STAGING_IO_ERROR
        assert "Input/output error" in str(exc_info.value)
        assert candidate.name in str(exc_info.value)
        assert not (staging_dir / candidate.name).exists()
        assert list(staging_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_interrupted_transfer_after_stale_delete(self, copier, make_candidate, staging_dir):
        """旧文件已删除后传输失败，目标位置不存在任何文件。"""
        staging_dir.mkdir(parents=True)
        (staging_dir / "delta-sdcard-deviceX-9.9.9.zip").write_bytes(b"old")
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        with patch.object(copier, "_transfer", side_effect=OSError(errno.ENOSPC, "No space left")):
            with pytest.raises(StagingIOError, match="No space left"):
                await copier.stage(candidate)

        assert not (staging_dir / candidate.name).exists()

    @pytest.mark.asyncio
    async def test_short_copy_fails(self, copier, make_candidate, staging_dir):
        """传输字节数与源文件大小不一致时暂存失败。"""
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        async def short_transfer(src, dst, size):
            await dst.write(PAYLOAD[:100])
            return 100

        with patch.object(copier, "_transfer", side_effect=short_transfer):
            with pytest.raises(StagingIOError, match="short copy"):
                await copier.stage(candidate)

        assert not (staging_dir / candidate.name).exists()

    @pytest.mark.asyncio
    async def test_digest_mismatch_fails(self, copier, make_candidate, staging_dir):
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        with patch(
            "ota_agent.services.staging.files_match", return_value=(False, "0" * 64)
        ):
            with pytest.raises(StagingIOError, match="differs from source"):
                await copier.stage(candidate)

        assert not (staging_dir / candidate.name).exists()

    @pytest.mark.asyncio
    async def test_verify_copy_disabled(self, staging_dir, make_candidate):
        copier = StagingCopier(staging_dir, verify_copy=False)
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        with patch("ota_agent.services.staging.files_match") as mock_match:
            staged = await copier.stage(candidate)

        mock_match.assert_not_called()
        assert staged.sha256 is None
        assert staged.path.read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_small_chunks(self, staging_dir, make_candidate):
        """分块大小远小于文件时仍完整复制。"""
        copier = StagingCopier(staging_dir, chunk_size=7)
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        staged = await copier.stage(candidate)

        assert staged.path.read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_sendfile_unsupported_falls_back(self, copier, make_candidate):
        """sendfile 不可用时回退到分块复制。"""
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)
        unsupported = AsyncMock(side_effect=OSError(errno.EINVAL, "Invalid argument"))

        with patch.object(aiofiles.os, "sendfile", unsupported, create=True):
            staged = await copier.stage(candidate)

        assert staged.path.read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_empty_file(self, copier, make_candidate):
        candidate = make_candidate("delta-sdcard-deviceX-empty.zip", b"")

        staged = await copier.stage(candidate)

        assert staged.size_bytes == 0
        assert staged.path.read_bytes() == b""

    @pytest.mark.asyncio
    async def test_missing_source(self, copier, make_candidate, staging_dir):
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)
        candidate.path.unlink()

        with pytest.raises(StagingIOError):
            await copier.stage(candidate)

        assert not (staging_dir / candidate.name).exists()

    @pytest.mark.asyncio
    async def test_staging_dir_not_creatable(self, tmp_path, make_candidate):
        """暂存目录路径被普通文件占用时暂存失败。"""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        copier = StagingCopier(blocker / "recovery")
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)

        with pytest.raises(StagingIOError, match="cannot create"):
            await copier.stage(candidate)

    def test_has_stale_copy(self, copier, make_candidate, staging_dir):
        candidate = make_candidate("delta-sdcard-deviceX-9.9.9.zip", PAYLOAD)
        assert copier.has_stale_copy(candidate) is False

        staging_dir.mkdir(parents=True)
        (staging_dir / candidate.name).write_bytes(b"old")
        assert copier.has_stale_copy(candidate) is True
