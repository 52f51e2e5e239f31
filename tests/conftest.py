"""Global pytest fixtures and configuration."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ota_agent.models.package import DeviceIdentity, UpdateCandidate  # noqa: E402
from ota_agent.utils.errors import InstallInvocationError, VerificationError  # noqa: E402


class FakeInstallSurface:
    """Records verify/install calls instead of touching the host platform."""

    def __init__(self, verify_error=None, install_error=None):
        self.verify_error = verify_error
        self.install_error = install_error
        self.calls = []

    async def verify(self, package_path: Path) -> None:
        self.calls.append(("verify", package_path))
        if self.verify_error is not None:
            raise self.verify_error

    async def install(self, package_path: Path) -> None:
        self.calls.append(("install", package_path))
        if self.install_error is not None:
            raise self.install_error

    @property
    def installed(self) -> bool:
        return any(name == "install" for name, _ in self.calls)


@pytest.fixture
def source_dir(tmp_path):
    """Side-load drop directory."""
    path = tmp_path / "Download"
    path.mkdir()
    return path


@pytest.fixture
def staging_dir(tmp_path):
    """Staging directory (created by the copier on demand)."""
    return tmp_path / "cache" / "recovery"


@pytest.fixture
def make_package(source_dir):
    """Factory writing a package file into the source directory."""

    def _make(name: str, content: bytes = b"PK\x03\x04 fake ota payload") -> Path:
        path = source_dir / name
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def make_candidate(make_package):
    """Factory returning an UpdateCandidate backed by a real file."""

    def _make(name: str, content: bytes = b"PK\x03\x04 fake ota payload") -> UpdateCandidate:
        path = make_package(name, content)
        return UpdateCandidate(name=name, path=path, size_bytes=len(content))

    return _make


@pytest.fixture
def identity():
    return DeviceIdentity(version="8.8.8", model="deviceX")


@pytest.fixture
def fake_platform():
    return FakeInstallSurface()


@pytest.fixture
def rejecting_platform():
    return FakeInstallSurface(verify_error=VerificationError("signature mismatch"))


@pytest.fixture
def failing_install_platform():
    return FakeInstallSurface(install_error=InstallInvocationError("installer busy"))
