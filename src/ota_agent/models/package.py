"""Data models for update candidates, staged packages and device identity."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeviceIdentity(BaseModel):
    """Running build marker and hardware model of this device.

    Read once at startup and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    version: str = Field("", description="Running build/version marker")
    model: str = Field("", description="Hardware model token")

    @field_validator("version", "model", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        """getprop and os-release values usually carry a trailing newline."""
        if v is None:
            return ""
        return str(v).strip()


class UpdateCandidate(BaseModel):
    """A file in the source directory that may carry an update."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="File name in the source directory")
    path: Path = Field(..., description="Absolute location of the file")
    size_bytes: int = Field(..., ge=0, description="File size at discovery time")


class StagedPackage(BaseModel):
    """A complete copy of a candidate in the installer-visible directory."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Location of the staged copy")
    source: UpdateCandidate = Field(..., description="Candidate this copy was made from")
    size_bytes: int = Field(..., ge=0, description="Bytes transferred")
    replaced_stale: bool = Field(
        False, description="A same-named file was deleted before copying"
    )
    sha256: Optional[str] = Field(
        None, pattern=r"^[a-f0-9]{64}$", description="Digest of the staged copy"
    )


class LocateResult(BaseModel):
    """Outcome of one scan of the source directory."""

    candidate: Optional[UpdateCandidate] = None
    skipped: list[str] = Field(
        default_factory=list, description="Prefix matches built for another model"
    )
    ignored: list[str] = Field(
        default_factory=list, description="Further matches after the first one"
    )
    scanned: int = Field(0, ge=0, description="Number of entries listed")
