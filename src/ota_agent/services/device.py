"""Device identity detection from the host environment."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from ota_agent.config import DeviceConfig
from ota_agent.models.package import DeviceIdentity

logger = logging.getLogger("ota_agent.device")

ANDROID_VERSION_PROP = "ro.build.version.incremental"
ANDROID_MODEL_PROP = "ro.product.name"

OS_RELEASE_PATH = Path("/etc/os-release")
MODEL_PATHS = [
    Path("/proc/device-tree/model"),
    Path("/sys/firmware/devicetree/base/model"),
    Path("/sys/devices/virtual/dmi/id/product_name"),
]


def read_getprop(prop: str) -> Optional[str]:
    """Read an Android system property, None if getprop is unavailable."""
    if shutil.which("getprop") is None:
        return None
    try:
        result = subprocess.run(
            ["getprop", prop], capture_output=True, text=True, timeout=5, check=False
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"getprop {prop} failed: {e}")
        return None
    value = result.stdout.strip()
    return value or None


def read_os_release(path: Path = OS_RELEASE_PATH) -> dict[str, str]:
    """Parse an os-release file into a dict, empty if missing."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return {}

    fields = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        fields[key] = value.strip().strip("\"'")
    return fields


def read_model_file(paths: list[Path] = MODEL_PATHS) -> Optional[str]:
    """First non-empty hardware model string from sysfs/device-tree."""
    for path in paths:
        try:
            value = path.read_bytes().rstrip(b"\x00").decode(errors="replace").strip()
        except OSError:
            continue
        if value:
            return value
    return None


def detect_device_identity(overrides: Optional[DeviceConfig] = None) -> DeviceIdentity:
    """Read the running version marker and model token.

    Precedence per field: config override, Android system property, then
    os-release (``BUILD_ID`` / ``VERSION_ID``) or the device-tree/DMI model.
    A field that cannot be determined is left empty.
    """
    overrides = overrides or DeviceConfig()

    version = overrides.version or read_getprop(ANDROID_VERSION_PROP)
    model = overrides.model or read_getprop(ANDROID_MODEL_PROP)

    if version is None or model is None:
        os_release = read_os_release()
        if version is None:
            version = os_release.get("BUILD_ID") or os_release.get("VERSION_ID")
        if model is None:
            model = read_model_file()

    identity = DeviceIdentity(version=version, model=model)
    logger.info(
        f"Device identity: version={identity.version!r}, model={identity.model!r}"
    )
    if not identity.version:
        logger.warning("Could not determine running version marker")
    if not identity.model:
        logger.warning("Could not determine device model")
    return identity
