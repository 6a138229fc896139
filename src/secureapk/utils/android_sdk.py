"""Locate Android SDK build-tools and JDK binaries used for signing."""

import os
import platform
import shutil
from pathlib import Path

from secureapk.exceptions import ToolNotFoundError

# Install hints for the tools used by the signer
TOOL_INSTALL_HINTS: dict[str, str] = {
    "zipalign": "Part of Android SDK build-tools (set ANDROID_HOME)",
    "apksigner": "Part of Android SDK build-tools (set ANDROID_HOME)",
    "keytool": "Part of Java JDK (install JDK and ensure it's on PATH)",
    "jarsigner": "Part of Java JDK (install JDK and ensure it's on PATH)",
}

SDK_ENV_VARS = ("ANDROID_HOME", "ANDROID_SDK_ROOT")

# Default SDK install locations per platform.system(), relative to $HOME
# unless absolute
_SDK_LOCATIONS: dict[str, tuple[str, ...]] = {
    "Darwin": ("Library/Android/sdk", "/opt/android-sdk"),
    "Linux": ("Android/Sdk", "android-sdk", "/opt/android-sdk"),
    "Windows": ("AppData/Local/Android/Sdk", "C:/Android/sdk"),
}

# apksigner is a wrapper script, zipalign a native binary
_WINDOWS_SUFFIXES = {"apksigner": ".bat", "zipalign": ".exe"}


def get_android_home() -> Path | None:
    """Android SDK root from the environment or a default install location."""
    for env_var in SDK_ENV_VARS:
        value = os.environ.get(env_var)
        if value and Path(value).is_dir():
            return Path(value)

    home = Path.home()
    for location in _SDK_LOCATIONS.get(platform.system(), ()):
        candidate = home / location
        if candidate.is_dir():
            return candidate
    return None


def _parse_version(name: str) -> tuple[int, ...] | None:
    """'34.0.0' -> (34, 0, 0); None for rc/preview directory names."""
    try:
        return tuple(int(part) for part in name.split("."))
    except ValueError:
        return None


def get_build_tools_path(min_version: str = "30.0.0") -> Path | None:
    """Newest installed build-tools directory at or above min_version."""
    android_home = get_android_home()
    if android_home is None:
        return None

    build_tools_dir = android_home / "build-tools"
    if not build_tools_dir.is_dir():
        return None

    minimum = _parse_version(min_version) or ()
    installed = [
        (version, path)
        for path in build_tools_dir.iterdir()
        if path.is_dir() and (version := _parse_version(path.name)) is not None
    ]
    eligible = [item for item in installed if item[0] >= minimum]
    if not eligible:
        return None
    return max(eligible)[1]


def find_build_tool(name: str) -> Path:
    """Resolve an SDK build tool (zipalign, apksigner).

    The newest SDK build-tools directory is preferred; PATH is the fallback
    so distro-packaged tools work without an SDK checkout.

    Raises:
        ToolNotFoundError: If the tool is found in neither place.
    """
    build_tools = get_build_tools_path()
    if build_tools is not None:
        filename = name
        if platform.system() == "Windows":
            filename += _WINDOWS_SUFFIXES.get(name, ".exe")
        candidate = build_tools / filename
        if candidate.is_file():
            return candidate

    return _which(name)


def find_jdk_tool(name: str) -> Path:
    """Resolve a JDK tool (keytool, jarsigner) via JAVA_HOME, then PATH.

    Raises:
        ToolNotFoundError: If the tool cannot be found.
    """
    if java_home := os.environ.get("JAVA_HOME"):
        filename = f"{name}.exe" if platform.system() == "Windows" else name
        candidate = Path(java_home) / "bin" / filename
        if candidate.is_file():
            return candidate

    return _which(name)


def _which(name: str) -> Path:
    path = shutil.which(name)
    if path is None:
        raise ToolNotFoundError(name, TOOL_INSTALL_HINTS.get(name))
    return Path(path)
