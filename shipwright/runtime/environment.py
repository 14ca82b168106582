# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Host environment detection for shipwright.

Native desktop artifacts can only be produced on their own operating system,
so the pipeline needs to know which platform it is running on and, for
Windows, whether the host is 32 or 64 bit.
"""

import platform
import sys
from typing import NamedTuple

MINIMUM_PYTHON_MAJOR = 3
MINIMUM_PYTHON_MINOR = 11

# sys.platform prefixes -> platform ids understood by the registry
_HOST_PLATFORMS: dict[str, str] = {
    "darwin": "darwin",
    "linux": "linux",
    "win32": "win32",
    "cygwin": "win32",
}

# platform.machine() values -> bundler arch names
_ARCH_ALIASES: dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
}


class SystemInfo(NamedTuple):
    """Snapshot of the current system environment."""

    python_version: str
    platform: str
    architecture: str
    hostname: str


def get_python_version() -> tuple[int, int, int]:
    """Return the current Python version as a (major, minor, micro) tuple."""
    return sys.version_info[:3]


def check_minimum_python() -> None:
    """
    Verify we're running Python 3.11+.

    Raises:
        RuntimeError: If Python version is below 3.11.
    """
    major, minor, _ = get_python_version()
    if major < MINIMUM_PYTHON_MAJOR or (
        major == MINIMUM_PYTHON_MAJOR and minor < MINIMUM_PYTHON_MINOR
    ):
        raise RuntimeError(
            f"shipwright requires Python >= {MINIMUM_PYTHON_MAJOR}.{MINIMUM_PYTHON_MINOR}, "
            f"but you're running {major}.{minor}. Please upgrade."
        )


def detect_host_platform() -> str:
    """
    Return the platform id of the running host ("darwin", "linux" or "win32").

    Unknown hosts are returned as-is from sys.platform so the mismatch error
    can name them.
    """
    for prefix, platform_id in _HOST_PLATFORMS.items():
        if sys.platform.startswith(prefix):
            return platform_id
    return sys.platform


def detect_arch() -> str:
    """Return the host CPU architecture in bundler naming (x64, ia32, arm64)."""
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def get_system_info() -> SystemInfo:
    """Collect basic system information for logging and diagnostics."""
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        architecture=platform.machine(),
        hostname=platform.node(),
    )
