"""Operating-system and CPU-architecture conventions.

Pure functions only: every helper takes the platform as an argument (falling
back to the running interpreter's platform) so behaviour for Windows can be
exercised on Linux and vice versa.
"""

from __future__ import annotations

import platform
import sys
from enum import Enum
from pathlib import Path, PurePosixPath, PureWindowsPath


class OsFamily(str, Enum):
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    OTHER = "other"


class Arch(str, Enum):
    X64 = "x64"
    ARM64 = "arm64"
    X86 = "x86"
    OTHER = "other"


_MACHINE_ALIASES: dict[str, Arch] = {
    "x86_64": Arch.X64,
    "amd64": Arch.X64,
    "x64": Arch.X64,
    "aarch64": Arch.ARM64,
    "arm64": Arch.ARM64,
    "armv8": Arch.ARM64,
    "i386": Arch.X86,
    "i686": Arch.X86,
    "x86": Arch.X86,
}


def current_os(sys_platform: str | None = None) -> OsFamily:
    """Map ``sys.platform`` (or the given value) to an ``OsFamily``."""
    value = (sys_platform if sys_platform is not None else sys.platform).lower()
    if value.startswith(("win32", "cygwin", "msys")):
        return OsFamily.WINDOWS
    if value.startswith("darwin"):
        return OsFamily.MACOS
    if value.startswith("linux"):
        return OsFamily.LINUX
    return OsFamily.OTHER


def current_arch(machine: str | None = None) -> Arch:
    """Map ``platform.machine()`` (or the given value) to an ``Arch``."""
    value = (machine if machine is not None else platform.machine()).lower()
    return _MACHINE_ALIASES.get(value, Arch.OTHER)


def executable_suffix(os_family: OsFamily | None = None) -> str:
    """``.exe`` on Windows, empty elsewhere."""
    return ".exe" if (os_family or current_os()) is OsFamily.WINDOWS else ""


def path_separator(os_family: OsFamily | None = None) -> str:
    return "\\" if (os_family or current_os()) is OsFamily.WINDOWS else "/"


def executable_name(base: str, os_family: OsFamily | None = None) -> str:
    """Return *base* with the platform's executable suffix (idempotent)."""
    suffix = executable_suffix(os_family)
    if suffix and base.lower().endswith(suffix):
        return base
    return base + suffix


def home_executable(root: str | Path, base: str, os_family: OsFamily | None = None) -> Path:
    """``<root>/bin/<base>[.exe]`` -- the layout used by JAVA_HOME-style roots."""
    return Path(root) / "bin" / executable_name(base, os_family)


def runtime_archive_names(
    os_family: OsFamily | None = None,
    arch: Arch | None = None,
) -> list[str]:
    """Candidate file names for the bundled runtime archive, preferred first.

    E.g. ``["runtime-linux-x64.tar.gz", "runtime-linux-x64.zip"]``.  Windows
    prefers ``.zip``.
    """
    os_family = os_family or current_os()
    arch = arch or current_arch()
    stem = f"runtime-{os_family.value}-{arch.value}"
    if os_family is OsFamily.WINDOWS:
        return [f"{stem}.zip", f"{stem}.tar.gz"]
    return [f"{stem}.tar.gz", f"{stem}.zip"]


def normalize_separators(path: str, os_family: OsFamily | None = None) -> str:
    """Rewrite both separator styles to the platform's native separator."""
    sep = path_separator(os_family)
    return path.replace("/", sep).replace("\\", sep)


def to_posix_relative(path: str) -> str:
    """Normalise a relative path to forward slashes regardless of origin."""
    if "\\" in path:
        return PureWindowsPath(path).as_posix()
    return PurePosixPath(path).as_posix()
