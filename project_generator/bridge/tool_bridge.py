"""Discovery and invocation of the external Java tool.

Finds a usable ``java`` executable (environment variable, bundled runtime
archive, then the search path), caches where it was found for the lifetime
of the bridge, and runs it as a child process with captured output.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import re
import shutil
import stat
import tempfile
import threading
import time
from collections.abc import Mapping
from pathlib import Path

from rich.markup import escape

from project_generator.config import ToolConfig
from project_generator.errors import (
    ExternalToolError,
    JavaEnvironmentError,
    JavaNotFoundError,
)
from project_generator.models import DiscoveryMethod, ExitOutcome, ToolLocation
from project_generator.platforms import (
    Arch,
    OsFamily,
    current_arch,
    current_os,
    executable_name,
    home_executable,
    runtime_archive_names,
)
from project_generator.utils import console, extract_archive

STDERR_EXCERPT_CHARS = 2000
_VERSION_PATTERN = re.compile(r'version "([^"]+)"')


class ExternalToolBridge:
    """Locates and runs the external tool.

    Discovery happens once; the resulting :class:`ToolLocation` is kept until
    :meth:`reset` is called.  Failed invocations never clear it.

    Args:
        config: Tool settings (env var name, executable, archive, timeout).
        cache_dir: Where an embedded runtime archive is extracted.
        environ: Environment used for discovery (defaults to ``os.environ``).
        os_family: Platform override, mainly for tests.
        arch: Architecture override, mainly for tests.
    """

    def __init__(
        self,
        config: ToolConfig | None = None,
        cache_dir: str | Path | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        os_family: OsFamily | None = None,
        arch: Arch | None = None,
    ) -> None:
        self.config = config or ToolConfig()
        if cache_dir is None:
            cache_dir = Path(tempfile.gettempdir()) / "project-generator"
        self.cache_dir = Path(cache_dir)
        self._environ = environ
        self.os_family = os_family or current_os()
        self.arch = arch or current_arch()
        self._location: ToolLocation | None = None
        self._version: str | None = None
        self._lock = threading.Lock()

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @property
    def cached_location(self) -> ToolLocation | None:
        return self._location

    def reset(self) -> None:
        """Forget the cached location so the next call re-discovers."""
        with self._lock:
            self._location = None
            self._version = None

    def locate(self) -> ToolLocation:
        """Return the tool location, discovering it on first use.

        Raises:
            JavaNotFoundError: If no discovery mechanism finds the executable.
            JavaEnvironmentError: If the bundled runtime cannot be unpacked.
        """
        location = self._location
        if location is not None:
            return location
        with self._lock:
            if self._location is None:
                self._location = self._discover()
            return self._location

    def _discover(self) -> ToolLocation:
        tried: list[str] = []

        home = self.environ.get(self.config.home_var)
        if home:
            candidate = home_executable(home, self.config.executable, self.os_family)
            if candidate.is_file():
                return ToolLocation(candidate, DiscoveryMethod.ENVIRONMENT_VARIABLE)
            tried.append(f"{self.config.home_var} ({candidate})")
        else:
            tried.append(f"{self.config.home_var} (not set)")

        archive = self._runtime_archive()
        if archive is not None:
            return ToolLocation(self._extract_runtime(archive), DiscoveryMethod.EMBEDDED_RESOURCE)
        tried.append("bundled runtime (not present)")

        name = executable_name(self.config.executable, self.os_family)
        found = shutil.which(name, path=self.environ.get("PATH", ""))
        if found:
            return ToolLocation(Path(found), DiscoveryMethod.PATH_SEARCH)
        tried.append(f"PATH ({name})")

        raise JavaNotFoundError(tried)

    def _runtime_archive(self) -> Path | None:
        if self.config.runtime_archive is not None:
            archive = Path(self.config.runtime_archive)
            return archive if archive.is_file() else None
        for name in runtime_archive_names(self.os_family, self.arch):
            candidate = Path(self.config.assets_dir) / name
            if candidate.is_file():
                return candidate
        return None

    def _extract_runtime(self, archive: Path) -> Path:
        """Unpack *archive* once into a content-addressed cache directory."""
        digest = _file_sha256(archive)[:12]
        target = self.cache_dir / f"runtime-{digest}"

        if not target.is_dir():
            console.print(f"[dim]Extracting bundled Java runtime {archive.name}[/dim]")
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                staging = Path(tempfile.mkdtemp(dir=self.cache_dir, prefix=".runtime-"))
                try:
                    extract_archive(archive, staging)
                    try:
                        os.replace(staging, target)
                    except OSError:
                        # Another process finished first.
                        if not target.is_dir():
                            raise
                finally:
                    if staging.exists():
                        shutil.rmtree(staging, ignore_errors=True)
            except (OSError, ValueError) as exc:
                raise JavaEnvironmentError(
                    f"Cannot unpack bundled Java runtime {archive}: {exc}"
                ) from exc

        executable = self._find_runtime_executable(target)
        if executable is None:
            raise JavaEnvironmentError(
                f"Bundled Java runtime {archive} has no bin/"
                f"{executable_name(self.config.executable, self.os_family)}"
            )
        if self.os_family is not OsFamily.WINDOWS:
            try:
                mode = executable.stat().st_mode
                if not mode & stat.S_IXUSR:
                    executable.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            except OSError as exc:
                raise JavaEnvironmentError(
                    f"Cannot make bundled Java runtime executable: {exc}"
                ) from exc
        return executable

    def _find_runtime_executable(self, root: Path) -> Path | None:
        name = executable_name(self.config.executable, self.os_family)
        direct = root / "bin" / name
        if direct.is_file():
            return direct
        for candidate in sorted(root.glob(f"*/bin/{name}")):
            if candidate.is_file():
                return candidate
        return None

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def invoke(
        self,
        arguments: list[str],
        working_directory: str | Path | None = None,
    ) -> ExitOutcome:
        """Run the tool with *arguments* and wait for it to exit.

        Arguments are passed as a vector; no shell is involved.

        Returns:
            The captured ``ExitOutcome`` of a successful (exit 0) run.

        Raises:
            JavaNotFoundError: If the tool cannot be located.
            JavaEnvironmentError: If the process cannot be started.
            ExternalToolError: On a non-zero exit or a timeout.
        """
        location = await asyncio.to_thread(self.locate)
        cmd = [str(location.executable_path), *arguments]
        timeout = self.config.timeout

        console.print(
            f"[cyan]Running {location.executable_path.name}[/cyan] "
            f"[dim]{escape(' '.join(arguments))}[/dim]"
        )

        start_time = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(working_directory) if working_directory else None,
            )
        except FileNotFoundError as exc:
            raise JavaEnvironmentError(
                f"Java executable not found: '{location.executable_path}'"
            ) from exc
        except PermissionError as exc:
            raise JavaEnvironmentError(
                f"Permission denied executing: '{location.executable_path}'. "
                "Check file permissions."
            ) from exc
        except OSError as exc:
            raise JavaEnvironmentError(
                f"Cannot execute '{location.executable_path}': {exc}"
            ) from exc

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - start_time
            console.print(f"[red]Java process timed out after {elapsed:.1f}s. Killing...[/red]")
            process.kill()
            await process.wait()
            outcome = ExitOutcome(
                exit_code=-1,
                duration_seconds=elapsed,
                arguments=list(arguments),
            )
            raise ExternalToolError(-1, f"timed out after {timeout}s", outcome)

        outcome = ExitOutcome(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
            duration_seconds=time.monotonic() - start_time,
            arguments=list(arguments),
        )
        if not outcome.success:
            excerpt = (outcome.stderr.strip() or outcome.stdout.strip())[-STDERR_EXCERPT_CHARS:]
            raise ExternalToolError(outcome.exit_code, excerpt, outcome)
        return outcome

    async def detect_version(self) -> str:
        """Run ``java -version`` and return the reported version string.

        The version is cached with the location and cleared by :meth:`reset`.

        Raises:
            JavaNotFoundError, JavaEnvironmentError, ExternalToolError
        """
        version = self._version
        if version is not None:
            return version
        # java prints its banner on stderr.
        outcome = await self.invoke(["-version"])
        version = parse_java_version(outcome.stderr or outcome.stdout)
        with self._lock:
            self._version = version
        return version


def parse_java_version(output: str) -> str:
    """Extract ``21.0.2`` from a ``java -version`` banner.

    Falls back to the first non-empty line, or ``"unknown"``.
    """
    match = _VERSION_PATTERN.search(output)
    if match:
        return match.group(1)
    for line in output.splitlines():
        if line.strip():
            return line.strip()
    return "unknown"


def _file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()
