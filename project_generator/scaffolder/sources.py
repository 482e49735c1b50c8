"""Template registry sources.

A source turns a registry entry from :class:`Config` into a local directory
laid out as ``<project_type>/<template_name>/``.  Local sources are used in
place; HTTP archives and git repositories are fetched into the cache
directory and reused until they are older than ``cache_ttl`` seconds.
"""

from __future__ import annotations

import hashlib
import io
import json
import os
import shutil
import subprocess
import tarfile
import tempfile
import time
import zipfile
from pathlib import Path

import httpx

from project_generator.config import (
    GitSourceConfig,
    HttpSourceConfig,
    LocalSourceConfig,
    RegistryConfig,
)
from project_generator.errors import TemplateSourceError
from project_generator.models import ProjectType
from project_generator.utils import console, extract_archive, print_warning, sanitize_name

_MARKER_FILE = ".source.json"
_PROJECT_TYPE_NAMES = {t.value for t in ProjectType}


class TemplateSource:
    """Base class: a named location that can produce a templates root."""

    def __init__(self, registry: RegistryConfig) -> None:
        self.registry = registry

    @property
    def name(self) -> str:
        return self.registry.name

    @property
    def location(self) -> str:
        """Human-readable identifier used in template descriptors."""
        raise NotImplementedError

    def materialize(self) -> Path:
        """Return a local templates root for this source.

        Raises:
            TemplateSourceError: If the source cannot be fetched or unpacked.
        """
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Local directory
# ---------------------------------------------------------------------------


class LocalSource(TemplateSource):
    def __init__(self, registry: RegistryConfig, source: LocalSourceConfig) -> None:
        super().__init__(registry)
        self.source = source

    @property
    def location(self) -> str:
        return str(self.source.path)

    def materialize(self) -> Path:
        return Path(self.source.path)


# ---------------------------------------------------------------------------
# Cached remote sources
# ---------------------------------------------------------------------------


class _CachedSource(TemplateSource):
    """Shared freshness tracking for sources fetched into the cache dir."""

    def __init__(self, registry: RegistryConfig, cache_dir: Path, ttl: int) -> None:
        super().__init__(registry)
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl

    @property
    def subfolder(self) -> str | None:
        raise NotImplementedError

    @property
    def target_dir(self) -> Path:
        digest = hashlib.sha256(self.location.encode("utf-8")).hexdigest()[:12]
        return self.cache_dir / f"{sanitize_name(self.name) or 'registry'}-{digest}"

    def is_fresh(self) -> bool:
        marker = self.target_dir / _MARKER_FILE
        if not marker.is_file():
            return False
        try:
            data = json.loads(marker.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return False
        if data.get("location") != self.location:
            return False
        return time.time() - float(data.get("fetched_at", 0)) < self.ttl

    def materialize(self) -> Path:
        """Return the cached copy, refetching it once it is stale.

        A failed refetch falls back to the stale copy when one exists.
        """
        if not self.is_fresh():
            try:
                self._refresh()
            except TemplateSourceError as exc:
                if not (self.target_dir / _MARKER_FILE).is_file():
                    raise
                print_warning(f"Warning: {exc}; using cached copy")
        root = _unwrap_single_directory(self.target_dir)
        if self.subfolder:
            root = root / self.subfolder
        return root

    def _refresh(self) -> None:
        console.print(f"[dim]Fetching template registry '{self.name}' from {self.location}[/dim]")
        staging: Path | None = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(dir=self.cache_dir, prefix=".staging-"))
            self._fetch_into(staging)
            (staging / _MARKER_FILE).write_text(
                json.dumps({"location": self.location, "fetched_at": time.time()}),
                encoding="utf-8",
            )
            shutil.rmtree(self.target_dir, ignore_errors=True)
            try:
                os.replace(staging, self.target_dir)
            except OSError:
                # A concurrent fetch published first.
                if not (self.target_dir / _MARKER_FILE).is_file():
                    raise
        except OSError as exc:
            raise TemplateSourceError(self.name, str(exc)) from exc
        finally:
            if staging is not None and staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    def _fetch_into(self, destination: Path) -> None:
        raise NotImplementedError


class HttpSource(_CachedSource):
    """A ``.zip`` or ``.tar.gz`` archive downloaded with httpx."""

    def __init__(
        self,
        registry: RegistryConfig,
        source: HttpSourceConfig,
        cache_dir: Path,
        ttl: int,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(registry, cache_dir, ttl)
        self.source = source
        self._client = client

    @property
    def location(self) -> str:
        return self.source.url

    @property
    def subfolder(self) -> str | None:
        return self.source.subfolder

    def _download(self) -> bytes:
        headers = {}
        if self.source.token:
            headers["Authorization"] = f"Bearer {self.source.token}"
        client = self._client or httpx.Client(
            follow_redirects=True, timeout=httpx.Timeout(60.0, connect=10.0)
        )
        try:
            response = client.get(self.source.url, headers=headers)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as exc:
            raise TemplateSourceError(self.name, f"download failed: {exc}") from exc
        finally:
            if self._client is None:
                client.close()

    def _fetch_into(self, destination: Path) -> None:
        payload = self._download()
        if self.source.sha256:
            actual = hashlib.sha256(payload).hexdigest()
            if actual.lower() != self.source.sha256.lower():
                raise TemplateSourceError(
                    self.name,
                    f"checksum mismatch (expected {self.source.sha256}, got {actual})",
                )
        try:
            extract_archive(io.BytesIO(payload), destination)
        except (zipfile.BadZipFile, tarfile.TarError, ValueError) as exc:
            raise TemplateSourceError(self.name, f"cannot unpack archive: {exc}") from exc


class GitSource(_CachedSource):
    """A shallow clone of a git repository."""

    def __init__(
        self,
        registry: RegistryConfig,
        source: GitSourceConfig,
        cache_dir: Path,
        ttl: int,
        git_binary: str = "git",
    ) -> None:
        super().__init__(registry, cache_dir, ttl)
        self.source = source
        self.git_binary = git_binary

    @property
    def location(self) -> str:
        if self.source.branch:
            return f"{self.source.url}#{self.source.branch}"
        return self.source.url

    @property
    def subfolder(self) -> str | None:
        return self.source.subfolder

    def clone_command(self, destination: Path) -> list[str]:
        cmd = [self.git_binary, "clone", "--depth", "1"]
        if self.source.branch:
            cmd += ["--branch", self.source.branch]
        # "--" stops option parsing so a URL can never be read as a flag.
        cmd += ["--", self.source.url, str(destination)]
        return cmd

    def _fetch_into(self, destination: Path) -> None:
        checkout = destination / "checkout"
        try:
            result = subprocess.run(
                self.clone_command(checkout),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=300,
            )
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise TemplateSourceError(self.name, f"git clone failed: {exc}") from exc
        if result.returncode != 0:
            raise TemplateSourceError(
                self.name, f"git clone exited {result.returncode}: {result.stderr.strip()}"
            )
        shutil.rmtree(checkout / ".git", ignore_errors=True)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_source(registry: RegistryConfig, cache_dir: Path, ttl: int) -> TemplateSource:
    """Create the source object matching a registry's configuration."""
    source = registry.source
    if isinstance(source, LocalSourceConfig):
        return LocalSource(registry, source)
    if isinstance(source, HttpSourceConfig):
        return HttpSource(registry, source, cache_dir, ttl)
    if isinstance(source, GitSourceConfig):
        return GitSource(registry, source, cache_dir, ttl)
    raise TypeError(f"Unknown template source: {type(source).__name__}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _unwrap_single_directory(root: Path) -> Path:
    """Descend into a lone wrapper directory (e.g. ``repo-main/``) if present."""
    children = [p for p in root.iterdir() if not p.name.startswith(".")]
    if (
        len(children) == 1
        and children[0].is_dir()
        and children[0].name not in _PROJECT_TYPE_NAMES
    ):
        return children[0]
    return root
