"""Project generator configuration.

Centralised, typed configuration for the engine. All settings use Pydantic v2
models so they can be validated at construction time and serialised to/from
JSON, YAML or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import BaseModel, Field

PACKAGE_DIR = Path(__file__).parent
BUNDLED_TEMPLATES_DIR = PACKAGE_DIR / "templates"
BUNDLED_ASSETS_DIR = PACKAGE_DIR / "assets"


def _default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME")
    if base:
        return Path(base) / "project-generator"
    return Path.home() / ".cache" / "project-generator"


# ---------------------------------------------------------------------------
# Template registry sources
# ---------------------------------------------------------------------------


class LocalSourceConfig(BaseModel):
    """Templates read straight from a directory tree."""

    type: Literal["local"] = "local"
    path: Path


class HttpSourceConfig(BaseModel):
    """Templates shipped as a ``.zip`` or ``.tar.gz`` archive behind a URL."""

    type: Literal["http"] = "http"
    url: str
    sha256: str | None = Field(default=None, description="Expected archive checksum (hex)")
    token: str | None = Field(default=None, description="Bearer token sent with the download")
    subfolder: str | None = None


class GitSourceConfig(BaseModel):
    """Templates kept in a git repository."""

    type: Literal["git"] = "git"
    url: str
    branch: str | None = None
    subfolder: str | None = None


SourceConfig = Annotated[
    Union[LocalSourceConfig, HttpSourceConfig, GitSourceConfig],
    Field(discriminator="type"),
]


class RegistryConfig(BaseModel):
    """One template registry. Lower ``priority`` values are consulted first."""

    name: str
    source: SourceConfig
    enabled: bool = True
    priority: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# External tool
# ---------------------------------------------------------------------------


class ToolConfig(BaseModel):
    """Discovery and invocation settings for the external Java tool."""

    home_var: str = Field(default="JAVA_HOME", description="Env var holding the runtime root")
    executable: str = Field(default="java", description="Canonical binary name")
    cli_jar: Path | None = Field(
        default=None, description="Java CLI jar (default: bundled assets/java-cli.jar)"
    )
    runtime_archive: Path | None = Field(
        default=None,
        description="Embedded runtime archive (default: bundled assets/runtime-<os>-<arch>.*)",
    )
    assets_dir: Path = Field(default=BUNDLED_ASSETS_DIR)
    timeout: float | None = Field(
        default=None, gt=0, description="Seconds before the tool is killed (None waits forever)"
    )

    @property
    def cli_jar_path(self) -> Path:
        return self.cli_jar or (self.assets_dir / "java-cli.jar")


# ---------------------------------------------------------------------------
# Global configuration
# ---------------------------------------------------------------------------


class Config(BaseModel):
    """Global project generator configuration.

    Instances are typically created once by the CLI entry point or by
    ``project_generator.api.configure`` and then passed to the dispatcher.
    """

    templates_dir: Path | None = Field(
        default=None, description="Local templates root (default: bundled templates)"
    )
    cache_dir: Path = Field(default_factory=_default_cache_dir)
    cache_ttl: int = Field(default=3600, ge=0, description="Remote registry freshness in seconds")
    registries: list[RegistryConfig] = Field(default_factory=list)
    max_parallel_writes: int = Field(
        default=8, ge=1, description="Concurrent file writes per generation call"
    )
    tool: ToolConfig = Field(default_factory=ToolConfig)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def local_templates_dir(self) -> Path:
        return self.templates_dir or BUNDLED_TEMPLATES_DIR

    @property
    def registry_cache_dir(self) -> Path:
        """Where remote registries are materialised."""
        return self.cache_dir / "registries"

    @property
    def runtime_cache_dir(self) -> Path:
        """Where the embedded runtime archive is extracted."""
        return self.cache_dir / "runtime"

    def effective_registries(self) -> list[RegistryConfig]:
        """Enabled registries in lookup order.

        When no registry is configured, a single ``local`` registry pointing
        at :attr:`local_templates_dir` is used.
        """
        registries = self.registries or [
            RegistryConfig(
                name="local",
                source=LocalSourceConfig(path=self.local_templates_dir),
            )
        ]
        enabled = [r for r in registries if r.enabled]
        return sorted(enabled, key=lambda r: r.priority)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration as JSON (or YAML for ``.yaml``/``.yml``)."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.suffix in (".yaml", ".yml"):
            data = self.model_dump(mode="json")
            target.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        else:
            target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a configuration file (JSON, or YAML for ``.yaml``/``.yml``)."""
        path = Path(path)
        raw = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            return cls.model_validate(yaml.safe_load(raw) or {})
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Config":
        """Build a ``Config`` from environment variables.

        ``PROJECT_GENERATOR_CONFIG`` names a base config file; the remaining
        variables override individual fields:
            PROJECT_GENERATOR_TEMPLATES_DIR, PROJECT_GENERATOR_CACHE_DIR,
            PROJECT_GENERATOR_CACHE_TTL, PROJECT_GENERATOR_MAX_PARALLEL_WRITES,
            PROJECT_GENERATOR_JAVA_CLI_JAR, PROJECT_GENERATOR_RUNTIME_ARCHIVE,
            PROJECT_GENERATOR_TOOL_TIMEOUT.
        """
        env = os.environ if environ is None else environ

        base = cls.load(Path(env["PROJECT_GENERATOR_CONFIG"])) if env.get(
            "PROJECT_GENERATOR_CONFIG"
        ) else cls()

        overrides: dict[str, Any] = {}
        if env.get("PROJECT_GENERATOR_TEMPLATES_DIR"):
            overrides["templates_dir"] = Path(env["PROJECT_GENERATOR_TEMPLATES_DIR"])
        if env.get("PROJECT_GENERATOR_CACHE_DIR"):
            overrides["cache_dir"] = Path(env["PROJECT_GENERATOR_CACHE_DIR"])
        if env.get("PROJECT_GENERATOR_CACHE_TTL"):
            overrides["cache_ttl"] = int(env["PROJECT_GENERATOR_CACHE_TTL"])
        if env.get("PROJECT_GENERATOR_MAX_PARALLEL_WRITES"):
            overrides["max_parallel_writes"] = int(env["PROJECT_GENERATOR_MAX_PARALLEL_WRITES"])

        tool_overrides: dict[str, Any] = {}
        if env.get("PROJECT_GENERATOR_JAVA_CLI_JAR"):
            tool_overrides["cli_jar"] = Path(env["PROJECT_GENERATOR_JAVA_CLI_JAR"])
        if env.get("PROJECT_GENERATOR_RUNTIME_ARCHIVE"):
            tool_overrides["runtime_archive"] = Path(env["PROJECT_GENERATOR_RUNTIME_ARCHIVE"])
        if env.get("PROJECT_GENERATOR_TOOL_TIMEOUT"):
            tool_overrides["timeout"] = float(env["PROJECT_GENERATOR_TOOL_TIMEOUT"])
        if tool_overrides:
            overrides["tool"] = {**base.tool.model_dump(), **tool_overrides}

        if not overrides:
            return base
        # Round-trip through validation so constraints still apply.
        return cls.model_validate({**base.model_dump(), **overrides})
