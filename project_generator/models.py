"""Data model for the project generator.

Pydantic v2 models for caller-facing values (options, results, template
metadata) and plain dataclasses for the short-lived values the engine passes
between its own components (rendered files, tool locations, exit outcomes).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from project_generator.errors import InvalidProjectName, UnsupportedProjectType


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ProjectType(str, Enum):
    """Closed set of scaffold categories.

    ``JAVA`` is the managed-language backend generated by the external Java
    CLI; ``VUE`` and ``REACT`` are frontend families rendered from templates.
    """
    JAVA = "java"
    VUE = "vue"
    REACT = "react"

    @property
    def uses_external_tool(self) -> bool:
        return self is ProjectType.JAVA

    @classmethod
    def parse(cls, value: "str | ProjectType") -> "ProjectType":
        """Return the member for *value* or raise ``UnsupportedProjectType``."""
        if isinstance(value, ProjectType):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise UnsupportedProjectType(str(value), [m.value for m in cls])


DEFAULT_TEMPLATES: dict[ProjectType, str] = {
    ProjectType.JAVA: "spring-boot",
    ProjectType.VUE: "basic",
    ProjectType.REACT: "basic",
}


class DiscoveryMethod(str, Enum):
    """How the external tool's executable was found."""
    ENVIRONMENT_VARIABLE = "environment_variable"
    EMBEDDED_RESOURCE = "embedded_resource"
    PATH_SEARCH = "path_search"


# ---------------------------------------------------------------------------
# Generation request / response
# ---------------------------------------------------------------------------

_FORBIDDEN_NAME_CHARS = {"/", "\\", "\x00"} | {s for s in (os.sep, os.altsep) if s}


def validate_project_name(name: str) -> str:
    """Check a project name and return it unchanged.

    Raises:
        InvalidProjectName: If the name is empty, ``.``/``..``, or contains a
            path separator or NUL character.
    """
    if not name or not name.strip():
        raise InvalidProjectName(name or "", "name must not be empty")
    if name in (".", ".."):
        raise InvalidProjectName(name, "name must not be a relative directory reference")
    bad = sorted(c for c in _FORBIDDEN_NAME_CHARS if c in name)
    if bad:
        shown = ", ".join(repr(c) for c in bad)
        raise InvalidProjectName(name, f"name must not contain {shown}")
    return name


class GenerateOptions(BaseModel):
    """Options for a single ``generate_project`` call."""

    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(
        ...,
        validation_alias=AliasChoices("project_name", "name"),
        description="Project name; becomes the default output directory name",
    )
    project_type: str = Field(..., description="One of the ProjectType values")
    template: str | None = Field(default=None, description="Template name (per-type default if omitted)")
    output_path: Path | None = Field(default=None, description="Output directory (default ./<project_name>)")
    variables: dict[str, str] = Field(
        default_factory=dict,
        description="Placeholder values substituted into file contents and paths",
    )

    def resolved_output_path(self) -> Path:
        """The directory the project is generated into."""
        if self.output_path is not None:
            return Path(self.output_path)
        return Path(".") / self.project_name


class GenerateResult(BaseModel):
    """Outcome of one generation call."""

    success: bool
    files: list[str] = Field(default_factory=list)
    message: str | None = None


# ---------------------------------------------------------------------------
# Template metadata
# ---------------------------------------------------------------------------

class TemplateVariable(BaseModel):
    """A placeholder declared in a template's metadata file."""

    name: str
    description: str = ""
    default: str | None = None
    required: bool = False


class TemplateMetadata(BaseModel):
    """Schema of the optional ``template.json`` / ``template.yaml`` file."""

    name: str | None = None
    description: str = ""
    version: str = ""
    author: str = ""
    tags: list[str] = Field(default_factory=list)
    variables: list[TemplateVariable] = Field(default_factory=list)
    files: list[str] | None = Field(
        default=None, description="Explicit file order; unlisted files follow, sorted"
    )


class TemplateDescriptor(BaseModel):
    """Immutable description of one template.  Identity is ``(project_type, name)``."""

    model_config = ConfigDict(frozen=True)

    project_type: ProjectType
    name: str
    source_location: str
    declared_variables: frozenset[str] = frozenset()
    description: str = ""
    version: str = ""
    author: str = ""
    tags: tuple[str, ...] = ()
    variables: tuple[TemplateVariable, ...] = ()
    registry: str = "local"

    @property
    def identity(self) -> tuple[ProjectType, str]:
        return (self.project_type, self.name)

    def defaults(self) -> dict[str, str]:
        """Default values declared for the template's variables."""
        return {v.name: v.default for v in self.variables if v.default is not None}


# ---------------------------------------------------------------------------
# Engine-internal values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RenderedFile:
    """One file ready to be written, relative to the output root."""

    relative_path: str
    content: bytes
    is_binary: bool = False
    unresolved: tuple[str, ...] = ()


@dataclass(frozen=True)
class ToolLocation:
    """Where the external tool's executable lives and how it was found."""

    executable_path: Path
    discovery_method: DiscoveryMethod


@dataclass
class ExitOutcome:
    """Captured result of one external tool invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    arguments: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.exit_code == 0
