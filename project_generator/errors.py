"""Exception hierarchy for the project generator.

Every error raised by the engine derives from :class:`GeneratorError`.  Each
instance can render itself as a failed :class:`GenerateResult` via the
``result`` property, so callers that need a structured value (the CLI, host
bindings) never have to special-case exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from project_generator.models import ExitOutcome, GenerateResult


class GeneratorError(Exception):
    """Base class for all project generator errors."""

    def __init__(self, message: str, files: list[str] | None = None) -> None:
        self.files = list(files or [])
        super().__init__(message)

    @property
    def result(self) -> "GenerateResult":
        """A failed ``GenerateResult`` describing this error."""
        from project_generator.models import GenerateResult

        return GenerateResult(success=False, files=self.files, message=str(self))


# ---------------------------------------------------------------------------
# Validation errors (raised before any side effect)
# ---------------------------------------------------------------------------


class InvalidProjectName(GeneratorError):
    """The project name is empty or contains a path separator."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid project name {name!r}: {reason}")


class UnsupportedProjectType(GeneratorError):
    """The requested project type is not one of the known types."""

    def __init__(self, project_type: str, supported: list[str] | None = None) -> None:
        self.project_type = project_type
        self.supported = list(supported or [])
        message = f"Unsupported project type: {project_type!r}"
        if self.supported:
            message += f" (expected one of: {', '.join(self.supported)})"
        super().__init__(message)


class TemplateNotFound(GeneratorError):
    """No template descriptor matches ``(project_type, template)``."""

    def __init__(self, project_type: str, template: str) -> None:
        self.project_type = project_type
        self.template = template
        super().__init__(f"Template not found: {project_type}/{template}")


# ---------------------------------------------------------------------------
# Runtime errors (folded into GenerateResult by the dispatcher)
# ---------------------------------------------------------------------------


class TemplateLoadError(GeneratorError):
    """The template's backing store exists but could not be read or parsed."""

    def __init__(self, project_type: str, template: str, detail: str) -> None:
        self.project_type = project_type
        self.template = template
        self.detail = detail
        super().__init__(f"Failed to load template {project_type}/{template}: {detail}")


class TemplateSourceError(GeneratorError):
    """A remote template registry could not be fetched or unpacked."""

    def __init__(self, registry: str, detail: str) -> None:
        self.registry = registry
        self.detail = detail
        super().__init__(f"Template registry {registry!r} unavailable: {detail}")


class JavaEnvironmentError(GeneratorError):
    """The Java runtime or the bundled Java CLI could not be used."""


class JavaNotFoundError(JavaEnvironmentError):
    """No Java executable was found by any discovery mechanism."""

    def __init__(self, tried: list[str] | None = None) -> None:
        self.tried = list(tried or [])
        message = (
            "Java not found. Install Java and ensure it is on your PATH, "
            "or set JAVA_HOME."
        )
        if self.tried:
            message += f" Tried: {'; '.join(self.tried)}"
        super().__init__(message)


class ExternalToolError(GeneratorError):
    """The external tool exited with a non-zero status."""

    def __init__(
        self,
        exit_code: int,
        stderr_excerpt: str,
        outcome: "ExitOutcome | None" = None,
    ) -> None:
        self.exit_code = exit_code
        self.stderr_excerpt = stderr_excerpt
        self.outcome = outcome
        message = f"External tool failed with exit code {exit_code}"
        if stderr_excerpt:
            message += f": {stderr_excerpt}"
        super().__init__(message)


class PartialWriteError(GeneratorError):
    """Some files in a batch could not be written.

    ``succeeded`` lists the relative paths that were written (in input order)
    and ``failed`` maps each failing relative path to its error text.
    """

    def __init__(self, succeeded: list[str], failed: dict[str, str]) -> None:
        self.succeeded = list(succeeded)
        self.failed = dict(failed)
        lines = [f"Failed to write {len(self.failed)} of "
                 f"{len(self.failed) + len(self.succeeded)} file(s):"]
        for path, error in self.failed.items():
            lines.append(f"  - {path}: {error}")
        super().__init__("\n".join(lines), files=self.succeeded)


class GeneratorIOError(GeneratorError):
    """A filesystem operation (directory creation, permissions) failed."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"I/O error at {path}: {detail}")
