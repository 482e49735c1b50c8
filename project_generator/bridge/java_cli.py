"""Argument building and output parsing for the bundled Java project CLI.

The CLI is a jar run as ``java -jar java-cli.jar generate --type java ...``.
It creates the project itself and announces each file on stdout as a
``Generated: <path>`` line.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from project_generator.config import ToolConfig
from project_generator.errors import JavaEnvironmentError
from project_generator.models import GenerateOptions

GENERATED_PREFIX = "Generated:"

# Option field -> variable keys accepted for it, first match wins.
VARIABLE_KEYS: dict[str, tuple[str, ...]] = {
    "package_name": ("package", "package_name", "packageName"),
    "group_id": ("group_id", "groupId"),
    "artifact_id": ("artifact_id", "artifactId"),
    "version": ("version",),
}


@dataclass
class JavaProjectOptions:
    """Inputs understood by the Java CLI's ``generate`` command."""

    name: str
    template: str
    output_path: Path
    package_name: str | None = None
    group_id: str | None = None
    artifact_id: str | None = None
    version: str | None = None

    @classmethod
    def from_generate_options(
        cls, options: GenerateOptions, template: str
    ) -> "JavaProjectOptions":
        values: dict[str, str | None] = {}
        for field_name, keys in VARIABLE_KEYS.items():
            values[field_name] = next(
                (options.variables[k] for k in keys if options.variables.get(k)), None
            )
        return cls(
            name=options.project_name,
            template=template,
            output_path=options.resolved_output_path(),
            **values,
        )


def unused_variables(variables: dict[str, str]) -> list[str]:
    """Variable names the Java CLI has no option for, sorted."""
    known = {k for keys in VARIABLE_KEYS.values() for k in keys}
    return sorted(k for k in variables if k not in known)


def build_generate_arguments(jar: str | Path, options: JavaProjectOptions) -> list[str]:
    """Build the argument vector passed to the ``java`` executable."""
    args = [
        "-jar", str(jar),
        "generate",
        "--type", "java",
        "--name", options.name,
        "--template", options.template,
    ]
    if options.package_name:
        args += ["--package", options.package_name]
    if options.group_id:
        args += ["--group-id", options.group_id]
    if options.artifact_id:
        args += ["--artifact-id", options.artifact_id]
    if options.version:
        args += ["--version", options.version]
    args += ["--output", str(options.output_path)]
    return args


def parse_generated_files(stdout: str) -> list[str]:
    """Extract the paths from ``Generated: <path>`` lines, in order."""
    files: list[str] = []
    for line in stdout.splitlines():
        line = line.strip()
        if line.startswith(GENERATED_PREFIX):
            path = line[len(GENERATED_PREFIX):].strip()
            if path:
                files.append(path)
    return files


def resolve_cli_jar(config: ToolConfig) -> Path:
    """Return the Java CLI jar path.

    Raises:
        JavaEnvironmentError: If the jar does not exist.
    """
    jar = Path(config.cli_jar_path)
    if not jar.is_file():
        raise JavaEnvironmentError(f"Java CLI jar not found at: {jar}")
    return jar
