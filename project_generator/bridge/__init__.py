"""Bridge to the external Java tool: discovery, invocation, CLI arguments."""

from .java_cli import (
    JavaProjectOptions,
    build_generate_arguments,
    parse_generated_files,
    resolve_cli_jar,
)
from .tool_bridge import ExternalToolBridge

__all__ = [
    "ExternalToolBridge",
    "JavaProjectOptions",
    "build_generate_arguments",
    "parse_generated_files",
    "resolve_cli_jar",
]
