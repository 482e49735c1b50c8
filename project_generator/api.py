"""Programmatic entry points.

A single :class:`GeneratorDispatcher` is shared by every call in the
process, so template and tool-discovery caches are reused.  It is built
lazily from :meth:`Config.from_env` unless :func:`configure` is called first.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

from project_generator.config import Config
from project_generator.models import GenerateOptions, GenerateResult
from project_generator.scaffolder import GeneratorDispatcher

_dispatcher: GeneratorDispatcher | None = None
_lock = threading.Lock()


def configure(config: Config | None = None) -> GeneratorDispatcher:
    """Replace the shared dispatcher (and its caches) with one built from *config*."""
    global _dispatcher
    dispatcher = GeneratorDispatcher(config or Config.from_env())
    with _lock:
        _dispatcher = dispatcher
    return dispatcher


def get_dispatcher() -> GeneratorDispatcher:
    """Return the shared dispatcher, creating it on first use."""
    global _dispatcher
    dispatcher = _dispatcher
    if dispatcher is not None:
        return dispatcher
    with _lock:
        if _dispatcher is None:
            _dispatcher = GeneratorDispatcher(Config.from_env())
        return _dispatcher


async def generate_project(options: GenerateOptions | Mapping[str, Any]) -> GenerateResult:
    """Generate a project.

    *options* may be a :class:`GenerateOptions` or a plain mapping with the
    same keys (``name`` is accepted for ``project_name``).

    Raises:
        pydantic.ValidationError: If a mapping is missing required keys.
        InvalidProjectName, UnsupportedProjectType, TemplateNotFound
    """
    if not isinstance(options, GenerateOptions):
        options = GenerateOptions.model_validate(dict(options))
    return await get_dispatcher().generate(options)


def list_templates(project_type: str) -> list[str]:
    """Template names available for *project_type*, sorted."""
    return get_dispatcher().list_templates(project_type)


def get_template_info(project_type: str, template: str) -> str:
    """The template's description.

    Raises:
        TemplateNotFound: If no registry has the template.
    """
    return get_dispatcher().get_template_info(project_type, template).description
