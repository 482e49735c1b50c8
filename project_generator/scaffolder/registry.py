"""Template catalog, loading and caching.

The registry knows which ``(project_type, template)`` pairs exist across the
configured template sources, loads a template's metadata and raw file bytes
on first use, and renders it on every call.

Cache discipline: loaded templates live in a dict that is never mutated in
place.  Publishing a new entry builds a new dict under a short writer lock
and swaps the reference, so readers never lock and never see a half-built
entry.  Two callers racing on the same uncached template may both read it
from disk; the first to publish wins and both get a complete result.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from jinja2 import TemplateError
from pydantic import ValidationError

from project_generator.config import Config
from project_generator.errors import (
    TemplateLoadError,
    TemplateNotFound,
    TemplateSourceError,
)
from project_generator.models import (
    ProjectType,
    RenderedFile,
    TemplateDescriptor,
    TemplateMetadata,
)
from project_generator.utils import load_structured, print_warning

from .sources import TemplateSource, build_source
from .templates import TemplateRenderer

METADATA_FILES = ("template.json", "template.yaml", "template.yml")


@dataclass(frozen=True)
class LoadedTemplate:
    """A template's descriptor plus its raw files in render order."""

    descriptor: TemplateDescriptor
    files: tuple[tuple[str, bytes], ...]


class TemplateRegistry:
    """Catalog of templates backed by one or more template sources.

    Args:
        config: Engine configuration; supplies the registries and cache dir.
        renderer: Renderer shared across calls (created if omitted).
        sources: Explicit sources, overriding those built from *config*.
    """

    def __init__(
        self,
        config: Config | None = None,
        renderer: TemplateRenderer | None = None,
        sources: list[TemplateSource] | None = None,
    ) -> None:
        self.config = config or Config()
        self.renderer = renderer or TemplateRenderer()
        if sources is None:
            sources = [
                build_source(r, self.config.registry_cache_dir, self.config.cache_ttl)
                for r in self.config.effective_registries()
            ]
        self._sources = list(sources)
        self._roots: tuple[tuple[TemplateSource, Path], ...] | None = None
        self._cache: dict[tuple[ProjectType, str], LoadedTemplate] = {}
        self._write_lock = threading.Lock()

    # -- Sources -----------------------------------------------------------

    def roots(self) -> tuple[tuple[TemplateSource, Path], ...]:
        """Materialised ``(source, root_dir)`` pairs in lookup order.

        Sources that cannot be materialised are skipped with a warning.
        """
        roots = self._roots
        if roots is not None:
            return roots

        resolved: list[tuple[TemplateSource, Path]] = []
        for source in self._sources:
            try:
                resolved.append((source, source.materialize()))
            except TemplateSourceError as exc:
                print_warning(f"Warning: {exc}")

        with self._write_lock:
            if self._roots is None:
                self._roots = tuple(resolved)
            return self._roots

    def clear_cache(self) -> None:
        """Forget loaded templates and materialised sources."""
        with self._write_lock:
            self._cache = {}
            self._roots = None

    # -- Public API --------------------------------------------------------

    def list(self, project_type: str | ProjectType) -> list[str]:
        """Template names for *project_type*, sorted lexicographically.

        Raises:
            UnsupportedProjectType: If *project_type* is not a known type.
        """
        pt = ProjectType.parse(project_type)
        names: set[str] = set()
        for _source, root in self.roots():
            type_dir = root / pt.value
            if not type_dir.is_dir():
                continue
            for child in type_dir.iterdir():
                if child.is_dir() and _is_valid_template_name(child.name):
                    names.add(child.name)
        return sorted(names)

    def describe(self, project_type: str | ProjectType, template: str) -> TemplateDescriptor:
        """Return the descriptor for a template.

        Raises:
            UnsupportedProjectType: Unknown project type.
            TemplateNotFound: No registry contains the template.
            TemplateLoadError: The template exists but cannot be read.
        """
        return self.load(project_type, template).descriptor

    def resolve_and_render(
        self,
        project_type: str | ProjectType,
        template: str,
        variables: dict[str, str] | None = None,
    ) -> list[RenderedFile]:
        """Render a template against *variables*.

        Declared metadata defaults fill in variables the caller did not
        supply.  Unresolved placeholders are left verbatim and listed on each
        ``RenderedFile``.

        Raises:
            UnsupportedProjectType, TemplateNotFound, TemplateLoadError
        """
        loaded = self.load(project_type, template)
        descriptor = loaded.descriptor
        merged = {**descriptor.defaults(), **(variables or {})}
        try:
            return [
                self.renderer.render_file(rel, raw, merged)
                for rel, raw in loaded.files
            ]
        except Exception as exc:
            # Jinja expressions can raise anything (ZeroDivisionError, TypeError...).
            raise TemplateLoadError(
                descriptor.project_type.value, descriptor.name, f"render failed: {exc}"
            ) from exc

    # -- Loading -----------------------------------------------------------

    def load(self, project_type: str | ProjectType, template: str) -> LoadedTemplate:
        """Return the cached template, loading it on first access."""
        pt = ProjectType.parse(project_type)
        key = (pt, template)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        found = self._find(pt, template)
        if found is None:
            raise TemplateNotFound(pt.value, template)
        source, template_dir = found
        loaded = self._read_template(pt, template, source, template_dir)

        with self._write_lock:
            current = self._cache
            if key in current:
                return current[key]
            self._cache = {**current, key: loaded}
        return loaded

    def _find(self, pt: ProjectType, template: str) -> tuple[TemplateSource, Path] | None:
        if not _is_valid_template_name(template):
            return None
        for source, root in self.roots():
            candidate = root / pt.value / template
            if candidate.is_dir():
                return source, candidate
        return None

    def _read_template(
        self,
        pt: ProjectType,
        template: str,
        source: TemplateSource,
        template_dir: Path,
    ) -> LoadedTemplate:
        metadata_file = next(
            (template_dir / n for n in METADATA_FILES if (template_dir / n).is_file()),
            None,
        )
        try:
            metadata = TemplateMetadata()
            if metadata_file is not None:
                metadata = TemplateMetadata.model_validate(load_structured(metadata_file))

            raw_files: dict[str, bytes] = {}
            for path in sorted(template_dir.rglob("*")):
                if not path.is_file():
                    continue
                rel = path.relative_to(template_dir).as_posix()
                if rel in METADATA_FILES or ".git" in rel.split("/"):
                    continue
                raw_files[rel] = path.read_bytes()
        except (OSError, ValueError, ValidationError) as exc:
            raise TemplateLoadError(pt.value, template, str(exc)) from exc

        order = list(raw_files)
        if metadata.files:
            missing = [f for f in metadata.files if f not in raw_files]
            if missing:
                raise TemplateLoadError(
                    pt.value, template, f"declared files missing: {', '.join(missing)}"
                )
            listed = set(metadata.files)
            order = list(metadata.files) + [f for f in order if f not in listed]

        declared: set[str] = {v.name for v in metadata.variables}
        try:
            for rel in order:
                declared.update(self.renderer.placeholder_names(rel, raw_files[rel]))
        except TemplateError as exc:
            raise TemplateLoadError(pt.value, template, f"invalid Jinja template: {exc}") from exc

        descriptor = TemplateDescriptor(
            project_type=pt,
            name=template,
            source_location=str(template_dir),
            declared_variables=frozenset(declared),
            description=metadata.description or f"{pt.value} template '{template}'",
            version=metadata.version,
            author=metadata.author,
            tags=tuple(metadata.tags),
            variables=tuple(metadata.variables),
            registry=source.name,
        )
        return LoadedTemplate(
            descriptor=descriptor,
            files=tuple((rel, raw_files[rel]) for rel in order),
        )


def _is_valid_template_name(name: str) -> bool:
    return bool(name) and not name.startswith(".") and "/" not in name and "\\" not in name
