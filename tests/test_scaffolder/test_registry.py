"""Unit tests for the TemplateRegistry (project_generator.scaffolder.registry).

Tests cover:
- Sorted listing, hidden directories, unknown types
- describe(): metadata, inferred placeholders, missing templates
- resolve_and_render(): defaults, overrides, file order, unresolved names
- Load caching and clear_cache()
- Multiple sources in priority order
- Malformed templates -> TemplateLoadError
"""

from __future__ import annotations

import textwrap
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from project_generator.config import Config, LocalSourceConfig, RegistryConfig
from project_generator.errors import (
    TemplateLoadError,
    TemplateNotFound,
    TemplateSourceError,
    UnsupportedProjectType,
)
from project_generator.models import ProjectType
from project_generator.scaffolder.registry import LoadedTemplate, TemplateRegistry
from project_generator.scaffolder.sources import LocalSource, TemplateSource


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestList:
    @pytest.mark.unit
    def test_sorted_and_hidden_skipped(self, registry):
        assert registry.list("vue") == ["basic", "typescript"]
        assert registry.list(ProjectType.REACT) == ["basic"]

    @pytest.mark.unit
    def test_deterministic(self, registry):
        assert registry.list("vue") == registry.list("vue")

    @pytest.mark.unit
    def test_type_without_directory_is_empty(self, registry):
        assert registry.list("java") == []

    @pytest.mark.unit
    def test_unknown_type_raises(self, registry):
        with pytest.raises(UnsupportedProjectType):
            registry.list("angular")

    @pytest.mark.unit
    def test_bundled_templates(self, tmp_path):
        registry = TemplateRegistry(Config(cache_dir=tmp_path))
        assert registry.list("vue") == ["basic", "typescript"]
        assert registry.list("react") == ["basic", "typescript"]
        assert registry.list("java") == ["spring-boot"]


# ---------------------------------------------------------------------------
# describe()
# ---------------------------------------------------------------------------


class TestDescribe:
    @pytest.mark.unit
    def test_without_metadata(self, registry, templates_root):
        descriptor = registry.describe("vue", "basic")
        assert descriptor.identity == (ProjectType.VUE, "basic")
        assert descriptor.description == "vue template 'basic'"
        assert descriptor.declared_variables == frozenset({"name"})
        assert descriptor.registry == "local"
        assert Path(descriptor.source_location) == templates_root / "vue" / "basic"

    @pytest.mark.unit
    def test_with_metadata(self, registry):
        descriptor = registry.describe("vue", "typescript")
        assert descriptor.description == "Vue with TypeScript"
        assert descriptor.version == "2.0.0"
        assert descriptor.tags == ("vue", "ts")
        assert descriptor.defaults() == {"description": "A typed app"}
        assert descriptor.declared_variables == frozenset({"name", "description"})

    @pytest.mark.unit
    def test_placeholders_in_paths_are_declared(self, registry):
        descriptor = registry.describe("react", "basic")
        assert descriptor.declared_variables == frozenset({"name", "component"})

    @pytest.mark.unit
    def test_missing_template(self, registry):
        with pytest.raises(TemplateNotFound) as exc_info:
            registry.describe("vue", "nope")
        assert exc_info.value.project_type == "vue"
        assert exc_info.value.template == "nope"

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["", ".hidden", "../react", "a/b"])
    def test_invalid_names_not_found(self, registry, name):
        with pytest.raises(TemplateNotFound):
            registry.describe("vue", name)


# ---------------------------------------------------------------------------
# resolve_and_render()
# ---------------------------------------------------------------------------


class TestResolveAndRender:
    @pytest.mark.unit
    def test_renders_in_sorted_order(self, registry):
        files = registry.resolve_and_render("vue", "basic", {"name": "my-app"})
        assert [f.relative_path for f in files] == [
            "index.html",
            "public/logo.png",
            "src/App.vue",
            "src/main.js",
        ]
        index = files[0]
        assert index.content == b"<html><head><title>my-app</title></head></html>\n"
        assert index.unresolved == ()

    @pytest.mark.unit
    def test_unresolved_left_verbatim(self, registry):
        files = registry.resolve_and_render("vue", "basic", {})
        index = next(f for f in files if f.relative_path == "index.html")
        assert b"{{name}}" in index.content
        assert index.unresolved == ("name",)

    @pytest.mark.unit
    def test_metadata_defaults_and_overrides(self, registry):
        files = registry.resolve_and_render("vue", "typescript", {"name": "My App"})
        package = next(f for f in files if f.relative_path == "package.json")
        assert package.content == b'{"name": "my-app", "description": "A typed app"}\n'

        files = registry.resolve_and_render(
            "vue", "typescript", {"name": "x", "description": "custom"}
        )
        package = next(f for f in files if f.relative_path == "package.json")
        assert b'"description": "custom"' in package.content

    @pytest.mark.unit
    def test_metadata_file_not_rendered(self, registry):
        files = registry.resolve_and_render("vue", "typescript", {"name": "x"})
        assert "template.yaml" not in [f.relative_path for f in files]

    @pytest.mark.unit
    def test_declared_file_order(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "tpl", {
            "vue/ordered/template.json": '{"files": ["z.txt", "a/b.txt"]}',
            "vue/ordered/a/b.txt": "b",
            "vue/ordered/m.txt": "m",
            "vue/ordered/z.txt": "z",
        })
        registry = TemplateRegistry(Config(templates_dir=root, cache_dir=tmp_path / "c"))
        files = registry.resolve_and_render("vue", "ordered", {})
        assert [f.relative_path for f in files] == ["z.txt", "a/b.txt", "m.txt"]

    @pytest.mark.unit
    def test_rendering_is_idempotent(self, registry):
        first = registry.resolve_and_render("react", "basic", {"name": "app"})
        second = registry.resolve_and_render("react", "basic", {"name": "app"})
        assert first == second
        assert first[1].relative_path == "src/app.jsx"


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    @pytest.mark.unit
    def test_load_is_cached(self, registry, templates_root):
        first = registry.load("vue", "basic")
        (templates_root / "vue" / "basic" / "index.html").write_text("changed", encoding="utf-8")
        assert registry.load("vue", "basic") is first

    @pytest.mark.unit
    def test_clear_cache_reloads(self, registry, templates_root):
        registry.load("vue", "basic")
        (templates_root / "vue" / "basic" / "index.html").write_text("changed", encoding="utf-8")
        registry.clear_cache()
        files = registry.resolve_and_render("vue", "basic", {})
        assert files[0].content == b"changed"

    @pytest.mark.unit
    def test_concurrent_first_load_publishes_once(self, registry, monkeypatch):
        workers = 4
        barrier = threading.Barrier(workers, timeout=10)
        read_template = registry._read_template
        reads: list[LoadedTemplate] = []

        def synchronised_read(*args):
            # Every caller misses the cache before any of them publishes.
            barrier.wait()
            loaded = read_template(*args)
            reads.append(loaded)
            return loaded

        monkeypatch.setattr(registry, "_read_template", synchronised_read)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda _: registry.load("vue", "basic"), range(workers)))

        assert len(reads) == workers
        assert all(result is results[0] for result in results)
        assert results[0] in reads
        assert list(registry._cache) == [(ProjectType.VUE, "basic")]
        assert registry._cache[(ProjectType.VUE, "basic")] is results[0]
        assert [rel for rel, _ in results[0].files] == [
            "index.html", "public/logo.png", "src/App.vue", "src/main.js",
        ]


# ---------------------------------------------------------------------------
# Multiple sources
# ---------------------------------------------------------------------------


class _BrokenSource(TemplateSource):
    @property
    def location(self) -> str:
        return "broken://"

    def materialize(self) -> Path:
        raise TemplateSourceError(self.name, "offline")


class TestSources:
    @pytest.mark.unit
    def test_priority_order_and_union(self, tmp_path, make_tree):
        first = make_tree(tmp_path / "first", {
            "vue/basic/index.html": "first",
            "vue/extra/index.html": "extra",
        })
        second = make_tree(tmp_path / "second", {
            "vue/basic/index.html": "second",
            "vue/other/index.html": "other",
        })
        config = Config(
            cache_dir=tmp_path / "cache",
            registries=[
                RegistryConfig(name="second", priority=2, source=LocalSourceConfig(path=second)),
                RegistryConfig(name="first", priority=1, source=LocalSourceConfig(path=first)),
            ],
        )
        registry = TemplateRegistry(config)
        assert registry.list("vue") == ["basic", "extra", "other"]
        descriptor = registry.describe("vue", "basic")
        assert descriptor.registry == "first"
        assert registry.resolve_and_render("vue", "basic")[0].content == b"first"

    @pytest.mark.unit
    def test_unavailable_source_skipped(self, tmp_path, templates_root, capsys):
        local = RegistryConfig(name="local", source=LocalSourceConfig(path=templates_root))
        broken = RegistryConfig(name="remote", source=LocalSourceConfig(path=tmp_path))
        registry = TemplateRegistry(
            Config(cache_dir=tmp_path / "cache"),
            sources=[_BrokenSource(broken), LocalSource(local, local.source)],
        )
        assert registry.list("vue") == ["basic", "typescript"]
        assert "offline" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Malformed templates
# ---------------------------------------------------------------------------


class TestMalformed:
    @pytest.mark.unit
    def test_invalid_metadata(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "tpl", {
            "vue/bad/template.yaml": "variables: not-a-list\n",
            "vue/bad/index.html": "x",
        })
        registry = TemplateRegistry(Config(templates_dir=root, cache_dir=tmp_path / "c"))
        with pytest.raises(TemplateLoadError):
            registry.describe("vue", "bad")

    @pytest.mark.unit
    def test_unparseable_metadata(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "tpl", {"vue/bad/template.json": "{oops"})
        registry = TemplateRegistry(Config(templates_dir=root, cache_dir=tmp_path / "c"))
        with pytest.raises(TemplateLoadError):
            registry.describe("vue", "bad")

    @pytest.mark.unit
    def test_declared_file_missing(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "tpl", {
            "vue/bad/template.json": '{"files": ["gone.txt"]}',
            "vue/bad/index.html": "x",
        })
        registry = TemplateRegistry(Config(templates_dir=root, cache_dir=tmp_path / "c"))
        with pytest.raises(TemplateLoadError, match="gone.txt"):
            registry.describe("vue", "bad")

    @pytest.mark.unit
    def test_malformed_jinja(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "tpl", {"vue/bad/a.txt.j2": "{% if %}"})
        registry = TemplateRegistry(Config(templates_dir=root, cache_dir=tmp_path / "c"))
        with pytest.raises(TemplateLoadError, match="invalid Jinja"):
            registry.describe("vue", "bad")

    @pytest.mark.unit
    def test_render_failure_wrapped(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "tpl", {
            "vue/strict/a.txt.j2": textwrap.dedent("""\
                {{ missing.attribute }}
            """),
        })
        registry = TemplateRegistry(Config(templates_dir=root, cache_dir=tmp_path / "c"))
        with pytest.raises(TemplateLoadError, match="render failed"):
            registry.resolve_and_render("vue", "strict", {})

    @pytest.mark.unit
    def test_expression_error_wrapped(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "tpl", {"vue/math/a.txt.j2": "{{ 1 / 0 }}"})
        registry = TemplateRegistry(Config(templates_dir=root, cache_dir=tmp_path / "c"))
        with pytest.raises(TemplateLoadError, match="render failed: division by zero"):
            registry.resolve_and_render("vue", "math", {})
