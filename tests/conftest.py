"""Shared pytest fixtures for the project generator test suite.

Provides reusable fixtures for:
- Template trees on disk (local registry roots)
- Engine configuration pointing at temporary directories
- A fake ``java`` executable for discovery and invocation tests
- Mock subprocess helpers
"""

from __future__ import annotations

import os
import stat
import sys
import textwrap
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from project_generator import api
from project_generator.config import Config, ToolConfig
from project_generator.scaffolder.registry import TemplateRegistry
from project_generator.utils import console


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Create *files* (relative path -> content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


VUE_BASIC_FILES: dict[str, str | bytes] = {
    "vue/basic/index.html": "<html><head><title>{{name}}</title></head></html>\n",
    "vue/basic/src/App.vue": "<template><p>{{ count }}</p></template>\n",
    "vue/basic/src/main.js": "import { createApp } from 'vue'\n",
    "vue/basic/public/logo.png": b"\x89PNG\r\n\x1a\n\x00\x00{{name}}",
}


# ---------------------------------------------------------------------------
# Template trees
# ---------------------------------------------------------------------------

@pytest.fixture
def templates_root(tmp_path: Path) -> Path:
    """A local registry root with vue/{basic,typescript} and react/basic."""
    root = tmp_path / "templates"
    write_tree(root, {
        **VUE_BASIC_FILES,
        "vue/typescript/index.html": "<title>{{name}}</title>\n",
        "vue/typescript/template.yaml": textwrap.dedent("""\
            name: typescript
            description: Vue with TypeScript
            version: 2.0.0
            tags: [vue, ts]
            variables:
              - name: name
                required: true
              - name: description
                default: A typed app
        """),
        "vue/typescript/package.json.j2": '{"name": "{{ name | slugify }}", "description": "{{ description }}"}\n',
        "vue/.hidden/index.html": "hidden\n",
        "react/basic/index.html": "<title>{{name}}</title>\n",
        "react/basic/src/{{name}}.jsx": "export default function {{component}}() {}\n",
    })
    return root


@pytest.fixture
def config(tmp_path: Path, templates_root: Path) -> Config:
    """Engine configuration rooted in temporary directories."""
    return Config(
        templates_dir=templates_root,
        cache_dir=tmp_path / "cache",
        tool=ToolConfig(assets_dir=tmp_path / "assets"),
    )


@pytest.fixture
def registry(config: Config) -> TemplateRegistry:
    return TemplateRegistry(config)


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Directory generated projects are written into (not yet created)."""
    return tmp_path / "out"


# ---------------------------------------------------------------------------
# Fake external tool
# ---------------------------------------------------------------------------

FAKE_JAVA_SCRIPT = textwrap.dedent("""\
    #!{python}
    import os
    import sys

    args = sys.argv[1:]
    if "--name" in args:
        name = args[args.index("--name") + 1]
        print("Picked up JAVA_TOOL_OPTIONS")
        print("Generated: " + name + "/pom.xml")
        print("Generated: " + name + "/src/main/java/App.java")
    else:
        print(" ".join(args))
    sys.stderr.write(os.environ.get("FAKE_JAVA_STDERR", ""))
    sys.exit(int(os.environ.get("FAKE_JAVA_EXIT", "0")))
""")


def make_executable(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_java_home(tmp_path: Path) -> Path:
    """A JAVA_HOME-style root whose ``bin/java`` is a small Python script."""
    if sys.platform == "win32":
        pytest.skip("fake java script needs a POSIX shebang")
    home = tmp_path / "jdk"
    make_executable(home / "bin" / "java", FAKE_JAVA_SCRIPT.format(python=sys.executable))
    return home


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_global_state(monkeypatch: pytest.MonkeyPatch):
    """Drop the shared dispatcher and restore console verbosity per test."""
    for var in list(os.environ):
        if var.startswith("PROJECT_GENERATOR_"):
            monkeypatch.delenv(var)
    monkeypatch.setattr(api, "_dispatcher", None)
    quiet = console.quiet
    yield
    console.quiet = quiet


@pytest.fixture
def make_tree():
    """Return :func:`write_tree` for tests that build their own template trees."""
    return write_tree


@pytest.fixture
def make_exe():
    """Return :func:`make_executable` for tests that fake binaries on disk."""
    return make_executable
