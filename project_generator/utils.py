"""Shared utility functions for the project generator.

Provides the shared Rich console and its output helpers, name sanitising,
JSON/YAML loading, archive extraction and file-system helpers.
"""

from __future__ import annotations

import io
import json
import os
import re
import tarfile
import zipfile
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.table import Table

# All diagnostics go to stderr so stdout stays clean for listings.
console = Console(stderr=True)
# Errors bypass `console.quiet`.
error_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# String helpers
# ---------------------------------------------------------------------------


def sanitize_name(name: str) -> str:
    """Convert an arbitrary name to a safe directory name.

    Examples::

        sanitize_name("My Registry") -> "my-registry"
        sanitize_name("  https://x.io/t.zip ") -> "https-x-io-t-zip"
    """
    result = re.sub(r"[^a-zA-Z0-9_-]", "-", name.strip().lower())
    result = re.sub(r"-+", "-", result)
    return result.strip("-")


def parse_assignments(pairs: list[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a dict.

    Raises:
        ValueError: If an entry has no ``=`` or an empty key.
    """
    result: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        result[key.strip()] = value
    return result


# ---------------------------------------------------------------------------
# Structured file loading
# ---------------------------------------------------------------------------


def load_structured(path: str | Path) -> dict[str, Any]:
    """Load a JSON or YAML mapping, chosen by file extension.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file does not parse or is not a mapping.
    """
    file_path = Path(path)
    raw = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"{file_path.name}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{file_path.name}: expected a mapping, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def is_within(root: Path, candidate: Path) -> bool:
    """Return ``True`` if *candidate* resolves to a location inside *root*."""
    try:
        candidate.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message (markup in *message* is not interpreted)."""
    error_console.print(message, style="bold red", markup=False, soft_wrap=True)


def print_warning(message: str) -> None:
    """Print a yellow warning message (markup in *message* is not interpreted)."""
    console.print(message, style="bold yellow", markup=False)


# ---------------------------------------------------------------------------
# Archive extraction
# ---------------------------------------------------------------------------


def extract_archive(archive: io.BytesIO | Path, destination: Path) -> None:
    """Unpack a ``.zip`` or ``.tar(.gz)`` archive into *destination*.

    Members that would land outside *destination* (absolute paths, ``..``
    segments, links pointing out of the tree) are rejected.

    Raises:
        ValueError: If a member would escape *destination* or the format is
            not recognised.
        zipfile.BadZipFile, tarfile.TarError: If the archive is corrupt.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    if zipfile.is_zipfile(archive):
        with zipfile.ZipFile(archive) as zf:
            for name in zf.namelist():
                if not is_within(destination, destination / name):
                    raise ValueError(f"archive member escapes destination: {name}")
            zf.extractall(destination)
        return

    if isinstance(archive, io.BytesIO):
        archive.seek(0)
        tf = tarfile.open(fileobj=archive, mode="r:*")
    else:
        tf = tarfile.open(archive, mode="r:*")
    with tf:
        for member in tf.getmembers():
            if not is_within(destination, destination / member.name):
                raise ValueError(f"archive member escapes destination: {member.name}")
            if member.issym():
                link_target = destination / os.path.dirname(member.name) / member.linkname
            elif member.islnk():
                # Hard link names are relative to the archive root.
                link_target = destination / member.linkname
            else:
                continue
            if os.path.isabs(member.linkname) or not is_within(destination, link_target):
                raise ValueError(f"archive link escapes destination: {member.name}")
        if hasattr(tarfile, "data_filter"):
            tf.extractall(destination, filter="data")
        else:
            tf.extractall(destination)
