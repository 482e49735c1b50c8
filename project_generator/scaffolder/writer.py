"""Bounded-parallel, per-file atomic materialisation of rendered files."""

from __future__ import annotations

import asyncio
import os
import sys
import tempfile
from pathlib import Path, PurePosixPath

from project_generator.errors import PartialWriteError
from project_generator.models import RenderedFile
from project_generator.utils import is_within

DEFAULT_MAX_PARALLEL_WRITES = 8


class ConcurrentFileWriter:
    """Writes a batch of rendered files under an output root.

    At most ``max_parallel`` writes run at once.  A failing file never stops
    the rest of the batch, and every file is written to a temporary sibling
    and renamed into place, so a reader sees either the old file, nothing,
    or the complete new content.
    """

    def __init__(self, max_parallel: int = DEFAULT_MAX_PARALLEL_WRITES) -> None:
        if max_parallel < 1:
            raise ValueError("max_parallel must be >= 1")
        self.max_parallel = max_parallel

    async def materialize(
        self,
        files: list[RenderedFile],
        output_root: str | Path,
    ) -> list[str]:
        """Write *files* under *output_root*.

        Returns:
            Relative paths written, in the order of *files*.

        Raises:
            PartialWriteError: If any file failed; ``succeeded`` keeps input
                order and ``failed`` maps each failing path to its error.
            OSError: If *output_root* itself cannot be created.
        """
        root = Path(output_root)
        await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)

        semaphore = asyncio.Semaphore(self.max_parallel)

        async def _write_one(rendered: RenderedFile) -> str | None:
            async with semaphore:
                try:
                    await asyncio.to_thread(_write_atomic, root, rendered)
                except (OSError, ValueError) as exc:
                    return f"{type(exc).__name__}: {exc}"
            return None

        errors = await asyncio.gather(*(_write_one(f) for f in files))

        succeeded: list[str] = []
        failed: dict[str, str] = {}
        for rendered, error in zip(files, errors):
            if error is None:
                succeeded.append(rendered.relative_path)
            else:
                failed[rendered.relative_path] = error

        if failed:
            raise PartialWriteError(succeeded, failed)
        return succeeded


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def resolve_target(root: Path, relative_path: str) -> Path:
    """Map a rendered relative path to a file under *root*.

    Raises:
        ValueError: If the path is empty, absolute, or escapes *root*.
    """
    rel = PurePosixPath(relative_path)
    if not rel.parts or rel.is_absolute() or ".." in rel.parts or ":" in rel.parts[0]:
        raise ValueError(f"unsafe relative path: {relative_path!r}")
    target = root.joinpath(*rel.parts)
    if not is_within(root, target):
        raise ValueError(f"path escapes output directory: {relative_path!r}")
    return target


def _write_atomic(root: Path, rendered: RenderedFile) -> None:
    """Synchronous helper: write via temp file + ``os.replace``."""
    target = resolve_target(root, rendered.relative_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(rendered.content)
            fh.flush()
            os.fsync(fh.fileno())
        _atomic_replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _atomic_replace(src: str, dst: Path) -> None:
    """Atomically replace *dst* with *src*.

    On Windows ``os.replace`` can fail when *dst* is locked; the fallback of
    unlink-then-rename is not atomic.
    """
    if sys.platform == "win32":
        try:
            os.replace(src, dst)
        except OSError:
            try:
                os.unlink(dst)
            except OSError:
                pass
            os.rename(src, dst)
    else:
        os.replace(src, dst)
