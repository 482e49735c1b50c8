"""Placeholder substitution and Jinja2 rendering for template files.

Provides the TemplateRenderer class, which turns one raw template file (its
relative path and bytes) into a :class:`RenderedFile`.  Two rendering modes
are supported:

* Plain files get a single linear pass replacing ``{{variable_name}}`` tokens
  in both the file contents and every path segment.  Tokens whose variable
  is not supplied are left verbatim and reported as unresolved.
* Files ending in ``.j2`` are rendered with Jinja2; the suffix is dropped
  from the output name.  Undefined variables render back as ``{{ name }}``
  and are reported the same way.

Binary files (NUL byte in the first 8 KiB, or not valid UTF-8) are copied
byte-for-byte; only their path is substituted.
"""

from __future__ import annotations

import functools
import re
from typing import Any, Callable

from jinja2 import DebugUndefined, Environment, Undefined, meta

from project_generator.models import RenderedFile
from project_generator.platforms import to_posix_relative


# ---------------------------------------------------------------------------
# Placeholder syntax
# ---------------------------------------------------------------------------

# No whitespace inside the braces: framework mustache syntax such as Vue's
# ``{{ count }}`` must pass through untouched.
PLACEHOLDER_PATTERN = re.compile(r"\{\{([A-Za-z_][A-Za-z0-9_.\-]*)\}\}")

JINJA_SUFFIX = ".j2"
_BINARY_SNIFF_BYTES = 8192


def find_placeholders(text: str) -> list[str]:
    """Return placeholder names in *text* in order of first appearance."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_PATTERN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def substitute(text: str, variables: dict[str, str]) -> tuple[str, list[str]]:
    """Replace ``{{name}}`` tokens in one pass.

    Substituted values are never re-scanned, so a value that itself contains
    ``{{...}}`` is inserted literally.

    Returns:
        ``(rendered_text, unresolved_names)`` where the names are in order of
        first appearance.
    """
    unresolved: dict[str, None] = {}

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in variables:
            return variables[name]
        unresolved.setdefault(name, None)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text), list(unresolved)


def is_binary(content: bytes) -> bool:
    """Heuristic binary check: NUL byte near the start, or invalid UTF-8."""
    if b"\x00" in content[:_BINARY_SNIFF_BYTES]:
        return True
    try:
        content.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders raw template files against caller-supplied variables.

    The renderer is stateless apart from its Jinja2 environment, so a single
    instance is shared by every generation call.
    """

    def __init__(self) -> None:
        self.env = Environment(
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=DebugUndefined,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter

    # -- Paths -------------------------------------------------------------

    def render_path(self, relative_path: str, variables: dict[str, str]) -> tuple[str, list[str]]:
        """Substitute placeholders in each segment of a relative path.

        Returns the POSIX-style rendered path and the unresolved names.
        """
        segments = to_posix_relative(relative_path).split("/")
        rendered: list[str] = []
        unresolved: dict[str, None] = {}
        for segment in segments:
            text, missing = substitute(segment, variables)
            rendered.append(text)
            for name in missing:
                unresolved.setdefault(name, None)
        return "/".join(rendered), list(unresolved)

    def placeholder_names(self, relative_path: str, raw: bytes) -> list[str]:
        """Variable names a file refers to, in its path and (text) contents.

        Raises:
            jinja2.TemplateError: If a ``.j2`` file is malformed.
        """
        names: dict[str, None] = dict.fromkeys(find_placeholders(relative_path))
        if is_binary(raw):
            return list(names)
        text = raw.decode("utf-8")
        if relative_path.endswith(JINJA_SUFFIX):
            ast = self.env.parse(text)
            names.update(dict.fromkeys(sorted(meta.find_undeclared_variables(ast))))
        else:
            names.update(dict.fromkeys(find_placeholders(text)))
        return list(names)

    # -- Contents ----------------------------------------------------------

    def render_string(self, template_string: str, context: dict[str, Any]) -> tuple[str, list[str]]:
        """Render a Jinja2 template string.

        Undefined variables are rendered verbatim and returned as unresolved.

        Raises:
            jinja2.TemplateError: If the template is malformed.
        """
        missing: list[str] = []

        class _RecordingUndefined(DebugUndefined):
            def __str__(self) -> str:
                if self._undefined_name is not None and self._undefined_name not in missing:
                    missing.append(self._undefined_name)
                return super().__str__()

        template = self.env.overlay(undefined=_RecordingUndefined).from_string(template_string)
        return template.render(**context), missing

    def render_file(
        self,
        relative_path: str,
        raw: bytes,
        variables: dict[str, str],
    ) -> RenderedFile:
        """Render one template file.

        Content without any ``{{`` is returned unchanged, byte for byte.

        Raises:
            jinja2.TemplateError: If a ``.j2`` file is malformed.
        """
        path, path_missing = self.render_path(relative_path, variables)
        unresolved: dict[str, None] = dict.fromkeys(path_missing)

        if is_binary(raw):
            return RenderedFile(
                relative_path=path,
                content=raw,
                is_binary=True,
                unresolved=tuple(unresolved),
            )

        content = raw
        if path.endswith(JINJA_SUFFIX):
            path = path[: -len(JINJA_SUFFIX)]
            text, missing = self.render_string(raw.decode("utf-8"), variables)
            content = text.encode("utf-8")
            unresolved.update(dict.fromkeys(missing))
        elif b"{{" in raw:
            text, missing = substitute(raw.decode("utf-8"), variables)
            content = text.encode("utf-8")
            unresolved.update(dict.fromkeys(missing))

        return RenderedFile(
            relative_path=path,
            content=content,
            is_binary=False,
            unresolved=tuple(unresolved),
        )


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _keep_undefined(func: Callable[[str], str]) -> Callable[[Any], Any]:
    """Hand undefined variables back untouched so they render verbatim."""
    @functools.wraps(func)
    def wrapper(value: Any) -> Any:
        if isinstance(value, Undefined):
            return value
        return func(str(value))
    return wrapper


@_keep_undefined
def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


@_keep_undefined
def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word.capitalize() for word in parts if word)


@_keep_undefined
def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


@_keep_undefined
def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""
