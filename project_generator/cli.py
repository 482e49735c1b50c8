"""Command-line interface.

Usage::

    project-generator new my-app --template basic --type vue
    project-generator new my-api --type java --var group_id=com.example
    project-generator list --type react
    project-generator info typescript --type vue

Exit status is 0 on success, 1 when generation fails (the failure message
is printed to stderr) and 2 for usage errors.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console

from project_generator import __version__, api
from project_generator.config import Config
from project_generator.errors import GeneratorError, TemplateNotFound
from project_generator.models import DEFAULT_TEMPLATES, GenerateOptions, ProjectType
from project_generator.utils import (
    console,
    parse_assignments,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)

# Listings go to stdout; everything else goes through the stderr console.
stdout_console = Console(highlight=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-generator",
        description="Scaffold Vue, React and Java projects from templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  project-generator new my-app --template basic --type vue\n"
            "  project-generator new my-api --type java --var group_id=com.example\n"
            "  project-generator list --type react\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only print errors",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Configuration file (JSON or YAML); defaults to environment settings",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Generate a new project")
    new.add_argument("name", help="Project name (also the default output directory)")
    new.add_argument(
        "--template", "-t",
        default=None,
        help=(
            "Template name (default: the project type's default template). "
            "Without --type, a name shared by several types picks the first of "
            "java, vue, react"
        ),
    )
    new.add_argument(
        "--type",
        dest="project_type",
        default=None,
        help="Project type: java, vue or react (inferred from the template if omitted)",
    )
    new.add_argument(
        "--dir", "-o",
        dest="output",
        default=None,
        help="Output directory (default: ./<name>)",
    )
    new.add_argument(
        "--var",
        dest="variables",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Template variable (repeatable)",
    )

    lst = sub.add_parser("list", help="List available templates")
    lst.add_argument("--type", dest="project_type", default=None, help="Only this project type")

    info = sub.add_parser("info", help="Show a template's description and variables")
    info.add_argument("template", help="Template name")
    info.add_argument("--type", dest="project_type", default=None, help="Project type")

    return parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _types_with_template(template: str) -> list[ProjectType]:
    return [pt for pt in ProjectType if template in api.list_templates(pt.value)]


def _infer_project_type(parser: argparse.ArgumentParser, template: str | None) -> str:
    if template is None:
        parser.error("--type is required when --template is not given")
    owners = _types_with_template(template)
    if not owners:
        raise TemplateNotFound("*", template)
    if len(owners) > 1:
        choices = ", ".join(pt.value for pt in owners)
        print_warning(
            f"Template '{template}' exists for several types ({choices}); "
            f"using {owners[0].value}. Pass --type to choose."
        )
    return owners[0].value


def _java_version() -> str:
    try:
        return asyncio.run(api.get_dispatcher().bridge.detect_version())
    except GeneratorError as exc:
        return f"unavailable ({exc})"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_new(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    try:
        variables = parse_assignments(args.variables)
    except ValueError as exc:
        parser.error(str(exc))

    project_type = args.project_type or _infer_project_type(parser, args.template)
    options = GenerateOptions(
        project_name=args.name,
        project_type=project_type,
        template=args.template,
        output_path=Path(args.output) if args.output else None,
        variables={"name": args.name, **variables},
    )

    result = asyncio.run(api.generate_project(options))
    if not result.success:
        print_error(result.message or "Generation failed")
        return 1

    print_success(result.message or "Done")
    for path in result.files:
        console.print(f"  [dim]{path}[/dim]", highlight=False)
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    types = [ProjectType.parse(args.project_type)] if args.project_type else list(ProjectType)
    for pt in types:
        for name in api.list_templates(pt.value):
            if args.project_type:
                stdout_console.print(name, markup=False)
            else:
                stdout_console.print(f"{pt.value}/{name}", markup=False)
    return 0


def _cmd_info(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    project_type = args.project_type or _infer_project_type(parser, args.template)
    descriptor = api.get_dispatcher().get_template_info(project_type, args.template)

    stdout_console.print(descriptor.description, markup=False)
    summary = {
        "Template": f"{descriptor.project_type.value}/{descriptor.name}",
        "Registry": descriptor.registry,
        "Location": descriptor.source_location,
    }
    if descriptor.version:
        summary["Version"] = descriptor.version
    if descriptor.author:
        summary["Author"] = descriptor.author
    if descriptor.tags:
        summary["Tags"] = ", ".join(descriptor.tags)
    if DEFAULT_TEMPLATES[descriptor.project_type] == descriptor.name:
        summary["Default"] = "yes"
    for var in descriptor.variables:
        detail = var.description or ""
        if var.default is not None:
            detail += f" (default: {var.default})"
        if var.required:
            detail += " (required)"
        summary[f"Variable {var.name}"] = detail.strip()
    undocumented = sorted(descriptor.declared_variables - {v.name for v in descriptor.variables})
    if undocumented:
        summary["Placeholders"] = ", ".join(undocumented)
    if descriptor.project_type.uses_external_tool:
        summary["Java"] = _java_version()
    print_summary_table(summary, title="Template")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``project-generator`` and ``python -m project_generator``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    console.quiet = args.quiet

    try:
        config = Config.load(Path(args.config)) if args.config else Config.from_env()
    except (OSError, ValueError, ValidationError) as exc:
        print_error(f"Invalid configuration: {exc}")
        return 1
    api.configure(config)

    try:
        if args.command == "new":
            return _cmd_new(parser, args)
        if args.command == "list":
            return _cmd_list(args)
        return _cmd_info(parser, args)
    except GeneratorError as exc:
        print_error(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
