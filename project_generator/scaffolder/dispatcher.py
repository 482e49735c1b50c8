"""Top-level generation flow.

The dispatcher validates a request, picks the strategy for its project type
(template rendering or the external Java tool), and turns every failure
after validation into a failed :class:`GenerateResult`.
"""

from __future__ import annotations

import asyncio

from project_generator.bridge import (
    ExternalToolBridge,
    JavaProjectOptions,
    build_generate_arguments,
    parse_generated_files,
    resolve_cli_jar,
)
from project_generator.bridge.java_cli import unused_variables
from project_generator.config import Config
from project_generator.errors import (
    ExternalToolError,
    GeneratorIOError,
    JavaEnvironmentError,
    PartialWriteError,
    TemplateLoadError,
)
from project_generator.models import (
    DEFAULT_TEMPLATES,
    GenerateOptions,
    GenerateResult,
    ProjectType,
    TemplateDescriptor,
    validate_project_name,
)
from project_generator.utils import console

from .registry import TemplateRegistry
from .writer import ConcurrentFileWriter


class GeneratorDispatcher:
    """Routes generation requests to the template engine or the Java tool.

    All collaborators are created from *config* unless passed explicitly.
    One dispatcher is meant to be shared by concurrent calls: the registry
    and bridge caches are safe to read from several tasks at once.
    """

    def __init__(
        self,
        config: Config | None = None,
        registry: TemplateRegistry | None = None,
        bridge: ExternalToolBridge | None = None,
        writer: ConcurrentFileWriter | None = None,
    ) -> None:
        self.config = config or Config()
        self.registry = registry or TemplateRegistry(self.config)
        self.bridge = bridge or ExternalToolBridge(
            self.config.tool, self.config.runtime_cache_dir
        )
        self.writer = writer or ConcurrentFileWriter(self.config.max_parallel_writes)

    # -- Queries -----------------------------------------------------------

    def list_templates(self, project_type: str | ProjectType) -> list[str]:
        return self.registry.list(project_type)

    def get_template_info(self, project_type: str | ProjectType, template: str) -> TemplateDescriptor:
        return self.registry.describe(project_type, template)

    # -- Generation --------------------------------------------------------

    async def generate(self, options: GenerateOptions) -> GenerateResult:
        """Generate one project.

        Raises:
            InvalidProjectName: Before any filesystem access.
            UnsupportedProjectType: Before either strategy starts.
            TemplateNotFound: Before anything is written.

        Every later failure is reported as ``GenerateResult(success=False)``.
        """
        validate_project_name(options.project_name)
        project_type = ProjectType.parse(options.project_type)
        template = options.template or DEFAULT_TEMPLATES[project_type]

        if project_type.uses_external_tool:
            return await self._generate_with_tool(options, template)
        return await self._generate_from_template(options, project_type, template)

    async def _generate_from_template(
        self,
        options: GenerateOptions,
        project_type: ProjectType,
        template: str,
    ) -> GenerateResult:
        try:
            # TemplateNotFound propagates: nothing has been written yet.
            await asyncio.to_thread(self.registry.describe, project_type, template)
            rendered = await asyncio.to_thread(
                self.registry.resolve_and_render, project_type, template, options.variables
            )
        except TemplateLoadError as exc:
            return exc.result

        output = options.resolved_output_path()
        try:
            await asyncio.to_thread(output.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            return GeneratorIOError(str(output), str(exc)).result

        console.print(
            f"[cyan]Generating {project_type.value}/{template}[/cyan] "
            f"[dim]({len(rendered)} files) -> {output}[/dim]"
        )
        try:
            files = await self.writer.materialize(rendered, output)
        except PartialWriteError as exc:
            return exc.result
        except OSError as exc:
            return GeneratorIOError(str(output), str(exc)).result

        message = (
            f"Generated {len(files)} file(s) from {project_type.value}/{template} "
            f"in {output}"
        )
        unresolved = sorted({name for f in rendered for name in f.unresolved})
        if unresolved:
            message += (
                f". Warning: unresolved template variables left as-is: {', '.join(unresolved)}"
            )
        return GenerateResult(success=True, files=files, message=message)

    async def _generate_with_tool(self, options: GenerateOptions, template: str) -> GenerateResult:
        java_options = JavaProjectOptions.from_generate_options(options, template)
        try:
            jar = resolve_cli_jar(self.config.tool)
            outcome = await self.bridge.invoke(build_generate_arguments(jar, java_options))
        except (JavaEnvironmentError, ExternalToolError) as exc:
            return exc.result

        files = parse_generated_files(outcome.stdout)
        message = f"Generated Java project '{java_options.name}' in {java_options.output_path}"
        ignored = unused_variables(options.variables)
        if ignored:
            message += f". Ignored variables: {', '.join(ignored)}"
        return GenerateResult(success=True, files=files, message=message)

