"""Project generator: scaffolds Vue, React and Java projects.

Vue and React projects are rendered from directory templates; Java projects
are delegated to a bundled Java CLI run on a discovered JVM.

Quick usage::

    import asyncio
    from project_generator import generate_project

    result = asyncio.run(generate_project({
        "name": "my-app",
        "project_type": "vue",
        "template": "basic",
        "variables": {"name": "my-app"},
    }))
"""

from project_generator.api import (
    configure,
    generate_project,
    get_dispatcher,
    get_template_info,
    list_templates,
)
from project_generator.config import Config
from project_generator.errors import (
    ExternalToolError,
    GeneratorError,
    InvalidProjectName,
    JavaEnvironmentError,
    JavaNotFoundError,
    PartialWriteError,
    TemplateNotFound,
    UnsupportedProjectType,
)
from project_generator.models import GenerateOptions, GenerateResult, ProjectType

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ExternalToolError",
    "GenerateOptions",
    "GenerateResult",
    "GeneratorError",
    "InvalidProjectName",
    "JavaEnvironmentError",
    "JavaNotFoundError",
    "PartialWriteError",
    "ProjectType",
    "TemplateNotFound",
    "UnsupportedProjectType",
    "__version__",
    "configure",
    "generate_project",
    "get_dispatcher",
    "get_template_info",
    "list_templates",
]
