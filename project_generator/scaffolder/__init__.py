"""Template-based scaffolding: registry, rendering, sources, writing.

Quick usage::

    from project_generator.scaffolder import GeneratorDispatcher
    from project_generator.models import GenerateOptions

    dispatcher = GeneratorDispatcher()
    result = await dispatcher.generate(
        GenerateOptions(project_name="my-app", project_type="vue")
    )
"""

from .dispatcher import GeneratorDispatcher
from .registry import TemplateRegistry
from .templates import TemplateRenderer
from .writer import ConcurrentFileWriter

__all__ = [
    "ConcurrentFileWriter",
    "GeneratorDispatcher",
    "TemplateRegistry",
    "TemplateRenderer",
]
