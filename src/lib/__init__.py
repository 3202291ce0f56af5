"""
rocketdoc - Documentation compiler

Reader, builder, evaluator, resolver and renderer for (:directive ...) markup.
"""

__version__ = "1.0.0"

from .reader import Reader, source_read
from .builder import Builder
from .directives import DirectiveRegistry
from .evaluator import Evaluator
from .resolver import Resolver
from .renderer import Renderer
from .writer import Writer
from .compiler import Compiler
from .log import LOG, state_connectToLogger, diagnostics_report

__all__ = [
    "Reader",
    "source_read",
    "Builder",
    "DirectiveRegistry",
    "Evaluator",
    "Resolver",
    "Renderer",
    "Writer",
    "Compiler",
    "LOG",
    "state_connectToLogger",
    "diagnostics_report",
    "__version__",
]
