"""
rocketdoc - Documentation compiler

Compiles (:directive ...) markup into cross-referenced HTML pages.
"""

__version__ = "1.0.0"

from .lib import Compiler, DirectiveRegistry, LOG, state_connectToLogger

__all__ = ["Compiler", "DirectiveRegistry", "LOG", "state_connectToLogger", "__version__"]
