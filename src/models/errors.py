"""
Compiler error taxonomy

Every error raised by the rocketdoc pipeline derives from CompileError and
carries the source location and, where one is involved, the directive name.
The CLI prints them as ``path:line:column: ErrorName: message``.
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .nodes import SourceLocation


class CompileError(Exception):
    """Base exception for all rocketdoc compilation errors"""

    def __init__(
        self,
        message: str,
        location: Optional["SourceLocation"] = None,
        directive: Optional[str] = None,
    ) -> None:
        self.message = message
        self.location = location
        self.directive = directive
        super().__init__(message)

    def __str__(self) -> str:
        prefix = f"{self.location}: " if self.location else ""
        return f"{prefix}{type(self).__name__}: {self.message}"


class RocketSyntaxError(CompileError, SyntaxError):
    """Malformed markup: unbalanced parentheses, unterminated spans, bad names"""


class StructureError(CompileError):
    """Directive nesting violation (e.g. a step outside steps)"""


class ArityError(CompileError):
    """Wrong number of arguments for a built-in directive or macro"""

    def __init__(
        self,
        directive: str,
        expected: str,
        actual: int,
        location: Optional["SourceLocation"] = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"'(:{directive})' expects {expected} argument(s), got {actual}",
            location=location,
            directive=directive,
        )


class UnresolvedNameError(CompileError):
    """Directive name is neither a built-in nor a visible definition"""


class CyclicExpansionError(CompileError):
    """Macro, include or import chain that refers back to itself"""

    def __init__(
        self,
        chain: List[str],
        location: Optional["SourceLocation"] = None,
        reason: str = "cyclic expansion",
    ) -> None:
        self.chain = chain
        super().__init__(
            f"{reason}: {' -> '.join(chain)}",
            location=location,
            directive=chain[-1] if chain else None,
        )


class RedefinitionError(CompileError):
    """Name already visible in the scope it is being bound into"""


class TemplateArgumentError(CompileError):
    """Template pattern that fails to compile or does not match its argument"""


class SourceLoadError(CompileError):
    """An include/import target (or a project source) could not be read"""


class DuplicateReferenceError(CompileError):
    """Reference id registered twice in one compilation"""


class UnresolvedReferenceError(CompileError):
    """ref/toctree target missing from the reference table"""


class UnresolvedDirectiveError(CompileError):
    """Directive node still present at render time (internal invariant)"""


class ConfigurationError(CompileError):
    """Project configuration is missing or invalid"""


class CompilationFailed(CompileError):
    """Aggregate of every diagnostic collected during a failed build"""

    def __init__(self, diagnostics: List[CompileError]) -> None:
        self.diagnostics = diagnostics
        super().__init__(f"{len(diagnostics)} error(s)")

    def __str__(self) -> str:
        return "\n".join(str(diagnostic) for diagnostic in self.diagnostics)
