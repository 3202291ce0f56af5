"""
Directive specification and metadata models

Defines the structure and categories of rocketdoc built-in directives for
arity validation, dispatch and registry management.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, TYPE_CHECKING

from .errors import ArityError, StructureError

if TYPE_CHECKING:
    from .nodes import Node


class DirectiveCategory(Enum):
    """
    Categories of rocketdoc directives

    STRUCTURAL directives are turned into typed nodes by the Builder; every
    other category is expanded by the Evaluator.
    """
    STRUCTURAL = "structural"    # (:h1), (:list), (:steps), (:code)
    INLINE = "inline"            # (:link), (:figure), (:concat)
    DEFINITION = "definition"    # (:define), (:define-template), (:let), (:import)
    CONTENT = "content"          # (:include), (:theme-config), (:version)
    REFERENCE = "reference"      # (:ref), (:define-ref), (:toctree)


class BodyPolicy(Enum):
    """Whether a directive accepts a ``=>`` body"""
    FORBIDDEN = "forbidden"
    OPTIONAL = "optional"
    REQUIRED = "required"


@dataclass
class DirectiveSpec:
    """
    Specification for a built-in directive

    Attributes:
        name: Directive name (without the leading ``(:``)
        category: Category for dispatch and documentation
        description: Human-readable description
        handler: Builder handler (call, builder) -> Node for STRUCTURAL
                 directives, evaluator handler (call, evaluator) -> List[Node]
                 for the others
        min_args: Minimum positional argument count
        max_args: Maximum positional argument count (None = unbounded)
        body: Whether a ``=>`` body is accepted
        parent: Container directive this entry must appear in (e.g. step -> steps)
        examples: Example usage strings
        aliases: Alternative names for the directive
    """
    name: str
    category: DirectiveCategory
    description: str
    handler: Callable
    min_args: int = 0
    max_args: Optional[int] = None
    body: BodyPolicy = BodyPolicy.FORBIDDEN
    parent: Optional[str] = None
    examples: List[str] = field(default_factory=list)
    aliases: List[str] = field(default_factory=list)

    def expected_describe(self) -> str:
        """Human-readable expected argument count (e.g. '1-2', 'at least 1')"""
        if self.max_args is None:
            return f"at least {self.min_args}"
        if self.min_args == self.max_args:
            return str(self.min_args)
        return f"{self.min_args}-{self.max_args}"

    def arity_check(self, call: "Node") -> None:
        """
        Validate a call's argument count and body against this spec

        Raises:
            ArityError: Argument count outside [min_args, max_args]
            StructureError: Body given where forbidden or missing where required
        """
        count = len(call.args)
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            raise ArityError(self.name, self.expected_describe(), count, call.location)

        if call.body is not None and self.body == BodyPolicy.FORBIDDEN:
            raise StructureError(
                f"'(:{self.name})' does not take a '=>' body",
                location=call.location,
                directive=self.name,
            )
        if call.body is None and self.body == BodyPolicy.REQUIRED:
            raise StructureError(
                f"'(:{self.name})' requires a '=>' body",
                location=call.location,
                directive=self.name,
            )


# Directives whose body is read verbatim instead of as markup
RAW_BODY_DIRECTIVES: Set[str] = {
    'code',     # (:code python => ...) - whitespace-preserving source
    'comment',  # (:comment => ...) - dropped from output
}


def rawBody_is(directive_name: str) -> bool:
    """Check if a directive's body is read verbatim"""
    return directive_name in RAW_BODY_DIRECTIVES
