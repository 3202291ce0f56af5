"""
Document tree builder

Turns the raw forms produced by the Reader into a typed document tree.
Structural built-ins (headings, lists, steps, glossaries, code blocks,
admonitions) become typed nodes here; every other directive call stays a
DIRECTIVE node for the Evaluator.

Block context splits text into paragraphs at blank lines. Inline context
(paragraph content, heading titles, span content, labels) rejects block
directives with a StructureError.
"""

import re
from typing import List, Optional

from ..models.directives import DirectiveCategory
from ..models.errors import StructureError
from ..models.nodes import Node, NodeKind, inline_strip, nodes_merge
from .directives import DirectiveRegistry


PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")

# Span kinds whose children are rebuilt as inline content
SPAN_KINDS = (NodeKind.STRONG, NodeKind.EMPHASIS, NodeKind.LINK)


class Builder:
    """
    Builder from raw forms to typed document nodes

    Args:
        registry: Directive registry deciding which calls are structural
    """

    def __init__(self, registry: Optional[DirectiveRegistry] = None) -> None:
        self.registry = registry or DirectiveRegistry()

    def build(self, forms: List[Node]) -> List[Node]:
        """Build a document's top-level block list"""
        return self.blocks_build(forms)

    def blocks_build(self, forms: List[Node]) -> List[Node]:
        """
        Build forms in block context

        Inline runs become PARAGRAPH nodes (split at blank lines, edges
        stripped, blank runs dropped). A paragraph holding nothing but one
        non-structural directive call is unwrapped to block level so that
        the call's expansion decides what the block becomes.
        """
        blocks: List[Node] = []
        run: List[Node] = []

        def flush() -> None:
            paragraph = inline_strip(run)
            run.clear()
            if not paragraph:
                return
            if len(paragraph) == 1 and paragraph[0].kind == NodeKind.DIRECTIVE:
                blocks.append(paragraph[0])
            else:
                blocks.append(Node(NodeKind.PARAGRAPH, children=paragraph, location=paragraph[0].location))

        for form in forms:
            if form.kind == NodeKind.TEXT:
                for index, piece in enumerate(PARAGRAPH_BREAK.split(form.text)):
                    if index > 0:
                        flush()
                    if piece:
                        run.append(Node.text_make(piece, form.location))
                continue

            if form.kind == NodeKind.DIRECTIVE:
                spec = self.registry.spec_get(form.name)
                if spec is not None and spec.category == DirectiveCategory.STRUCTURAL:
                    flush()
                    node = self.structural_build(form)
                    if node is not None:
                        blocks.append(node)
                    continue
                run.append(form)
                continue

            if form.kind in SPAN_KINDS:
                run.append(self.span_build(form))
                continue

            if form.is_inline():
                run.append(form)
                continue

            # Typed block node spliced in by macro expansion or include
            flush()
            blocks.append(form)

        flush()
        return blocks

    def inlines_build(self, forms: List[Node]) -> List[Node]:
        """
        Build forms in inline context

        Raises:
            StructureError: Block directive or block node in inline content
        """
        result: List[Node] = []

        for form in forms:
            if form.kind == NodeKind.DIRECTIVE:
                spec = self.registry.spec_get(form.name)
                if spec is not None and spec.category == DirectiveCategory.STRUCTURAL:
                    if form.name == "comment":
                        continue
                    raise StructureError(
                        f"block directive '(:{form.name})' cannot appear in inline content",
                        location=form.location,
                        directive=form.name,
                    )
                result.append(form)
            elif form.kind in SPAN_KINDS:
                result.append(self.span_build(form))
            elif form.is_inline():
                result.append(form)
            else:
                raise StructureError(
                    f"{form.kind.value} cannot appear in inline content",
                    location=form.location,
                )

        return nodes_merge(result)

    def span_build(self, form: Node) -> Node:
        return Node(
            form.kind,
            children=self.inlines_build(form.children),
            attrs=dict(form.attrs),
            location=form.location,
        )

    def title_build(self, form: Node, call: Node) -> List[Node]:
        """
        Build a title/term argument into label nodes

        Titles are string/atom arguments or a single directive call.
        """
        if form.kind == NodeKind.GROUP:
            raise StructureError(
                f"'(:{call.name})' title must be text or a directive call, not a group",
                location=form.location or call.location,
                directive=call.name,
            )
        return inline_strip(self.inlines_build([form]))

    def structural_build(self, call: Node) -> Optional[Node]:
        """
        Build one structural directive call

        Entry directives (item, step, term) are rejected here; their
        containers build them through entries_build().

        Returns:
            The typed node, or None for calls that produce nothing (comment)
        """
        spec = self.registry.spec_get(call.name)
        if spec.parent is not None:
            raise StructureError(
                f"'(:{call.name})' must appear inside '(:{spec.parent})'",
                location=call.location,
                directive=call.name,
            )
        return self.entry_build(call)

    def entry_build(self, call: Node) -> Optional[Node]:
        spec = self.registry.spec_get(call.name)
        spec.arity_check(call)
        node = spec.handler(call, self)
        if node is not None:
            node.location = call.location
        return node

    def entries_build(self, call: Node, entry: str) -> List[Node]:
        """
        Build the body of a container directive

        Only ``entry`` calls (and whitespace or comments) may appear in it.

        Raises:
            StructureError: Anything else in the container body
        """
        entries: List[Node] = []

        for form in call.body or []:
            if form.is_blank():
                continue
            if form.kind == NodeKind.DIRECTIVE and form.name == "comment":
                continue
            if form.kind == NodeKind.DIRECTIVE and form.name == entry:
                entries.append(self.entry_build(form))
                continue
            raise StructureError(
                f"'(:{call.name})' may only contain '(:{entry})' entries",
                location=form.location or call.location,
                directive=call.name,
            )

        return entries
