"""
Document tree node model

A single tagged dataclass represents every node of the document tree, from
the raw forms produced by the Reader through to the resolved tree handed to
the Renderer. The ``kind`` tag decides which fields are meaningful.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass(frozen=True)
class SourceLocation:
    """
    Position of a node in its source file

    Attributes:
        path: Source file path (as given to the Reader)
        line: 1-based line number
        column: 1-based column number
    """
    path: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


class NodeKind(Enum):
    """Tags for the document tree node variants"""
    TEXT = "text"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST = "list"
    LIST_ITEM = "list-item"
    CODE_BLOCK = "code-block"
    FIGURE = "figure"
    STEPS = "steps"
    STEP = "step"
    GLOSSARY = "glossary"
    GLOSSARY_ENTRY = "glossary-entry"
    ADMONITION = "admonition"
    LINK = "link"
    STRONG = "strong"
    EMPHASIS = "emphasis"
    LITERAL = "literal"
    ANCHOR = "anchor"
    REF = "ref"
    TOCTREE = "toctree"
    DIRECTIVE = "directive"
    GROUP = "group"


# Nodes that may appear inside a paragraph
INLINE_KINDS = frozenset({
    NodeKind.TEXT,
    NodeKind.LINK,
    NodeKind.STRONG,
    NodeKind.EMPHASIS,
    NodeKind.LITERAL,
    NodeKind.ANCHOR,
    NodeKind.REF,
})

# Nodes whose children are inline content
INLINE_CONTAINERS = frozenset({
    NodeKind.PARAGRAPH,
    NodeKind.HEADING,
    NodeKind.LINK,
    NodeKind.STRONG,
    NodeKind.EMPHASIS,
})


@dataclass
class Node:
    """
    A node in the document tree

    Attributes:
        kind: Variant tag
        text: Payload for TEXT, LITERAL and CODE_BLOCK nodes
        children: Ordered child nodes (document order). Inline content for
                  PARAGRAPH/HEADING/LINK/STRONG/EMPHASIS, blocks for
                  LIST_ITEM/STEP/GLOSSARY_ENTRY/ADMONITION, entries for
                  LIST/STEPS/GLOSSARY, elements for GROUP
        label: Title nodes of STEP/ADMONITION/REF, term of GLOSSARY_ENTRY
        attrs: Kind-specific scalar attributes (heading level/id, code
               language, link href, ...)
        name: Directive name (DIRECTIVE only)
        args: Unevaluated argument forms (DIRECTIVE only)
        body: Unevaluated body forms introduced by ``=>``, or None
        location: Where the node starts in its source; ignored by equality
    """
    kind: NodeKind
    text: str = ""
    children: List["Node"] = field(default_factory=list)
    label: List["Node"] = field(default_factory=list)
    attrs: Dict[str, Any] = field(default_factory=dict)
    name: str = ""
    args: List["Node"] = field(default_factory=list)
    body: Optional[List["Node"]] = None
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    @classmethod
    def text_make(cls, text: str, location: Optional[SourceLocation] = None) -> "Node":
        """Create a TEXT node"""
        return cls(NodeKind.TEXT, text=text, location=location)

    def is_inline(self) -> bool:
        return self.kind in INLINE_KINDS

    def is_blank(self) -> bool:
        """True for TEXT nodes holding only whitespace"""
        return self.kind == NodeKind.TEXT and not self.text.strip()

    def plainText_get(self) -> str:
        """
        Flatten the node to its visible text

        Used wherever a directive needs the "rendered text" of an argument
        (concat, template patterns, reference titles, slugs).
        """
        if self.kind in (NodeKind.TEXT, NodeKind.LITERAL, NodeKind.CODE_BLOCK):
            return self.text
        if self.kind == NodeKind.REF:
            if self.label:
                return nodes_plainText(self.label)
            return str(self.attrs.get("id", ""))
        if self.kind == NodeKind.DIRECTIVE:
            return ""
        return nodes_plainText(self.label) + nodes_plainText(self.children)


def nodes_plainText(nodes: List[Node]) -> str:
    """Concatenate the plain text of a node list"""
    return "".join(node.plainText_get() for node in nodes)


def nodes_walk(nodes: List[Node]) -> Iterator[Node]:
    """
    Pre-order traversal over labels and children

    DIRECTIVE args/body are not visited: they are unevaluated forms owned
    by the call, not part of the document tree yet.
    """
    for node in nodes:
        yield node
        yield from nodes_walk(node.label)
        yield from nodes_walk(node.children)


def nodes_merge(nodes: List[Node]) -> List[Node]:
    """Merge adjacent TEXT nodes, keeping the first node's location"""
    merged: List[Node] = []
    for node in nodes:
        if (
            node.kind == NodeKind.TEXT
            and merged
            and merged[-1].kind == NodeKind.TEXT
        ):
            merged[-1] = Node.text_make(merged[-1].text + node.text, merged[-1].location)
        else:
            merged.append(node)
    return merged


def inline_strip(nodes: List[Node]) -> List[Node]:
    """
    Strip whitespace at the edges of an inline run

    Leading whitespace of the first TEXT and trailing whitespace of the last
    TEXT are removed; TEXT nodes left empty are dropped.
    """
    result = nodes_merge(list(nodes))
    while result and result[0].kind == NodeKind.TEXT:
        stripped = result[0].text.lstrip()
        if stripped:
            result[0] = Node.text_make(stripped, result[0].location)
            break
        result.pop(0)
    while result and result[-1].kind == NodeKind.TEXT:
        stripped = result[-1].text.rstrip()
        if stripped:
            result[-1] = Node.text_make(stripped, result[-1].location)
            break
        result.pop()
    return result
