"""
Document and compilation unit models

A CompilationUnit is the process-wide state of one build: every Document,
the DefinitionTable that owns their scopes, the global ReferenceTable and
the cache of imported scopes. Nothing outlives the build.
"""

from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .definitions import DefinitionTable, Scope
from .errors import CompileError
from .nodes import Node, NodeKind, nodes_plainText, nodes_walk
from .references import ReferenceTable


SourceLoader = Callable[[str], str]


def file_read(path: str) -> str:
    """Default source loader: read a UTF-8 file from disk"""
    return Path(path).read_text(encoding="utf-8")


@dataclass
class Document:
    """
    One compiled source file

    Attributes:
        path: Source file path
        slug: Page identifier (content-relative path without suffix)
        nodes: Top-level block nodes
        scope: Definitions visible to this document
        metadata: Values set by (:theme-config)
    """
    path: str
    slug: str
    nodes: List[Node]
    scope: Scope
    metadata: Dict[str, str] = field(default_factory=dict)

    def headings_get(self) -> List[Node]:
        return [node for node in nodes_walk(self.nodes) if node.kind == NodeKind.HEADING]

    def title_get(self) -> str:
        """Page title: theme-config title, else the first heading, else the slug"""
        if self.metadata.get("title"):
            return self.metadata["title"]
        for heading in self.headings_get():
            return nodes_plainText(heading.children)
        return self.slug


class CompilationUnit:
    """
    Aggregate state of one build invocation

    Args:
        config: Opaque project configuration mapping (version, theme_constants, ...)
        loader: Callable returning the text of a source path
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        loader: Optional[SourceLoader] = None,
    ) -> None:
        self.config: Dict[str, Any] = dict(config or {})
        self.loader: SourceLoader = loader or file_read
        self.documents: Dict[str, Document] = {}
        self.definitions = DefinitionTable()
        self.references = ReferenceTable()
        self.imports: Dict[str, Scope] = {}

    def document_create(self, path: str, slug: str, nodes: List[Node]) -> Document:
        """Create a Document with a fresh scope and add it to the unit"""
        if slug in self.documents:
            raise CompileError(f"two sources map to page '{slug}'")
        document = Document(
            path=path,
            slug=slug,
            nodes=nodes,
            scope=self.definitions.scope_create(path),
        )
        self.documents[slug] = document
        return document

    def documents_list(self) -> List[Document]:
        return list(self.documents.values())
