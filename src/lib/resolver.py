"""
Two-phase cross-reference resolver

Phase 1 (collection) walks every evaluated document and registers each
heading and (:define-ref) anchor in the unit's ReferenceTable. The table is
sealed when collection ends for *all* documents. Phase 2 (resolution) then
turns REF nodes into links and expands TOCTREE nodes into navigation lists,
so a reference resolves the same whether its target comes earlier or later
in the build.
"""

from typing import Dict, List, Optional, Set, Tuple

from ..config import appsettings, AppSettings
from ..models.document import CompilationUnit, Document
from ..models.errors import UnresolvedReferenceError
from ..models.nodes import Node, NodeKind, nodes_plainText, nodes_walk
from ..models.references import Reference
from .log import LOG


class Resolver:
    """
    Resolves ref and toctree nodes across a whole compilation unit

    Args:
        unit: Evaluated compilation unit
        settings: Application settings (URL style, toctree depth, slugs)
    """

    def __init__(self, unit: CompilationUnit, settings: Optional[AppSettings] = None) -> None:
        self.unit = unit
        self.settings = settings or appsettings

    def resolve(self) -> None:
        """Run collection over every document, seal the table, then resolve"""
        self.references_collect()
        self.unit.references.seal()
        LOG(f"Collected {len(self.unit.references)} reference ids", level=2)
        self.references_resolve()

    def references_collect(self) -> None:
        for document in self.unit.documents_list():
            self.document_collect(document)

    def document_collect(self, document: Document) -> None:
        """
        Register the reference targets of one document

        Headings with an explicit id are registered under it. Headings
        without one get an anchor slugified from their title, unique within
        the page, and are registered as ``page-slug#anchor``.

        Raises:
            DuplicateReferenceError: An id is already registered
        """
        nodes = list(nodes_walk(document.nodes))
        anchors_used: Set[str] = {
            node.attrs['id'] for node in nodes
            if node.kind in (NodeKind.HEADING, NodeKind.ANCHOR) and node.attrs.get('id')
        }

        for node in nodes:
            if node.kind == NodeKind.HEADING:
                title = nodes_plainText(node.children)
                identifier = node.attrs.get('id')
                if identifier:
                    node.attrs['anchor'] = identifier
                    self.unit.references.register(Reference(
                        id=identifier,
                        title=title,
                        slug=document.slug,
                        anchor=identifier,
                        location=node.location,
                    ))
                else:
                    anchor = self.anchor_unique(self.settings.slug_make(title), anchors_used)
                    node.attrs['anchor'] = anchor
                    self.unit.references.register(Reference(
                        id=f"{document.slug}#{anchor}",
                        title=title,
                        slug=document.slug,
                        anchor=anchor,
                        location=node.location,
                        implicit=True,
                    ))
            elif node.kind == NodeKind.ANCHOR:
                self.unit.references.register(Reference(
                    id=node.attrs['id'],
                    title=node.attrs['title'],
                    slug=document.slug,
                    anchor=node.attrs['id'],
                    location=node.location,
                ))

    def anchor_unique(self, base: str, used: Set[str]) -> str:
        """First of base, base-1, base-2 ... not yet used on the page"""
        anchor = base
        counter = 0
        while anchor in used:
            counter += 1
            anchor = f"{base}-{counter}"
        used.add(anchor)
        return anchor

    def references_resolve(self) -> None:
        for document in self.unit.documents_list():
            document.nodes = self.nodes_resolve(document.nodes, document)

    def nodes_resolve(self, nodes: List[Node], document: Document) -> List[Node]:
        resolved: List[Node] = []
        for node in nodes:
            if node.kind == NodeKind.REF:
                resolved.append(self.ref_resolve(node))
            elif node.kind == NodeKind.TOCTREE:
                resolved.append(self.toctree_resolve(node, document))
            else:
                node.label = self.nodes_resolve(node.label, document)
                node.children = self.nodes_resolve(node.children, document)
                resolved.append(node)
        return resolved

    def ref_resolve(self, node: Node) -> Node:
        """
        Replace a REF node by a link to its target

        The reference's title is the link text unless the call supplied one.

        Raises:
            UnresolvedReferenceError: Id never registered
        """
        identifier = node.attrs['id']
        reference = self.unit.references.get(identifier)
        if reference is None:
            raise UnresolvedReferenceError(
                f"unknown reference id '{identifier}'",
                location=node.location,
                directive='ref',
            )
        children = node.label or [Node.text_make(reference.title, node.location)]
        return self.link_make(self.settings.href_make(reference.slug, reference.anchor), children, node.location)

    def link_make(self, href: str, children: List[Node], location=None) -> Node:
        return Node(NodeKind.LINK, children=children, attrs={'href': href}, location=location)

    def toctree_resolve(self, node: Node, document: Document) -> Node:
        """Expand a TOCTREE node's entries into a nested list of links"""
        items = [
            self.entry_resolve(entry, node, depth=1, visited={document.slug})
            for entry in node.attrs['entries']
        ]
        children = [Node(NodeKind.LIST, children=items, attrs={'ordered': False})] if items else []
        attrs = dict(node.attrs)
        attrs['resolved'] = True
        return Node(NodeKind.TOCTREE, children=children, attrs=attrs, location=node.location)

    def entry_resolve(
        self,
        entry: Dict[str, Optional[str]],
        node: Node,
        depth: int,
        visited: Set[str],
    ) -> Node:
        """
        Resolve one toctree entry to a list item

        Page entries link to the page and, below the depth limit, list the
        page's heading outline and its own toctree entries. Reference ids
        link to their anchor.

        Raises:
            UnresolvedReferenceError: Entry is neither a page nor a reference id
        """
        target = entry['target'] or ""
        page = self.page_find(target)
        nested: List[Node] = []

        if page is not None:
            title = entry['title'] or page.title_get()
            href = self.settings.href_make(page.slug)
            if page.slug not in visited and depth < self.settings.toctree_max_depth:
                nested = self.outline_build(page, depth + 1, visited | {page.slug})
        else:
            reference = self.unit.references.get(target)
            if reference is None:
                raise UnresolvedReferenceError(
                    f"toctree entry '{target}' is neither a page nor a reference id",
                    location=node.location,
                    directive='toctree',
                )
            title = entry['title'] or reference.title
            href = self.settings.href_make(reference.slug, reference.anchor)

        children = [self.link_make(href, [Node.text_make(title)])]
        if nested:
            children.append(Node(NodeKind.LIST, children=nested, attrs={'ordered': False}))
        return Node(NodeKind.LIST_ITEM, children=children)

    def outline_build(self, page: Document, depth: int, visited: Set[str]) -> List[Node]:
        """Heading outline (levels 2+) of a page, then its own toctree entries"""
        root: List[Node] = []
        stack: List[Tuple[int, List[Node]]] = [(1, root)]
        sublists: List[Tuple[Node, List[Node]]] = []

        for heading in page.headings_get():
            level = heading.attrs['level']
            if level < 2:
                continue
            href = self.settings.href_make(page.slug, heading.attrs.get('anchor'))
            item = Node(NodeKind.LIST_ITEM, children=[
                self.link_make(href, [Node.text_make(nodes_plainText(heading.children))]),
            ])
            while len(stack) > 1 and stack[-1][0] >= level:
                stack.pop()
            stack[-1][1].append(item)
            nested: List[Node] = []
            stack.append((level, nested))
            sublists.append((item, nested))

        for item, nested in sublists:
            if nested:
                item.children.append(Node(NodeKind.LIST, children=nested, attrs={'ordered': False}))

        for toctree in nodes_walk(page.nodes):
            if toctree.kind != NodeKind.TOCTREE:
                continue
            for entry in toctree.attrs['entries']:
                root.append(self.entry_resolve(entry, toctree, depth, visited))

        return root

    def page_find(self, target: str) -> Optional[Document]:
        """Document addressed by a toctree target (slug, path or URL form)"""
        slug = target.strip().strip('/')
        for suffix in (self.settings.source_suffix, '.html'):
            if slug.endswith(suffix):
                slug = slug[:-len(suffix)]
        documents = self.unit.documents
        if not slug:
            return documents.get('index')
        return documents.get(slug) or documents.get(f"{slug}/index")
