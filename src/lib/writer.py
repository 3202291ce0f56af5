"""
Markup writer

Serialises a built, not yet evaluated document tree back to rocketdoc
markup. Reading and building the written text yields a tree equal to the
one written (source locations aside), which makes the writer useful for
normalising sources and for checking the reader and builder against each
other.
"""

import re
from typing import Callable, Dict, List, Optional

from ..models.directives import rawBody_is
from ..models.errors import StructureError
from ..models.nodes import Node, NodeKind


BARE_ATOM = re.compile(r'[^\s()"\\*_`]+')
TEXT_SPECIALS = re.compile(r'([\\()*_`])')
RAW_SPECIALS = re.compile(r'([\\()])')
STRING_ESCAPES = {'\\': '\\\\', '"': '\\"', '\n': '\\n', '\t': '\\t'}


class Writer:
    """Writes document trees as rocketdoc markup"""

    def __init__(self) -> None:
        self.handlers: Dict[NodeKind, Callable[[Node], str]] = {
            NodeKind.PARAGRAPH: lambda node: self.inlines_write(node.children),
            NodeKind.HEADING: self.heading_write,
            NodeKind.LIST: self.list_write,
            NodeKind.STEPS: self.steps_write,
            NodeKind.GLOSSARY: self.glossary_write,
            NodeKind.CODE_BLOCK: self.code_write,
            NodeKind.ADMONITION: self.admonition_write,
            NodeKind.DIRECTIVE: self.directive_write,
        }

    def write(self, nodes: List[Node]) -> str:
        """Write top-level blocks separated by blank lines"""
        return "\n\n".join(self.block_write(node) for node in nodes)

    def block_write(self, node: Node) -> str:
        handler = self.handlers.get(node.kind)
        if handler is None:
            if node.is_inline():
                return self.inlines_write([node])
            raise StructureError(f"{node.kind.value} node cannot be written as markup", location=node.location)
        return handler(node)

    def inlines_write(self, nodes: List[Node]) -> str:
        parts = []
        for node in nodes:
            if node.kind == NodeKind.TEXT:
                parts.append(TEXT_SPECIALS.sub(r'\\\1', node.text))
            elif node.kind == NodeKind.STRONG:
                parts.append(f"**{self.inlines_write(node.children)}**")
            elif node.kind == NodeKind.EMPHASIS:
                parts.append(f"__{self.inlines_write(node.children)}__")
            elif node.kind == NodeKind.LITERAL:
                parts.append(f"`{node.text}`")
            elif node.kind == NodeKind.DIRECTIVE:
                parts.append(self.directive_write(node))
            else:
                raise StructureError(f"{node.kind.value} node cannot be written as markup", location=node.location)
        return "".join(parts)

    def argument_write(self, node: Node) -> str:
        """Write an argument form: bare atom, quoted string, group or call"""
        if node.kind == NodeKind.TEXT:
            text = node.text
            if BARE_ATOM.fullmatch(text) and not text.startswith(('=>', ':')):
                return text
            return '"' + "".join(STRING_ESCAPES.get(char, char) for char in text) + '"'
        if node.kind == NodeKind.GROUP:
            return "(" + " ".join(self.argument_write(child) for child in node.children) + ")"
        if node.kind == NodeKind.DIRECTIVE:
            return self.directive_write(node)
        raise StructureError(f"{node.kind.value} node cannot be written as an argument", location=node.location)

    def label_write(self, label: List[Node]) -> str:
        """Titles and terms are written back as a single argument"""
        if not label:
            return '""'
        if len(label) == 1:
            return self.argument_write(label[0])
        raise StructureError("multi-part titles cannot be written as an argument", location=label[0].location)

    def head_write(self, name: str, args: List[str]) -> str:
        return " ".join([f"(:{name}"] + args)

    def call_write(self, name: str, args: List[str], body: Optional[str] = None) -> str:
        head = self.head_write(name, args)
        if body is None:
            return f"{head})"
        return f"{head} =>\n{body}\n)"

    def directive_write(self, node: Node) -> str:
        """Write a call as read: its body text follows '=>' unchanged"""
        args = [self.argument_write(arg) for arg in node.args]
        if node.body is None:
            return self.call_write(node.name, args)
        if rawBody_is(node.name):
            body = RAW_SPECIALS.sub(r"\\\1", "".join(form.text for form in node.body))
        else:
            body = self.inlines_write(node.body)
        return f"{self.head_write(node.name, args)} =>{body})"

    def heading_write(self, node: Node) -> str:
        args = [self.argument_write(Node.text_make(node.attrs['id']))] if node.attrs.get('id') else []
        level = node.attrs['level']
        return f"{self.head_write(f'h{level}', args)} => {self.inlines_write(node.children)})"

    def list_write(self, node: Node) -> str:
        items = [self.call_write('item', [], self.write(item.children)) for item in node.children]
        style = ['ordered'] if node.attrs.get('ordered') else []
        return self.call_write('list', style, "\n".join(items))

    def steps_write(self, node: Node) -> str:
        steps = [
            self.call_write('step', [self.label_write(step.label)], self.write(step.children))
            for step in node.children
        ]
        return self.call_write('steps', [], "\n".join(steps))

    def glossary_write(self, node: Node) -> str:
        terms = [
            self.call_write('term', [self.label_write(entry.label)], self.write(entry.children))
            for entry in node.children
        ]
        return self.call_write('glossary', [], "\n".join(terms))

    def code_write(self, node: Node) -> str:
        language = node.attrs.get('language')
        args = [self.argument_write(Node.text_make(language))] if language else []
        return self.call_write('code', args, RAW_SPECIALS.sub(r'\\\1', node.text))

    def admonition_write(self, node: Node) -> str:
        args = [self.label_write(node.label)] if node.label else []
        return self.call_write(node.attrs['kind'], args, self.write(node.children))
