"""
HTML renderer for resolved document trees

Rendering is deterministic: the same tree always produces byte-identical
HTML. Text and attribute values are escaped. Code blocks are highlighted
with Pygments using inline styles, so pages need no extra stylesheet.
"""

import html
from typing import Callable, Dict, List, Optional

from pygments import highlight
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name, TextLexer
from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound

from ..config import appsettings, AppSettings
from ..models.errors import UnresolvedDirectiveError
from ..models.nodes import Node, NodeKind
from .directives import ADMONITION_TITLES
from .lexer import RocketLexer


def escape(text: str) -> str:
    return html.escape(text, quote=True)


class Renderer:
    """
    Renders resolved nodes to HTML

    DIRECTIVE, GROUP and REF nodes, and TOCTREE nodes that were never
    resolved, must not survive to this stage; meeting one raises
    UnresolvedDirectiveError.
    """

    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or appsettings
        # noclasses=True means styles are inline, no external CSS needed
        self.formatter = HtmlFormatter(style=self.settings.pygments_style, noclasses=True)
        self.handlers: Dict[NodeKind, Callable[[Node], str]] = {
            NodeKind.TEXT: self.text_render,
            NodeKind.PARAGRAPH: self.paragraph_render,
            NodeKind.HEADING: self.heading_render,
            NodeKind.LIST: self.list_render,
            NodeKind.LIST_ITEM: self.listItem_render,
            NodeKind.CODE_BLOCK: self.code_render,
            NodeKind.FIGURE: self.figure_render,
            NodeKind.STEPS: self.steps_render,
            NodeKind.GLOSSARY: self.glossary_render,
            NodeKind.ADMONITION: self.admonition_render,
            NodeKind.LINK: self.link_render,
            NodeKind.STRONG: self.strong_render,
            NodeKind.EMPHASIS: self.emphasis_render,
            NodeKind.LITERAL: self.literal_render,
            NodeKind.ANCHOR: self.anchor_render,
            NodeKind.TOCTREE: self.toctree_render,
        }

    def render(self, nodes: List[Node]) -> str:
        """Render block nodes, one per line"""
        return "\n".join(self.node_render(node) for node in nodes)

    def inline_render(self, nodes: List[Node]) -> str:
        return "".join(self.node_render(node) for node in nodes)

    def node_render(self, node: Node) -> str:
        """
        Render one node

        Raises:
            UnresolvedDirectiveError: Node kind must have been expanded earlier
        """
        handler = self.handlers.get(node.kind)
        if handler is None:
            what = f"'(:{node.name})'" if node.kind == NodeKind.DIRECTIVE else node.kind.value
            raise UnresolvedDirectiveError(
                f"{what} left unresolved at render time",
                location=node.location,
                directive=node.name or None,
            )
        return handler(node)

    def text_render(self, node: Node) -> str:
        return escape(node.text)

    def paragraph_render(self, node: Node) -> str:
        return f"<p>{self.inline_render(node.children)}</p>"

    def heading_render(self, node: Node) -> str:
        level = node.attrs['level']
        anchor = node.attrs.get('anchor') or node.attrs.get('id')
        id_attr = f' id="{escape(anchor)}"' if anchor else ''
        return f"<h{level}{id_attr}>{self.inline_render(node.children)}</h{level}>"

    def list_render(self, node: Node) -> str:
        tag = 'ol' if node.attrs.get('ordered') else 'ul'
        return f"<{tag}>\n{self.render(node.children)}\n</{tag}>"

    def listItem_render(self, node: Node) -> str:
        return f"<li>{self.render(node.children)}</li>"

    def lexer_get(self, language: str) -> Lexer:
        """Pygments lexer for a code block language (plain text when unknown)"""
        if language.lower() in ('rocket', 'rocketdoc'):
            return RocketLexer()
        if not language:
            return TextLexer()
        try:
            return get_lexer_by_name(language)
        except ClassNotFound:
            # Fallback to plain text if language not found
            return TextLexer()

    def code_render(self, node: Node) -> str:
        language = node.attrs.get('language', '')
        highlighted = highlight(node.text, self.lexer_get(language), self.formatter)
        return f'<div class="code-block" data-language="{escape(language)}">{highlighted}</div>'

    def figure_render(self, node: Node) -> str:
        width = node.attrs.get('width') or self.settings.figure_default_width
        alt = escape(node.attrs['alt'])
        return (
            f'<figure><img src="{escape(node.attrs["src"])}" alt="{alt}" style="width: {escape(width)}">'
            f'<figcaption>{alt}</figcaption></figure>'
        )

    def steps_render(self, node: Node) -> str:
        steps = []
        for number, step in enumerate(node.children, start=1):
            steps.append(
                '<div class="steps__step">'
                f'<div class="steps__bullet"><div class="steps__stepnumber">{number}</div></div>'
                f'<h4>{self.inline_render(step.label)}</h4>'
                f'<div>{self.render(step.children)}</div>'
                '</div>'
            )
        return f'<div class="steps">{"".join(steps)}</div>'

    def glossary_render(self, node: Node) -> str:
        entries = []
        for entry in node.children:
            entries.append(f"<dt>{self.inline_render(entry.label)}</dt>")
            entries.append(f"<dd>{self.render(entry.children)}</dd>")
        return '<dl class="glossary">\n' + "\n".join(entries) + "\n</dl>"

    def admonition_render(self, node: Node) -> str:
        kind = node.attrs['kind']
        title = self.inline_render(node.label) if node.label else escape(ADMONITION_TITLES.get(kind, kind.title()))
        return (
            f'<div class="admonition admonition-{kind}">'
            f'<span class="admonition-title admonition-title-{kind}">{title}</span>'
            f'{self.render(node.children)}</div>'
        )

    def link_render(self, node: Node) -> str:
        return f'<a href="{escape(node.attrs["href"])}">{self.inline_render(node.children)}</a>'

    def strong_render(self, node: Node) -> str:
        return f"<strong>{self.inline_render(node.children)}</strong>"

    def emphasis_render(self, node: Node) -> str:
        return f"<em>{self.inline_render(node.children)}</em>"

    def literal_render(self, node: Node) -> str:
        return f"<code>{escape(node.text)}</code>"

    def anchor_render(self, node: Node) -> str:
        return f'<span id="{escape(node.attrs["id"])}"></span>'

    def toctree_render(self, node: Node) -> str:
        if not node.attrs.get('resolved'):
            raise UnresolvedDirectiveError(
                "toctree left unresolved at render time",
                location=node.location,
                directive='toctree',
            )
        return f'<nav class="toctree">\n{self.render(node.children)}\n</nav>'
