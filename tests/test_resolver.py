"""
Cross-reference resolver tests

Tests the collection pass (explicit, implicit and define-ref ids), the
resolution of ref nodes across documents in either order, and toctree
expansion.
"""

import pytest

from rocketdoc.config import AppSettings
from rocketdoc.lib.builder import Builder
from rocketdoc.lib.directives import DirectiveRegistry
from rocketdoc.lib.evaluator import Evaluator
from rocketdoc.lib.reader import source_read
from rocketdoc.lib.resolver import Resolver
from rocketdoc.models.document import CompilationUnit
from rocketdoc.models.errors import DuplicateReferenceError, UnresolvedReferenceError
from rocketdoc.models.nodes import NodeKind, nodes_plainText, nodes_walk


def resolve(pages, settings=None):
    """Evaluate and resolve a unit made of ``{slug: source}`` pages"""
    registry = DirectiveRegistry()
    builder = Builder(registry)
    unit = CompilationUnit()
    for slug, source in pages.items():
        path = f"content/{slug}.rocket"
        unit.document_create(path, slug, builder.build(source_read(source, path=path)))
    for document in unit.documents_list():
        Evaluator(unit, document, registry=registry, builder=builder, settings=settings).evaluate()
    Resolver(unit, settings).resolve()
    return unit


def links(nodes):
    return [(node.attrs['href'], nodes_plainText(node.children)) for node in nodes_walk(nodes) if node.kind == NodeKind.LINK]


class TestCollection:
    """Test reference registration"""

    def test_explicit_heading_id(self):
        unit = resolve({"guide": '(:h2 install "Installing")'})
        reference = unit.references.get("install")
        assert reference.slug == "guide"
        assert reference.anchor == "install"
        assert reference.title == "Installing"
        assert reference.implicit is False

    def test_implicit_ids_are_unique_per_page(self):
        unit = resolve({"guide": '(:h2 "Getting Started")\n\n(:h2 "Getting Started")'})
        assert unit.references.get("guide#getting-started").implicit is True
        assert unit.references.get("guide#getting-started-1").anchor == "getting-started-1"
        headings = unit.documents["guide"].headings_get()
        assert [heading.attrs['anchor'] for heading in headings] == ["getting-started", "getting-started-1"]

    def test_implicit_anchor_avoids_explicit_ids(self):
        unit = resolve({"guide": '(:h2 "Setup")\n\n(:h2 setup "Other setup")'})
        assert "setup" in unit.references
        assert unit.references.get("guide#setup-1").title == "Setup"

    def test_implicit_ids_keep_non_ascii_letters(self):
        """Accents are dropped, letters of other scripts are kept"""
        unit = resolve({"guide": '(:h2 "Überblick")\n\n(:h2 "日本語")\n\n(:h2 "Ελληνικά")'})
        anchors = [heading.attrs['anchor'] for heading in unit.documents["guide"].headings_get()]
        assert anchors == ["uberblick", "日本語", "ελληνικα"]
        assert unit.references.get("guide#日本語").title == "日本語"

    def test_define_ref(self):
        unit = resolve({"faq": 'Proxies (:define-ref faq-proxy "Proxy settings") are explained here.'})
        reference = unit.references.get("faq-proxy")
        assert reference.title == "Proxy settings"
        assert reference.slug == "faq"

    def test_duplicate_define_ref_across_files(self):
        pages = {
            "a": '(:define-ref faq-proxy "Proxy")',
            "b": '(:define-ref faq-proxy "Proxy again")',
        }
        with pytest.raises(DuplicateReferenceError) as info:
            resolve(pages)
        assert "content/a.rocket:1:1" in info.value.message
        assert str(info.value).startswith("content/b.rocket:1:1:")

    def test_table_is_sealed(self):
        unit = resolve({"index": "Text"})
        assert unit.references.sealed is True


class TestRefs:
    """Test ref resolution"""

    PAGES = {
        "index": "Read (:ref install) first.",
        "guide": '(:h2 install "Installing")',
    }

    def test_forward_reference(self):
        unit = resolve(self.PAGES)
        assert links(unit.documents["index"].nodes) == [("/guide/#install", "Installing")]

    def test_order_independent(self):
        forward = resolve(self.PAGES)
        backward = resolve(dict(reversed(list(self.PAGES.items()))))
        assert forward.documents["index"].nodes == backward.documents["index"].nodes

    def test_title_override(self):
        unit = resolve({"index": '(:ref install "the installer")', "guide": '(:h2 install "Installing")'})
        assert links(unit.documents["index"].nodes) == [("/guide/#install", "the installer")]

    def test_reference_to_implicit_id(self):
        unit = resolve({"index": "(:ref guide#getting-started)", "guide": '(:h2 "Getting Started")'})
        assert links(unit.documents["index"].nodes) == [("/guide/#getting-started", "Getting Started")]

    def test_plain_urls(self):
        unit = resolve(self.PAGES, settings=AppSettings(pretty_urls=False))
        assert links(unit.documents["index"].nodes) == [("/guide.html#install", "Installing")]

    def test_unresolved_reference(self):
        with pytest.raises(UnresolvedReferenceError, match="unknown reference id 'nowhere'"):
            resolve({"index": "(:ref nowhere)"})


class TestToctree:
    """Test toctree expansion"""

    PAGES = {
        "index": "(:toctree guide faq)",
        "guide": '(:h1 "Guide")\n\n(:h2 install "Install")\n\n(:h3 "Linux")\n\n(:h2 "Configure")',
        "faq": '(:h1 "FAQ")\n\nAnswers (:define-ref faq-proxy "Proxy settings")',
    }

    def test_pages_expand_to_outline(self):
        unit = resolve(self.PAGES)
        toctree = unit.documents["index"].nodes[0]
        assert toctree.kind == NodeKind.TOCTREE
        assert toctree.attrs['resolved'] is True
        assert links([toctree]) == [
            ("/guide/", "Guide"),
            ("/guide/#install", "Install"),
            ("/guide/#linux", "Linux"),
            ("/guide/#configure", "Configure"),
            ("/faq/", "FAQ"),
        ]

    def test_outline_nesting(self):
        unit = resolve(self.PAGES)
        guide_item = unit.documents["index"].nodes[0].children[0].children[0]
        outline = guide_item.children[1]
        assert outline.kind == NodeKind.LIST
        install_item = outline.children[0]
        assert nodes_plainText(install_item.children[1].children) == "Linux"

    def test_title_groups_and_reference_ids(self):
        pages = dict(self.PAGES, index='(:toctree ("Start here" guide) faq-proxy)')
        unit = resolve(pages, settings=AppSettings(toctree_max_depth=1))
        assert links(unit.documents["index"].nodes) == [
            ("/guide/", "Start here"),
            ("/faq/#faq-proxy", "Proxy settings"),
        ]

    def test_nested_toctrees_do_not_loop(self):
        pages = {
            "index": '(:h1 "Home")\n\n(:toctree guide)',
            "guide": '(:h1 "Guide")\n\n(:toctree index)',
        }
        unit = resolve(pages, settings=AppSettings(toctree_max_depth=5))
        assert links(unit.documents["index"].nodes)[:2] == [("/guide/", "Guide"), ("/", "Home")]

    def test_unknown_entry(self):
        with pytest.raises(UnresolvedReferenceError, match="neither a page nor a reference id"):
            resolve({"index": "(:toctree missing)"})
