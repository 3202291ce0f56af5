"""
Builder and writer tests

Tests paragraph splitting, the structural built-ins (headings, lists,
steps, glossaries, code blocks, admonitions), nesting errors, and that
writing a built tree back to markup and rebuilding it gives the same tree.
"""

import pytest

from rocketdoc.lib.builder import Builder
from rocketdoc.lib.reader import source_read
from rocketdoc.lib.writer import Writer
from rocketdoc.models.errors import ArityError, StructureError
from rocketdoc.models.nodes import Node, NodeKind


def build(source: str):
    return Builder().build(source_read(source))


class TestParagraphs:
    """Test block context paragraph handling"""

    def test_blank_lines_split_paragraphs(self):
        nodes = build("First paragraph\nstill first\n\n   \nSecond")
        assert [node.kind for node in nodes] == [NodeKind.PARAGRAPH, NodeKind.PARAGRAPH]
        assert nodes[0].children[0].text == "First paragraph\nstill first"
        assert nodes[1].children[0].text == "Second"

    def test_whitespace_only_source(self):
        assert build("  \n\n\t\n") == []

    def test_lone_directive_is_unwrapped(self):
        """A paragraph holding only one call becomes that call"""
        nodes = build("\n(:version)\n")
        assert len(nodes) == 1
        assert nodes[0].kind == NodeKind.DIRECTIVE

    def test_directive_inside_text_stays_inline(self):
        nodes = build("Release (:version) is out")
        assert nodes[0].kind == NodeKind.PARAGRAPH
        assert [child.kind for child in nodes[0].children] == [
            NodeKind.TEXT, NodeKind.DIRECTIVE, NodeKind.TEXT,
        ]


class TestHeadings:
    """Test the four heading forms"""

    def test_title_only(self):
        heading = build('(:h1 "Welcome")')[0]
        assert heading.kind == NodeKind.HEADING
        assert heading.attrs == {'level': 1}
        assert heading.children == [Node.text_make("Welcome")]

    def test_id_and_title(self):
        heading = build('(:h2 install "Installing")')[0]
        assert heading.attrs == {'level': 2, 'id': 'install'}

    def test_id_and_body(self):
        heading = build("(:h3 install => Installing **rocket**)")[0]
        assert heading.attrs['id'] == 'install'
        assert heading.children[0].text == "Installing "
        assert heading.children[1].kind == NodeKind.STRONG

    def test_body_only(self):
        heading = build("(:h4 => Just a title)")[0]
        assert 'id' not in heading.attrs
        assert heading.children == [Node.text_make("Just a title")]

    def test_missing_title(self):
        with pytest.raises(ArityError):
            build("(:h2)")

    def test_too_many_arguments(self):
        with pytest.raises(ArityError, match="expects 0-2"):
            build('(:h2 a b c)')

    def test_id_must_be_literal(self):
        with pytest.raises(StructureError, match="id must be literal"):
            build('(:h2 (:version) "Title")')


class TestContainers:
    """Test list, steps and glossary containers"""

    def test_list_with_items(self):
        node = build('(:list ordered => (:item "One") (:item => Two **bold**))')[0]
        assert node.kind == NodeKind.LIST
        assert node.attrs == {'ordered': True}
        assert len(node.children) == 2
        first, second = node.children
        assert first.kind == NodeKind.LIST_ITEM
        assert first.children[0].kind == NodeKind.PARAGRAPH
        assert second.children[0].children[1].kind == NodeKind.STRONG

    def test_list_rejects_other_content(self):
        with pytest.raises(StructureError, match=r"may only contain '\(:item\)'"):
            build("(:list => just text)")

    def test_bad_list_style(self):
        with pytest.raises(StructureError, match="ordered"):
            build('(:list sideways => (:item "x"))')

    def test_item_outside_list(self):
        with pytest.raises(StructureError, match=r"must appear inside '\(:list\)'"):
            build('(:item "orphan")')

    def test_steps(self):
        node = build('(:steps => (:step "Download" => Get it.) (:step "Run" => Start it.))')[0]
        assert node.kind == NodeKind.STEPS
        assert [step.label[0].text for step in node.children] == ["Download", "Run"]

    def test_step_outside_steps(self):
        with pytest.raises(StructureError):
            build('(:step "Lost" => body)')

    def test_glossary_pairs_and_terms(self):
        node = build('(:glossary ("API" "Application interface") => (:term "CLI" => Command line))')[0]
        assert node.kind == NodeKind.GLOSSARY
        assert [entry.label[0].text for entry in node.children] == ["API", "CLI"]
        assert node.children[0].children[0].kind == NodeKind.PARAGRAPH

    def test_definition_list_is_a_glossary(self):
        """definition-list is another name for glossary"""
        source = '("API" "Application interface") => (:term "CLI" => Command line))'
        assert build("(:definition-list " + source) == build("(:glossary " + source)

    def test_duplicate_glossary_term(self):
        with pytest.raises(StructureError, match="duplicate glossary term 'API'"):
            build('(:glossary ("API" "one") ("API" "two"))')


class TestBlocks:
    """Test code blocks, admonitions and comments"""

    def test_code_block_is_dedented(self):
        node = build("(:code python =>\n\n    def f():\n        return 1\n    )")[0]
        assert node.kind == NodeKind.CODE_BLOCK
        assert node.attrs == {'language': 'python'}
        assert node.text == "def f():\n    return 1"

    def test_code_requires_body(self):
        with pytest.raises(StructureError, match="requires a '=>' body"):
            build("(:code python)")

    def test_note_default(self):
        node = build("(:note => Careful now)")[0]
        assert node.kind == NodeKind.ADMONITION
        assert node.attrs == {'kind': 'note'}
        assert node.label == []
        assert node.children[0].children[0].text == "Careful now"

    def test_warning_with_title(self):
        node = build('(:warning "Heads up" => Data loss ahead)')[0]
        assert node.label == [Node.text_make("Heads up")]

    def test_comment_is_dropped(self):
        nodes = build("(:comment => remember (to) fix this)\n\nVisible")
        assert len(nodes) == 1
        assert nodes[0].children[0].text == "Visible"

    def test_block_directive_in_inline_content(self):
        with pytest.raises(StructureError, match="cannot appear in inline content"):
            build("**bold (:note => no)**")


class TestWriterRoundTrip:
    """Writing a built tree and building the result gives an equal tree"""

    SOURCES = [
        "Plain text with an (aside) and a \\(: literal opener",
        "Hello **world** and __emphasis__ with `code`\n\nSecond paragraph",
        '(:h1 "Welcome")\n\n(:h2 install => Installing **rocket**)',
        '(:list ordered => (:item "One") (:item => Two with __style__))',
        '(:steps => (:step "Download" => Get it.) (:step "Run" => Start it.))',
        '(:glossary ("API" "Application interface") => (:term "my_term" => Defined))',
        "(:code python =>\n    def f():\n        return (1)\n)",
        '(:note => Careful)\n\n(:warning "Heads up" => Data loss)',
        'Release (:version "x.x") see (:link https://example.com => the **site**)',
        '(:define-template jira "(:link https://jira/${0} ${0})" "^[A-Z]+-[0-9]+$")',
    ]

    @pytest.mark.parametrize("source", SOURCES)
    def test_round_trip(self, source):
        tree = build(source)
        written = Writer().write(tree)
        assert build(written) == tree

    def test_written_heading(self):
        written = Writer().write(build('(:h2 install "Installing")'))
        assert written == "(:h2 install => Installing)"
