"""
Reader tests

Tests directive calls, arguments, bodies, inline markers, escapes and the
syntax errors the reader reports (with recovery).
"""

import pytest

from rocketdoc.lib.reader import Reader, source_read
from rocketdoc.models.errors import RocketSyntaxError
from rocketdoc.models.nodes import NodeKind


class TestEmptyAndSimple:
    """Test empty source and plain text"""

    def test_empty_source(self):
        """Empty string should read to empty list"""
        assert Reader("").read() == []

    def test_plain_text(self):
        """Text without markup is a single TEXT form"""
        forms = source_read("Hello world")
        assert len(forms) == 1
        assert forms[0].kind == NodeKind.TEXT
        assert forms[0].text == "Hello world"

    def test_balanced_parentheses_in_text(self):
        """Ordinary (asides) need no escaping"""
        forms = source_read("An aside (like this one) stays text")
        assert len(forms) == 1
        assert forms[0].text == "An aside (like this one) stays text"


class TestDirectiveCalls:
    """Test (:name args => body) calls"""

    def test_call_without_arguments(self):
        forms = source_read("(:version)")
        assert forms[0].kind == NodeKind.DIRECTIVE
        assert forms[0].name == "version"
        assert forms[0].args == []
        assert forms[0].body is None

    def test_atom_and_string_arguments(self):
        """Bare atoms and quoted strings are TEXT argument forms"""
        forms = source_read('(:link https://example.com "An example")')
        call = forms[0]
        assert [arg.text for arg in call.args] == ["https://example.com", "An example"]

    def test_string_escapes(self):
        forms = source_read(r'(:concat "a\"b" "line\nbreak" "back\\slash")')
        assert [arg.text for arg in forms[0].args] == ['a"b', "line\nbreak", "back\\slash"]

    def test_group_argument(self):
        """Parenthesised groups hold their elements in children"""
        forms = source_read('(:toctree ("Install" guide/install) faq)')
        group, atom = forms[0].args
        assert group.kind == NodeKind.GROUP
        assert [child.text for child in group.children] == ["Install", "guide/install"]
        assert atom.text == "faq"

    def test_nested_call_argument(self):
        forms = source_read('(:concat (:version) "-beta")')
        nested = forms[0].args[0]
        assert nested.kind == NodeKind.DIRECTIVE
        assert nested.name == "version"

    def test_body(self):
        """Everything after '=>' up to the closing ')' is the body"""
        forms = source_read("(:h2 install => Installing **rocket**)")
        call = forms[0]
        assert call.args[0].text == "install"
        assert call.body[0].text == " Installing "
        assert call.body[1].kind == NodeKind.STRONG

    def test_raw_body_keeps_markup(self):
        """Code bodies are read verbatim: no spans, no nested calls"""
        forms = source_read("(:code python => x = a**b  # (:not-a-call) \\) done)")
        body = forms[0].body
        assert len(body) == 1
        assert body[0].text == " x = a**b  # (:not-a-call) ) done"

    def test_location_tracking(self):
        forms = source_read("Intro\n\n  (:version)", path="guide.rocket")
        call = forms[1]
        assert str(call.location) == "guide.rocket:3:3"


class TestInlineMarkers:
    """Test **strong**, __emphasis__, `literal` and escapes"""

    def test_strong_and_emphasis(self):
        forms = source_read("a **b** __c__")
        kinds = [form.kind for form in forms]
        assert kinds == [NodeKind.TEXT, NodeKind.STRONG, NodeKind.TEXT, NodeKind.EMPHASIS]
        assert forms[1].children[0].text == "b"

    def test_literal_keeps_content(self):
        forms = source_read("run `(:define x)` now")
        assert forms[1].kind == NodeKind.LITERAL
        assert forms[1].text == "(:define x)"

    def test_escaped_directive_opener(self):
        """\\(: yields a literal '(:' in text"""
        forms = source_read(r"write \(:h1 Title\) to add a heading")
        assert len(forms) == 1
        assert forms[0].text == "write (:h1 Title) to add a heading"

    def test_adjacent_text_is_merged(self):
        forms = source_read(r"a\*b")
        assert len(forms) == 1
        assert forms[0].text == "a*b"


class TestSyntaxErrors:
    """Test error reporting with source locations"""

    def test_unbalanced_close(self):
        with pytest.raises(RocketSyntaxError, match=r"Unbalanced '\)'"):
            source_read("oops)")

    def test_unbalanced_open(self):
        with pytest.raises(RocketSyntaxError, match="Unbalanced"):
            source_read("oops (never closed")

    def test_unterminated_directive(self):
        with pytest.raises(RocketSyntaxError, match="Unterminated directive"):
            source_read('(:h1 "Title"')

    def test_unterminated_string(self):
        with pytest.raises(RocketSyntaxError, match="Unterminated string"):
            source_read('(:h1 "Title)')

    def test_unterminated_span(self):
        with pytest.raises(RocketSyntaxError, match=r"Unterminated '\*\*' span"):
            source_read("some **bold text")

    def test_malformed_name(self):
        with pytest.raises(RocketSyntaxError, match="Malformed directive name"):
            source_read("(:bad!name x)")

    def test_error_is_a_syntax_error_with_location(self):
        with pytest.raises(SyntaxError) as info:
            source_read('first line\n(:h1 "Title"', path="page.rocket")
        assert str(info.value.location) == "page.rocket:2:1"
        assert str(info.value).startswith("page.rocket:2:1: RocketSyntaxError:")

    def test_recovery_at_next_directive_line(self):
        """A malformed form is reported and reading continues"""
        reader = Reader('(:h1 broken\n\n(:h2 "Fine")\n')
        forms = reader.read()
        assert len(reader.diagnostics) == 1
        names = [form.name for form in forms if form.kind == NodeKind.DIRECTIVE]
        assert names == ["h2"]

    def test_every_error_is_collected(self):
        reader = Reader("one)\n(:h1 \"ok\")\ntwo **open\n(:h2 \"ok\")")
        reader.read()
        assert len(reader.diagnostics) == 2
