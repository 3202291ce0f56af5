"""
Evaluator tests

Tests built-in expansion, user definitions and templates, scoping with let,
include/import, cycle detection and the context checks on expansion results.
"""

import pytest

from rocketdoc.config import AppSettings
from rocketdoc.lib.builder import Builder
from rocketdoc.lib.directives import DirectiveRegistry
from rocketdoc.lib.evaluator import Evaluator
from rocketdoc.lib.reader import source_read
from rocketdoc.models.document import CompilationUnit
from rocketdoc.models.errors import (
    ArityError,
    CyclicExpansionError,
    RedefinitionError,
    SourceLoadError,
    StructureError,
    TemplateArgumentError,
    UnresolvedNameError,
)
from rocketdoc.models.nodes import NodeKind, nodes_plainText


def evaluate(source, files=None, config=None, settings=None, path="content/index.rocket"):
    """Evaluate one document; ``files`` maps content paths to their text"""
    sources = dict(files or {})

    def loader(name):
        if name not in sources:
            raise FileNotFoundError(2, "No such file or directory", name)
        return sources[name]

    registry = DirectiveRegistry()
    builder = Builder(registry)
    unit = CompilationUnit(config=config, loader=loader)
    document = unit.document_create(path, "index", builder.build(source_read(source, path=path)))
    Evaluator(unit, document, registry=registry, builder=builder, settings=settings).evaluate()
    return document


def texts(document):
    """Plain text of every top-level block"""
    return [nodes_plainText([node]) for node in document.nodes]


class TestBuiltins:
    """Test concat, link, figure, version and theme-config"""

    def test_concat_has_no_delimiter(self):
        assert texts(evaluate('(:concat "a" "b" "c")')) == ["abc"]

    def test_concat_of_nested_calls(self):
        document = evaluate('(:concat (:version) "-" (:concat x y))', config={'version': '2.0'})
        assert texts(document) == ["2.0-xy"]

    def test_link_with_title(self):
        paragraph = evaluate('See (:link https://example.com "the site") now').nodes[0]
        link = paragraph.children[1]
        assert link.kind == NodeKind.LINK
        assert link.attrs == {'href': 'https://example.com'}
        assert nodes_plainText(link.children) == "the site"

    def test_link_without_title_shows_href(self):
        link = evaluate('(:link /guide/)').nodes[0].children[0]
        assert nodes_plainText(link.children) == "/guide/"

    def test_figure_is_a_block(self):
        figure = evaluate('(:figure img/arch.png "Architecture" 60%)').nodes[0]
        assert figure.kind == NodeKind.FIGURE
        assert figure.attrs == {'src': 'img/arch.png', 'alt': 'Architecture', 'width': '60%'}

    def test_figure_inside_text_is_rejected(self):
        with pytest.raises(StructureError, match="figure cannot appear in inline content"):
            evaluate('Look (:figure a.png "A") here')

    def test_builtin_arity(self):
        with pytest.raises(ArityError, match=r"'\(:link\)' expects 1-2 argument\(s\), got 0"):
            evaluate("(:link)")

    def test_version_patterns(self):
        config = {'version': '3.4.0'}
        assert texts(evaluate("(:version)", config=config)) == ["3.4.0"]
        assert texts(evaluate('Version (:version "x.x")', config=config)) == ["Version 3.4"]
        assert evaluate('(:version "")', config=config).nodes == []

    def test_theme_config_sets_metadata(self):
        document = evaluate('(:theme-config title "Install Guide")\n\n(:h1 "Installing")')
        assert document.metadata == {'title': 'Install Guide'}
        assert document.title_get() == "Install Guide"
        assert len(document.nodes) == 1

    def test_null(self):
        assert evaluate("(:null)\n\nText").nodes[0].children[0].text == "Text"


class TestDefinitions:
    """Test define and define-template"""

    def test_define_value(self):
        document = evaluate('(:define product "Rocket")\n\nWelcome to (:product) docs')
        assert texts(document) == ["Welcome to Rocket docs"]

    def test_define_in_same_paragraph(self):
        document = evaluate('(:define product "Rocket")\nWelcome to (:product)')
        assert texts(document) == ["Welcome to Rocket"]

    def test_define_body(self):
        document = evaluate("(:define tagline => **fast** docs)\n\nRocket: (:tagline)")
        strong = document.nodes[0].children[1]
        assert strong.kind == NodeKind.STRONG
        assert texts(document) == ["Rocket: fast docs"]

    def test_lazy_value_sees_later_definitions(self):
        document = evaluate('(:define greeting (:who))\n\n(:define who "world")\n\n(:greeting)')
        assert texts(document) == ["world"]

    def test_eager_value_is_evaluated_at_definition(self):
        with pytest.raises(UnresolvedNameError, match="who"):
            evaluate('(:define evaluate greeting (:who))\n\n(:define who "world")')

    def test_eager_value(self):
        document = evaluate('(:define evaluate release (:concat (:version) "-rc"))\n\n(:release)', config={'version': '1.2'})
        assert texts(document) == ["1.2-rc"]

    def test_value_takes_no_arguments(self):
        with pytest.raises(ArityError, match="expects 0"):
            evaluate('(:define product "Rocket")\n\n(:product extra)')

    def test_unresolved_name(self):
        with pytest.raises(UnresolvedNameError, match=r"'\(:nope\)'"):
            evaluate("Text (:nope)")

    def test_redefinition(self):
        with pytest.raises(RedefinitionError, match="already defined"):
            evaluate('(:define x "a")\n\n(:define x "b")')

    def test_builtin_cannot_be_redefined(self):
        with pytest.raises(RedefinitionError, match="built-in"):
            evaluate('(:define concat "x")')


class TestTemplates:
    """Test macro expansion with placeholders and patterns"""

    JIRA = '(:define-template jira "(:link https://jira.example.com/browse/${0} ${0})" "^[A-Z]+-[0-9]+$")\n\n'

    def test_expansion(self):
        paragraph = evaluate(self.JIRA + "See (:jira ROCKET-12) now").nodes[0]
        link = paragraph.children[1]
        assert link.attrs == {'href': 'https://jira.example.com/browse/ROCKET-12'}
        assert nodes_plainText(link.children) == "ROCKET-12"
        assert nodes_plainText(paragraph.children) == "See ROCKET-12 now"

    def test_pattern_mismatch(self):
        with pytest.raises(TemplateArgumentError, match="does not match"):
            evaluate(self.JIRA + "(:jira rocket-12)")

    def test_pattern_checks_evaluated_argument(self):
        document = evaluate('(:define key "ROCKET-7")\n\n' + self.JIRA + "(:jira (:key))")
        assert texts(document) == ["ROCKET-7"]

    def test_invalid_pattern(self):
        with pytest.raises(TemplateArgumentError, match="invalid pattern"):
            evaluate('(:define-template bad "${0}" "([unclosed")')

    def test_arity_checked_before_arguments(self):
        """Wrong argument count wins over errors inside the arguments"""
        with pytest.raises(ArityError, match=r"'\(:jira\)' expects 1 argument\(s\), got 2"):
            evaluate(self.JIRA + "(:jira ROCKET-1 (:undefined-thing))")

    def test_arity_from_placeholders(self):
        with pytest.raises(ArityError, match="expects 2"):
            evaluate('(:define-template pair "${0}+${1}")\n\n(:pair a)')

    def test_body_is_last_argument(self):
        document = evaluate(
            "(:define-template warn-box => **Warning:** ${0})\n\n"
            "(:warn-box => mind the __gap__)"
        )
        paragraph = document.nodes[0]
        assert paragraph.kind == NodeKind.PARAGRAPH
        assert paragraph.children[0].kind == NodeKind.STRONG
        assert paragraph.children[-1].kind == NodeKind.EMPHASIS
        assert texts(document) == ["Warning: mind the gap"]

    def test_structural_template(self):
        document = evaluate(
            '(:define-template section "(:h2 ${0})")\n\n(:section "Setup")'
        )
        heading = document.nodes[0]
        assert heading.kind == NodeKind.HEADING
        assert nodes_plainText(heading.children) == "Setup"

    def test_nested_call_is_not_a_cycle(self):
        document = evaluate('(:define-template wrap "[${0}]")\n\n(:wrap (:wrap x))')
        assert texts(document) == ["[[x]]"]


class TestCycles:
    """Test cyclic expansion detection"""

    def test_self_recursive_template(self):
        with pytest.raises(CyclicExpansionError, match="loop -> loop"):
            evaluate('(:define-template loop "(:loop ${0})")\n\n(:loop x)')

    def test_mutually_recursive_values(self):
        with pytest.raises(CyclicExpansionError, match="a -> b -> a"):
            evaluate("(:define a (:b))\n\n(:define b (:a))\n\n(:a)")

    def test_depth_limit(self):
        source = '(:define a (:b))\n\n(:define b (:c))\n\n(:define c "deep")\n\n(:a)'
        with pytest.raises(CyclicExpansionError, match="expansion depth exceeds 2"):
            evaluate(source, settings=AppSettings(max_expansion_depth=2))
        assert texts(evaluate(source, settings=AppSettings(max_expansion_depth=3))) == ["deep"]


class TestLet:
    """Test scoped bindings"""

    def test_let_binding(self):
        assert texts(evaluate('(:let (who "world") => Hello (:who)!)')) == ["Hello world!"]

    def test_let_binding_is_scoped(self):
        with pytest.raises(UnresolvedNameError):
            evaluate('(:let (who "world") => Hi)\n\n(:who)')

    def test_let_shadows(self):
        document = evaluate('(:define who "outer")\n\n(:let (who "inner") => (:who))\n\n(:who)')
        assert texts(document) == ["inner", "outer"]

    def test_let_needs_pairs(self):
        with pytest.raises(StructureError, match="name/value pairs"):
            evaluate('(:let (who) => Hi)')


class TestIncludeAndImport:
    """Test include/import of other sources"""

    PART = '(:h2 "Part")\n\nShared **text** here.'
    MACROS = (
        '(:h1 "Macros")\n\nThis text is never shown.\n\n'
        '(:define product "Rocket")\n\n'
        '(:define-template shout "**${0}**")'
    )

    def test_include_equals_inlining(self):
        included = evaluate(
            'Intro\n\n(:include "part.rocket")\n\nOutro',
            files={"content/part.rocket": self.PART},
        )
        inlined = evaluate('Intro\n\n' + self.PART + '\n\nOutro')
        assert included.nodes == inlined.nodes

    def test_include_path_is_relative_to_caller(self):
        files = {
            "content/guide/part.rocket": '(:include "../shared/note.rocket")',
            "content/shared/note.rocket": "Shared note",
        }
        document = evaluate('(:include "guide/part.rocket")', files=files)
        assert texts(document) == ["Shared note"]

    def test_include_cycle(self):
        files = {"content/a.rocket": '(:include "index.rocket")'}
        with pytest.raises(CyclicExpansionError, match="cyclic include"):
            evaluate('(:include "a.rocket")', files=files)

    def test_missing_include(self):
        with pytest.raises(SourceLoadError, match="content/missing.rocket"):
            evaluate('(:include "missing.rocket")')

    def test_import_contributes_no_content(self):
        imported = evaluate(
            '(:import "macros.rocket")\n\nUse (:product) and (:shout loud).',
            files={"content/macros.rocket": self.MACROS},
        )
        plain = evaluate("Use Rocket and **loud**.")
        assert imported.nodes == plain.nodes

    def test_import_collision(self):
        with pytest.raises(RedefinitionError, match="collides"):
            evaluate(
                '(:define product "Mine")\n\n(:import "macros.rocket")',
                files={"content/macros.rocket": self.MACROS},
            )

    def test_diamond_import(self):
        """The same definitions reached along two paths are not a collision"""
        files = {
            "content/a.rocket": '(:import "d.rocket")',
            "content/b.rocket": '(:import "d.rocket")',
            "content/d.rocket": '(:define shared "ok")',
        }
        document = evaluate('(:import "a.rocket")\n\n(:import "b.rocket")\n\n(:shared)', files=files)
        assert texts(document) == ["ok"]

    def test_import_cycle(self):
        files = {"content/m.rocket": '(:import "m.rocket")'}
        with pytest.raises(CyclicExpansionError, match="cyclic import"):
            evaluate('(:import "m.rocket")', files=files)
