"""
Built-in directive implementations for rocketdoc

STRUCTURAL directives are turned into typed nodes by the Builder; their
handlers take ``(call, builder)`` and return one Node (or None). Every other
directive is expanded by the Evaluator; those handlers take
``(call, evaluator)`` and return the list of evaluated nodes that replaces
the call. Uses DirectiveSpec for metadata and arity validation.
"""

import re
import textwrap
from typing import Any, Callable, Dict, List, Optional, Pattern

from ..models.definitions import Definition, DefinitionKind
from ..models.directives import BodyPolicy, DirectiveCategory, DirectiveSpec
from ..models.errors import ArityError, RedefinitionError, StructureError, TemplateArgumentError
from ..models.nodes import Node, NodeKind, inline_strip
from .reader import NAME_PATTERN, source_read


LEADING_BLANK_LINES = re.compile(r"\A(?:[ \t]*\n)+")

ADMONITION_TITLES = {
    'note': 'Note',
    'warning': 'Warning',
}


def name_get(form: Node, call: Node, registry: "DirectiveRegistry") -> str:
    """
    Validate the name bound by define/define-template/let

    Raises:
        StructureError: Name is not a literal identifier
        RedefinitionError: Name belongs to a built-in directive
    """
    if form.kind != NodeKind.TEXT or not NAME_PATTERN.fullmatch(form.text):
        raise StructureError(
            f"'(:{call.name})' expects a name made of letters, digits and '-'",
            location=form.location or call.location,
            directive=call.name,
        )
    if registry.spec_get(form.text) is not None:
        raise RedefinitionError(
            f"'{form.text}' is a built-in directive and cannot be redefined",
            location=form.location or call.location,
            directive=form.text,
        )
    return form.text


def pattern_compile(text: str, call: Node, name: str) -> Optional[Pattern]:
    """Compile a template argument pattern; empty patterns are unconstrained"""
    if not text:
        return None
    try:
        return re.compile(text)
    except re.error as e:
        raise TemplateArgumentError(
            f"invalid pattern {text!r} for '(:{name})': {e}",
            location=call.location,
            directive=name,
        )


def code_normalize(text: str) -> str:
    """Drop leading blank lines and trailing whitespace, then dedent"""
    return textwrap.dedent(LEADING_BLANK_LINES.sub("", text).rstrip())


class DirectiveRegistry:
    """
    Registry of directive specifications and handlers

    Maps directive names to DirectiveSpec objects containing metadata
    and builder/evaluator handlers.
    """

    def __init__(self) -> None:
        """Initialize the directive registry and register all built-in directives"""
        self.specs: Dict[str, DirectiveSpec] = {}
        self.structuralDirectives_register()
        self.inlineDirectives_register()
        self.definitionDirectives_register()
        self.contentDirectives_register()
        self.referenceDirectives_register()

    def register(self, spec: DirectiveSpec) -> None:
        """Register a directive specification"""
        self.specs[spec.name] = spec
        # Alternative names share the same spec
        for alias in spec.aliases:
            self.specs[alias] = spec

    def spec_get(self, name: str) -> Optional[DirectiveSpec]:
        """Get full directive specification by name"""
        return self.specs.get(name)

    def structuralDirectives_register(self) -> None:
        """Register block directives built by the Builder"""

        def make_heading(level: int) -> Callable[[Node, Any], Node]:
            """Factory for h1..h6 handlers"""
            def handler(call: Node, builder: Any) -> Node:
                """
                Handle (:hN ...) in its four forms:
                    (:h2 "Title")   (:h2 id "Title")   (:h2 id => title)   (:h2 => title)
                """
                args = call.args
                if call.body is not None:
                    if len(args) > 1:
                        raise ArityError(call.name, "0-1", len(args), call.location)
                    identifier = args[0] if args else None
                    children = inline_strip(builder.inlines_build(call.body))
                else:
                    if not args:
                        raise ArityError(call.name, "1-2", 0, call.location)
                    identifier = args[0] if len(args) == 2 else None
                    children = builder.title_build(args[-1], call)

                if not children:
                    raise ArityError(call.name, "1-2", len(args), call.location)

                attrs: Dict[str, Any] = {'level': level}
                if identifier is not None:
                    if identifier.kind != NodeKind.TEXT or not identifier.text:
                        raise StructureError(
                            f"'(:{call.name})' id must be literal text",
                            location=identifier.location or call.location,
                            directive=call.name,
                        )
                    attrs['id'] = identifier.text

                return Node(NodeKind.HEADING, children=children, attrs=attrs)
            return handler

        for level in range(1, 7):
            self.register(DirectiveSpec(
                name=f'h{level}',
                category=DirectiveCategory.STRUCTURAL,
                description=f'Heading level {level}',
                handler=make_heading(level),
                max_args=2,
                body=BodyPolicy.OPTIONAL,
                examples=[f'(:h{level} "Title")', f'(:h{level} install "Installing")'],
            ))

        def list_handler(call: Node, builder: Any) -> Node:
            """Handle (:list [ordered|unordered] => (:item ...) ...)"""
            ordered = False
            if call.args:
                style = call.args[0]
                if style.kind != NodeKind.TEXT or style.text not in ('ordered', 'unordered'):
                    raise StructureError(
                        "list style must be 'ordered' or 'unordered'",
                        location=style.location or call.location,
                        directive=call.name,
                    )
                ordered = style.text == 'ordered'
            return Node(NodeKind.LIST, children=builder.entries_build(call, 'item'), attrs={'ordered': ordered})

        def item_handler(call: Node, builder: Any) -> Node:
            """Handle (:item => blocks) and the short form (:item "text")"""
            if call.args and call.body is not None:
                raise StructureError(
                    "'(:item)' takes either a text argument or a '=>' body, not both",
                    location=call.location,
                    directive=call.name,
                )
            if call.body is None and not call.args:
                raise ArityError(call.name, "1", 0, call.location)
            forms = call.body if call.body is not None else call.args
            return Node(NodeKind.LIST_ITEM, children=builder.blocks_build(forms))

        self.register(DirectiveSpec(
            name='list',
            category=DirectiveCategory.STRUCTURAL,
            description='Ordered or unordered list of (:item) entries',
            handler=list_handler,
            max_args=1,
            body=BodyPolicy.REQUIRED,
            examples=['(:list ordered => (:item "One") (:item "Two"))'],
        ))

        self.register(DirectiveSpec(
            name='item',
            category=DirectiveCategory.STRUCTURAL,
            description='List entry',
            handler=item_handler,
            max_args=1,
            body=BodyPolicy.OPTIONAL,
            parent='list',
            examples=['(:item "Short entry")', '(:item => Entry with **markup**)'],
        ))

        def steps_handler(call: Node, builder: Any) -> Node:
            """Handle (:steps => (:step title => blocks) ...)"""
            return Node(NodeKind.STEPS, children=builder.entries_build(call, 'step'))

        def step_handler(call: Node, builder: Any) -> Node:
            """Handle (:step title => blocks)"""
            return Node(
                NodeKind.STEP,
                label=builder.title_build(call.args[0], call),
                children=builder.blocks_build(call.body or []),
            )

        self.register(DirectiveSpec(
            name='steps',
            category=DirectiveCategory.STRUCTURAL,
            description='Numbered sequence of (:step) entries',
            handler=steps_handler,
            max_args=0,
            body=BodyPolicy.REQUIRED,
            examples=['(:steps => (:step "Install" => Run the installer.))'],
        ))

        self.register(DirectiveSpec(
            name='step',
            category=DirectiveCategory.STRUCTURAL,
            description='Titled step with block content',
            handler=step_handler,
            min_args=1,
            max_args=1,
            body=BodyPolicy.OPTIONAL,
            parent='steps',
        ))

        def glossary_handler(call: Node, builder: Any) -> Node:
            """Handle (:glossary ("term" "definition") ... => (:term "term" => blocks) ...)"""
            entries: List[Node] = []
            for pair in call.args:
                if pair.kind != NodeKind.GROUP or len(pair.children) != 2:
                    raise StructureError(
                        "glossary arguments must be (term definition) pairs",
                        location=pair.location or call.location,
                        directive=call.name,
                    )
                term, definition = pair.children
                entries.append(Node(
                    NodeKind.GLOSSARY_ENTRY,
                    label=builder.title_build(term, call),
                    children=builder.blocks_build([definition]),
                    location=pair.location,
                ))
            entries.extend(builder.entries_build(call, 'term'))

            seen: Dict[str, Node] = {}
            for entry in entries:
                if len(entry.label) != 1 or entry.label[0].kind != NodeKind.TEXT:
                    continue
                key = entry.label[0].text
                if key in seen:
                    raise StructureError(
                        f"duplicate glossary term '{key}'",
                        location=entry.location or call.location,
                        directive=call.name,
                    )
                seen[key] = entry

            return Node(NodeKind.GLOSSARY, children=entries)

        def term_handler(call: Node, builder: Any) -> Node:
            """Handle (:term "term" => blocks)"""
            return Node(
                NodeKind.GLOSSARY_ENTRY,
                label=builder.title_build(call.args[0], call),
                children=builder.blocks_build(call.body or []),
            )

        self.register(DirectiveSpec(
            name='glossary',
            category=DirectiveCategory.STRUCTURAL,
            description='Definition list of terms',
            handler=glossary_handler,
            aliases=['definition-list'],
            body=BodyPolicy.OPTIONAL,
            examples=['(:glossary ("API" "Application programming interface"))'],
        ))

        self.register(DirectiveSpec(
            name='term',
            category=DirectiveCategory.STRUCTURAL,
            description='Glossary entry',
            handler=term_handler,
            min_args=1,
            max_args=1,
            body=BodyPolicy.OPTIONAL,
            parent='glossary',
        ))

        def code_handler(call: Node, builder: Any) -> Node:
            """Handle (:code [language] => raw text)"""
            language = ""
            if call.args:
                if call.args[0].kind != NodeKind.TEXT:
                    raise StructureError(
                        "code language must be literal text",
                        location=call.args[0].location or call.location,
                        directive=call.name,
                    )
                language = call.args[0].text
            raw = call.body[0].text if call.body else ""
            return Node(NodeKind.CODE_BLOCK, text=code_normalize(raw), attrs={'language': language})

        self.register(DirectiveSpec(
            name='code',
            category=DirectiveCategory.STRUCTURAL,
            description='Syntax highlighted code block (body kept verbatim)',
            handler=code_handler,
            max_args=1,
            body=BodyPolicy.REQUIRED,
            examples=['(:code python =>\ndef hello():\n    print("Hi")\n)'],
        ))

        def admonition_handler(call: Node, builder: Any) -> Node:
            """Handle (:note [title] => blocks) and (:warning [title] => blocks)"""
            label = builder.title_build(call.args[0], call) if call.args else []
            return Node(
                NodeKind.ADMONITION,
                label=label,
                children=builder.blocks_build(call.body or []),
                attrs={'kind': call.name},
            )

        for name, title in ADMONITION_TITLES.items():
            self.register(DirectiveSpec(
                name=name,
                category=DirectiveCategory.STRUCTURAL,
                description=f'{title} admonition box',
                handler=admonition_handler,
                max_args=1,
                body=BodyPolicy.REQUIRED,
                examples=[f'(:{name} => Body text)', f'(:{name} "Custom title" => Body text)'],
            ))

        def comment_handler(call: Node, builder: Any) -> None:
            """Handle (:comment => ...) - stripped from output"""
            return None

        self.register(DirectiveSpec(
            name='comment',
            category=DirectiveCategory.STRUCTURAL,
            description='Comments that are stripped from compiled output',
            handler=comment_handler,
            body=BodyPolicy.OPTIONAL,
            examples=['(:comment => TODO: rewrite this section)'],
        ))

    def inlineDirectives_register(self) -> None:
        """Register inline-producing directives"""

        def concat_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:concat a b c) - rendered text of every argument, no separator"""
            text = "".join(evaluator.argument_text(arg) for arg in call.args)
            return [Node.text_make(text, call.location)]

        def link_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:link href [title]) and (:link href => title markup)"""
            if len(call.args) > 1 and call.body is not None:
                raise StructureError(
                    "'(:link)' takes either a title argument or a '=>' body, not both",
                    location=call.location,
                    directive=call.name,
                )
            href = evaluator.argument_text(call.args[0])
            if len(call.args) > 1:
                children = evaluator.argument_evaluate(call.args[1])
            elif call.body is not None:
                children = evaluator.forms_evaluate(call.body, inline=True)
            else:
                children = [Node.text_make(href, call.location)]
            return [Node(NodeKind.LINK, children=inline_strip(children), attrs={'href': href}, location=call.location)]

        def figure_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:figure src alt [width])"""
            attrs = {
                'src': evaluator.argument_text(call.args[0]),
                'alt': evaluator.argument_text(call.args[1]),
                'width': evaluator.argument_text(call.args[2]) if len(call.args) > 2 else None,
            }
            return [Node(NodeKind.FIGURE, attrs=attrs, location=call.location)]

        self.register(DirectiveSpec(
            name='concat',
            category=DirectiveCategory.INLINE,
            description='Concatenate the rendered text of all arguments',
            handler=concat_handler,
            examples=['(:concat "a" "b" "c")', '(:concat (:version) "-beta")'],
        ))

        self.register(DirectiveSpec(
            name='link',
            category=DirectiveCategory.INLINE,
            description='Hyperlink (href is not validated)',
            handler=link_handler,
            min_args=1,
            max_args=2,
            body=BodyPolicy.OPTIONAL,
            examples=['(:link https://example.com "Example")', '(:link /guide/ => the **guide**)'],
        ))

        self.register(DirectiveSpec(
            name='figure',
            category=DirectiveCategory.INLINE,
            description='Image with alt text and optional width',
            handler=figure_handler,
            min_args=2,
            max_args=3,
            examples=['(:figure img/arch.png "Architecture" 60%)'],
        ))

    def definitionDirectives_register(self) -> None:
        """Register directives that populate the definition table"""

        def define_handler(call: Node, evaluator: Any) -> List[Node]:
            """
            Handle (:define name value), (:define name => body) and the eager
            (:define evaluate name value) / (:define evaluate name => body)
            """
            args = list(call.args)
            supplied = len(args) + (1 if call.body is not None else 0)
            eager = False
            if supplied == 3 and args[0].kind == NodeKind.TEXT and args[0].text == 'evaluate':
                eager = True
                args = args[1:]
                supplied = 2
            if supplied != 2:
                raise ArityError(call.name, "2", supplied, call.location)

            name = name_get(args[0], call, evaluator.registry)
            if eager:
                if len(args) == 2:
                    value = evaluator.argument_evaluate(args[1])
                else:
                    value = inline_strip(evaluator.forms_evaluate(call.body, inline=True))
            else:
                value = [args[1]] if len(args) == 2 else inline_strip(call.body)

            evaluator.scope.define(Definition(
                name=name,
                kind=DefinitionKind.VALUE,
                value=value,
                origin=call.location,
            ))
            return []

        def defineTemplate_handler(call: Node, evaluator: Any) -> List[Node]:
            """
            Handle (:define-template name "template" [pattern ...]) and
            (:define-template name [pattern ...] => template markup)
            """
            name = name_get(call.args[0], call, evaluator.registry)
            if call.body is not None:
                template = inline_strip(call.body)
                pattern_forms = call.args[1:]
            else:
                if len(call.args) < 2:
                    raise ArityError(call.name, "at least 2", len(call.args), call.location)
                source = call.args[1]
                if source.kind != NodeKind.TEXT:
                    raise StructureError(
                        "template must be a string or a '=>' body",
                        location=source.location or call.location,
                        directive=call.name,
                    )
                path = call.location.path if call.location else evaluator.document.path
                template = source_read(source.text, path=path)
                pattern_forms = call.args[2:]

            patterns = [pattern_compile(evaluator.argument_text(form), call, name) for form in pattern_forms]
            evaluator.scope.define(Definition.template_make(name, template, patterns, call.location))
            return []

        def let_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:let (name value ...) => body) - scoped eager bindings"""
            bindings = call.args[0]
            if bindings.kind != NodeKind.GROUP or len(bindings.children) % 2:
                raise StructureError(
                    "'(:let)' expects a group of name/value pairs",
                    location=bindings.location or call.location,
                    directive=call.name,
                )

            scope = evaluator.scope.child(f"let@{call.location}")
            pairs = bindings.children
            for name_form, value_form in zip(pairs[::2], pairs[1::2]):
                scope.bind(Definition(
                    name=name_get(name_form, call, evaluator.registry),
                    kind=DefinitionKind.VALUE,
                    value=evaluator.argument_evaluate(value_form),
                    origin=value_form.location,
                ))

            with evaluator.scope_enter(scope):
                return inline_strip(evaluator.forms_evaluate(call.body, inline=evaluator.inline))

        def import_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:import path) - definitions only, no content"""
            target = evaluator.path_resolve(call, evaluator.argument_text(call.args[0]))
            evaluator.scope.merge(evaluator.import_load(target, call), call.location)
            return []

        self.register(DirectiveSpec(
            name='define',
            category=DirectiveCategory.DEFINITION,
            description='Bind a name to a value (lazy, or eager with "evaluate")',
            handler=define_handler,
            min_args=1,
            max_args=3,
            body=BodyPolicy.OPTIONAL,
            examples=['(:define product "Rocket")', '(:define evaluate release (:concat (:version) "-rc"))'],
        ))

        self.register(DirectiveSpec(
            name='define-template',
            category=DirectiveCategory.DEFINITION,
            description='Define a macro with ${N} placeholders and argument patterns',
            handler=defineTemplate_handler,
            min_args=1,
            body=BodyPolicy.OPTIONAL,
            examples=['(:define-template jira "(:link https://jira/${0} ${0})" "^[A-Z]+-[0-9]+$")'],
        ))

        self.register(DirectiveSpec(
            name='let',
            category=DirectiveCategory.DEFINITION,
            description='Temporary bindings visible in the body only',
            handler=let_handler,
            min_args=1,
            max_args=1,
            body=BodyPolicy.REQUIRED,
            examples=['(:let (who "world") => Hello (:who)!)'],
        ))

        self.register(DirectiveSpec(
            name='import',
            category=DirectiveCategory.DEFINITION,
            description="Merge another file's definitions into this scope",
            handler=import_handler,
            min_args=1,
            max_args=1,
            examples=['(:import "macros.rocket")'],
        ))

    def contentDirectives_register(self) -> None:
        """Register content and document-metadata directives"""

        def include_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:include path) - splice the file's evaluated content"""
            target = evaluator.path_resolve(call, evaluator.argument_text(call.args[0]))
            return evaluator.include_evaluate(target, call)

        def themeConfig_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:theme-config key value ...) - page metadata such as the title"""
            if len(call.args) % 2:
                raise ArityError(call.name, "an even number of", len(call.args), call.location)
            texts = [evaluator.argument_text(arg) for arg in call.args]
            for key, value in zip(texts[::2], texts[1::2]):
                evaluator.document.metadata[key] = value
            return []

        def version_handler(call: Node, evaluator: Any) -> List[Node]:
            """
            Handle (:version [pattern])

            The pattern truncates the project version to as many components
            as it has: with version 3.4.0, (:version "x.x") gives "3.4".
            """
            version = str(evaluator.unit.config.get('version', ''))
            if call.args:
                pattern = evaluator.argument_text(call.args[0])
                if not pattern:
                    version = ""
                else:
                    components = version.split('.')[:pattern.count('.') + 1]
                    version = '.'.join(components)
            return [Node.text_make(version, call.location)]

        def null_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:null) - produces nothing"""
            return []

        self.register(DirectiveSpec(
            name='include',
            category=DirectiveCategory.CONTENT,
            description="Splice another file's full content at the call site",
            handler=include_handler,
            min_args=1,
            max_args=1,
            examples=['(:include "shared/footer.rocket")'],
        ))

        self.register(DirectiveSpec(
            name='theme-config',
            category=DirectiveCategory.CONTENT,
            description='Set page metadata for the theme layer',
            handler=themeConfig_handler,
            examples=['(:theme-config title "Installation Guide")'],
        ))

        self.register(DirectiveSpec(
            name='version',
            category=DirectiveCategory.CONTENT,
            description='Project version from config.toml',
            handler=version_handler,
            max_args=1,
            examples=['(:version)', '(:version "x.x")'],
        ))

        self.register(DirectiveSpec(
            name='null',
            category=DirectiveCategory.CONTENT,
            description='Expands to nothing',
            handler=null_handler,
            body=BodyPolicy.OPTIONAL,
            examples=['(:null)'],
        ))

    def referenceDirectives_register(self) -> None:
        """Register cross-reference directives (resolved after collection)"""

        def ref_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:ref id [title]) and (:ref id => title markup)"""
            if len(call.args) > 1 and call.body is not None:
                raise StructureError(
                    "'(:ref)' takes either a title argument or a '=>' body, not both",
                    location=call.location,
                    directive=call.name,
                )
            identifier = evaluator.argument_text(call.args[0])
            if len(call.args) > 1:
                label = evaluator.argument_evaluate(call.args[1])
            elif call.body is not None:
                label = evaluator.forms_evaluate(call.body, inline=True)
            else:
                label = []
            return [Node(NodeKind.REF, label=inline_strip(label), attrs={'id': identifier}, location=call.location)]

        def defineRef_handler(call: Node, evaluator: Any) -> List[Node]:
            """Handle (:define-ref id title) - anchor at the call site"""
            attrs = {
                'id': evaluator.argument_text(call.args[0]),
                'title': evaluator.argument_text(call.args[1]),
            }
            return [Node(NodeKind.ANCHOR, attrs=attrs, location=call.location)]

        def toctree_handler(call: Node, evaluator: Any) -> List[Node]:
            """
            Handle (:toctree entry ...)

            Each entry is a page slug or reference id, or a (title target)
            group overriding the displayed title.
            """
            entries: List[Dict[str, Optional[str]]] = []
            for arg in call.args:
                if arg.kind == NodeKind.GROUP:
                    if len(arg.children) != 2:
                        raise StructureError(
                            "toctree groups must be (title target) pairs",
                            location=arg.location or call.location,
                            directive=call.name,
                        )
                    title, target = (evaluator.argument_text(child) for child in arg.children)
                    entries.append({'title': title, 'target': target})
                else:
                    entries.append({'title': None, 'target': evaluator.argument_text(arg)})
            return [Node(NodeKind.TOCTREE, attrs={'entries': entries, 'resolved': False}, location=call.location)]

        self.register(DirectiveSpec(
            name='ref',
            category=DirectiveCategory.REFERENCE,
            description='Link to a heading or (:define-ref) anchor anywhere in the project',
            handler=ref_handler,
            min_args=1,
            max_args=2,
            body=BodyPolicy.OPTIONAL,
            examples=['(:ref install)', '(:ref install "the installer")'],
        ))

        self.register(DirectiveSpec(
            name='define-ref',
            category=DirectiveCategory.REFERENCE,
            description='Declare a reference target at this point',
            handler=defineRef_handler,
            min_args=2,
            max_args=2,
            examples=['(:define-ref faq-proxy "Proxy settings")'],
        ))

        self.register(DirectiveSpec(
            name='toctree',
            category=DirectiveCategory.REFERENCE,
            description='Navigation tree over pages and reference ids',
            handler=toctree_handler,
            examples=['(:toctree install ("Configuring" guide/config) faq)'],
        ))
