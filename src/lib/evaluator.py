"""
Directive evaluator

Walks a built document depth-first and replaces every DIRECTIVE node with
its expansion. Calls are dispatched to the built-in registry first, then to
the definitions visible from the current scope. Results are spliced in place
and checked against the context they land in: inline content (paragraph,
heading, span and label children) only accepts inline nodes, and inline
results in block context are gathered into paragraphs.

Macro expansion copies the template, substitutes ``${N}`` with the
evaluated arguments, builds the result in the call's context and evaluates
it again. Expansion cycles and runaway depth raise CyclicExpansionError.
"""

import os
import copy
from pathlib import Path
from contextlib import contextmanager
from typing import Iterator, List, Optional

from ..config import appsettings, AppSettings
from ..models.definitions import PLACEHOLDER_PATTERN, Definition, DefinitionKind, Scope
from ..models.directives import DirectiveCategory, rawBody_is
from ..models.document import CompilationUnit, Document
from ..models.errors import (
    ArityError,
    CyclicExpansionError,
    SourceLoadError,
    StructureError,
    TemplateArgumentError,
    UnresolvedNameError,
)
from ..models.nodes import INLINE_CONTAINERS, Node, NodeKind, inline_strip, nodes_merge, nodes_plainText
from .builder import Builder
from .directives import DirectiveRegistry
from .log import LOG
from .reader import source_read


# Directives evaluated when a file is imported; everything else is skipped
DEFINITION_DIRECTIVES = frozenset({'define', 'define-template', 'import'})


class Evaluator:
    """
    Expands the directive calls of one document

    Args:
        unit: Compilation unit (config, loader, tables, import cache)
        document: Document to evaluate; its nodes are replaced in place
        registry: Built-in directives
        builder: Builder used for expansion results and included files
        settings: Application settings (expansion depth limit)
        definitions_only: Only run define/define-template/import (import mode)
        source_stack: Files currently being included or imported, outermost first
    """

    def __init__(
        self,
        unit: CompilationUnit,
        document: Document,
        registry: Optional[DirectiveRegistry] = None,
        builder: Optional[Builder] = None,
        settings: Optional[AppSettings] = None,
        definitions_only: bool = False,
        source_stack: Optional[List[str]] = None,
    ) -> None:
        self.unit = unit
        self.document = document
        self.registry = registry or DirectiveRegistry()
        self.builder = builder or Builder(self.registry)
        self.settings = settings or appsettings
        self.definitions_only = definitions_only
        self.source_stack: List[str] = source_stack or [document.path]
        self.scope: Scope = document.scope
        self.expansion_stack: List[str] = []
        self.inline = False

    def evaluate(self) -> List[Node]:
        """
        Evaluate the document

        Returns:
            The evaluated top-level blocks (also stored on the document)
        """
        if self.definitions_only:
            self.definitions_collect(self.document.nodes)
            return []

        LOG(f"Evaluating {self.document.path}", level=2)
        self.document.nodes = self.nodes_evaluate(self.document.nodes, inline=False)
        return self.document.nodes

    def definitions_collect(self, forms: List[Node]) -> None:
        """Run the top-level definition directives of an imported file"""
        for form in forms:
            if form.kind == NodeKind.DIRECTIVE and form.name in DEFINITION_DIRECTIVES:
                self.directive_evaluate(form, inline=False)

    def nodes_evaluate(self, nodes: List[Node], inline: bool) -> List[Node]:
        """
        Evaluate a node list in block or inline context

        Raises:
            StructureError: Block node produced in inline context
        """
        result: List[Node] = []

        for node in nodes:
            if node.kind == NodeKind.DIRECTIVE:
                expanded = self.directive_evaluate(node, inline)
            else:
                descended = self.node_descend(node)
                # Paragraphs made only of definitions evaluate to nothing
                expanded = [] if descended.kind == NodeKind.PARAGRAPH and not descended.children else [descended]

            if inline:
                for produced in expanded:
                    if not produced.is_inline():
                        raise StructureError(
                            f"{produced.kind.value} cannot appear in inline content",
                            location=produced.location or node.location,
                            directive=node.name or None,
                        )
            result.extend(expanded)

        if inline:
            return nodes_merge(result)
        return self.blocks_normalize(result)

    def blocks_normalize(self, nodes: List[Node]) -> List[Node]:
        """Gather runs of inline nodes into paragraphs and drop blank text"""
        blocks: List[Node] = []
        run: List[Node] = []

        def flush() -> None:
            paragraph = inline_strip(run)
            run.clear()
            if paragraph:
                blocks.append(Node(NodeKind.PARAGRAPH, children=paragraph, location=paragraph[0].location))

        for node in nodes:
            if node.is_inline():
                run.append(node)
            else:
                flush()
                blocks.append(node)
        flush()
        return blocks

    def node_descend(self, node: Node) -> Node:
        """Evaluate a typed node's label and children in place"""
        if node.kind in (NodeKind.TEXT, NodeKind.LITERAL, NodeKind.CODE_BLOCK, NodeKind.GROUP):
            return node
        if node.label:
            node.label = self.nodes_evaluate(node.label, inline=True)
        if node.children:
            node.children = self.nodes_evaluate(node.children, inline=node.kind in INLINE_CONTAINERS)
            if node.kind in (NodeKind.PARAGRAPH, NodeKind.HEADING):
                node.children = inline_strip(node.children)
        if node.kind == NodeKind.GLOSSARY:
            self.glossary_check(node)
        return node

    def glossary_check(self, node: Node) -> None:
        """Reject terms that are identical once evaluated"""
        seen = set()
        for entry in node.children:
            term = nodes_plainText(entry.label)
            if term in seen:
                raise StructureError(
                    f"duplicate glossary term '{term}'",
                    location=entry.location or node.location,
                    directive='glossary',
                )
            seen.add(term)

    def directive_evaluate(self, call: Node, inline: bool) -> List[Node]:
        """
        Expand one directive call

        Raises:
            UnresolvedNameError: Neither a built-in nor a visible definition
        """
        spec = self.registry.spec_get(call.name)

        if spec is not None:
            if spec.category == DirectiveCategory.STRUCTURAL:
                return self.forms_evaluate([call], inline)

            spec.arity_check(call)
            LOG(f"Expanding built-in (:{call.name}) at {call.location}", level=3)
            saved = self.inline
            self.inline = inline
            try:
                return spec.handler(call, self)
            finally:
                self.inline = saved

        definition = self.scope.lookup(call.name)
        if definition is None:
            raise UnresolvedNameError(
                f"'(:{call.name})' is not a built-in directive or a visible definition",
                location=call.location,
                directive=call.name,
            )
        return self.definition_expand(definition, call, inline)

    def definition_expand(self, definition: Definition, call: Node, inline: bool) -> List[Node]:
        """
        Expand a user definition or macro call

        Raises:
            CyclicExpansionError: Definition already expanding, or depth limit reached
            ArityError: Wrong argument count (checked before any argument is evaluated)
            TemplateArgumentError: Argument does not match its pattern
        """
        if definition.name in self.expansion_stack:
            start = self.expansion_stack.index(definition.name)
            raise CyclicExpansionError(self.expansion_stack[start:] + [definition.name], call.location)
        if len(self.expansion_stack) >= self.settings.max_expansion_depth:
            raise CyclicExpansionError(
                self.expansion_stack + [definition.name],
                call.location,
                reason=f"expansion depth exceeds {self.settings.max_expansion_depth}",
            )

        LOG(f"Expanding (:{definition.name}) at {call.location}", level=3)
        if definition.kind == DefinitionKind.VALUE:
            supplied = len(call.args) + (1 if call.body is not None else 0)
            if supplied:
                raise ArityError(definition.name, "0", supplied, call.location)
            forms = copy.deepcopy(definition.value)
        else:
            # Arguments belong to the caller: evaluated before the name is on the stack
            forms = self.template_expand(definition, call, inline)

        self.expansion_stack.append(definition.name)
        try:
            return self.forms_evaluate(forms, inline)
        finally:
            self.expansion_stack.pop()

    def template_expand(self, definition: Definition, call: Node, inline: bool) -> List[Node]:
        """Check, evaluate and substitute a macro call's arguments into its template"""
        supplied = [[arg] for arg in call.args]
        if call.body is not None:
            supplied.append(call.body)

        if len(supplied) != definition.arity:
            raise ArityError(definition.name, str(definition.arity), len(supplied), call.location)

        values: List[List[Node]] = []
        for index, forms in enumerate(supplied):
            if call.body is not None and index == len(supplied) - 1:
                value = self.forms_evaluate(forms, inline)
                if len(value) == 1 and value[0].kind == NodeKind.PARAGRAPH:
                    value = value[0].children
                value = inline_strip(value)
            else:
                value = self.forms_evaluate(forms, inline=True)
            values.append(value)

        for index, pattern in enumerate(definition.patterns):
            text = nodes_plainText(values[index])
            if pattern is not None and not pattern.search(text):
                raise TemplateArgumentError(
                    f"argument {index} of '(:{definition.name})' ({text!r}) does not match /{pattern.pattern}/",
                    location=call.location,
                    directive=definition.name,
                )

        return self.content_substitute(copy.deepcopy(definition.template), values)

    def content_substitute(self, forms: List[Node], values: List[List[Node]]) -> List[Node]:
        """Substitute placeholders in content position with argument nodes"""
        result: List[Node] = []

        for form in forms:
            if form.kind == NodeKind.TEXT:
                position = 0
                for match in PLACEHOLDER_PATTERN.finditer(form.text):
                    if match.start() > position:
                        result.append(Node.text_make(form.text[position:match.start()], form.location))
                    result.extend(copy.deepcopy(values[int(match.group(1))]))
                    position = match.end()
                if position < len(form.text):
                    result.append(Node.text_make(form.text[position:], form.location))
                continue

            if form.kind == NodeKind.LITERAL:
                form.text = self.text_substitute(form.text, values)
            elif form.kind == NodeKind.DIRECTIVE:
                form.args = [self.argument_substitute(arg, values) for arg in form.args]
                if form.body is not None:
                    if rawBody_is(form.name):
                        form.body = [self.argument_substitute(raw, values) for raw in form.body]
                    else:
                        form.body = self.content_substitute(form.body, values)
            else:
                form.label = self.content_substitute(form.label, values)
                form.children = self.content_substitute(form.children, values)
            result.append(form)

        return nodes_merge(result)

    def argument_substitute(self, form: Node, values: List[List[Node]]) -> Node:
        """Substitute placeholders in argument position with rendered text"""
        if form.kind in (NodeKind.TEXT, NodeKind.LITERAL):
            form.text = self.text_substitute(form.text, values)
        elif form.kind == NodeKind.GROUP:
            form.children = [self.argument_substitute(child, values) for child in form.children]
        elif form.kind == NodeKind.DIRECTIVE:
            self.content_substitute([form], values)
        return form

    def text_substitute(self, text: str, values: List[List[Node]]) -> str:
        return PLACEHOLDER_PATTERN.sub(lambda match: nodes_plainText(values[int(match.group(1))]), text)

    def forms_evaluate(self, forms: List[Node], inline: bool) -> List[Node]:
        """Build forms in the given context, then evaluate them"""
        if inline:
            built = self.builder.inlines_build(forms)
        else:
            built = self.builder.blocks_build(forms)
        return self.nodes_evaluate(built, inline)

    def argument_evaluate(self, form: Node) -> List[Node]:
        """Evaluate one directive argument as inline content"""
        if form.kind == NodeKind.GROUP:
            raise StructureError(
                "unexpected group argument",
                location=form.location,
            )
        return self.forms_evaluate([form], inline=True)

    def argument_text(self, form: Node) -> str:
        """Rendered text of one evaluated argument"""
        return nodes_plainText(self.argument_evaluate(form))

    @contextmanager
    def scope_enter(self, scope: Scope) -> Iterator[Scope]:
        """Temporarily evaluate in another scope (used by let)"""
        saved = self.scope
        self.scope = scope
        try:
            yield scope
        finally:
            self.scope = saved

    def path_resolve(self, call: Node, relative: str) -> str:
        """Resolve an include/import path against the file containing the call"""
        origin = call.location.path if call.location else self.document.path
        return os.path.normpath(str(Path(origin).parent / relative))

    def source_load(self, target: str, call: Node) -> List[Node]:
        """
        Read an include/import target through the unit's loader

        Raises:
            SourceLoadError: Target cannot be read
            RocketSyntaxError: Target is malformed
        """
        try:
            text = self.unit.loader(target)
        except OSError as e:
            raise SourceLoadError(
                f"cannot read '{target}': {e.strerror or e}",
                location=call.location,
                directive=call.name,
            )
        return source_read(text, path=target)

    def stack_check(self, target: str, call: Node, reason: str) -> None:
        if target in self.source_stack:
            start = self.source_stack.index(target)
            raise CyclicExpansionError(self.source_stack[start:] + [target], call.location, reason=reason)

    def include_evaluate(self, target: str, call: Node) -> List[Node]:
        """Evaluate a file's full content in the current scope and context"""
        self.stack_check(target, call, "cyclic include")
        forms = self.source_load(target, call)
        LOG(f"Including {target} into {self.document.path}", level=2)

        self.source_stack.append(target)
        try:
            return self.forms_evaluate(forms, self.inline)
        finally:
            self.source_stack.pop()

    def import_load(self, target: str, call: Node) -> Scope:
        """
        Scope holding the definitions of an imported file

        Imported scopes are evaluated once per compilation and cached in the
        unit; the same definitions reached along two import paths are the
        same bindings.
        """
        self.stack_check(target, call, "cyclic import")
        cached = self.unit.imports.get(target)
        if cached is not None:
            return cached

        LOG(f"Importing definitions from {target}", level=2)
        forms = self.source_load(target, call)
        document = Document(
            path=target,
            slug=f"import:{target}",
            nodes=forms,
            scope=self.unit.definitions.scope_create(f"import:{target}"),
        )
        Evaluator(
            self.unit,
            document,
            registry=self.registry,
            builder=self.builder,
            settings=self.settings,
            definitions_only=True,
            source_stack=self.source_stack + [target],
        ).evaluate()

        self.unit.imports[target] = document.scope
        return document.scope
