"""
Reader for (:directive ...) markup

Tokenizes rocketdoc source text into raw forms: TEXT runs, DIRECTIVE calls
(with argument forms and an optional ``=>`` body), GROUPs, STRONG/EMPHASIS
spans and LITERAL spans.

Syntax summary:
    (:name arg1 "arg two" (group of args) (:nested call) => body markup)
    **bold**   __italic__   `literal`   \\(: escaped directive opener

Key features:
- Recursive descent over directive calls, groups and spans
- Raw bodies for (:code) and (:comment) so their contents are kept verbatim
- Paren depth tracking in text so ordinary "(asides)" need no escaping
- Line/column tracking for every form
- Per-top-level-form recovery: a malformed form is recorded in
  ``diagnostics`` and reading resumes at the next line starting with "(:"

Example:
    >>> forms = Reader('(:h1 "Hello") Some **bold** text').read()
    >>> forms[0].name
    'h1'
    >>> forms[2].kind
    <NodeKind.STRONG: 'strong'>
"""

import re
import bisect
from typing import List, NoReturn, Optional

from ..models.directives import rawBody_is
from ..models.errors import RocketSyntaxError
from ..models.nodes import Node, NodeKind, SourceLocation, nodes_merge
from .log import LOG


NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9-]*")
ATOM_PATTERN = re.compile(r'[^\s()"]+')

STRING_ESCAPES = {"n": "\n", "t": "\t"}
SPAN_MARKERS = {"**": NodeKind.STRONG, "__": NodeKind.EMPHASIS}


class Reader:
    r"""
    Reader for rocketdoc markup

    Handles:
    - Directive calls with positional arguments and ``=>`` bodies
    - String literals with \n, \t, \" and \\ escapes
    - Bold/italic/literal inline markers
    - Backslash escapes in text (\(: for a literal "(:")
    - Error reporting with line and column
    """

    def __init__(self, source: str, path: str = "<string>", debug: bool = False) -> None:
        """
        Initialize reader with source text

        Args:
            source: Raw markup text (.rocket file contents)
            path: Source path recorded in node locations
            debug: Enable debug output for reader operations

        Attributes:
            position: Current character position in source
            diagnostics: Syntax errors collected by read()
            error_position: Offset of the last reported error (recovery restarts after it)
            line_starts: Offsets of every line start (for line/column lookup)
        """
        self.source = source
        self.path = path
        self.debug = debug
        self.position = 0
        self.diagnostics: List[RocketSyntaxError] = []
        self.error_position = 0
        self.line_starts = [0] + [match.end() for match in re.finditer(r"\n", source)]

    def read(self) -> List[Node]:
        """
        Read the whole source into a list of top-level forms

        Syntax errors do not stop reading: each is appended to
        ``self.diagnostics`` and reading resumes at the next top-level
        directive line.

        Returns:
            Top-level forms in document order (adjacent text merged)
        """
        forms: List[Node] = []

        while self.position < len(self.source):
            start = self.position
            try:
                self.content_read(forms)
            except RocketSyntaxError as e:
                self.diagnostics.append(e)
                self.recover(start)

        if self.debug:
            LOG(f"Read {len(forms)} top-level forms from {self.path}", level=3)

        return nodes_merge(forms)

    def recover(self, start: int) -> None:
        """Skip past a malformed form to the next line that opens a directive"""
        next_form = self.source.find("\n(:", max(self.error_position, start))
        if next_form == -1:
            self.position = len(self.source)
        else:
            self.position = max(next_form + 1, start + 1)

    def location_at(self, position: int) -> SourceLocation:
        index = bisect.bisect_right(self.line_starts, position) - 1
        return SourceLocation(self.path, index + 1, position - self.line_starts[index] + 1)

    def content_read(self, nodes: List[Node], terminator: str = "") -> None:
        """
        Read markup content, appending forms to ``nodes``

        Stops at ``terminator`` (when not nested inside plain parentheses)
        or at end of input; the terminator itself is not consumed. Forms
        read before an error stay in ``nodes``.

        Args:
            nodes: Destination list (owned by the caller)
            terminator: ")" for directive bodies, "**"/"__" for spans,
                        "" for top-level content

        Raises:
            RocketSyntaxError: Unbalanced parentheses, dangling escape, or
                               any error inside a nested form
        """
        buffer: List[str] = []
        buffer_start = self.position
        depth = 0

        def flush() -> None:
            if buffer:
                nodes.append(Node.text_make("".join(buffer), self.location_at(buffer_start)))
                buffer.clear()

        while self.position < len(self.source):
            if terminator and depth == 0 and self.source.startswith(terminator, self.position):
                break

            char = self.source[self.position]

            if char == "\\":
                if self.position + 1 >= len(self.source):
                    self.error("Dangling escape at end of input")
                if not buffer:
                    buffer_start = self.position
                buffer.append(self.source[self.position + 1])
                self.position += 2
                continue

            if self.source.startswith("(:", self.position):
                flush()
                nodes.append(self.directive_read())
                buffer_start = self.position
                continue

            marker = self.source[self.position:self.position + 2]
            if marker in SPAN_MARKERS:
                flush()
                nodes.append(self.span_read(marker))
                buffer_start = self.position
                continue

            if char == "`":
                flush()
                nodes.append(self.literal_read())
                buffer_start = self.position
                continue

            if char == "(":
                depth += 1
            elif char == ")":
                if depth == 0:
                    if terminator:
                        self.error(f"Unexpected ')' inside '{terminator}' span")
                    self.error("Unbalanced ')'")
                depth -= 1

            if not buffer:
                buffer_start = self.position
            buffer.append(char)
            self.position += 1

        flush()

        if not terminator and depth > 0:
            self.error("Unbalanced '(' before end of input")

    def directive_read(self) -> Node:
        """
        Read a (:name args... [=> body]) call starting at the current position

        Returns:
            DIRECTIVE node with raw argument forms and body (or None)

        Raises:
            RocketSyntaxError: Malformed name or unterminated call
        """
        start = self.position
        location = self.location_at(start)
        self.position += 2

        match = NAME_PATTERN.match(self.source, self.position)
        if not match:
            self.error("Malformed directive name after '(:'", start)
        name = match.group(0)
        self.position = match.end()

        if self.position < len(self.source):
            follower = self.source[self.position]
            if not (follower.isspace() or follower == ")"):
                self.error(f"Malformed directive name '{name}{follower}'", start)

        args: List[Node] = []
        body: Optional[List[Node]] = None

        while True:
            self.whitespace_skip()
            if self.position >= len(self.source):
                self.error(f"Unterminated directive '(:{name}'", start)

            if self.source[self.position] == ")":
                self.position += 1
                break

            if self.arrow_at():
                self.position += 2
                if rawBody_is(name):
                    body = [self.raw_read(name, start)]
                else:
                    body = self.body_read(name, start)
                break

            args.append(self.argument_read())

        return Node(NodeKind.DIRECTIVE, name=name, args=args, body=body, location=location)

    def body_read(self, name: str, start: int) -> List[Node]:
        """Read markup up to the ')' that closes the directive opened at ``start``"""
        nodes: List[Node] = []
        self.content_read(nodes, terminator=")")
        if self.position >= len(self.source):
            self.error(f"Unterminated directive '(:{name}'", start)
        self.position += 1
        return nodes_merge(nodes)

    def raw_read(self, name: str, start: int) -> Node:
        r"""
        Read a verbatim body up to the matching ')'

        Only \(, \) and \\ are unescaped; unescaped parentheses must balance.
        """
        location = self.location_at(self.position)
        chars: List[str] = []
        depth = 0

        while self.position < len(self.source):
            char = self.source[self.position]
            if char == "\\" and self.source[self.position + 1:self.position + 2] in ("(", ")", "\\"):
                chars.append(self.source[self.position + 1])
                self.position += 2
                continue
            if char == "(":
                depth += 1
            elif char == ")":
                if depth == 0:
                    self.position += 1
                    return Node.text_make("".join(chars), location)
                depth -= 1
            chars.append(char)
            self.position += 1

        self.error(f"Unterminated directive '(:{name}'", start)

    def argument_read(self) -> Node:
        """Read one argument: nested call, group, string or bare atom"""
        if self.source.startswith("(:", self.position):
            return self.directive_read()

        char = self.source[self.position]
        if char == "(":
            return self.group_read()
        if char == '"':
            return self.string_read()

        location = self.location_at(self.position)
        match = ATOM_PATTERN.match(self.source, self.position)
        if not match:
            self.error(f"Unexpected character {char!r} in arguments")
        self.position = match.end()
        return Node.text_make(match.group(0), location)

    def group_read(self) -> Node:
        """Read a parenthesised (arg arg ...) group"""
        start = self.position
        location = self.location_at(start)
        self.position += 1
        children: List[Node] = []

        while True:
            self.whitespace_skip()
            if self.position >= len(self.source):
                self.error("Unterminated group '('", start)
            if self.source[self.position] == ")":
                self.position += 1
                break
            children.append(self.argument_read())

        return Node(NodeKind.GROUP, children=children, location=location)

    def string_read(self) -> Node:
        """Read a double-quoted string literal"""
        start = self.position
        location = self.location_at(start)
        self.position += 1
        chars: List[str] = []

        while self.position < len(self.source):
            char = self.source[self.position]
            if char == '"':
                self.position += 1
                return Node.text_make("".join(chars), location)
            if char == "\\" and self.position + 1 < len(self.source):
                escaped = self.source[self.position + 1]
                chars.append(STRING_ESCAPES.get(escaped, escaped))
                self.position += 2
                continue
            chars.append(char)
            self.position += 1

        self.error("Unterminated string", start)

    def span_read(self, marker: str) -> Node:
        """Read a **strong** or __emphasis__ span"""
        start = self.position
        location = self.location_at(start)
        self.position += len(marker)

        children: List[Node] = []
        self.content_read(children, terminator=marker)
        if not self.source.startswith(marker, self.position):
            self.error(f"Unterminated '{marker}' span", start)
        self.position += len(marker)

        return Node(SPAN_MARKERS[marker], children=nodes_merge(children), location=location)

    def literal_read(self) -> Node:
        """Read a `literal` span (no escapes inside)"""
        start = self.position
        end = self.source.find("`", start + 1)
        if end == -1:
            self.error("Unterminated literal '`'", start)
        self.position = end + 1
        return Node(NodeKind.LITERAL, text=self.source[start + 1:end], location=self.location_at(start))

    def arrow_at(self) -> bool:
        """True if a standalone '=>' body marker starts at the current position"""
        if not self.source.startswith("=>", self.position):
            return False
        follower = self.source[self.position + 2:self.position + 3]
        return follower == "" or follower.isspace() or follower == ")"

    def whitespace_skip(self) -> None:
        while self.position < len(self.source) and self.source[self.position].isspace():
            self.position += 1

    def error(self, message: str, position: Optional[int] = None) -> NoReturn:
        """
        Report reader error with source location

        Raises:
            RocketSyntaxError: Always (this is an error reporting function)
        """
        if position is None:
            position = self.position
        self.error_position = position
        raise RocketSyntaxError(message, location=self.location_at(min(position, len(self.source))))


def source_read(source: str, path: str = "<string>") -> List[Node]:
    """
    Read a source, raising its first syntax error

    Used where a single file must be read completely or not at all
    (include/import targets, tests).

    Raises:
        RocketSyntaxError: First diagnostic collected while reading
    """
    reader = Reader(source, path=path)
    forms = reader.read()
    if reader.diagnostics:
        raise reader.diagnostics[0]
    return forms
