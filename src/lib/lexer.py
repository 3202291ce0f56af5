"""
Custom Pygments lexer for rocketdoc syntax highlighting

Provides syntax highlighting for (:directive ...) markup when documentation
pages show rocketdoc source in (:code rocket => ...) blocks.

Token types:
- Keyword.Declaration: Structural directives (e.g., h1, list, steps, code)
- Name.Decorator: Definition directives (define, define-template, let, import)
- Name.Function: Other built-ins (ref, link, include, ...)
- Name.Tag: User macros and definitions
- Punctuation: Parentheses and the ``=>`` body marker
- String: Quoted arguments
- Generic.Strong / Generic.Emph / String.Backtick: Inline markers
"""

from pygments.lexer import RegexLexer, bygroups
from pygments.token import (
    Text,
    Punctuation,
    Name,
    String,
    Keyword,
    Comment,
    Generic,
)


class RocketLexer(RegexLexer):
    """
    Lexer for rocketdoc markup

    Highlights (:directive ...) syntax with proper nesting support.

    Example:
        (:h2 install => Installing **rocket**)

    Tokens:
        (: → Punctuation
        h2 → Keyword.Declaration
        install → Name.Attribute
        => → Punctuation
        **rocket** → Generic.Strong
    """

    name = 'Rocketdoc'
    aliases = ['rocket', 'rocketdoc']
    filenames = ['*.rocket']

    tokens = {
        'root': [
            # Escaped characters
            (r'\\.', String.Escape),

            # (:comment => ...) directive - special handling
            (r'(\(:)(comment)\b', bygroups(Punctuation, Comment.Special), 'comment'),

            # Structural directives
            (r'(\(:)(h[1-6]|list|item|steps|step|glossary|term|code|note|warning)(?=[\s)])',
             bygroups(Punctuation, Keyword.Declaration), 'arguments'),

            # Definition directives
            (r'(\(:)(define-template|define|let|import)(?=[\s)])',
             bygroups(Punctuation, Name.Decorator), 'arguments'),

            # Other built-ins
            (r'(\(:)(concat|include|link|figure|ref|define-ref|toctree|theme-config|version|null)(?=[\s)])',
             bygroups(Punctuation, Name.Function), 'arguments'),

            # User macros and definitions (fallback)
            (r'(\(:)([A-Za-z0-9][A-Za-z0-9-]*)', bygroups(Punctuation, Name.Tag), 'arguments'),

            # Inline markers
            (r'\*\*.*?\*\*', Generic.Strong),
            (r'__.*?__', Generic.Emph),
            (r'`[^`]*`', String.Backtick),

            # Closing paren of an enclosing body
            (r'\)', Punctuation, '#pop'),

            # Everything else is text
            (r'[^\\()*_`]+', Text),
            (r'.', Text),
        ],

        'arguments': [
            (r'\s+', Text),
            (r'"(\\\\|\\"|[^"])*"', String),
            (r'(=>)(?=[\s)])', Punctuation, ('#pop', 'root')),
            (r'\(:', Punctuation, 'arguments'),
            (r'\(', Punctuation, 'group'),
            (r'\)', Punctuation, '#pop'),
            (r'[^\s()"]+', Name.Attribute),
        ],

        'group': [
            (r'\s+', Text),
            (r'"(\\\\|\\"|[^"])*"', String),
            (r'\(', Punctuation, '#push'),
            (r'\)', Punctuation, '#pop'),
            (r'[^\s()"]+', Name.Attribute),
        ],

        'comment': [
            # Inside (:comment ...) - everything is comment text until the closing paren
            (r'\(', Comment, '#push'),
            (r'\)', Punctuation, '#pop'),
            (r'[^()]+', Comment),
        ],
    }
