"""
Models package for rocketdoc

Contains data structures and type definitions for the compilation pipeline.
"""

from .state import ProgramState, pipeline
from .directives import DirectiveSpec, DirectiveCategory, BodyPolicy
from .nodes import Node, NodeKind, SourceLocation
from .definitions import Definition, DefinitionKind, DefinitionTable, Scope
from .references import Reference, ReferenceTable
from .document import CompilationUnit, Document

__all__ = [
    "ProgramState",
    "pipeline",
    "DirectiveSpec",
    "DirectiveCategory",
    "BodyPolicy",
    "Node",
    "NodeKind",
    "SourceLocation",
    "Definition",
    "DefinitionKind",
    "DefinitionTable",
    "Scope",
    "Reference",
    "ReferenceTable",
    "CompilationUnit",
    "Document",
]
