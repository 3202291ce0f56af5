"""
Global reference table

Holds every citable id of a compilation. Entries are written once during
the collection pass; the table is then sealed and only read while ref and
toctree directives are resolved.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import DuplicateReferenceError
from .nodes import SourceLocation


@dataclass(frozen=True)
class Reference:
    """
    A citable target

    Attributes:
        id: Reference id (explicit heading id, define-ref id, or
            ``page-slug#anchor`` for headings without an id)
        title: Human title used as default link text
        slug: Page the target lives on
        anchor: Fragment within the page, or None for the page itself
        location: Where the target was declared
        implicit: True when the id was derived from a heading title
    """
    id: str
    title: str
    slug: str
    anchor: Optional[str] = None
    location: Optional[SourceLocation] = None
    implicit: bool = False


class ReferenceTable:
    """Write-once, lock-guarded map of reference ids"""

    def __init__(self) -> None:
        self._references: Dict[str, Reference] = {}
        self._lock = threading.Lock()
        self.sealed = False

    def register(self, reference: Reference) -> None:
        """
        Register a reference id

        Raises:
            DuplicateReferenceError: The id is already registered
            RuntimeError: The collection pass is already over
        """
        with self._lock:
            if self.sealed:
                raise RuntimeError(
                    f"reference '{reference.id}' registered after the collection pass"
                )
            existing = self._references.get(reference.id)
            if existing is not None:
                raise DuplicateReferenceError(
                    f"reference id '{reference.id}' already defined at {existing.location}",
                    location=reference.location,
                )
            self._references[reference.id] = reference

    def seal(self) -> None:
        with self._lock:
            self.sealed = True

    def get(self, reference_id: str) -> Optional[Reference]:
        return self._references.get(reference_id)

    def __contains__(self, reference_id: object) -> bool:
        return reference_id in self._references

    def __len__(self) -> int:
        return len(self._references)
