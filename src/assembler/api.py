from __future__ import annotations

from typing import Iterable, Optional

from src.common.cancel import CancelToken
from src.parser.api import ParsedDocument
from .assembler import DEFAULT_PRODUCER, Assembler, ObjectNumberAllocator
from .model import MergedDocument


def assemble(
    documents: Iterable[ParsedDocument],
    title: Optional[str] = None,
    producer: str = DEFAULT_PRODUCER,
    cancel: Optional[CancelToken] = None,
) -> MergedDocument:
    """Public API (Assembler)

    Contract:
    - Pages in document order, then each document's own page order.
    - Each source's objects get one contiguous block of new numbers (ObjectNumberAllocator);
      objects shared inside one source are copied once.
    - Inherited page attributes are materialized on the copied pages.
    - AssemblyInvariantViolation if the unified table is inconsistent (a defect).
    - The source documents are not closed here.
    """
    return Assembler(producer=producer, cancel=cancel).assemble(documents, title=title)
