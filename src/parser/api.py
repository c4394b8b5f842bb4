from __future__ import annotations

from typing import Optional

from src.common.cancel import CancelToken
from src.scanner.api import SourceFile
from .model import Page, ParsedDocument
from .objectgraph import references
from .parser import (
    MAX_OBJECTS,
    MAX_PAGE_TREE_DEPTH,
    RECONSTRUCTED,
    STRICT,
    CorruptStructure,
    EmptyDocument,
    Encrypted,
    NotAPdf,
    Parser,
    UnreadableFile,
)


def parse(
    source: SourceFile,
    cancel: Optional[CancelToken] = None,
    max_objects: int = MAX_OBJECTS,
    max_depth: int = MAX_PAGE_TREE_DEPTH,
) -> ParsedDocument:
    """Public API (Parser)

    Contract:
    - Declared cross-reference data first, MuPDF's repair scan only if that fails.
      The result's xref_mode tells which one succeeded.
    - Encrypted documents are rejected, never decrypted.
    - Object count and page-tree depth are bounded (max_objects, max_depth).
    - Raises NotAPdf / Encrypted / CorruptStructure / EmptyDocument / UnreadableFile;
      any other failure inside MuPDF is reported as CorruptStructure.
    - The returned document stays open; call close() once its pages are copied.
    """
    return Parser(max_objects=max_objects, max_depth=max_depth, cancel=cancel).parse(source)
