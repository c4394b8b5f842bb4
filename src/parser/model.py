from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

import fitz  # PyMuPDF

from src.common.mupdf import MUPDF_LOCK
from src.scanner.api import SourceFile

@dataclass(frozen=True)
class Page:
    number: int                              # 0-based position in the source document
    xref: int
    contents: Tuple[int, ...]                # content stream object numbers
    resources: Optional[str]                 # PDF source of the (possibly inherited) /Resources entry
    media_box: Tuple[float, float, float, float]
    rotation: int = 0

@dataclass(frozen=True)
class ParsedDocument:
    source: SourceFile
    handle: fitz.Document          # open until the assembler has copied the pages
    version: str
    pages: List[Page]
    objects: FrozenSet[int]        # closure reachable from the pages, page-tree nodes excluded
    missing: FrozenSet[int]        # referenced but absent or null
    tree_nodes: FrozenSet[int]     # page-tree (/Pages) node numbers
    xref_mode: str                 # strict|reconstructed
    title: Optional[str] = None
    meta: Dict[str, object] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def dangling_references(self) -> List[int]:
        return sorted(self.missing)

    def close(self) -> None:
        with MUPDF_LOCK:
            self.handle.close()
