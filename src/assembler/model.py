from dataclasses import dataclass, field
from typing import List

import fitz  # PyMuPDF

from src.common.mupdf import MUPDF_LOCK

@dataclass
class MergedDocument:
    document: fitz.Document                                   # unified object table
    source_page_counts: List[int] = field(default_factory=list)
    object_spans: List[range] = field(default_factory=list)    # object numbers issued per source

    @property
    def page_count(self) -> int:
        return sum(self.source_page_counts)

    @property
    def object_count(self) -> int:
        return self.document.xref_length() - 1

    def close(self) -> None:
        with MUPDF_LOCK:
            self.document.close()
