from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

import fitz  # PyMuPDF

from src.common.cancel import CancelToken
from src.common.errors import AssemblyInvariantViolation
from src.common.mupdf import MUPDF_LOCK, log_warnings, new_pdf
from src.parser.api import ParsedDocument, references
from .model import MergedDocument

logger = logging.getLogger(__name__)

DEFAULT_PRODUCER = "pdf-folder-merger"


class ObjectNumberAllocator:
    """Single owner of the merged document's object numbers.

    New objects only appear inside `claim`; each claimed block starts where the
    previous one ended, so numbers grow monotonically and never overlap.
    """

    def __init__(self, target: fitz.Document) -> None:
        self._target = target
        self._next = target.xref_length()
        self.spans: List[range] = []

    def claim(self, fill: Callable[[], None]) -> range:
        start = self._target.xref_length()
        if start != self._next:
            raise AssemblyInvariantViolation(f"objects {self._next}..{start - 1} were created outside the allocator")
        fill()
        stop = self._target.xref_length()
        if stop < start:
            raise AssemblyInvariantViolation(f"object table shrank from {start} to {stop}")
        self._next = stop
        span = range(start, stop)
        self.spans.append(span)
        return span

    @property
    def issued(self) -> int:
        return self._next - 1


class Assembler:
    def __init__(self, producer: str = DEFAULT_PRODUCER, cancel: Optional[CancelToken] = None) -> None:
        self.producer = producer
        self.cancel = cancel

    def assemble(self, documents: Iterable[ParsedDocument], title: Optional[str] = None) -> MergedDocument:
        with MUPDF_LOCK:
            merged = MergedDocument(document=new_pdf())
            try:
                self._assemble(merged, documents, title)
            except BaseException:
                merged.document.close()
                raise
            finally:
                log_warnings("assembly")
        logger.info(f"Assembled {merged.page_count} pages, {merged.object_count} objects")
        return merged

    def _assemble(self, merged: MergedDocument, documents: Iterable[ParsedDocument], title: Optional[str]) -> None:
        out = merged.document
        allocator = ObjectNumberAllocator(out)

        for doc in documents:
            if self.cancel is not None:
                self.cancel.raise_if_cancelled()
            # one graft map per source: objects shared by its pages are copied once
            span = allocator.claim(lambda: out.insert_pdf(doc.handle, links=True))
            merged.object_spans.append(span)
            merged.source_page_counts.append(doc.page_count)
            logger.debug(f"{doc.source.name}: {doc.page_count} pages appended as objects {span.start}..{span.stop - 1}")

        metadata: Dict[str, str] = {"producer": self.producer}
        if title:
            metadata["title"] = title
        allocator.claim(lambda: out.set_metadata(metadata))

        self._check_invariants(merged)

    def _check_invariants(self, merged: MergedDocument) -> None:
        out = merged.document
        if out.page_count != merged.page_count:
            raise AssemblyInvariantViolation(f"{out.page_count} pages merged, expected {merged.page_count}")

        # page k must come from the k-th page slot of its own source, in order
        seen = set()
        index = 0
        for span, count in zip(merged.object_spans, merged.source_page_counts):
            for _ in range(count):
                xref = out.page_xref(index)
                if xref not in span or xref in seen:
                    raise AssemblyInvariantViolation(f"page {index + 1} (object {xref}) outside its source's objects")
                seen.add(xref)
                index += 1

        size = out.xref_length()
        for num in range(1, size):
            for ref in references(out, num):
                if not 0 < ref < size:
                    raise AssemblyInvariantViolation(f"object {num} refers to missing object {ref}")
