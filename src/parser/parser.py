from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import fitz  # PyMuPDF

from src.common.cancel import CancelToken
from src.common.errors import MergeError, PerFileError
from src.common.mupdf import MUPDF_LOCK, log_warnings, open_pdf
from src.scanner.api import SourceFile
from .model import Page, ParsedDocument
from .objectgraph import ObjectLimitExceeded, parent_of, reachable

logger = logging.getLogger(__name__)

MAX_OBJECTS: int = 500_000
MAX_PAGE_TREE_DEPTH: int = 64
HEADER_WINDOW: int = 1024

STRICT = "strict"
RECONSTRUCTED = "reconstructed"

_HEADER = re.compile(rb"%PDF-(\d+)\.(\d+)")
_FORMAT = re.compile(r"PDF (\d+\.\d+)")


class NotAPdf(PerFileError):
    code = "NotAPdf"


class Encrypted(PerFileError):
    code = "Encrypted"


class CorruptStructure(PerFileError):
    code = "CorruptStructure"


class EmptyDocument(PerFileError):
    code = "EmptyDocument"


class UnreadableFile(PerFileError):
    code = "Unreadable"


class Parser:
    """Structural PDF check on top of MuPDF.

    MuPDF reads the declared cross-reference data first and falls back to its
    own repair scan; `is_repaired` tells which of the two produced the document.
    """

    def __init__(
        self,
        max_objects: int = MAX_OBJECTS,
        max_depth: int = MAX_PAGE_TREE_DEPTH,
        cancel: Optional[CancelToken] = None,
    ) -> None:
        self.max_objects = max_objects
        self.max_depth = max_depth
        self.cancel = cancel

    def parse(self, source: SourceFile) -> ParsedDocument:
        data = self._read(source)
        header = self._header_version(data, source)
        try:
            with MUPDF_LOCK:
                try:
                    return self._open(source, data, header)
                finally:
                    log_warnings(source.name)
        except MergeError:
            raise
        except Exception as e:
            raise CorruptStructure(f"{source.name}: {str(e) or e.__class__.__name__}") from e

    def _read(self, source: SourceFile) -> bytes:
        try:
            return Path(source.path).read_bytes()
        except OSError as e:
            raise UnreadableFile(f"{source.name}: {e}") from e

    def _header_version(self, data: bytes, source: SourceFile) -> str:
        m = _HEADER.search(data, 0, HEADER_WINDOW)
        if m is None:
            raise NotAPdf(f"{source.name}: no %PDF- header")
        return f"{int(m.group(1))}.{int(m.group(2))}"

    def _open(self, source: SourceFile, data: bytes, header: str) -> ParsedDocument:
        handle = open_pdf(data)
        try:
            return self._build(source, handle, header)
        except BaseException:
            handle.close()
            raise

    def _build(self, source: SourceFile, handle: fitz.Document, header: str) -> ParsedDocument:
        if handle.needs_pass or handle.is_encrypted or handle.metadata.get("encryption"):
            raise Encrypted(f"{source.name}: password protected")

        size = handle.xref_length() - 1
        if size > self.max_objects:
            raise CorruptStructure(f"{source.name}: {size} objects exceed the limit of {self.max_objects}")

        catalog = handle.pdf_catalog()
        if catalog <= 0 or handle.xref_get_key(catalog, "Pages")[0] != "xref":
            raise CorruptStructure(f"{source.name}: document catalog missing")

        pages: List[Page] = []
        tree_nodes: Set[int] = set()
        depth_of: Dict[int, int] = {}
        for number in range(handle.page_count):
            self._check_cancel()
            page = handle.load_page(number)
            self._ancestry(handle, page.xref, depth_of, tree_nodes)
            pages.append(Page(
                number=number,
                xref=page.xref,
                contents=tuple(page.get_contents()),
                resources=self._inherited(handle, page.xref, "Resources"),
                media_box=tuple(page.mediabox),
                rotation=page.rotation,
            ))
        if not pages:
            raise EmptyDocument(f"{source.name}: no pages")

        skip = tree_nodes | {p.xref for p in pages}
        try:
            objects, missing = reachable(
                handle,
                [p.xref for p in pages],
                skip,
                self.max_objects,
                self.cancel,
                extra=[p.resources for p in pages if p.resources],
            )
        except ObjectLimitExceeded as e:
            raise CorruptStructure(f"{source.name}: {e}") from e

        mode = RECONSTRUCTED if handle.is_repaired else STRICT
        if mode == RECONSTRUCTED:
            logger.warning(f"{source.name}: cross-reference unusable, document was reconstructed")
        if missing:
            logger.debug(f"{source.name}: {len(missing)} referenced objects missing")
        logger.debug(f"{source.name}: {len(pages)} pages, {len(objects)} objects ({mode})")

        return ParsedDocument(
            source=source,
            handle=handle,
            version=self._version(handle, header),
            pages=pages,
            objects=frozenset(objects),
            missing=frozenset(missing),
            tree_nodes=frozenset(tree_nodes),
            xref_mode=mode,
            title=handle.metadata.get("title") or None,
            meta={"page_count": len(pages), "object_count": len(objects), "xref_mode": mode},
        )

    def _ancestry(self, handle: fitz.Document, page_xref: int, depth_of: Dict[int, int], tree_nodes: Set[int]) -> None:
        """Record the page's /Pages ancestors; reject cycles and trees deeper than max_depth."""
        chain: List[int] = []
        node = parent_of(handle, page_xref)
        while node is not None and node not in depth_of:
            if node in chain or node == page_xref:
                raise CorruptStructure(f"cycle in page tree at object {node}")
            chain.append(node)
            if len(chain) > self.max_depth:
                raise CorruptStructure("page tree too deep")
            node = parent_of(handle, node)

        base = depth_of.get(node, 0) if node is not None else 0
        if base + len(chain) > self.max_depth:
            raise CorruptStructure("page tree too deep")
        for offset, num in enumerate(reversed(chain), start=1):
            depth_of[num] = base + offset
        tree_nodes.update(chain)

    def _inherited(self, handle: fitz.Document, xref: int, key: str) -> Optional[str]:
        node: Optional[int] = xref
        for _ in range(self.max_depth + 1):
            if node is None:
                break
            kind, value = handle.xref_get_key(node, key)
            if kind != "null":
                return value
            node = parent_of(handle, node)
        return None

    def _version(self, handle: fitz.Document, header: str) -> str:
        m = _FORMAT.search(handle.metadata.get("format") or "")
        return m.group(1) if m else header

    def _check_cancel(self) -> None:
        if self.cancel is not None:
            self.cancel.raise_if_cancelled()
