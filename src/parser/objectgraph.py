from __future__ import annotations

import re
from typing import Iterable, List, Optional, Set, Tuple

import fitz  # PyMuPDF

from src.common.cancel import CancelToken

CANCEL_CHECK_EVERY: int = 256

_REFERENCE = re.compile(r"(\d+) (\d+) R\b")


class ObjectLimitExceeded(ValueError):
    pass


def references(doc: fitz.Document, xref: int) -> List[int]:
    """Object numbers referenced by the object `xref` (stream data excluded)."""
    return [int(m.group(1)) for m in _REFERENCE.finditer(doc.xref_object(xref, compressed=True))]


def parent_of(doc: fitz.Document, xref: int) -> Optional[int]:
    kind, value = doc.xref_get_key(xref, "Parent")
    if kind != "xref":
        return None
    return int(value.split()[0])


def reachable(
    doc: fitz.Document,
    roots: Iterable[int],
    skip: Set[int],
    limit: int,
    cancel: Optional[CancelToken] = None,
    extra: Iterable[str] = (),
) -> Tuple[Set[int], Set[int]]:
    """Walk references from the `roots` objects and the `extra` PDF source snippets
    without entering `skip`.

    Returns (objects found, object numbers referenced but missing or null).
    """
    size = doc.xref_length()
    found: Set[int] = set()
    missing: Set[int] = set()
    pending: List[int] = []
    for root in roots:
        pending.extend(references(doc, root))
    for text in extra:
        pending.extend(int(m.group(1)) for m in _REFERENCE.finditer(text))

    while pending:
        num = pending.pop()
        if num in skip or num in found or num in missing:
            continue
        if cancel is not None and len(found) % CANCEL_CHECK_EVERY == 0:
            cancel.raise_if_cancelled()
        source = doc.xref_object(num, compressed=True) if 0 < num < size else "null"
        if source == "null":
            missing.add(num)
            continue
        if len(found) >= limit:
            raise ObjectLimitExceeded(f"more than {limit} reachable objects")
        found.add(num)
        pending.extend(int(m.group(1)) for m in _REFERENCE.finditer(source))
    return found, missing
