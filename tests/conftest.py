from __future__ import annotations

import struct
import zlib
from pathlib import Path
from typing import Dict, List, Optional

import fitz  # PyMuPDF
import pytest

from src.scanner.api import SourceFile


def make_fitz_pdf(path: Path, pages: int, label: str = "page", encrypt: bool = False, user_pw: str = "user") -> Path:
    """Real-world style PDF written by PyMuPDF; page i carries the text '<label> <i>'."""
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=595, height=842)
        page.insert_text((72, 72), f"{label} {i + 1}")
    if encrypt:
        doc.save(str(path), encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw=user_pw)
    else:
        doc.save(str(path))
    doc.close()
    return path


def stream_obj(content: bytes, extra: bytes = b"") -> bytes:
    return b"<< /Length %d %s>>\nstream\n" % (len(content), extra) + content + b"\nendstream"


def simple_objects(pages: int, text: bytes = b"Hello") -> Dict[int, bytes]:
    """Catalog 1, Pages 2, shared font 3, then page/content pairs."""
    kids = b" ".join(b"%d 0 R" % (4 + 2 * i) for i in range(pages))
    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: b"<< /Type /Pages /Kids [%s] /Count %d /MediaBox [0 0 612 792] >>" % (kids, pages),
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    for i in range(pages):
        page_num, content_num = 4 + 2 * i, 5 + 2 * i
        objects[page_num] = (
            b"<< /Type /Page /Parent 2 0 R /Contents %d 0 R "
            b"/Resources << /Font << /F1 3 0 R >> >> >>" % content_num
        )
        objects[content_num] = stream_obj(b"BT /F1 12 Tf 72 720 Td (%s %d) Tj ET" % (text, i + 1))
    return objects


def build_pdf(
    objects: Dict[int, bytes],
    root: int = 1,
    trailer_extra: bytes = b"",
    startxref: Optional[int] = None,
    header: bytes = b"%PDF-1.4\n",
) -> bytes:
    """Classic cross-reference table. `startxref` overrides the real offset."""
    out = bytearray(header)
    offsets = {}
    for num in sorted(objects):
        offsets[num] = len(out)
        out += b"%d 0 obj\n" % num + objects[num] + b"\nendobj\n"
    xref_at = len(out)
    size = max(objects) + 1
    out += b"xref\n0 %d\n0000000000 65535 f \n" % size
    for num in range(1, size):
        if num in offsets:
            out += b"%010d 00000 n \n" % offsets[num]
        else:
            out += b"0000000000 00000 f \n"
    out += b"trailer\n<< /Size %d /Root %d 0 R %s>>\n" % (size, root, trailer_extra)
    out += b"startxref\n%d\n" % (xref_at if startxref is None else startxref)
    out += b"%%EOF\n"
    return bytes(out)


def build_pdf_with_object_stream(
    direct: Dict[int, bytes], packed: Dict[int, bytes], root: int = 1, columns: int = 7
) -> bytes:
    """PDF 1.5 layout: `packed` objects live in an object stream, xref is a
    Flate-compressed cross-reference stream with a PNG Up predictor."""
    objstm_num = max(list(direct) + list(packed)) + 1
    xref_num = objstm_num + 1

    header_parts: List[bytes] = []
    body = bytearray()
    packed_order = sorted(packed)
    for num in packed_order:
        header_parts.append(b"%d %d" % (num, len(body)))
        body += packed[num] + b"\n"
    head = b" ".join(header_parts) + b"\n"
    objstm_data = zlib.compress(head + bytes(body))

    out = bytearray(b"%PDF-1.5\n%\xe2\xe3\xcf\xd3\n")
    offsets = {}
    for num in sorted(direct):
        offsets[num] = len(out)
        out += b"%d 0 obj\n" % num + direct[num] + b"\nendobj\n"
    offsets[objstm_num] = len(out)
    out += b"%d 0 obj\n" % objstm_num
    out += stream_obj(objstm_data, b"/Type /ObjStm /N %d /First %d /Filter /FlateDecode " % (len(packed), len(head)))
    out += b"\nendobj\n"

    size = xref_num + 1
    rows = []
    for num in range(size):
        if num in offsets:
            rows.append(struct.pack(">BIH", 1, offsets[num], 0))
        elif num in packed:
            rows.append(struct.pack(">BIH", 2, objstm_num, packed_order.index(num)))
        elif num == xref_num:
            rows.append(struct.pack(">BIH", 1, len(out), 0))
        else:
            rows.append(struct.pack(">BIH", 0, 0, 0))
    predicted = bytearray()
    prev = bytes(7)
    for row in rows:
        predicted.append(2)
        predicted += bytes((row[i] - prev[i]) & 0xFF for i in range(7))
        prev = row
    xref_data = zlib.compress(bytes(predicted))

    xref_at = len(out)
    out += b"%d 0 obj\n" % xref_num
    out += stream_obj(
        xref_data,
        b"/Type /XRef /Size %d /W [1 4 2] /Root %d 0 R /Filter /FlateDecode "
        b"/DecodeParms << /Predictor 12 /Columns %d >> " % (size, root, columns),
    )
    out += b"\nendobj\nstartxref\n%d\n%%%%EOF\n" % xref_at
    return bytes(out)


def append_update(data: bytes, objects: Dict[int, bytes], size: int, root: int = 1) -> bytes:
    """Incremental update: new object bodies plus a table section chained with /Prev."""
    prev = int(data[data.rindex(b"startxref") + len(b"startxref"):].split()[0])
    out = bytearray(data)
    offsets = {}
    for num in sorted(objects):
        offsets[num] = len(out)
        out += b"%d 0 obj\n" % num + objects[num] + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n"
    for num in sorted(objects):
        out += b"%d 1\n%010d 00000 n \n" % (num, offsets[num])
    out += b"trailer\n<< /Size %d /Root %d 0 R /Prev %d >>\n" % (size, root, prev)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_at
    return bytes(out)


def build_hybrid_pdf(direct: Dict[int, bytes], packed: Dict[int, bytes], root: int = 1) -> bytes:
    """Classic table for `direct`, plus an /XRefStm stream locating the `packed` objects."""
    objstm_num = max(list(direct) + list(packed)) + 1
    xref_num = objstm_num + 1
    packed_order = sorted(packed)

    header_parts: List[bytes] = []
    body = bytearray()
    for num in packed_order:
        header_parts.append(b"%d %d" % (num, len(body)))
        body += packed[num] + b"\n"
    head = b" ".join(header_parts) + b"\n"

    out = bytearray(b"%PDF-1.5\n%\xe2\xe3\xcf\xd3\n")
    offsets = {}
    for num in sorted(direct):
        offsets[num] = len(out)
        out += b"%d 0 obj\n" % num + direct[num] + b"\nendobj\n"
    offsets[objstm_num] = len(out)
    out += b"%d 0 obj\n" % objstm_num
    out += stream_obj(head + bytes(body), b"/Type /ObjStm /N %d /First %d " % (len(packed), len(head)))
    out += b"\nendobj\n"

    rows = b"".join(struct.pack(">BIH", 2, objstm_num, i) for i in range(len(packed_order)))
    offsets[xref_num] = len(out)
    xref_stm_at = len(out)
    out += b"%d 0 obj\n" % xref_num
    out += stream_obj(
        rows, b"/Type /XRef /Size %d /W [1 4 2] /Index [%d %d] " % (xref_num + 1, packed_order[0], len(packed_order))
    )
    out += b"\nendobj\n"

    # the packed numbers are left out of the classic table; only the stream knows them
    xref_at = len(out)
    out += b"xref\n0 1\n0000000000 65535 f \n"
    for num in sorted(offsets):
        out += b"%d 1\n%010d 00000 n \n" % (num, offsets[num])
    out += b"trailer\n<< /Size %d /Root %d 0 R /XRefStm %d >>\n" % (xref_num + 1, root, xref_stm_at)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_at
    return bytes(out)


def build_pdf_with_empty_xref_stream(objects: Dict[int, bytes], declared_size: int, root: int = 1) -> bytes:
    """Xref stream with zero-width rows that claims `declared_size` entries."""
    out = bytearray(b"%PDF-1.5\n")
    for num in sorted(objects):
        out += b"%d 0 obj\n" % num + objects[num] + b"\nendobj\n"
    xref_num = max(objects) + 1
    xref_at = len(out)
    out += b"%d 0 obj\n" % xref_num
    out += stream_obj(b"", b"/Type /XRef /Size %d /W [0 0 0] /Root %d 0 R " % (declared_size, root))
    out += b"\nendobj\nstartxref\n%d\n%%%%EOF\n" % xref_at
    return bytes(out)


def source_for(path: Path, index: int = 0) -> SourceFile:
    return SourceFile(path=str(path.resolve()), name=path.name, size=path.stat().st_size, index=index)


@pytest.fixture
def pdf_dir(tmp_path: Path) -> Path:
    d = tmp_path / "reports"
    d.mkdir()
    return d
