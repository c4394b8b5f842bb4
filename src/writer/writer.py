from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from src.assembler.api import MergedDocument
from src.common.cancel import CancelToken
from src.common.errors import OutputError
from src.common.mupdf import MUPDF_LOCK, log_warnings, open_pdf
from .model import WriteResult

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = ".pdf"
PART_SUFFIX = ".part"
MAX_NAME_ATTEMPTS: int = 10_000
# drop objects nothing refers to; numbering and stream encodings are kept
GARBAGE_LEVEL: int = 1


class WriteFailure(OutputError):
    code = "WriteFailure"


class VerificationFailure(OutputError):
    code = "VerificationFailure"


class Writer:
    def __init__(self, verify: bool = True, cancel: Optional[CancelToken] = None) -> None:
        self.verify = verify
        self.cancel = cancel

    def write(self, merged: MergedDocument, output_dir: str, base_name: str) -> WriteResult:
        out_dir = Path(output_dir).resolve()
        with MUPDF_LOCK:
            payload = serialize_document(merged)
            if self.verify:
                self._verify(payload, merged.page_count)

        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{base_name}.", suffix=PART_SUFFIX, dir=str(out_dir))
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())

            if self.cancel is not None:
                self.cancel.raise_if_cancelled()

            target = self._claim_target(out_dir, base_name)
            try:
                os.replace(tmp_path, target)
            except OSError:
                self._discard(str(target))
                raise
            tmp_path = None
        except OSError as e:
            raise WriteFailure(f"cannot write merged PDF into {out_dir}: {e}") from e
        finally:
            if tmp_path is not None:
                self._discard(tmp_path)

        logger.info(f"Wrote {merged.page_count} pages ({len(payload)} bytes) to {target}")
        return WriteResult(
            output_path=str(target),
            page_count=merged.page_count,
            object_count=merged.object_count,
            byte_count=len(payload),
        )

    def _claim_target(self, out_dir: Path, base_name: str) -> Path:
        """Create the first free name exclusively; the commit then replaces our own empty file."""
        for n in range(MAX_NAME_ATTEMPTS + 1):
            name = f"{base_name}{OUTPUT_SUFFIX}" if n == 0 else f"{base_name}_{n}{OUTPUT_SUFFIX}"
            candidate = out_dir / name
            try:
                fd = os.open(str(candidate), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                continue
            os.close(fd)
            return candidate
        raise WriteFailure(f"no free output name for {base_name} in {out_dir}")

    def _verify(self, payload: bytes, expected_pages: int) -> None:
        try:
            with open_pdf(payload) as doc:
                pages = doc.page_count
                repaired = doc.is_repaired
        except (RuntimeError, ValueError) as e:
            raise VerificationFailure(f"merged output does not open: {e}") from e
        finally:
            log_warnings("verification")
        if repaired:
            logger.warning("Merged output needed repair when reopened")
        if pages != expected_pages:
            raise VerificationFailure(f"merged output has {pages} pages, expected {expected_pages}")

    def _discard(self, path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary file {path}: {e}")


def serialize_document(merged: MergedDocument) -> bytes:
    """PDF bytes with a classic cross-reference table."""
    with MUPDF_LOCK:
        return merged.document.tobytes(garbage=GARBAGE_LEVEL)
