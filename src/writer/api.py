from __future__ import annotations

from typing import Optional

from src.assembler.api import MergedDocument
from src.common.cancel import CancelToken
from .model import WriteResult
from .writer import VerificationFailure, WriteFailure, Writer, serialize_document


def write_document(
    merged: MergedDocument,
    output_dir: str,
    base_name: str,
    cancel: Optional[CancelToken] = None,
    verify: bool = True,
) -> WriteResult:
    """Public API (Writer)

    Contract:
    - Target <base_name>.pdf in output_dir, then <base_name>_1.pdf, _2, ...; never overwrites.
    - Bytes go to a temporary file first; the target name is claimed exclusively (O_EXCL)
      and the file is renamed onto it only if not cancelled.
    - verify=True reopens the bytes with PyMuPDF and compares the page count before committing.
    - WriteFailure on filesystem errors, VerificationFailure if the output does not reopen.
    """
    return Writer(verify=verify, cancel=cancel).write(merged, output_dir, base_name)
