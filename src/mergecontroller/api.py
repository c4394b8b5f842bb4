from __future__ import annotations

from typing import Optional

from src.common.cancel import CancelToken
from .mergecontroller import MergeController
from .model import MergeOptions, MergeOutcome, MergeResult


def merge_directory(
    directory: str,
    options: Optional[MergeOptions] = None,
    cancel: Optional[CancelToken] = None,
) -> MergeResult:
    """Public API (MergeController)

    Contract:
    - IDLE -> SCANNING -> PARSING -> ASSEMBLING -> WRITING -> DONE | FAILED
    - Files that cannot be merged are skipped and listed with a reason code.
    - FAILED carries exactly one reason code (NoPdfsFound, AllFilesInvalid, ...).
    - One merge per output target at a time (lock file next to the output).
    """
    return MergeController(options).merge(directory, cancel=cancel)


def count_pdfs(directory: str) -> int:
    """Public API (MergeController) – scanner only, files are not validated."""
    return MergeController().count(directory)
