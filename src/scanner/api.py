from __future__ import annotations

from typing import List

from .model import SourceFile
from .scanner import Scanner


def scan_directory(directory: str) -> List[SourceFile]:
    """Public API (Scanner)

    Contract:
    - Non-recursive; regular files ending in ".pdf" (case-insensitive).
    - Ordered by file name, discovery index follows that order.
    - NotADirectory / Unreadable on bad input; empty list is not an error.
    """
    return Scanner().scan(directory)


def count_pdfs(directory: str) -> int:
    """Public API (Scanner) – candidate count only, nothing is parsed."""
    return len(Scanner().scan(directory))
