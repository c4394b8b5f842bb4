from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from src.common.errors import InputError
from .model import SourceFile

logger = logging.getLogger(__name__)

PDF_SUFFIX = ".pdf"


class NotADirectory(InputError):
    code = "NotADirectory"


class Unreadable(InputError):
    code = "Unreadable"


class Scanner:
    def scan(self, directory: str) -> List[SourceFile]:
        path = Path(directory)
        if not path.is_dir():
            raise NotADirectory(f"not a directory: {directory}")

        try:
            with os.scandir(path) as it:
                entries = [e for e in it if self._is_pdf(e)]
        except OSError as e:
            raise Unreadable(f"cannot list {directory}: {e}") from e

        # Name order, not enumeration order: output must not depend on the filesystem.
        entries.sort(key=lambda e: e.name)

        sources: List[SourceFile] = []
        for idx, entry in enumerate(entries):
            try:
                size = entry.stat().st_size
            except OSError as e:
                raise Unreadable(f"cannot stat {entry.path}: {e}") from e
            sources.append(
                SourceFile(path=os.path.abspath(entry.path), name=entry.name, size=size, index=idx)
            )

        logger.info(f"Found {len(sources)} PDF files in {directory}")
        return sources

    def _is_pdf(self, entry: os.DirEntry) -> bool:
        return entry.name.lower().endswith(PDF_SUFFIX) and entry.is_file()
