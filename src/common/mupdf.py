"""Shared access to MuPDF.

MuPDF keeps global state, so every call into it from the parser worker
threads, the assembler and the writer goes through MUPDF_LOCK.
"""
from __future__ import annotations

import logging
import threading

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

MUPDF_LOCK = threading.RLock()


def open_pdf(data: bytes) -> fitz.Document:
    return fitz.open(stream=data, filetype="pdf")


def new_pdf() -> fitz.Document:
    return fitz.open()


def log_warnings(context: str) -> None:
    """Move MuPDF's collected warnings into the log."""
    text = fitz.TOOLS.mupdf_warnings()
    if text:
        for line in text.splitlines():
            logger.debug(f"{context}: mupdf: {line}")


def silence_stderr() -> None:
    fitz.TOOLS.mupdf_display_errors(False)
