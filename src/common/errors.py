from __future__ import annotations

from typing import Optional


class MergeError(RuntimeError):
    """Base of every error the merge engine raises on purpose.

    `code` is the reason code reported to the caller.
    """

    code: str = "MergeError"

    def __init__(self, message: str = "", code: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code


class InputError(MergeError):
    code = "InputError"


class NoContent(MergeError):
    code = "NoContent"


class PerFileError(MergeError):
    code = "PerFileError"


class AssemblyInvariantViolation(MergeError):
    code = "AssemblyInvariantViolation"


class OutputError(MergeError):
    code = "OutputError"


class MergeCancelled(MergeError):
    code = "Cancelled"
