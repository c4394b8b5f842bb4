from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from src.parser.api import MAX_OBJECTS, MAX_PAGE_TREE_DEPTH
from src.scanner.api import SourceFile

# Orchestrator states
IDLE = "IDLE"
SCANNING = "SCANNING"
PARSING = "PARSING"
ASSEMBLING = "ASSEMBLING"
WRITING = "WRITING"
DONE = "DONE"
FAILED = "FAILED"

INCLUDED = "INCLUDED"
SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class MergeOptions:
    workers: int = 4
    output_dir: Optional[str] = None   # default: parent of the merged directory
    verify_output: bool = True
    max_objects: int = MAX_OBJECTS
    max_page_tree_depth: int = MAX_PAGE_TREE_DEPTH
    producer: str = "pdf-folder-merger"


@dataclass(frozen=True)
class MergeOutcome:
    source: SourceFile
    status: str                     # INCLUDED|SKIPPED
    pages: int = 0
    reason: Optional[str] = None    # reason code when SKIPPED
    detail: str = ""
    xref_mode: Optional[str] = None

    @property
    def name(self) -> str:
        return self.source.name


@dataclass(frozen=True)
class MergeResult:
    status: str                     # DONE|FAILED
    directory: str
    output_path: Optional[str] = None
    outcomes: Tuple[MergeOutcome, ...] = ()
    reason: Optional[str] = None    # reason code when FAILED
    message: str = ""
    page_count: int = 0
    states: Tuple[str, ...] = ()

    @property
    def included(self) -> List[MergeOutcome]:
        return [o for o in self.outcomes if o.status == INCLUDED]

    @property
    def skipped(self) -> List[MergeOutcome]:
        return [o for o in self.outcomes if o.status == SKIPPED]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "status": self.status,
            "outputPath": self.output_path,
            "pages": self.page_count,
            "included": [{"name": o.name, "pages": o.pages} for o in self.included],
            "skipped": [{"name": o.name, "reason": o.reason, "detail": o.detail} for o in self.skipped],
        }
        if self.status == FAILED:
            out["reason"] = self.reason
            out["message"] = self.message
        return out
