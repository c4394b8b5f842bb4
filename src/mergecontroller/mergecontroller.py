from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Tuple

from src.assembler.api import assemble
from src.common.cancel import CancelToken
from src.common.errors import InputError, MergeCancelled, MergeError, NoContent, PerFileError
from src.parser.api import ParsedDocument, parse
from src.scanner.api import SourceFile, scan_directory
from src.writer.api import WriteFailure, WriteResult, write_document
from .model import (
    ASSEMBLING,
    DONE,
    FAILED,
    IDLE,
    INCLUDED,
    PARSING,
    SCANNING,
    SKIPPED,
    WRITING,
    MergeOptions,
    MergeOutcome,
    MergeResult,
)

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".merge.lock"
DEFAULT_BASE_NAME = "merged"

_Parsed = Tuple[MergeOutcome, Optional[ParsedDocument]]


class NoPdfsFound(NoContent):
    code = "NoPdfsFound"


class AllFilesInvalid(NoContent):
    code = "AllFilesInvalid"


class MergeInProgress(InputError):
    code = "MergeInProgress"


class _Run:
    """Progress of one merge request."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        self.states: List[str] = [IDLE]
        self.outcomes: List[MergeOutcome] = []

    def enter(self, state: str) -> None:
        logger.debug(f"{self.directory}: {self.states[-1]} -> {state}")
        self.states.append(state)


class MergeController:
    def __init__(self, options: Optional[MergeOptions] = None) -> None:
        self.options = options or MergeOptions()

    def count(self, directory: str) -> int:
        return len(scan_directory(directory))

    def merge(self, directory: str, cancel: Optional[CancelToken] = None) -> MergeResult:
        cancel = cancel or CancelToken()
        run = _Run(directory)
        try:
            written = self._run(run, cancel)
        except MergeError as e:
            run.enter(FAILED)
            logger.error(f"Merge of {directory} failed: {e.code}: {e}")
            return MergeResult(
                status=FAILED,
                directory=directory,
                outcomes=tuple(run.outcomes),
                reason=e.code,
                message=str(e),
                states=tuple(run.states),
            )

        run.enter(DONE)
        skipped = sum(1 for o in run.outcomes if o.status == SKIPPED)
        logger.info(
            f"Merged {len(run.outcomes) - skipped} of {len(run.outcomes)} files "
            f"({written.page_count} pages) into {written.output_path}"
        )
        return MergeResult(
            status=DONE,
            directory=directory,
            output_path=written.output_path,
            outcomes=tuple(run.outcomes),
            page_count=written.page_count,
            states=tuple(run.states),
        )

    def _run(self, run: _Run, cancel: CancelToken) -> WriteResult:
        run.enter(SCANNING)
        sources = scan_directory(run.directory)
        if not sources:
            raise NoPdfsFound(f"no PDF files in {run.directory}")

        out_dir, base_name = self._target(run.directory)
        lock_path = out_dir / f".{base_name}{LOCK_SUFFIX}"
        self._acquire_lock(lock_path)
        try:
            cancel.raise_if_cancelled()
            run.enter(PARSING)
            documents = self._parse_all(sources, cancel, run)
            try:
                if not documents:
                    raise AllFilesInvalid(f"none of the {len(sources)} PDF files could be merged")
                cancel.raise_if_cancelled()

                run.enter(ASSEMBLING)
                merged = assemble(documents, title=base_name, producer=self.options.producer, cancel=cancel)
            finally:
                for doc in documents:
                    doc.close()

            try:
                cancel.raise_if_cancelled()
                run.enter(WRITING)
                return write_document(
                    merged, str(out_dir), base_name, cancel=cancel, verify=self.options.verify_output
                )
            finally:
                merged.close()
        finally:
            self._release_lock(lock_path)

    def _target(self, directory: str) -> Tuple[Path, str]:
        src_dir = Path(directory).resolve()
        base_name = src_dir.name or DEFAULT_BASE_NAME
        out_dir = Path(self.options.output_dir).resolve() if self.options.output_dir else src_dir.parent
        return out_dir, base_name

    def _parse_all(self, sources: List[SourceFile], cancel: CancelToken, run: _Run) -> List[ParsedDocument]:
        results: List[Optional[_Parsed]] = [None] * len(sources)
        workers = max(1, min(self.options.workers, len(sources)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pdf-parse") as pool:
            futures = {pool.submit(self._parse_one, src, cancel): i for i, src in enumerate(sources)}
            try:
                for fut in as_completed(futures):
                    results[futures[fut]] = fut.result()
            except MergeCancelled:
                for fut in futures:
                    fut.cancel()
                for done in results:
                    if done is not None and done[1] is not None:
                        done[1].close()
                raise

        # scan order, not completion order
        run.outcomes = [r[0] for r in results if r is not None]
        return [r[1] for r in results if r is not None and r[1] is not None]

    def _parse_one(self, source: SourceFile, cancel: CancelToken) -> _Parsed:
        cancel.raise_if_cancelled()
        try:
            doc = parse(
                source,
                cancel=cancel,
                max_objects=self.options.max_objects,
                max_depth=self.options.max_page_tree_depth,
            )
        except PerFileError as e:
            logger.warning(f"Skipping {source.name}: {e.code}: {e}")
            return MergeOutcome(source=source, status=SKIPPED, reason=e.code, detail=str(e)), None

        logger.info(f"Parsed {source.name}: {doc.page_count} pages ({doc.xref_mode})")
        outcome = MergeOutcome(source=source, status=INCLUDED, pages=doc.page_count, xref_mode=doc.xref_mode)
        return outcome, doc

    def _acquire_lock(self, lock_path: Path) -> None:
        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            os.close(fd)
        except FileExistsError:
            raise MergeInProgress(f"another merge is writing to {lock_path.parent}")
        except OSError as e:
            raise WriteFailure(f"cannot create lock file {lock_path}: {e}") from e

    def _release_lock(self, lock_path: Path) -> None:
        try:
            lock_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove lock file {lock_path}: {e}")
