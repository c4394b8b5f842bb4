from __future__ import annotations

import argparse
import json
import signal
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

from src.common.cancel import CancelToken
from src.common.errors import InputError
from src.common.logging_setup import setup_logging
from src.common.mupdf import silence_stderr
from src.mergecontroller.api import count_pdfs, merge_directory
from src.mergecontroller.config import ConfigError, load_options
from src.mergecontroller.model import DONE, MergeOptions, MergeResult

SEPARATOR = "=" * 78


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pdf-folder-merger",
        description="Merge every PDF in a folder (file name order) into one PDF next to it.",
    )
    p.add_argument("--log-level", default="WARNING", help="DEBUG, INFO, WARNING or ERROR")
    p.add_argument("--log-json", action="store_true", help="Emit log records as JSON lines")
    sub = p.add_subparsers(dest="command", required=True)

    m = sub.add_parser("merge", help="Merge the PDFs of a folder")
    m.add_argument("directory", help="Folder containing the PDFs")
    m.add_argument("--config", default=None, help="JSON file with merge options")
    m.add_argument("--workers", type=int, default=None, help="Parallel parser threads")
    m.add_argument("--output-dir", default=None, help="Where to write (default: the folder's parent)")
    m.add_argument("--no-verify", action="store_true", help="Skip reopening the output with PyMuPDF")
    m.add_argument("--json", action="store_true", help="Print the result as JSON")

    c = sub.add_parser("count", help="Count candidate PDFs in a folder")
    c.add_argument("directory")
    return p


def _options(args: argparse.Namespace) -> MergeOptions:
    options = load_options(args.config) if args.config else MergeOptions()
    overrides: Dict[str, Any] = {}
    if args.workers is not None:
        if args.workers < 1:
            raise ConfigError("--workers must be at least 1")
        overrides["workers"] = args.workers
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if args.no_verify:
        overrides["verify_output"] = False
    return replace(options, **overrides)


def _print_result(res: MergeResult) -> None:
    print(SEPARATOR)
    print(f"MERGE: {res.directory}")
    print(SEPARATOR)
    print(f"status: {res.status}")
    if res.status == DONE:
        print(f"output: {res.output_path}")
        print(f"pages: {res.page_count}")
    else:
        print(f"reason: {res.reason}")
        print(f"message: {res.message}")
    for o in res.included:
        print(f"  + {o.name} ({o.pages} pages)")
    for o in res.skipped:
        print(f"  - {o.name}: {o.reason} ({o.detail})")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        setup_logging(args.log_level, json_output=args.log_json)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    silence_stderr()

    if args.command == "count":
        try:
            print(count_pdfs(args.directory))
        except InputError as e:
            print(f"{e.code}: {e}", file=sys.stderr)
            return 1
        return 0

    try:
        options = _options(args)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return 2

    cancel = CancelToken()
    previous = signal.signal(signal.SIGINT, lambda *_: cancel.cancel())
    try:
        res = merge_directory(args.directory, options=options, cancel=cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.json:
        print(json.dumps(res.to_dict(), indent=2))
    else:
        _print_result(res)
    return 0 if res.status == DONE else 1


if __name__ == "__main__":
    raise SystemExit(main())
