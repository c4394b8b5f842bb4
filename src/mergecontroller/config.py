from __future__ import annotations

import json
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict

from .model import MergeOptions


class ConfigError(ValueError):
    pass


def load_options(path: str, base: MergeOptions = MergeOptions()) -> MergeOptions:
    """Read MergeOptions overrides from a JSON object file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read options file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Options file must contain a JSON object")
    return replace(base, **_validated(data))


def _validated(data: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(MergeOptions)}
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"Unknown option: {key}")
        if key in ("workers", "max_objects", "max_page_tree_depth"):
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"Option {key} must be a positive integer")
        elif key == "verify_output":
            if not isinstance(value, bool):
                raise ConfigError("Option verify_output must be true or false")
        elif key == "output_dir":
            if value is not None and not isinstance(value, str):
                raise ConfigError("Option output_dir must be a string or null")
        elif not isinstance(value, str):
            raise ConfigError(f"Option {key} must be a string")
        out[key] = value
    return out
