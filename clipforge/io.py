"""
clipforge.io - Document read helpers and atomic JSON writes.

Timeline documents and clipforge.yaml are read through here; export
reports are written through here.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any

import yaml


def read_json(path: Path) -> dict[str, Any]:
    """Read JSON file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def read_yaml(path: Path) -> Any:
    """Read a YAML file; an empty file reads as an empty mapping.

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If file is not valid YAML
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def read_document(path: Path) -> Any:
    """Read a .json file as JSON and anything else as YAML."""
    if path.suffix.lower() == ".json":
        return read_json(path)
    return read_yaml(path)


def write_json(path: Path, data: dict[str, Any], indent: int = 2) -> None:
    """Write JSON file atomically.

    Values JSON cannot represent (paths, datetimes) are written as strings.

    Args:
        path: Destination path for JSON file
        data: Data to write
        indent: Indentation level for pretty printing (default: 2)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            json.dump(data, tmp, indent=indent, ensure_ascii=False, default=str)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)
