"""Atomic JSON and text file helpers for the persisted archive store."""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"


def read_json(path: PathLike, default: Any = None) -> Any:
    """Read a JSON document.

    Args:
        path: Path to the JSON file.
        default: Value returned when the file is missing or unreadable.

    Returns:
        The decoded value or `default`.
    """
    p = Path(path)
    if not p.exists():
        return default
    try:
        with p.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to read JSON from {p}: {e}")
        return default


def write_bytes(path: PathLike, content: bytes) -> None:
    """Write bytes to `path` atomically.

    The content goes to a temporary file in the same directory which then
    replaces the target, so readers never observe a partial write.
    """
    p = Path(path)
    dir_name = p.parent
    dir_name.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=str(dir_name))
    try:
        with os.fdopen(fd, "wb") as tmpf:
            tmpf.write(content)
        os.replace(tmp_path, p)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def write_text(path: PathLike, content: str) -> None:
    """Write UTF-8 text to `path` atomically."""
    write_bytes(path, content.encode("utf-8"))


def write_json(path: PathLike, value: Any, indent: Optional[int] = 2) -> None:
    """Serialize `value` as JSON and write it atomically to `path`."""
    write_text(path, json.dumps(value, ensure_ascii=False, indent=indent))


def copy_static_assets(dest: PathLike) -> None:
    """Copy the bundled stylesheet and other static files into `dest`."""
    target = Path(dest)
    target.mkdir(parents=True, exist_ok=True)
    shutil.copytree(STATIC_DIR, target, dirs_exist_ok=True)
    logger.debug(f"Copied static assets to {target}")
