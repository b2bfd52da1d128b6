# specforge/storage.py
"""
Small file helpers shared by the fingerprint store, checkpoint store and
output writer.

Writes go through a temp file in the target directory, are fsynced and then
moved into place with os.replace, so readers see either the old or the new
content and never a torn file.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

STATE_DIR_NAME = ".specforge"


def state_dir(spec_path: Path | str, dir_name: str = STATE_DIR_NAME) -> Path:
    """Metadata directory that sits next to the spec file."""
    return Path(spec_path).resolve().parent / dir_name


def atomic_write_bytes(path: Path | str, data: bytes) -> None:
    """
    Write bytes atomically by writing to a temp file then renaming.

    Args:
        path: Target file path (parent directories are created)
        data: Content to write
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def atomic_write_text(path: Path | str, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8"))


def atomic_write_json(path: Path | str, data: Any) -> None:
    """Write JSON data atomically (indented, human-readable)."""
    atomic_write_text(path, json.dumps(data, indent=2, default=str) + "\n")


def load_json(path: Path | str) -> Any | None:
    """
    Load JSON data from a file.

    Returns:
        Parsed JSON data, or None if the file is missing, unreadable or invalid.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
