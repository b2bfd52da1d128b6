# specforge/output/writer.py
"""
Output directory management and file writing for the finalize phase.

Every file is written atomically; a crash mid-finalize leaves complete
files or none, never a truncated one.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from specforge.errors import ErrorCode, SpecforgeError, make_error, normalize_exception
from specforge.storage import atomic_write_json, atomic_write_text

logger = logging.getLogger(__name__)

METADATA_FILE = ".specforge-metadata.json"


@dataclass
class WriteSummary:
    written_files: list[str] = field(default_factory=list)
    total_size: int = 0
    dry_run: bool = False

    @property
    def file_count(self) -> int:
        return len(self.written_files)


def ensure_output_dir(path: Path | str, overwrite: bool = False) -> Path:
    """
    Create the output directory, refusing to reuse a non-empty one.

    Raises:
        SpecforgeError: FILE_ALREADY_EXISTS if the path is a file,
            DIRECTORY_NOT_EMPTY if it has content and overwrite is False
    """
    path = Path(path)
    if path.exists() and not path.is_dir():
        raise SpecforgeError(
            make_error(ErrorCode.FILE_ALREADY_EXISTS, f"Output path is a file: {path}", path=str(path))
        )
    if path.is_dir() and not overwrite and any(path.iterdir()):
        raise SpecforgeError(
            make_error(ErrorCode.DIRECTORY_NOT_EMPTY, f"Output directory is not empty: {path}", path=str(path))
        )
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SpecforgeError(normalize_exception(e, str(path))) from e
    return path


def _safe_target(output_dir: Path, relative: str) -> Path:
    rel = PurePosixPath(relative)
    if rel.is_absolute() or ".." in rel.parts or not rel.parts:
        raise SpecforgeError(
            make_error(
                ErrorCode.GENERATION_FAILED,
                f"Refusing to write outside the output directory: {relative}",
                path=relative,
            )
        )
    return output_dir.joinpath(*rel.parts)


def write_files(output_dir: Path | str, files: dict[str, str], dry_run: bool = False) -> WriteSummary:
    """
    Write generated files under output_dir.

    In dry-run mode nothing touches the disk; the summary still reports what
    would have been written.
    """
    output_dir = Path(output_dir)
    summary = WriteSummary(dry_run=dry_run)
    for relative, content in sorted(files.items()):
        target = _safe_target(output_dir, relative)
        if not dry_run:
            try:
                atomic_write_text(target, content)
            except OSError as e:
                raise SpecforgeError(normalize_exception(e, str(target))) from e
        summary.written_files.append(relative)
        summary.total_size += len(content.encode("utf-8"))

    verb = "Would write" if dry_run else "Wrote"
    logger.info(f"{verb} {summary.file_count} files ({summary.total_size} bytes) to {output_dir}")
    return summary


def write_metadata(output_dir: Path | str, spec_hash: str, files: dict[str, str]) -> Path:
    """Write the generation manifest (.specforge-metadata.json) with per-file checksums."""
    path = Path(output_dir) / METADATA_FILE
    manifest = {
        "generator": "specforge",
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "specHash": spec_hash,
        "files": [
            {
                "path": relative,
                "size": len(content.encode("utf-8")),
                "checksum": hashlib.sha256(content.encode("utf-8")).hexdigest(),
            }
            for relative, content in sorted(files.items())
        ],
    }
    try:
        atomic_write_json(path, manifest)
    except OSError as e:
        raise SpecforgeError(normalize_exception(e, str(path))) from e
    return path
