# specforge/output/__init__.py
"""Template rendering and output writing."""

from .renderer import TemplateRenderer
from .writer import METADATA_FILE, WriteSummary, ensure_output_dir, write_files, write_metadata

__all__ = [
    "TemplateRenderer",
    "METADATA_FILE",
    "WriteSummary",
    "ensure_output_dir",
    "write_files",
    "write_metadata",
]
