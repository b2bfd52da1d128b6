# specforge/spec/__init__.py
"""Spec file handling: schema, loading and content fingerprints."""

from .fingerprint import (
    FingerprintStore,
    ModificationReport,
    SpecFingerprint,
    compute_file_hash,
    compute_hash,
    detect_modification,
    has_changed,
)
from .loader import SpecIssue, SpecValidation, load_spec, parse_spec, read_spec, validate_spec
from .schema import AppSpec

__all__ = [
    "AppSpec",
    "FingerprintStore",
    "ModificationReport",
    "SpecFingerprint",
    "SpecIssue",
    "SpecValidation",
    "compute_file_hash",
    "compute_hash",
    "detect_modification",
    "has_changed",
    "load_spec",
    "parse_spec",
    "read_spec",
    "validate_spec",
]
