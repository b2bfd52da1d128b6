# specforge/__init__.py
"""
specforge: generate onboarding screens from a YAML spec.

A sequential, checkpointed seven-phase workflow that validates the spec,
optionally repairs and enhances it with a local model, renders source files
and writes them out, resuming after crashes at the last completed phase.
"""

__version__ = "0.1.0"
