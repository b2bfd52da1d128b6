# specforge/config/__init__.py
"""Configuration system for specforge."""

from .loader import get_config_path, load_config
from .schema import (
    OllamaConfig,
    OutputConfig,
    RetryConfig,
    SpecforgeConfig,
    WorkflowConfig,
)

__all__ = [
    "SpecforgeConfig",
    "OllamaConfig",
    "RetryConfig",
    "WorkflowConfig",
    "OutputConfig",
    "load_config",
    "get_config_path",
]
