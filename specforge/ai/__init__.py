# specforge/ai/__init__.py
"""AI integration: Ollama client, prompts and spec operations."""

from .client import AIClient, OllamaClient, create_ai_client
from .json_extract import extract_json
from .operations import EnhanceResult, RepairResult, enhance_spec, refine_files, repair_spec

__all__ = [
    "AIClient",
    "OllamaClient",
    "create_ai_client",
    "extract_json",
    "EnhanceResult",
    "RepairResult",
    "enhance_spec",
    "refine_files",
    "repair_spec",
]
