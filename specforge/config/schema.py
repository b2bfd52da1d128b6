# specforge/config/schema.py
"""
Pydantic configuration models for specforge.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from specforge.errors.retry import RetryStrategy


class OllamaConfig(BaseModel):
    """Ollama server configuration."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = Field(
        default="http://localhost:11434", description="Ollama API base URL"
    )
    model: str = Field(
        default="qwen2.5:14b-instruct",
        description="Ollama model used for spec repair, enhancement and refinement",
    )
    fallback_model: str | None = Field(
        default=None,
        description="Fallback model on OOM errors (None to disable)",
    )
    timeout: int = Field(
        default=300, description="Request timeout in seconds (generous for model loading)"
    )


class RetryConfig(BaseModel):
    """Backoff settings for AI and network calls. Delays are in seconds."""

    model_config = ConfigDict(extra="ignore")

    max_retries: int = Field(default=3, ge=0, le=10)
    initial_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=8.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    jitter: float = Field(default=0.1, ge=0.0, le=1.0)

    def to_strategy(self) -> RetryStrategy:
        return RetryStrategy(**self.model_dump())


class WorkflowConfig(BaseModel):
    """Checkpointing and locking behaviour."""

    model_config = ConfigDict(extra="ignore")

    state_dir: str = Field(
        default=".specforge",
        description="Metadata directory created next to the spec file",
    )
    lock_stale_after: float = Field(
        default=6 * 3600.0,
        gt=0,
        description="Seconds after which a run lock is considered abandoned",
    )
    skip_refinement: bool = Field(
        default=True, description="Skip the optional AI refinement phase"
    )
    clear_on_success: bool = Field(
        default=True, description="Delete the checkpoint after a successful run"
    )


class OutputConfig(BaseModel):
    """Output and file path configuration."""

    model_config = ConfigDict(extra="ignore")

    output_dir: str = Field(
        default="onboarding",
        description="Default output directory (relative to the working directory)",
    )
    verbosity: Literal["quiet", "normal", "verbose"] = Field(
        default="normal", description="Logging verbosity level"
    )


class SpecforgeConfig(BaseModel):
    """Root configuration for specforge."""

    model_config = ConfigDict(extra="ignore")

    provider: Literal["ollama"] = Field(
        default="ollama", description="AI provider to use"
    )
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
