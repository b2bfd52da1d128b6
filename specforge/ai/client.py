# specforge/ai/client.py
"""Ollama client used by the AI phases (auth check, repair, enhancement, refinement)."""

import logging
from typing import Protocol

import httpx
from ollama import AsyncClient

from specforge.errors import ErrorCategory, ErrorCode, SpecforgeError, make_error, normalize_exception

logger = logging.getLogger(__name__)


class AIClient(Protocol):
    """What the workflow needs from an AI provider."""

    async def verify(self) -> None: ...

    async def generate_with_fallback(self, messages: list[dict]) -> tuple[str, str]: ...


class OllamaClient:
    """
    Async Ollama client.

    Every failure leaves this class as SpecforgeError so the retry executor
    can classify it by category.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        fallback_model: str | None = None,
        timeout: int = 300,
    ):
        """
        Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (e.g., "http://localhost:11434")
            model: Primary model name
            fallback_model: Fallback model on OOM (None to disable)
            timeout: Request timeout in seconds (generous for model loading)
        """
        self.base_url = base_url
        self.model = model
        self.fallback_model = fallback_model
        self.client = AsyncClient(host=base_url, timeout=httpx.Timeout(timeout))

    async def verify(self) -> None:
        """
        Check that the Ollama server is reachable.

        A missing model only logs a warning; Ollama pulls models on demand.

        Raises:
            SpecforgeError: AUTH_PROVIDER_UNAVAILABLE if the server cannot be
                reached, other categories for provider errors
        """
        try:
            response = await self.client.list()
        except Exception as e:
            record = normalize_exception(e)
            if record.category in (ErrorCategory.NETWORK, ErrorCategory.TIMEOUT):
                raise SpecforgeError(
                    make_error(
                        ErrorCode.AUTH_PROVIDER_UNAVAILABLE,
                        f"Cannot reach Ollama at {self.base_url}: {e}",
                        url=self.base_url,
                    )
                ) from e
            raise SpecforgeError(record) from e

        available = [m.model for m in response.models if m.model]
        model_base = self.model.split(":")[0]
        if not any(model_base in m or self.model == m for m in available):
            logger.warning(
                f"Model {self.model} not found in available models. "
                f"It can be pulled on demand during generation."
            )

    async def generate(self, messages: list[dict], model: str | None = None) -> str:
        """
        Generate a response from Ollama with streaming.

        Args:
            messages: Chat messages in format [{"role": "user", "content": "..."}]
            model: Model to use (defaults to self.model)

        Returns:
            Full accumulated response text.

        Raises:
            SpecforgeError: Normalized provider/network error
        """
        model = model or self.model
        logger.info(f"Generating with model={model}, messages={len(messages)}")

        accumulated = []
        try:
            async for chunk in await self.client.chat(model=model, messages=messages, stream=True):
                if content := chunk.get("message", {}).get("content"):
                    accumulated.append(content)
        except SpecforgeError:
            raise
        except Exception as e:
            raise SpecforgeError(normalize_exception(e)) from e

        result = "".join(accumulated)
        logger.info(f"Generated {len(result)} chars")
        return result

    async def generate_with_fallback(self, messages: list[dict]) -> tuple[str, str]:
        """
        Generate with automatic fallback to a smaller model on OOM.

        Returns:
            (response_text, model_used)
        """
        try:
            return await self.generate(messages, model=self.model), self.model
        except SpecforgeError as e:
            oom = (
                e.code is ErrorCode.AI_PROVIDER_ERROR
                and "requires more system memory" in e.record.message.lower()
            )
            if not oom or self.fallback_model is None:
                raise
            logger.warning(f"OOM error on {self.model}, falling back to {self.fallback_model}")
            return await self.generate(messages, model=self.fallback_model), self.fallback_model


def create_ai_client(config) -> OllamaClient:
    """Build the configured AI client from SpecforgeConfig."""
    if config.provider != "ollama":
        raise SpecforgeError(
            make_error(ErrorCode.AUTH_NOT_CONFIGURED, f"Unsupported AI provider: {config.provider}")
        )
    return OllamaClient(
        base_url=config.ollama.base_url,
        model=config.ollama.model,
        fallback_model=config.ollama.fallback_model,
        timeout=config.ollama.timeout,
    )
