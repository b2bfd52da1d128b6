# tests/unit/test_ai.py
"""Unit tests for JSON extraction, prompts, AI operations and the Ollama client."""

import json
from copy import deepcopy
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from ollama import ResponseError

from specforge.ai import (
    OllamaClient,
    create_ai_client,
    enhance_spec,
    extract_json,
    refine_files,
    repair_spec,
)
from specforge.ai.prompts import SYSTEM_PROMPT, build_refine_messages, build_repair_messages
from specforge.config import SpecforgeConfig
from specforge.errors import ErrorCode, RetryStrategy, SpecforgeError, make_error

FAST = RetryStrategy(max_retries=2, initial_delay=0, max_delay=0, jitter=0)


def _client(*responses) -> AsyncMock:
    client = AsyncMock()
    client.generate_with_fallback.side_effect = [
        (r if isinstance(r, str) else json.dumps(r), "qwen2.5:14b") for r in responses
    ]
    return client


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        raw = 'Here you go:\n```json\n{"notes": ["x"]}\n```\nThanks!'
        assert extract_json(raw) == {"notes": ["x"]}

    def test_embedded_object(self):
        raw = 'Sure. {"spec": {"a": 1}, "changes": []} Hope that helps.'
        assert extract_json(raw) == {"spec": {"a": 1}, "changes": []}

    def test_skips_non_object_candidates(self):
        raw = '[1, 2] and then {"ok": true}'
        assert extract_json(raw) == {"ok": True}

    @pytest.mark.parametrize("raw", ["", "no json here", "[1, 2, 3]", "{broken"])
    def test_no_object(self, raw):
        with pytest.raises(SpecforgeError) as exc_info:
            extract_json(raw)
        assert exc_info.value.code is ErrorCode.AI_RESPONSE_INVALID
        assert exc_info.value.record.can_retry


class TestPrompts:
    def test_repair_messages(self):
        messages = build_repair_messages({"project_name": "Acme"}, [{"path": "steps", "message": "too short"}])
        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert '"project_name": "Acme"' in messages[1]["content"]
        assert "- steps: too short" in messages[1]["content"]

    def test_refine_messages_list_files(self):
        content = build_refine_messages("Acme", {"README.md": "# Acme"})[1]["content"]
        assert "--- README.md ---" in content
        assert '"Acme"' in content


@pytest.mark.asyncio
class TestRepairSpec:
    async def test_returns_repaired_spec(self, spec_data):
        client = _client({"spec": spec_data, "changes": [{"path": "steps", "description": "added"}]})
        result = await repair_spec(client, {"project_name": "Acme"}, [], strategy=FAST)
        assert result.spec == spec_data
        assert result.changes == [{"path": "steps", "description": "added"}]

    async def test_retries_invalid_response(self, spec_data):
        client = _client("I cannot do that", {"spec": spec_data, "changes": []})
        result = await repair_spec(client, {}, [], strategy=FAST)
        assert result.spec == spec_data
        assert client.generate_with_fallback.await_count == 2

    async def test_retries_when_repair_still_invalid(self, spec_data):
        broken = deepcopy(spec_data)
        broken["steps"] = []
        client = _client({"spec": broken}, {"spec": spec_data})
        result = await repair_spec(client, {}, [], strategy=FAST)
        assert result.spec["steps"]
        assert client.generate_with_fallback.await_count == 2

    async def test_gives_up_after_retries(self):
        client = _client(*["nope"] * 3)
        with pytest.raises(SpecforgeError) as exc_info:
            await repair_spec(client, {}, [], strategy=FAST)
        assert exc_info.value.code is ErrorCode.AI_RESPONSE_INVALID
        assert client.generate_with_fallback.await_count == 3

    async def test_missing_spec_key(self):
        client = _client({"changes": []})
        with pytest.raises(SpecforgeError):
            await repair_spec(client, {}, [], strategy=RetryStrategy(max_retries=0))


@pytest.mark.asyncio
class TestEnhanceSpec:
    async def test_collects_enhancements(self, spec_data):
        improved = deepcopy(spec_data)
        improved["welcome"]["cta"] = "Start now"
        client = _client(
            {"spec": improved, "enhancements": [{"path": "welcome.cta", "before": "Get started", "after": "Start now"}]}
        )
        result = await enhance_spec(client, spec_data, strategy=FAST)
        assert result.spec["welcome"]["cta"] == "Start now"
        assert result.enhancements[0]["before"] == "Get started"

    async def test_non_list_enhancements_is_invalid(self, spec_data):
        client = _client({"spec": spec_data, "enhancements": "lots"})
        with pytest.raises(SpecforgeError):
            await enhance_spec(client, spec_data, strategy=RetryStrategy(max_retries=0))


@pytest.mark.asyncio
class TestRefineFiles:
    async def test_notes(self):
        client = _client({"notes": ["Use a darker text color", 3]})
        assert await refine_files(client, "Acme", {"a.ts": ""}, strategy=FAST) == ["Use a darker text color", "3"]

    async def test_missing_notes_retried(self):
        client = _client({"comments": []}, {"notes": []})
        assert await refine_files(client, "Acme", {}, strategy=FAST) == []
        assert client.generate_with_fallback.await_count == 2


@pytest.mark.asyncio
class TestOllamaClient:
    def _client(self, fallback=None) -> OllamaClient:
        client = OllamaClient(base_url="http://localhost:11434", model="qwen2.5:14b", fallback_model=fallback)
        client.client = MagicMock()
        return client

    async def test_verify_ok(self):
        client = self._client()
        client.client.list = AsyncMock(return_value=MagicMock(models=[MagicMock(model="qwen2.5:14b")]))
        await client.verify()

    async def test_verify_unreachable(self):
        client = self._client()
        client.client.list = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(SpecforgeError) as exc_info:
            await client.verify()
        assert exc_info.value.code is ErrorCode.AUTH_PROVIDER_UNAVAILABLE

    async def test_generate_accumulates_stream(self):
        async def _stream():
            for part in ('{"notes"', ': []}'):
                yield {"message": {"content": part}}

        client = self._client()
        client.client.chat = AsyncMock(return_value=_stream())
        assert await client.generate([{"role": "user", "content": "hi"}]) == '{"notes": []}'

    async def test_generate_normalizes_errors(self):
        client = self._client()
        client.client.chat = AsyncMock(side_effect=ResponseError("boom", 500))
        with pytest.raises(SpecforgeError) as exc_info:
            await client.generate([])
        assert exc_info.value.code is ErrorCode.AI_PROVIDER_ERROR

    async def test_fallback_on_oom(self):
        client = self._client(fallback="qwen2.5:3b")
        client.generate = AsyncMock(
            side_effect=[
                SpecforgeError(make_error(ErrorCode.AI_PROVIDER_ERROR, "model requires more system memory")),
                "ok",
            ]
        )
        text, model = await client.generate_with_fallback([])
        assert (text, model) == ("ok", "qwen2.5:3b")
        assert client.generate.call_args.kwargs["model"] == "qwen2.5:3b"

    async def test_no_fallback_for_other_errors(self):
        client = self._client(fallback="qwen2.5:3b")
        client.generate = AsyncMock(side_effect=SpecforgeError(make_error(ErrorCode.AI_PROVIDER_ERROR, "boom")))
        with pytest.raises(SpecforgeError):
            await client.generate_with_fallback([])
        assert client.generate.await_count == 1

    async def test_create_from_config(self):
        config = SpecforgeConfig(ollama={"model": "llama3", "fallback_model": "llama3:8b"})
        client = create_ai_client(config)
        assert client.model == "llama3"
        assert client.fallback_model == "llama3:8b"


@pytest.mark.asyncio
class TestModelFallback:
    """AI operations against a real OllamaClient whose server runs out of memory."""

    OOM = "model requires more system memory (18.2 GiB) than is available (9.1 GiB)"

    def _client(self, fallback=None) -> OllamaClient:
        client = OllamaClient(base_url="http://localhost:11434", model="qwen2.5:14b", fallback_model=fallback)
        client.client = MagicMock()
        return client

    @staticmethod
    async def _stream(text):
        yield {"message": {"content": text}}

    async def test_operation_uses_fallback_model(self):
        client = self._client(fallback="qwen2.5:3b")
        client.client.chat = AsyncMock(
            side_effect=[ResponseError(self.OOM, 500), self._stream('{"notes": ["Looks good"]}')]
        )
        notes = await refine_files(client, "Acme", {"a.ts": ""}, strategy=FAST)
        assert notes == ["Looks good"]
        assert [c.kwargs["model"] for c in client.client.chat.call_args_list] == ["qwen2.5:14b", "qwen2.5:3b"]

    async def test_oom_without_fallback_fails_fast(self):
        client = self._client()
        client.client.chat = AsyncMock(side_effect=ResponseError(self.OOM, 500))
        with pytest.raises(SpecforgeError) as exc_info:
            await refine_files(client, "Acme", {}, strategy=FAST)
        assert exc_info.value.code is ErrorCode.AI_PROVIDER_ERROR
        assert client.client.chat.await_count == 1
