# specforge/ai/operations.py
"""
AI operations on specs and generated files.

Each operation is one prompt/response exchange wrapped in with_retry: a
malformed or unusable response raises AI_RESPONSE_INVALID, which is
retryable, so the model is simply asked again.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from specforge.errors import ErrorCode, RetryStrategy, SpecforgeError, make_error, with_retry
from specforge.spec.loader import validate_spec

from .client import AIClient
from .json_extract import extract_json
from .prompts import build_enhance_messages, build_refine_messages, build_repair_messages

logger = logging.getLogger(__name__)


@dataclass
class RepairResult:
    spec: dict[str, Any]
    changes: list[dict[str, str]] = field(default_factory=list)


@dataclass
class EnhanceResult:
    spec: dict[str, Any]
    enhancements: list[dict[str, Any]] = field(default_factory=list)


def _invalid(message: str, **context: Any) -> SpecforgeError:
    return SpecforgeError(make_error(ErrorCode.AI_RESPONSE_INVALID, message, **context))


def _spec_from_response(payload: dict[str, Any]) -> dict[str, Any]:
    spec = payload.get("spec")
    if not isinstance(spec, dict):
        raise _invalid("AI response is missing the 'spec' object")
    return spec


async def _complete(client: AIClient, messages: list[dict]) -> str:
    text, model = await client.generate_with_fallback(messages)
    logger.debug(f"Got {len(text)} chars from {model}")
    return text


def _dict_items(payload: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = payload.get(key) or []
    if not isinstance(value, list):
        raise _invalid(f"AI response field '{key}' must be a list")
    return [item for item in value if isinstance(item, dict)]


async def repair_spec(
    client: AIClient,
    spec: dict[str, Any],
    issues: list[dict[str, str]],
    strategy: RetryStrategy | None = None,
    cancel_event: asyncio.Event | None = None,
) -> RepairResult:
    """
    Ask the model to fix validation errors.

    The repaired spec must itself validate; otherwise the attempt counts as
    an invalid response and is retried.
    """

    async def _attempt() -> RepairResult:
        payload = extract_json(await _complete(client, build_repair_messages(spec, issues)))
        repaired = _spec_from_response(payload)
        validation = validate_spec(repaired)
        if not validation.valid:
            raise _invalid(
                f"AI repair left {len(validation.issues)} validation error(s)",
                errors=[{"path": i.path, "message": i.message} for i in validation.issues],
            )
        changes = [
            {"path": str(c.get("path", "")), "description": str(c.get("description", ""))}
            for c in _dict_items(payload, "changes")
        ]
        return RepairResult(spec=repaired, changes=changes)

    result = await with_retry(_attempt, strategy=strategy, cancel_event=cancel_event)
    logger.info(f"AI repair applied {len(result.changes)} change(s)")
    return result


async def enhance_spec(
    client: AIClient,
    spec: dict[str, Any],
    strategy: RetryStrategy | None = None,
    cancel_event: asyncio.Event | None = None,
) -> EnhanceResult:
    """Ask the model to improve copy. An enhanced spec that no longer validates is retried."""

    async def _attempt() -> EnhanceResult:
        payload = extract_json(await _complete(client, build_enhance_messages(spec)))
        enhanced = _spec_from_response(payload)
        validation = validate_spec(enhanced)
        if not validation.valid:
            raise _invalid(f"AI enhancement produced an invalid spec ({len(validation.issues)} error(s))")
        enhancements = [
            {"path": str(e.get("path", "")), "before": e.get("before"), "after": e.get("after")}
            for e in _dict_items(payload, "enhancements")
        ]
        return EnhanceResult(spec=enhanced, enhancements=enhancements)

    result = await with_retry(_attempt, strategy=strategy, cancel_event=cancel_event)
    logger.info(f"AI enhancement suggested {len(result.enhancements)} change(s)")
    return result


async def refine_files(
    client: AIClient,
    project_name: str,
    files: dict[str, str],
    strategy: RetryStrategy | None = None,
    cancel_event: asyncio.Event | None = None,
) -> list[str]:
    """Ask the model to review generated files. Returns review notes."""

    async def _attempt() -> list[str]:
        payload = extract_json(await _complete(client, build_refine_messages(project_name, files)))
        notes = payload.get("notes")
        if not isinstance(notes, list):
            raise _invalid("AI response is missing the 'notes' list")
        return [str(n) for n in notes]

    return await with_retry(_attempt, strategy=strategy, cancel_event=cancel_event)
