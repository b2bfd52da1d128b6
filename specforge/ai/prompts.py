# specforge/ai/prompts.py
"""Prompt templates for the AI phases, rendered with jinja2."""

import json
from typing import Any

from jinja2 import Environment, StrictUndefined

SYSTEM_PROMPT = (
    "You are an expert mobile product designer and copywriter. You edit onboarding app "
    "specifications written in YAML/JSON. You keep the user's intent, fix only what is "
    "needed, and always answer with a single JSON object and nothing else."
)

_env = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=True)
_env.filters["tojson_pretty"] = lambda value: json.dumps(value, indent=2, ensure_ascii=False)

REPAIR_TEMPLATE = _env.from_string(
    """The following onboarding spec failed validation.

Spec:
{{ spec | tojson_pretty }}

Validation errors:
{% for issue in issues %}- {{ issue.path }}: {{ issue.message }}
{% endfor %}
Fix every error with the smallest possible change. Do not remove screens or steps.
Respond with JSON of the form:
{"spec": <the corrected spec>, "changes": [{"path": "<dotted path>", "description": "<what changed>"}]}
"""
)

ENHANCE_TEMPLATE = _env.from_string(
    """Improve the copy of this onboarding spec: headlines should be short and concrete,
subtext should explain the benefit, calls to action should be verbs. Do not change
structure, colors, identifiers or the number of steps.

Spec:
{{ spec | tojson_pretty }}

Respond with JSON of the form:
{"spec": <the improved spec>, "enhancements": [{"path": "<dotted path>", "before": <old>, "after": <new>}]}
"""
)

REFINE_TEMPLATE = _env.from_string(
    """Review these generated files for the onboarding app "{{ project_name }}".
{% for path, content in files.items() %}
--- {{ path }} ---
{{ content }}
{% endfor %}
Point out problems (inconsistent copy, accessibility issues, obvious bugs).
Respond with JSON of the form: {"notes": ["<note>", ...]}
"""
)


def _messages(user_content: str) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_content},
    ]


def build_repair_messages(spec: dict[str, Any], issues: list[dict[str, str]]) -> list[dict]:
    return _messages(REPAIR_TEMPLATE.render(spec=spec, issues=issues))


def build_enhance_messages(spec: dict[str, Any]) -> list[dict]:
    return _messages(ENHANCE_TEMPLATE.render(spec=spec))


def build_refine_messages(project_name: str, files: dict[str, str]) -> list[dict]:
    return _messages(REFINE_TEMPLATE.render(project_name=project_name, files=files))
