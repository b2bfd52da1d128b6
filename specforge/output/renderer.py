# specforge/output/renderer.py
"""
Render generated source files from a validated spec.

Templates live in specforge/output/templates and are rendered with jinja2
using StrictUndefined, so a template referencing a missing spec field fails
loudly with TEMPLATE_ERROR instead of emitting empty strings.
"""

import logging
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from specforge.errors import ErrorCode, SpecforgeError, make_error
from specforge.spec.schema import AppSpec

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

LOGIN_LABELS = {
    "email": "Continue with email",
    "google": "Continue with Google",
    "apple": "Continue with Apple",
    "phone": "Continue with phone",
}


def _component_name(title: str, index: int) -> str:
    words = re.findall(r"[A-Za-z0-9]+", title)
    name = "".join(w[:1].upper() + w[1:] for w in words)
    if not name or not name[0].isalpha():
        name = f"Step{index}"
    return f"{name}Screen"


class TemplateRenderer:
    """Renders the onboarding project for one spec."""

    def __init__(self, template_dir: Path = TEMPLATE_DIR) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def render(self, spec: AppSpec) -> dict[str, str]:
        """
        Render all files for a spec.

        Returns:
            Mapping of relative output path -> file content

        Raises:
            SpecforgeError: TEMPLATE_ERROR if any template fails to render
        """
        context = spec.model_dump()
        step_screens = []
        used: set[str] = set()
        for i, step in enumerate(spec.steps, 1):
            component = _component_name(step.title, i)
            if component in used or component in ("WelcomeScreen", "LoginScreen"):
                component = f"Step{i}Screen"
            used.add(component)
            step_screens.append({"component": component, **step.model_dump()})
        context.update(step_screens=step_screens, method_labels=LOGIN_LABELS)

        files: dict[str, str] = {}
        try:
            files["src/theme.ts"] = self._render("theme.ts.j2", context)
            files["src/screens/WelcomeScreen.tsx"] = self._render("welcome.tsx.j2", context)
            for i, screen in enumerate(step_screens, 1):
                files[f"src/screens/{screen['component']}.tsx"] = self._render(
                    "step.tsx.j2",
                    {**context, "step": screen, "index": i, "total": len(step_screens),
                     "component": screen["component"]},
                )
            if spec.login is not None:
                files["src/screens/LoginScreen.tsx"] = self._render("login.tsx.j2", context)
            files["src/navigation/OnboardingNavigator.tsx"] = self._render("navigator.tsx.j2", context)
            files["README.md"] = self._render("readme.md.j2", context)
        except TemplateError as e:
            raise SpecforgeError(
                make_error(ErrorCode.TEMPLATE_ERROR, f"Template rendering failed: {e}")
            ) from e

        logger.info(f"Rendered {len(files)} files for {spec.project_name}")
        return files

    def _render(self, name: str, context: dict) -> str:
        return self._env.get_template(name).render(**context)
