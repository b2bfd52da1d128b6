# tests/unit/conftest.py
"""Shared fixtures: a valid spec file in a temp directory."""

import pytest
import yaml

VALID_SPEC = """\
project_name: Acme
bundle_id: com.acme.app
theme:
  primary: "#4F46E5"
  secondary: "#F59E0B"
welcome:
  headline: Welcome to Acme
  subtext: Everything in one place.
  cta: Get started
steps:
  - title: Track
    headline: Track your progress
    subtext: See how far you have come.
  - title: Share
    headline: Share with friends
    subtext: Keep each other going.
login:
  headline: Create your account
  methods: [email, google]
"""

# bundle_id fails the pattern, steps is empty
INVALID_SPEC = """\
project_name: Acme
bundle_id: Not A Bundle
theme:
  primary: "#4F46E5"
  secondary: "#F59E0B"
welcome:
  headline: Welcome
  subtext: Hi
  cta: Go
steps: []
"""


@pytest.fixture
def spec_file(tmp_path):
    path = tmp_path / "onboarding.yaml"
    path.write_text(VALID_SPEC, encoding="utf-8")
    return path


@pytest.fixture
def invalid_spec_file(tmp_path):
    path = tmp_path / "onboarding.yaml"
    path.write_text(INVALID_SPEC, encoding="utf-8")
    return path


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "out"


@pytest.fixture
def spec_data():
    """VALID_SPEC parsed into a dict (fresh copy per test)."""
    return yaml.safe_load(VALID_SPEC)
