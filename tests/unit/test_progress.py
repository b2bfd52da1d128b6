# tests/unit/test_progress.py
"""Unit tests for the progress tracker and logging setup."""

import io
import json
import logging

import pytest
from rich.console import Console

from specforge.logging_config import JsonFormatter, configure_logging
from specforge.workflow import ProgressTracker, WorkflowPhase


def _tracker(**kwargs) -> tuple[ProgressTracker, io.StringIO]:
    buffer = io.StringIO()
    console = Console(file=buffer, width=120, no_color=True)
    return ProgressTracker(console=console, **kwargs), buffer


class TestProgressTracker:
    def test_phase_lifecycle(self):
        tracker, out = _tracker()
        tracker.start_phase(WorkflowPhase.AUTH_CHECK)
        tracker.skip_phase(WorkflowPhase.AUTH_CHECK, "AI features disabled")
        tracker.start_phase(WorkflowPhase.SPEC_CHECK)
        tracker.complete_phase(WorkflowPhase.SPEC_CHECK, "Spec is valid")

        text = out.getvalue()
        assert "[1/7] Auth Check" in text
        assert "AI features disabled" in text
        assert "Spec Check - Spec is valid" in text
        assert tracker.summary_for(WorkflowPhase.AUTH_CHECK).skipped
        assert tracker.summary_for(WorkflowPhase.SPEC_CHECK).duration is not None
        assert tracker.progress() == 28

    def test_failed_phase_can_restart(self):
        tracker, _ = _tracker()
        tracker.start_phase(WorkflowPhase.AUTH_CHECK)
        tracker.fail_phase(WorkflowPhase.AUTH_CHECK, "unreachable")
        assert tracker.summary_for(WorkflowPhase.AUTH_CHECK).failed
        tracker.start_phase(WorkflowPhase.AUTH_CHECK)
        assert not tracker.summary_for(WorkflowPhase.AUTH_CHECK).failed

    def test_resume_marks_earlier_phases(self):
        tracker, out = _tracker()
        tracker.show_resuming(WorkflowPhase.GENERATION, "3 minutes ago")
        assert tracker.progress() == 400 // 7
        assert not tracker.summary_for(WorkflowPhase.GENERATION).completed
        assert "Resuming from Generation" in out.getvalue()

    def test_start_phase_argument(self):
        tracker, _ = _tracker(start_phase=WorkflowPhase.REPAIR)
        assert [s.completed for s in tracker.phases][:3] == [True, True, False]

    def test_summary_table(self):
        tracker, out = _tracker()
        tracker.skip_phase(WorkflowPhase.AUTH_CHECK, "off")
        tracker.show_summary()
        text = out.getvalue()
        assert "Workflow Summary" in text
        assert "(skipped)" in text
        assert "Completed: 0/7" in text


class TestLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    @pytest.mark.parametrize(
        "verbosity,level", [("quiet", logging.WARNING), ("normal", logging.INFO), ("verbose", logging.DEBUG)]
    )
    def test_levels(self, verbosity, level):
        configure_logging(verbosity)
        root = logging.getLogger()
        assert root.level == level
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_repeated_calls_do_not_stack(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_json_formatter(self):
        record = logging.LogRecord("specforge.workflow", logging.INFO, __file__, 1, "Saved %s", ("x",), None)
        data = json.loads(JsonFormatter().format(record))
        assert data["level"] == "INFO"
        assert data["logger"] == "specforge.workflow"
        assert data["msg"] == "Saved x"
