# tests/unit/test_recovery.py
"""Unit tests for recovery strategies and the RecoveryManager."""

import os
import stat
from unittest.mock import MagicMock

import pytest

from specforge.errors import (
    ErrorCode,
    RecoveryContext,
    RecoveryManager,
    RecoveryMode,
    RecoveryStatus,
    make_error,
)
from specforge.errors.recovery import (
    CheckpointRecovery,
    CleanupRecovery,
    NetworkRecovery,
    PermissionRecovery,
    RecoveryOutcome,
    RecoveryStrategy,
)


def _confirm(answer: bool):
    return MagicMock(return_value=answer)


class TestSelection:
    @pytest.mark.parametrize(
        "code,strategy",
        [
            (ErrorCode.WORKFLOW_PHASE_FAILED, CheckpointRecovery),
            (ErrorCode.DIRECTORY_NOT_EMPTY, CleanupRecovery),
            (ErrorCode.FILE_ALREADY_EXISTS, CleanupRecovery),
            (ErrorCode.FILE_ACCESS_DENIED, PermissionRecovery),
            (ErrorCode.NETWORK_CONNECTION_FAILED, NetworkRecovery),
            (ErrorCode.NETWORK_TIMEOUT, NetworkRecovery),
            (ErrorCode.NETWORK_RATE_LIMIT, NetworkRecovery),
        ],
    )
    def test_selected_by_category(self, code, strategy):
        assert isinstance(RecoveryManager().select(make_error(code)), strategy)

    @pytest.mark.parametrize(
        "code",
        [ErrorCode.SPEC_VALIDATION_ERROR, ErrorCode.AUTH_TOKEN_INVALID, ErrorCode.WORKFLOW_LOCKED, ErrorCode.INTERNAL_ERROR],
    )
    def test_no_strategy(self, code):
        record = make_error(code)
        outcome = RecoveryManager().recover(record, RecoveryContext())
        assert outcome.status is RecoveryStatus.INAPPLICABLE
        assert outcome.actions == record.recovery_actions
        assert not outcome.recovered

    def test_added_strategy_takes_priority(self):
        class Always(RecoveryStrategy):
            name = "always"

            def can_recover(self, record):
                return True

            def recover(self, record, context, mode):
                return self._outcome(RecoveryStatus.RECOVERED, "done")

        manager = RecoveryManager()
        manager.add_strategy(Always())
        outcome = manager.recover(make_error(ErrorCode.NETWORK_TIMEOUT), RecoveryContext())
        assert outcome.strategy == "always"
        assert manager.strategies[0].name == "always"

    def test_strategy_exception_is_failed(self):
        class Broken(RecoveryStrategy):
            def can_recover(self, record):
                return True

            def recover(self, record, context, mode):
                raise RuntimeError("kaboom")

        outcome = RecoveryManager([Broken()]).recover(make_error(ErrorCode.INTERNAL_ERROR), RecoveryContext())
        assert outcome.status is RecoveryStatus.FAILED
        assert "kaboom" in outcome.message


class TestCheckpointRecovery:
    def test_without_checkpoint_inapplicable(self):
        outcome = CheckpointRecovery().recover(
            make_error(ErrorCode.WORKFLOW_PHASE_FAILED), RecoveryContext(), RecoveryMode.AUTOMATIC
        )
        assert outcome.status is RecoveryStatus.INAPPLICABLE

    def test_automatic_resumes(self):
        outcome = CheckpointRecovery().recover(
            make_error(ErrorCode.WORKFLOW_PHASE_FAILED), RecoveryContext(has_checkpoint=True), RecoveryMode.AUTOMATIC
        )
        assert outcome.recovered
        assert outcome.retry_phase

    def test_guided_declined(self):
        confirm = _confirm(False)
        outcome = CheckpointRecovery().recover(
            make_error(ErrorCode.WORKFLOW_PHASE_FAILED),
            RecoveryContext(has_checkpoint=True, confirm=confirm),
            RecoveryMode.GUIDED,
        )
        assert outcome.status is RecoveryStatus.DECLINED
        confirm.assert_called_once()
        prompt, actions = confirm.call_args.args
        assert actions == outcome.actions


class TestCleanupRecovery:
    def test_missing_path_counts_as_recovered(self, tmp_path):
        record = make_error(ErrorCode.DIRECTORY_NOT_EMPTY, path=str(tmp_path / "gone"))
        outcome = CleanupRecovery().recover(record, RecoveryContext(output_path=tmp_path), RecoveryMode.AUTOMATIC)
        assert outcome.recovered

    def test_automatic_never_deletes(self, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "file.txt").write_text("x")
        record = make_error(ErrorCode.DIRECTORY_NOT_EMPTY, path=str(out))
        outcome = CleanupRecovery().recover(record, RecoveryContext(output_path=out), RecoveryMode.AUTOMATIC)
        assert outcome.status is RecoveryStatus.DECLINED
        assert out.exists()
        assert any("rm -rf" in (a.command or "") for a in outcome.actions)

    def test_guided_confirmed_deletes(self, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "file.txt").write_text("x")
        record = make_error(ErrorCode.DIRECTORY_NOT_EMPTY, path=str(out))
        outcome = CleanupRecovery().recover(
            record, RecoveryContext(output_path=out, confirm=_confirm(True)), RecoveryMode.GUIDED
        )
        assert outcome.recovered
        assert outcome.retry_phase
        assert not out.exists()

    def test_guided_declined_keeps_files(self, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "file.txt").write_text("x")
        record = make_error(ErrorCode.DIRECTORY_NOT_EMPTY, path=str(out))
        outcome = CleanupRecovery().recover(
            record, RecoveryContext(output_path=out, confirm=_confirm(False)), RecoveryMode.GUIDED
        )
        assert outcome.status is RecoveryStatus.DECLINED
        assert out.exists()

    def test_never_deletes_outside_output_dir(self, tmp_path):
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        confirm = _confirm(True)
        record = make_error(ErrorCode.FILE_ALREADY_EXISTS, path=str(elsewhere))
        outcome = CleanupRecovery().recover(
            record, RecoveryContext(output_path=tmp_path / "out", confirm=confirm), RecoveryMode.GUIDED
        )
        assert outcome.status is RecoveryStatus.DECLINED
        assert elsewhere.exists()
        confirm.assert_not_called()

    def test_no_path_inapplicable(self, tmp_path):
        outcome = CleanupRecovery().recover(
            make_error(ErrorCode.DIRECTORY_NOT_EMPTY), RecoveryContext(output_path=tmp_path), RecoveryMode.GUIDED
        )
        assert outcome.status is RecoveryStatus.INAPPLICABLE


class TestPermissionRecovery:
    def test_automatic_surfaces_actions(self, tmp_path):
        target = tmp_path / "f.txt"
        target.write_text("x")
        outcome = PermissionRecovery().recover(
            make_error(ErrorCode.FILE_ACCESS_DENIED, path=str(target)), RecoveryContext(), RecoveryMode.AUTOMATIC
        )
        assert outcome.status is RecoveryStatus.DECLINED
        commands = [a.command for a in outcome.actions]
        assert f"ls -la {target}" in commands
        assert f"chmod u+rw {target}" in commands

    @pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
    def test_guided_applies_chmod(self, tmp_path):
        target = tmp_path / "f.txt"
        target.write_text("x")
        target.chmod(0o400)
        outcome = PermissionRecovery().recover(
            make_error(ErrorCode.FILE_ACCESS_DENIED, path=str(target)),
            RecoveryContext(confirm=_confirm(True)),
            RecoveryMode.GUIDED,
        )
        assert outcome.recovered
        assert target.stat().st_mode & stat.S_IWUSR


class TestNetworkRecovery:
    def test_automatic_does_not_rerun(self):
        outcome = NetworkRecovery().recover(
            make_error(ErrorCode.NETWORK_TIMEOUT), RecoveryContext(), RecoveryMode.AUTOMATIC
        )
        assert outcome.status is RecoveryStatus.DECLINED
        assert not outcome.retry_phase
        assert outcome.strategy == "network"
        assert any(a.command == "specforge onboard" for a in outcome.actions)

    def test_guided_confirmed_reruns_phase(self):
        confirm = _confirm(True)
        outcome = NetworkRecovery().recover(
            make_error(ErrorCode.NETWORK_TIMEOUT), RecoveryContext(confirm=confirm), RecoveryMode.GUIDED
        )
        assert outcome.recovered
        assert outcome.retry_phase
        confirm.assert_called_once()

    def test_guided_without_callback_declines(self):
        outcome = NetworkRecovery().recover(
            make_error(ErrorCode.NETWORK_TIMEOUT), RecoveryContext(), RecoveryMode.GUIDED
        )
        assert outcome.status is RecoveryStatus.DECLINED

    def test_outcome_type(self):
        outcome = RecoveryManager().recover(
            make_error(ErrorCode.NETWORK_RATE_LIMIT), RecoveryContext(), RecoveryMode.AUTOMATIC
        )
        assert isinstance(outcome, RecoveryOutcome)
        assert outcome.status is RecoveryStatus.DECLINED
