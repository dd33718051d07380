"""
Tests for the run ledger and the logging setup.
"""

import json
import logging

import pytest
from sqlite_utils import Database

from gitops_cli.ledger import RunLedger
from gitops_cli.logger import (
    LOGGER_NAME,
    _manage_logfile_archives,
    build_config,
    configure_logging,
    log_file_paths,
)
from gitops_core.config import LoggingSettings
from gitops_core.models import RunReport

# region Test RunLedger


@pytest.fixture
def ledger() -> RunLedger:
    return RunLedger(Database(memory=True))


def report(operation: str = "rename-file") -> RunReport:
    run = RunReport(operation=operation, organizations=["acme", "globex"], dry_run=True)
    run.record("acme/api", "succeeded", ref="heads/main", commit_sha="abc", commit_status="dry_run")
    run.record("acme/web", "failed", "boom", ref="heads/main")
    run.general_errors.append("Failed to list repositories for the globex organization")
    return run.finish()


class TestRunLedger:
    def test_tables_created(self, ledger: RunLedger):
        assert set(ledger.db.table_names()) >= {"runs", "repository_outcomes"}

    def test_record_and_recent(self, ledger: RunLedger):
        first = ledger.record(report("rename-file"))
        second = ledger.record(report("find-and-replace"))
        assert second > first
        runs = ledger.recent()
        assert [r["operation"] for r in runs] == ["find-and-replace", "rename-file"]
        assert runs[0]["organizations"] == ["acme", "globex"]
        assert runs[0]["dry_run"] is True
        assert runs[0]["succeeded"] == 1 and runs[0]["failed"] == 1
        assert len(runs[0]["general_errors"]) == 1
        assert len(ledger.recent(limit=1)) == 1

    def test_outcomes(self, ledger: RunLedger):
        run_id = ledger.record(report())
        rows = ledger.outcomes(run_id)
        assert [r["repository"] for r in rows] == ["acme/api", "acme/web"]
        assert rows[0]["commit_status"] == "dry_run"
        assert rows[1]["reason"] == "boom"
        assert ledger.outcomes(run_id + 1) == []

    def test_file_database(self, tmp_path):
        path = tmp_path / "cache" / "runs.db"
        RunLedger(path).record(report())
        assert path.exists()
        assert len(RunLedger(path).recent()) == 1


# endregion
# region Test Logging


class TestLogging:
    def test_build_config_levels(self, tmp_path):
        config = build_config(tmp_path, "WARNING")
        assert config["handlers"]["console"]["level"] == "WARNING"
        assert config["handlers"]["error_file"]["level"] == "ERROR"
        assert config["loggers"][LOGGER_NAME]["level"] == "INFO"
        assert build_config(tmp_path, "DEBUG")["loggers"][LOGGER_NAME]["level"] == "DEBUG"

    def test_archives_are_pruned(self, tmp_path):
        log_file = tmp_path / "gitops_output.jsonl"
        for i in range(5):
            (tmp_path / f"gitops_output_2024010{i}_000000_000000.jsonl").write_text("{}")
        deleted = _manage_logfile_archives(log_file, archives_to_keep=2)
        assert len(deleted) == 3
        remaining = sorted(p.name for p in tmp_path.glob("gitops_output_*.jsonl"))
        assert remaining == [
            "gitops_output_20240103_000000_000000.jsonl",
            "gitops_output_20240104_000000_000000.jsonl",
        ]

    def test_configure_logging_writes_json_lines(self, app_env):
        settings = LoggingSettings()
        paths = log_file_paths(settings.log_dir)
        logger = configure_logging(settings, "INFO")
        logger.getChild("OperationDriver").error("boom", extra={"repository": "acme/api"})
        for handler in logger.handlers:
            handler.flush()

        lines = paths["error"].read_text().strip().splitlines()
        record = json.loads(lines[-1])
        assert record["message"] == "boom"
        assert record["repository"] == "acme/api"
        assert record["name"] == "gitops.OperationDriver"
        assert paths["output"].exists()

    def test_previous_logs_are_archived(self, app_env):
        settings = LoggingSettings()
        output = log_file_paths(settings.log_dir)["output"]
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text('{"message": "previous run"}\n')
        configure_logging(settings)
        archives = list(output.parent.glob("gitops_output_*.jsonl"))
        assert len(archives) == 1
        assert "previous run" in archives[0].read_text()
        assert logging.getLogger(LOGGER_NAME).level == logging.INFO


# endregion
