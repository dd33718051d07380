# region Docstring
"""
gitops_cli.ledger
SQLite record of past runs.
Overview:
- Every finished RunReport is stored in two tables of a sqlite_utils Database:
    - runs: one row per run (operation, organizations, dry run flag, timestamps, counts,
        general errors).
    - repository_outcomes: one row per repository, linked to its run.
- recent() feeds the `gitops runs` command.
"""

# endregion
# region Imports
import json
from pathlib import Path
from typing import Any, Union

from sqlite_utils import Database

from gitops_core.models import RunReport

# endregion
# region Ledger


class RunLedger:
    __db__: Database

    def __init__(self, db: Union[Database, Path, str]) -> None:
        if isinstance(db, Database):
            self.__db__ = db
        else:
            path = Path(db)
            path.parent.mkdir(parents=True, exist_ok=True)
            self.__db__ = Database(path)
        self.__ensure_tables()

    def __ensure_tables(self) -> None:
        if "runs" not in self.__db__.table_names():
            self.__db__["runs"].create(
                {
                    "id": int,
                    "operation": str,
                    "organizations": str,
                    "dry_run": int,
                    "started_at": str,
                    "ended_at": str,
                    "succeeded": int,
                    "skipped": int,
                    "failed": int,
                    "general_errors": str,
                },
                pk="id",
            )
        if "repository_outcomes" not in self.__db__.table_names():
            self.__db__["repository_outcomes"].create(
                {
                    "id": int,
                    "run_id": int,
                    "repository": str,
                    "status": str,
                    "reason": str,
                    "ref": str,
                    "commit_sha": str,
                    "commit_status": str,
                    "recorded_at": str,
                },
                pk="id",
                foreign_keys=[("run_id", "runs", "id")],
            )

    @property
    def db(self) -> Database:
        return self.__db__

    def record(self, report: RunReport) -> int:
        """Store *report* and return the id of its run row."""
        data = report.model_dump(mode="json")
        table = self.__db__["runs"].insert(
            {
                "operation": report.operation,
                "organizations": json.dumps(report.organizations),
                "dry_run": int(report.dry_run),
                "started_at": data["started_at"],
                "ended_at": data["ended_at"],
                "succeeded": len(report.succeeded),
                "skipped": len(report.skipped),
                "failed": len(report.failed),
                "general_errors": json.dumps(report.general_errors),
            }
        )
        run_id = table.last_pk
        self.__db__["repository_outcomes"].insert_all(
            [{"run_id": run_id, **outcome} for outcome in data["outcomes"]]
        )
        return run_id

    def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        rows = self.__db__["runs"].rows_where(order_by="id desc", limit=limit)
        return [
            {
                **row,
                "organizations": json.loads(row["organizations"] or "[]"),
                "general_errors": json.loads(row["general_errors"] or "[]"),
                "dry_run": bool(row["dry_run"]),
            }
            for row in rows
        ]

    def outcomes(self, run_id: int) -> list[dict[str, Any]]:
        return list(
            self.__db__["repository_outcomes"].rows_where(
                "run_id = ?", [run_id], order_by="id"
            )
        )


# endregion
