# region Docstring
"""
gitops_core.models.results
Result and report models exchanged between the services and the CLI.
Overview:
- StepResult is the value every per-repository step returns; the driver decides whether
    to continue by looking at its status instead of catching exceptions across the loop.
- CommitOutcome and MergePlan describe what the tree merge did (or would do).
- RepositoryOutcome and RunReport collect a whole batch for rendering and persistence.
Contents:
- StepStatus: ok / skip / fail.
- StepResult[T]: Generic result with ok(), skip() and fail() constructors.
- MergePlan: Added, modified and removed paths, blobs created and the tree delta.
- CommitOutcome: committed / no_op / dry_run / conflict with the plan and new hashes.
- RepositoryOutcome: Final status of one repository in a run.
- RunReport: All outcomes of a run plus organization-level errors.
"""

# endregion
# region Imports
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer

# endregion
# region Step Results

T = TypeVar("T")


def get_time() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    OK = "ok"
    SKIP = "skip"
    FAIL = "fail"


class StepResult(BaseModel, Generic[T]):
    """
    Outcome of a single per-repository step.

    Attributes:
        status (StepStatus): ok, skip or fail.
        value (Optional[T]): Payload of an ok result, or details of a skip.
        reason (Optional[str]): Human readable reason for skip and fail results.
        error (Optional[Exception]): The exception behind a fail result.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: StepStatus
    value: Optional[T] = None
    reason: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, value: Any = None) -> "StepResult":
        return cls(status=StepStatus.OK, value=value)

    @classmethod
    def skip(cls, reason: str, value: Any = None) -> "StepResult":
        return cls(status=StepStatus.SKIP, reason=reason, value=value)

    @classmethod
    def fail(cls, error: Exception, reason: Optional[str] = None) -> "StepResult":
        return cls(status=StepStatus.FAIL, error=error, reason=reason or str(error))

    @property
    def is_ok(self) -> bool:
        return self.status is StepStatus.OK

    @property
    def is_skip(self) -> bool:
        return self.status is StepStatus.SKIP

    @property
    def is_fail(self) -> bool:
        return self.status is StepStatus.FAIL


# endregion
# region Commit Outcome


class MergePlan(BaseModel):
    """What a merge changes relative to the original tree."""

    added: list[str] = Field(default_factory=list, description="New paths")
    modified: list[str] = Field(
        default_factory=list, description="Paths whose content or mode changed"
    )
    removed: list[str] = Field(default_factory=list, description="Deleted paths")
    unchanged: list[str] = Field(
        default_factory=list, description="Staged paths identical to the original"
    )
    blobs_required: int = Field(
        default=0, description="Staged contents unknown to the original tree"
    )
    blobs_created: int = Field(default=0, description="Blob objects written")
    tree_delta: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Entries sent on top of base_tree; deletions carry sha None",
    )

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)

    def summary(self) -> str:
        return (
            f"{len(self.added)} added, {len(self.modified)} modified, "
            f"{len(self.removed)} removed"
        )


CommitStatus = Literal["committed", "no_op", "dry_run", "conflict"]


class CommitOutcome(BaseModel):
    """
    Result of the tree merge and commit builder.
    """

    status: CommitStatus
    ref: str
    base_commit_sha: str
    plan: MergePlan = Field(default_factory=MergePlan)
    tree_sha: Optional[str] = None
    commit_sha: Optional[str] = None
    message: Optional[str] = None
    detail: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.status == "committed"


# endregion
# region Run Report

RepositoryStatus = Literal["succeeded", "skipped", "failed"]


class RepositoryOutcome(BaseModel):
    """Final status of one repository within a run."""

    repository: str = Field(..., description="'<owner>/<name>'")
    status: RepositoryStatus
    reason: Optional[str] = None
    ref: Optional[str] = None
    commit_sha: Optional[str] = None
    commit_status: Optional[CommitStatus] = None
    recorded_at: datetime = Field(default_factory=get_time)

    @field_serializer("recorded_at")
    def serialize_recorded_at(self, v: datetime) -> str:
        return v.isoformat()


class RunReport(BaseModel):
    """
    Everything that happened in one run of an operation across organizations.
    """

    operation: str
    organizations: list[str] = Field(default_factory=list)
    dry_run: bool = False
    started_at: datetime = Field(default_factory=get_time)
    ended_at: Optional[datetime] = None
    outcomes: list[RepositoryOutcome] = Field(default_factory=list)
    general_errors: list[str] = Field(default_factory=list)

    @field_serializer("started_at", "ended_at")
    def serialize_datetimes(self, v: Optional[datetime]) -> Optional[str]:
        return v.isoformat() if v else None

    def record(
        self,
        repository: str,
        status: RepositoryStatus,
        reason: Optional[str] = None,
        **kwargs: Any,
    ) -> RepositoryOutcome:
        outcome = RepositoryOutcome(
            repository=repository, status=status, reason=reason, **kwargs
        )
        self.outcomes.append(outcome)
        return outcome

    def finish(self) -> "RunReport":
        self.ended_at = get_time()
        return self

    def _with_status(self, status: RepositoryStatus) -> list[RepositoryOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> list[RepositoryOutcome]:
        return self._with_status("succeeded")

    @property
    def skipped(self) -> list[RepositoryOutcome]:
        return self._with_status("skipped")

    @property
    def failed(self) -> list[RepositoryOutcome]:
        return self._with_status("failed")

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()


# endregion

__all__ = [
    "CommitOutcome",
    "CommitStatus",
    "MergePlan",
    "RepositoryOutcome",
    "RepositoryStatus",
    "RunReport",
    "StepResult",
    "StepStatus",
]
