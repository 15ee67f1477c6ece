"""Request and outcome types for the revert engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from git import Commit

from autorevert.errors import MergeConflictError, MergeFailureError
from autorevert.models import CommitInfo
from autorevert.revert.content_merge import ContentMergeResult
from autorevert.revert.tree_merge import MergeFailureReason


class RevertStatus(Enum):
    """How a revert call ended."""

    REVERTED = "reverted"  # At least one new commit was created
    NOOP = "noop"  # Every requested commit was already undone
    CONFLICTING = "conflicting"  # Content conflicts, staged for inspection
    FAILED = "failed"  # Merge refused to run (local modifications, I/O)


@dataclass
class RevertRequest:
    """Commits to revert, in order, plus message customization.

    ``commits`` accepts commit ids, ``CommitInfo`` snapshots or GitPython
    ``Commit`` objects. Templates may contain ``%commit-name%``, which is
    replaced with the full id of the commit being reverted.
    """

    commits: list[str | CommitInfo | Commit] = field(default_factory=list)
    custom_title: str | None = None
    custom_body: str | None = None
    reflog_prefix: str = "revert"
    our_name: str | None = None


@dataclass
class MergeConflict:
    """Why a revert stopped, with enough detail to inspect or redo it."""

    commit_id: str
    unmerged_paths: list[str] = field(default_factory=list)
    failing_paths: dict[str, MergeFailureReason] | None = None
    content_results: dict[str, ContentMergeResult] = field(default_factory=dict)
    base_commit: str = ""
    heads: tuple[str, str] = ("", "")
    message: str = ""

    @property
    def failed(self) -> bool:
        return bool(self.failing_paths)

    def describe(self) -> list[str]:
        if self.failing_paths:
            return [f"{p}: {r.value}" for p, r in sorted(self.failing_paths.items())]
        lines = []
        for path in self.unmerged_paths:
            result = self.content_results.get(path)
            if result is not None:
                lines.append(f"{path}: {result.conflict_count} conflicting hunk(s)")
            else:
                lines.append(f"{path}: unmerged")
        return lines


@dataclass
class RevertOutcome:
    """Result of a revert call."""

    status: RevertStatus
    new_head: Commit | None = None
    reverted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    conflict: MergeConflict | None = None

    @property
    def created_commit(self) -> bool:
        return self.status == RevertStatus.REVERTED

    def raise_for_status(self) -> None:
        """Raise the matching error for a conflicting or failed revert."""
        if self.conflict is None:
            return
        if self.conflict.failed:
            raise MergeFailureError(self.conflict.failing_paths)
        raise MergeConflictError(self.conflict.unmerged_paths)
