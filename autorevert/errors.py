"""Exception hierarchy for autorevert.

Expected revert results (conflicts, no-ops) are returned as values by the
engine; these exceptions cover the cases that abort an operation.
"""

from __future__ import annotations


class AutorevertError(Exception):
    """Base class for all autorevert errors."""


class ConfigError(AutorevertError):
    """Configuration could not be read or is invalid."""


class ConfigNotFoundError(ConfigError):
    """The configuration file does not exist."""


class SyncError(AutorevertError):
    """Fetching or resetting to the remote tip failed."""


class PushRejectedError(AutorevertError):
    """The remote refused the push (non-fast-forward, auth, hook...)."""


class NoHeadError(AutorevertError):
    """The repository has no commit to work against."""


class NoChangesError(AutorevertError):
    """The index tree equals the parent's tree; nothing to commit."""


class UnsupportedCommitShapeError(AutorevertError):
    """Only commits with exactly one parent can be reverted."""

    def __init__(self, commit_id: str, parent_count: int):
        super().__init__(
            f"Cannot revert {commit_id}: expected exactly one parent, found {parent_count}"
        )
        self.commit_id = commit_id
        self.parent_count = parent_count


class CheckoutConflictError(AutorevertError):
    """The working tree holds changes that a checkout would overwrite."""

    def __init__(self, paths: list[str]):
        super().__init__(f"Checkout would overwrite local changes: {', '.join(paths)}")
        self.paths = list(paths)


class MergeConflictError(AutorevertError):
    """Content-level conflicts prevented an automatic revert."""

    def __init__(self, unmerged_paths: list[str]):
        super().__init__(f"Revert produced conflicts in: {', '.join(unmerged_paths)}")
        self.unmerged_paths = list(unmerged_paths)


class MergeFailureError(AutorevertError):
    """The merge could not run at all (dirty index/worktree, undeletable file)."""

    def __init__(self, failing_paths: dict):
        details = ", ".join(f"{p} ({r.value})" for p, r in failing_paths.items())
        super().__init__(f"Revert failed: {details}")
        self.failing_paths = dict(failing_paths)
