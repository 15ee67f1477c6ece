"""Git operations — clone, synchronize, inspect, commit, push."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from git import (
    Actor,
    Commit,
    GitCommandError,
    InvalidGitRepositoryError,
    PushInfo,
    RemoteReference,
    Repo,
)
from git.exc import NoSuchPathError

from autorevert.errors import NoChangesError, PushRejectedError, SyncError
from autorevert.models import CommitInfo

logger = logging.getLogger(__name__)

_ASKPASS_SCRIPT = """#!/bin/sh
case "$1" in
  Username*|username*) printf '%s\\n' "$AUTOREVERT_GIT_USERNAME" ;;
  *) printf '%s\\n' "$AUTOREVERT_GIT_PASSWORD" ;;
esac
"""

_PUSH_FAILURE_FLAGS = (
    PushInfo.ERROR | PushInfo.REJECTED | PushInfo.REMOTE_REJECTED | PushInfo.REMOTE_FAILURE
)

# Files git leaves behind for an in-progress revert or merge.
_STATE_FILES = ("REVERT_HEAD", "MERGE_MSG", "MERGE_HEAD", "CHERRY_PICK_HEAD")


@dataclass
class Credentials:
    """Username/password (or token) pair for HTTPS remotes."""

    username: str = ""
    password: str = ""

    def __bool__(self) -> bool:
        return bool(self.username or self.password)


@dataclass
class RepoHandle:
    """A local working copy bound to a remote.

    Use as a context manager to ensure temp clones are cleaned up::

        with clone_repository(url, creds) as handle:
            handle.synchronize()
        # temp clone (if any) is deleted here
    """

    local_path: Path
    """Filesystem path to the working copy root (may be a temp clone)."""

    source_url: str = ""
    """Remote URL the working copy was cloned from, empty if unknown."""

    is_temp_clone: bool = False
    """True when ``local_path`` is a temporary clone that should be cleaned up."""

    credentials: Credentials | None = None
    remote_name: str = "origin"
    _repo: Repo | None = field(default=None, init=False, repr=False)
    _askpass_dir: Path | None = field(default=None, init=False, repr=False)

    def __enter__(self) -> "RepoHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Remove the temporary clone and askpass helper, if applicable."""
        if self._repo is not None:
            self._repo.close()
            self._repo = None
        if self._askpass_dir is not None:
            shutil.rmtree(self._askpass_dir, ignore_errors=True)
            self._askpass_dir = None
        if self.is_temp_clone and self.local_path.exists():
            shutil.rmtree(self.local_path, ignore_errors=True)

    @property
    def repo(self) -> Repo:
        if self._repo is None:
            self._repo = Repo(self.local_path)
            self._repo.git.update_environment(**self.git_env())
        return self._repo

    @property
    def display_path(self) -> str:
        return self.source_url if self.source_url else str(self.local_path)

    def git_env(self) -> dict[str, str]:
        """Environment for git subprocesses: never prompt, answer via askpass."""
        env = {"GIT_TERMINAL_PROMPT": "0"}
        if self.credentials:
            env["GIT_ASKPASS"] = str(self._askpass_path())
            env["AUTOREVERT_GIT_USERNAME"] = self.credentials.username
            env["AUTOREVERT_GIT_PASSWORD"] = self.credentials.password
        return env

    def _askpass_path(self) -> Path:
        if self._askpass_dir is None:
            self._askpass_dir = Path(tempfile.mkdtemp(prefix="autorevert_askpass_"))
        script = self._askpass_dir / "askpass.sh"
        if not script.exists():
            script.write_text(_ASKPASS_SCRIPT)
            script.chmod(stat.S_IRWXU)
        return script

    # ── Remote tracking ──────────────────────────────────────────────

    def tracked_branch(self) -> str | None:
        """Name of the remote branch the working copy follows, if known."""
        repo = self.repo
        local_name = None
        if not repo.head.is_detached:
            local_name = repo.head.ref.name
            tracking = repo.head.ref.tracking_branch()
            if tracking is not None and tracking.is_valid():
                return tracking.remote_head

        names = {
            ref.remote_head: ref
            for ref in repo.refs
            if isinstance(ref, RemoteReference) and ref.remote_name == self.remote_name
        }
        if local_name and local_name in names:
            return local_name
        head = names.get("HEAD")
        if head is not None:
            try:
                return head.reference.remote_head
            except TypeError:
                pass
        for candidate in ("main", "master"):
            if candidate in names:
                return candidate
        branches = [n for n in names if n != "HEAD"]
        return branches[0] if len(branches) == 1 else None

    # ── Primitives ───────────────────────────────────────────────────

    def synchronize(self) -> CommitInfo | None:
        """Force the working copy to exactly match the remote tip.

        Fetches, hard-resets index and working tree onto the remote branch,
        removes untracked files and any leftover revert state. Idempotent.

        Returns:
            The new tip, or ``None`` when the remote has no commits yet.

        Raises:
            SyncError: On network/auth failure or when git refuses the reset.
        """
        repo = self.repo
        logger.info("Fetching %s", self.display_path)
        try:
            repo.git.fetch("--prune", self.remote_name)
            branch = self.tracked_branch()
            if branch is None:
                logger.info("Remote has no branches yet")
                return None
            remote_ref = f"{self.remote_name}/{branch}"
            repo.git.reset("--hard", remote_ref)
            repo.git.clean("-f", "-d")
        except (GitCommandError, ValueError) as e:
            raise SyncError(f"Could not synchronize with {self.display_path}: {e}") from e

        for name in _STATE_FILES:
            Path(repo.git_dir, name).unlink(missing_ok=True)

        return self.latest_commit()

    def latest_commit(self) -> CommitInfo | None:
        """Return the tip commit, or ``None`` for an empty repository."""
        repo = self.repo
        if not repo.head.is_valid():
            return None
        return CommitInfo.from_git(repo.head.commit)

    def commit(self, message: str, reflog_note: str, author: Actor | None = None) -> Commit:
        """Commit the current index on top of ``HEAD``.

        Raises:
            NoChangesError: If the index tree equals the parent's tree.
        """
        repo = self.repo
        tree = repo.tree(repo.git.write_tree())
        parents = [repo.head.commit] if repo.head.is_valid() else []
        if parents and parents[0].tree.binsha == tree.binsha:
            raise NoChangesError(f"Nothing to commit on top of {parents[0].hexsha[:7]}")

        new_commit = Commit.create_from_tree(
            repo,
            tree,
            message,
            parent_commits=parents,
            head=False,
            author=author,
            committer=author,
        )
        repo.head.set_commit(new_commit, logmsg=reflog_note)
        logger.debug("Created commit %s (%s)", new_commit.hexsha[:7], reflog_note)
        return new_commit

    def push(self) -> None:
        """Push ``HEAD`` to the tracked remote branch.

        Raises:
            PushRejectedError: On non-fast-forward, auth failure, or hook rejection.
        """
        repo = self.repo
        branch = self.tracked_branch()
        if branch is None:
            if repo.head.is_detached:
                raise PushRejectedError("Cannot push: no tracked branch and HEAD is detached")
            branch = repo.head.ref.name

        refspec = f"HEAD:refs/heads/{branch}"
        try:
            results = repo.remote(self.remote_name).push(refspec=refspec)
        except GitCommandError as e:
            raise PushRejectedError(f"Push to {self.display_path} failed: {e}") from e

        if not results:
            raise PushRejectedError(f"Push to {self.display_path} reported no result")
        for info in results:
            if info.flags & _PUSH_FAILURE_FLAGS:
                raise PushRejectedError(
                    f"Push of {refspec} rejected: {info.summary.strip() or 'unknown reason'}"
                )
        logger.info("Pushed %s to %s", repo.head.commit.hexsha[:7], self.display_path)


def clone_repository(
    url: str,
    credentials: Credentials | None = None,
    directory: str | Path | None = None,
    remote_name: str = "origin",
) -> RepoHandle:
    """Clone ``url`` into ``directory`` (a fresh temp dir by default).

    The returned handle owns the clone when it lives in a temp dir.

    Raises:
        SyncError: If the clone fails.
    """
    is_temp = directory is None
    clone_dir = Path(tempfile.mkdtemp(prefix="autorevert_")) if is_temp else Path(directory)

    handle = RepoHandle(
        local_path=clone_dir,
        source_url=url,
        is_temp_clone=is_temp,
        credentials=credentials,
        remote_name=remote_name,
    )
    logger.info("Cloning %s into %s", url, clone_dir)
    try:
        Repo.clone_from(url, clone_dir, env=handle.git_env(), origin=remote_name)
    except GitCommandError as e:
        handle.cleanup()
        raise SyncError(f"Could not clone {url}: {e}") from e
    return handle


def open_repository(
    repo_path: str | Path,
    credentials: Credentials | None = None,
    remote_name: str = "origin",
) -> RepoHandle:
    """Wrap an existing working copy.

    Raises:
        ValueError: If the path is not a Git working copy.
    """
    path = Path(repo_path)
    try:
        repo = Repo(path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        raise ValueError(f"Not a Git working copy: {repo_path}")
    if repo.bare:
        raise ValueError(f"Repository has no working tree: {repo_path}")

    remote_url = ""
    if remote_name in [r.name for r in repo.remotes]:
        remote_url = repo.remote(remote_name).url
    repo.close()

    return RepoHandle(
        local_path=Path(os.path.abspath(path)),
        source_url=remote_url,
        credentials=credentials,
        remote_name=remote_name,
    )
