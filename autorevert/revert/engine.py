"""Revert engine — undo single-parent commits with a three-way merge.

For each requested commit ``C`` with parent ``P`` the engine merges, with
``C``'s tree as the base, the current tip (ours) against ``P`` (theirs).
The merge result is "the tip, minus what ``C`` introduced". A result equal
to the tip is a no-op; anything else is checked out and committed, and the
tip advances before the next request. The first conflicting request stops
the call and leaves the conflict staged in the index and working tree.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from git import Actor, Commit, GitCommandError, Repo, Tree
from git.index.typ import BaseIndexEntry, IndexEntry

from autorevert.config import render_template
from autorevert.errors import (
    CheckoutConflictError,
    MergeFailureError,
    NoHeadError,
    UnsupportedCommitShapeError,
)
from autorevert.models import CommitInfo, short_message
from autorevert.revert.models import MergeConflict, RevertOutcome, RevertRequest, RevertStatus
from autorevert.revert.tree_merge import (
    MODE_EXECUTABLE,
    MODE_GITLINK,
    MergeFailureReason,
    TreeEntry,
    TreeMerger,
    TreeMergeResult,
    changed_paths,
    flatten_tree,
    write_tree,
)
from autorevert.utils.git_ops import RepoHandle

logger = logging.getLogger(__name__)

ABBREV_LENGTH = 7


def compose_message(commit: Commit, request: RevertRequest) -> tuple[str, str]:
    """Return ``(title, full_message)`` for reverting ``commit``."""
    if request.custom_title is not None:
        short = render_template(request.custom_title, commit.hexsha)
    else:
        short = f'Revert "{short_message(commit.message)}"'

    if request.custom_body is not None:
        body = render_template(request.custom_body, commit.hexsha)
    else:
        body = f"This reverts commit {commit.hexsha}.\n"

    return short, f"{short}\n\n{body}"


def format_conflict_message(message: str, unmerged_paths: list[str], comment_char: str = "#") -> str:
    """Append a commented list of conflicting paths, as written to MERGE_MSG."""
    if not message.endswith("\n"):
        message += "\n"
    lines = [message, "\n", f"{comment_char} Conflicts:\n"]
    lines.extend(f"{comment_char}\t{path}\n" for path in unmerged_paths)
    return "".join(lines)


class RevertEngine:
    """Reverts commits onto the current tip of a working copy.

    Expects a clean index and working tree matching ``HEAD``; the watch loop
    guarantees this by synchronizing before every cycle.
    """

    def __init__(self, handle: RepoHandle, author: Actor | None = None):
        self.handle = handle
        self.author = author

    @property
    def repo(self) -> Repo:
        return self.handle.repo

    def revert(self, request: RevertRequest) -> RevertOutcome:
        """Revert ``request.commits`` in order.

        Raises:
            NoHeadError: If the repository has no commits.
            UnsupportedCommitShapeError: If a requested commit is a root or merge commit.
            CheckoutConflictError: If materializing a result would clobber local files.
            MergeFailureError: If a file scheduled for deletion cannot be removed.
        """
        repo = self.repo
        if not repo.head.is_valid():
            raise NoHeadError("Cannot revert: repository has no commits")

        head_commit = repo.head.commit
        our_name = request.our_name or _our_name(repo)
        new_head: Commit | None = None
        reverted: list[str] = []
        skipped: list[str] = []

        for item in request.commits:
            src = _resolve_commit(repo, item)
            if len(src.parents) != 1:
                raise UnsupportedCommitShapeError(src.hexsha, len(src.parents))
            parent = src.parents[0]

            title, message = compose_message(src, request)
            revert_name = f"{src.hexsha[:ABBREV_LENGTH]} {short_message(src.message)}"

            merger = TreeMerger(repo).set_commit_names("BASE", our_name, revert_name)
            result = merger.merge(src.tree, head_commit.tree, parent.tree)

            if result.succeeded:
                if result.result_tree.binsha == head_commit.tree.binsha:
                    logger.info("Commit %s is already reverted; nothing to do", src.hexsha[:ABBREV_LENGTH])
                    skipped.append(src.hexsha)
                    continue

                checkout_tree(repo, head_commit.tree, result.result_tree)
                new_head = self.handle.commit(
                    message,
                    f"{request.reflog_prefix}: {title}",
                    author=self.author,
                )
                logger.info("Reverted %s as %s", src.hexsha[:ABBREV_LENGTH], new_head.hexsha[:ABBREV_LENGTH])
                reverted.append(src.hexsha)
                head_commit = new_head
                continue

            conflict = MergeConflict(
                commit_id=src.hexsha,
                unmerged_paths=result.unmerged_paths,
                failing_paths=result.failing_paths,
                content_results=result.content_results,
                base_commit=src.hexsha,
                heads=(head_commit.hexsha, parent.hexsha),
                message=message,
            )
            if not result.failed and result.unmerged_paths:
                stage_conflicts(repo, head_commit.tree, result)
                git_dir = Path(repo.git_dir)
                (git_dir / "REVERT_HEAD").write_text(src.hexsha + "\n")
                (git_dir / "MERGE_MSG").write_text(
                    format_conflict_message(message, result.unmerged_paths)
                )

            status = RevertStatus.FAILED if result.failed else RevertStatus.CONFLICTING
            logger.warning(
                "Revert of %s %s: %s",
                src.hexsha[:ABBREV_LENGTH],
                status.value,
                "; ".join(conflict.describe()),
            )
            return RevertOutcome(
                status=status,
                new_head=new_head,
                reverted=reverted,
                skipped=skipped,
                conflict=conflict,
            )

        return RevertOutcome(
            status=RevertStatus.REVERTED if reverted else RevertStatus.NOOP,
            new_head=new_head,
            reverted=reverted,
            skipped=skipped,
        )


def _resolve_commit(repo: Repo, item: str | CommitInfo | Commit) -> Commit:
    if isinstance(item, Commit):
        return item
    if isinstance(item, CommitInfo):
        item = item.id
    # repo.commit peels annotated tags down to the commit
    return repo.commit(item)


def _our_name(repo: Repo) -> str:
    if repo.head.is_detached:
        return "HEAD"
    return repo.head.ref.name


# ── Working tree materialization ─────────────────────────────────────


def checkout_tree(repo: Repo, current: Tree, target: Tree) -> list[str]:
    """Move index and working tree from ``current`` to ``target``.

    Git does the checkout (``read-tree -m -u``), so eol conversion and
    smudge filters apply exactly as after a fresh clone. Fails before
    touching anything if a changed path has local modifications or an
    untracked file is in the way.

    Returns:
        The changed paths.
    """
    current_entries = flatten_tree(current)
    target_entries = flatten_tree(target)
    root = Path(repo.working_tree_dir)

    changed = sorted(
        p
        for p in set(current_entries) | set(target_entries)
        if current_entries.get(p) != target_entries.get(p)
    )

    tracked = [p for p in changed if p in current_entries]
    blocked = changed_paths(repo, tracked, against=current.hexsha) | changed_paths(repo, tracked)
    blocked.update(
        p for p in changed if p not in current_entries and _untracked_in_way(root, p, current_entries)
    )
    if blocked:
        raise CheckoutConflictError(sorted(blocked))

    try:
        repo.git.read_tree("-m", "-u", current.hexsha, target.hexsha)
    except GitCommandError as e:
        raise CheckoutConflictError(changed) from e

    stuck = {
        p: MergeFailureReason.COULD_NOT_DELETE
        for p in changed
        if p not in target_entries
        and current_entries[p].mode != MODE_GITLINK
        and os.path.lexists(root / p)
        and not _is_parent_of(p, target_entries)
    }
    if stuck:
        raise MergeFailureError(stuck)
    return changed


def stage_conflicts(repo: Repo, current: Tree, result: TreeMergeResult) -> None:
    """Write a conflicting merge into the index and working tree.

    Cleanly merged paths are checked out as usual. Unmerged paths keep the
    "ours" version (or "theirs" when ours deleted it), get stage 1/2/3
    index entries and, where a textual merge ran, a file with conflict
    markers.
    """
    shown = dict(result.merged)
    for path, conflict in result.conflicts.items():
        if conflict.kind == "file/directory":
            continue
        side = conflict.ours if conflict.ours is not None else conflict.theirs
        if side is not None:
            shown[path] = side
    checkout_tree(repo, current, write_tree(repo, shown))

    root = Path(repo.working_tree_dir)
    index = repo.index
    for path, conflict in result.conflicts.items():
        index.entries.pop((path, 0), None)
        for stage, entry in ((1, conflict.base), (2, conflict.ours), (3, conflict.theirs)):
            if entry is not None:
                index.entries[(path, stage)] = IndexEntry.from_base(
                    BaseIndexEntry((entry.mode, entry.binsha, stage, path))
                )
        if conflict.content is not None:
            _write_file(root / path, conflict.content.to_bytes(), conflict.ours.mode)

    index.write(ignore_extension_data=True)


def _write_file(target: Path, data: bytes, mode: int) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    target.chmod(0o755 if mode == MODE_EXECUTABLE else 0o644)


def _is_parent_of(path: str, entries: dict[str, TreeEntry]) -> bool:
    prefix = path + "/"
    return any(p.startswith(prefix) for p in entries)


def _untracked_in_way(root: Path, path: str, current_entries: dict[str, TreeEntry]) -> bool:
    target = root / path
    if not os.path.lexists(target):
        return False
    # a tracked directory that the checkout replaces with a file
    return not (target.is_dir() and not target.is_symlink() and _is_parent_of(path, current_entries))
