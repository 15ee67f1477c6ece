"""Path-level three-way merge of Git trees.

Every path present in any of the three trees is resolved independently:

- both sides agree                 -> take it
- only one side changed from base  -> take that side
- both changed, both still files   -> merge modes, then merge content
- anything else                    -> unmerged (conflict)

Merged blobs and the result tree are written to the object database; the
caller decides whether to check the tree out or to stage the conflict.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO

from git import IndexFile, Repo, Tree
from git.index.typ import BaseIndexEntry, IndexEntry
from gitdb.base import IStream

from autorevert.revert.content_merge import ContentMergeResult, is_binary, merge_content

logger = logging.getLogger(__name__)

MODE_FILE = 0o100644
MODE_EXECUTABLE = 0o100755
MODE_SYMLINK = 0o120000
MODE_GITLINK = 0o160000


class MergeFailureReason(Enum):
    """Why a path stopped the merge outright (as opposed to conflicting)."""

    DIRTY_INDEX = "dirty_index"
    DIRTY_WORKTREE = "dirty_worktree"
    COULD_NOT_DELETE = "could_not_delete"


@dataclass(frozen=True)
class TreeEntry:
    mode: int
    binsha: bytes

    @property
    def is_regular_file(self) -> bool:
        return self.mode in (MODE_FILE, MODE_EXECUTABLE)

    @property
    def hexsha(self) -> str:
        return self.binsha.hex()


@dataclass
class PathConflict:
    """The three versions of an unmerged path (``None`` means absent)."""

    path: str
    base: TreeEntry | None
    ours: TreeEntry | None
    theirs: TreeEntry | None
    content: ContentMergeResult | None = None
    kind: str = "content"


@dataclass
class TreeMergeResult:
    """Outcome of a tree merge."""

    merged: dict[str, TreeEntry] = field(default_factory=dict)
    conflicts: dict[str, PathConflict] = field(default_factory=dict)
    failing_paths: dict[str, MergeFailureReason] | None = None
    modified_files: list[str] = field(default_factory=list)
    result_tree: Tree | None = None

    @property
    def failed(self) -> bool:
        return bool(self.failing_paths)

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.conflicts

    @property
    def unmerged_paths(self) -> list[str]:
        return sorted(self.conflicts)

    @property
    def content_results(self) -> dict[str, ContentMergeResult]:
        return {p: c.content for p, c in self.conflicts.items() if c.content is not None}


def flatten_tree(tree: Tree | None) -> dict[str, TreeEntry]:
    """Map every non-tree path under ``tree`` to its mode and object id."""
    if tree is None:
        return {}
    entries = {}
    for item in tree.traverse():
        if item.type == "tree":
            continue
        entries[item.path] = TreeEntry(item.mode, item.binsha)
    return entries


def changed_paths(repo: Repo, paths: list[str], *, against: str | None = None) -> set[str]:
    """Which of ``paths`` differ, as git sees them.

    With ``against`` (a tree-ish) the index is compared to it; otherwise the
    working tree is compared to the index. Git applies ``.gitattributes``
    conversions and filters, so a freshly checked out file is never
    reported.
    """
    if not paths:
        return set()
    git = repo.git(literal_pathspecs=True)
    if against is not None:
        out = git.diff("--cached", "--name-only", "-z", "--no-renames", against, "--", *paths)
    else:
        out = git.diff("--name-only", "-z", "--no-renames", "--ignore-submodules=all", "--", *paths)
    return {p for p in out.split("\0") if p}


def write_tree(repo: Repo, entries: dict[str, TreeEntry]) -> Tree:
    """Write ``entries`` as a tree object without touching the real index."""
    scratch = IndexFile(repo, file_path=os.devnull)
    scratch.entries = {
        (path, 0): IndexEntry.from_base(BaseIndexEntry((e.mode, e.binsha, 0, path)))
        for path, e in entries.items()
    }
    return scratch.write_tree()


def merge_modes(base: TreeEntry | None, ours: TreeEntry, theirs: TreeEntry) -> int | None:
    """Three-way merge of file modes; ``None`` when both sides changed differently."""
    if ours.mode == theirs.mode:
        return ours.mode
    if base is not None and base.mode == ours.mode:
        return theirs.mode
    if base is not None and base.mode == theirs.mode:
        return ours.mode
    return None


class TreeMerger:
    """Three-way merge of trees inside one repository.

    With ``check_worktree`` enabled, any path the merge would change is first
    checked against the index and working tree; local modifications there
    fail the merge instead of being overwritten.
    """

    def __init__(self, repo: Repo, *, check_worktree: bool = True):
        self.repo = repo
        self.check_worktree = check_worktree
        self.commit_names = ("BASE", "ours", "theirs")

    def set_commit_names(self, base: str, ours: str, theirs: str) -> "TreeMerger":
        self.commit_names = (base, ours, theirs)
        return self

    def merge(self, base: Tree | None, ours: Tree, theirs: Tree) -> TreeMergeResult:
        base_entries = flatten_tree(base)
        our_entries = flatten_tree(ours)
        their_entries = flatten_tree(theirs)

        result = TreeMergeResult()
        for path in sorted(set(base_entries) | set(our_entries) | set(their_entries)):
            b = base_entries.get(path)
            o = our_entries.get(path)
            t = their_entries.get(path)
            self._merge_path(result, path, b, o, t)

        self._detect_directory_collisions(result, base_entries, our_entries, their_entries)

        result.modified_files = sorted(
            p
            for p in set(result.merged) | set(our_entries) | set(result.conflicts)
            if result.merged.get(p) != our_entries.get(p)
        )

        if self.check_worktree:
            failing = self._check_local_changes(ours, result.modified_files)
            if failing:
                result.failing_paths = failing
                return result

        if not result.conflicts:
            result.result_tree = self.write_tree(result.merged)
        return result

    # ── Per-path resolution ──────────────────────────────────────────

    def _merge_path(
        self,
        result: TreeMergeResult,
        path: str,
        b: TreeEntry | None,
        o: TreeEntry | None,
        t: TreeEntry | None,
    ) -> None:
        if o == t:
            if o is not None:
                result.merged[path] = o
            return
        if b == o:
            if t is not None:
                result.merged[path] = t
            return
        if b == t:
            if o is not None:
                result.merged[path] = o
            return

        if o is None or t is None:
            result.conflicts[path] = PathConflict(path, b, o, t, kind="modify/delete")
            return

        if o.binsha == t.binsha:
            mode = merge_modes(b, o, t)
            if mode is None:
                result.conflicts[path] = PathConflict(path, b, o, t, kind="mode")
            else:
                result.merged[path] = TreeEntry(mode, o.binsha)
            return

        if not (o.is_regular_file and t.is_regular_file) or (
            b is not None and not b.is_regular_file
        ):
            result.conflicts[path] = PathConflict(path, b, o, t, kind="type")
            return

        base_data = self._read_blob(b) if b is not None else b""
        our_data = self._read_blob(o)
        their_data = self._read_blob(t)
        if is_binary(base_data) or is_binary(our_data) or is_binary(their_data):
            result.conflicts[path] = PathConflict(path, b, o, t, kind="binary")
            return

        _, ours_name, theirs_name = self.commit_names
        content = merge_content(self.repo, base_data, our_data, their_data, ours_name, theirs_name)
        mode = merge_modes(b, o, t)
        if content.has_conflicts or mode is None:
            result.conflicts[path] = PathConflict(path, b, o, t, content=content)
            return

        result.merged[path] = TreeEntry(mode, self._store_blob(content.to_bytes()))

    def _detect_directory_collisions(
        self,
        result: TreeMergeResult,
        base_entries: dict[str, TreeEntry],
        our_entries: dict[str, TreeEntry],
        their_entries: dict[str, TreeEntry],
    ) -> None:
        directories = set()
        for path in list(result.merged) + list(result.conflicts):
            parent = os.path.dirname(path)
            while parent:
                directories.add(parent)
                parent = os.path.dirname(parent)

        for path in sorted(directories & set(result.merged)):
            result.merged.pop(path)
            result.conflicts[path] = PathConflict(
                path,
                base_entries.get(path),
                our_entries.get(path),
                their_entries.get(path),
                kind="file/directory",
            )

    # ── Working tree checks ──────────────────────────────────────────

    def _check_local_changes(self, ours: Tree, paths: list[str]) -> dict[str, MergeFailureReason]:
        failing: dict[str, MergeFailureReason] = {}
        for path in changed_paths(self.repo, paths, against=ours.hexsha):
            failing[path] = MergeFailureReason.DIRTY_INDEX
        for path in changed_paths(self.repo, paths):
            failing.setdefault(path, MergeFailureReason.DIRTY_WORKTREE)
        return failing

    # ── Object database ──────────────────────────────────────────────

    def _read_blob(self, entry: TreeEntry) -> bytes:
        return self.repo.odb.stream(entry.binsha).read()

    def _store_blob(self, data: bytes) -> bytes:
        istream = self.repo.odb.store(IStream("blob", len(data), BytesIO(data)))
        return istream.binsha

    def write_tree(self, entries: dict[str, TreeEntry]) -> Tree:
        return write_tree(self.repo, entries)
