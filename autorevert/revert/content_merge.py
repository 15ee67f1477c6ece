"""Three-way merge of file contents, delegated to ``git merge-file``.

Running git's own xdiff merge keeps conflict detection identical to what
``git revert`` would report: changes that touch or abut each other conflict,
and conflict hunks carry the usual ``<<<<<<<``/``=======``/``>>>>>>>``
markers labelled with the two side names.
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path

from git import GitCommandError, Repo

MARKER_SIZE = 7
BINARY_SNIFF_BYTES = 8000

# git merge-file exits with the conflict count, capped at this value
_MAX_CONFLICT_STATUS = 127


def is_binary(data: bytes) -> bool:
    """Git's heuristic: a NUL byte near the start means binary."""
    return b"\0" in data[:BINARY_SNIFF_BYTES]


@dataclass
class ContentMergeResult:
    """Merged content of a single file."""

    data: bytes = b""
    conflict_count: int = 0
    ours_name: str = "ours"
    theirs_name: str = "theirs"

    @property
    def has_conflicts(self) -> bool:
        return self.conflict_count > 0

    def to_bytes(self) -> bytes:
        """The merged file, including conflict markers around unresolved hunks."""
        return self.data


def merge_content(
    repo: Repo,
    base: bytes,
    ours: bytes,
    theirs: bytes,
    ours_name: str = "ours",
    theirs_name: str = "theirs",
) -> ContentMergeResult:
    """Three-way merge of raw file contents.

    Raises:
        GitCommandError: If git refuses to merge the inputs.
    """
    with tempfile.TemporaryDirectory(prefix="autorevert_merge_") as tmp:
        paths = []
        for name, data in (("ours", ours), ("base", base), ("theirs", theirs)):
            path = Path(tmp, name)
            path.write_bytes(data)
            paths.append(str(path))

        status, stdout, stderr = repo.git.merge_file(
            "-p",
            f"--marker-size={MARKER_SIZE}",
            "-L", ours_name,
            "-L", "base",
            "-L", theirs_name,
            *paths,
            with_extended_output=True,
            with_exceptions=False,
            stdout_as_string=False,
            strip_newline_in_stdout=False,
        )

    if status < 0 or status > _MAX_CONFLICT_STATUS:
        raise GitCommandError(["git", "merge-file"], status, stderr)

    return ContentMergeResult(
        data=stdout,
        conflict_count=status,
        ours_name=ours_name,
        theirs_name=theirs_name,
    )
