"""Core data models shared by the repository handle, policy, and watch loop."""

from __future__ import annotations

from dataclasses import dataclass, field

from git import Commit


def short_message(message: str | bytes) -> str:
    """First paragraph of a commit message, folded onto a single line."""
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    message = message.replace("\r\n", "\n")
    paragraph = message.lstrip("\n").split("\n\n", 1)[0]
    return " ".join(paragraph.splitlines())


@dataclass(frozen=True)
class CommitInfo:
    """An immutable snapshot of the fields autorevert inspects on a commit."""

    id: str
    author: str
    summary: str
    tree_id: str
    parent_ids: tuple[str, ...] = field(default_factory=tuple)
    author_email: str = ""

    @property
    def short_id(self) -> str:
        return self.id[:7]

    @property
    def parent_count(self) -> int:
        return len(self.parent_ids)

    @classmethod
    def from_git(cls, commit: Commit) -> "CommitInfo":
        return cls(
            id=commit.hexsha,
            author=commit.author.name or "",
            author_email=commit.author.email or "",
            summary=short_message(commit.message),
            tree_id=commit.tree.hexsha,
            parent_ids=tuple(p.hexsha for p in commit.parents),
        )
