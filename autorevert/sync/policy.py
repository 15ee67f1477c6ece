"""Author policy — decide whether the tip commit must be reverted.

Identities are commit author display names. Matching is case-insensitive
and otherwise exact: no whitespace trimming, no unicode normalization.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from autorevert.models import CommitInfo


class PolicyAction(Enum):
    """What the watcher should do with a commit."""

    ALLOW = "allow"
    REVERT = "revert"


@dataclass
class PolicyDecision:
    """Result of evaluating the policy against one commit."""

    action: PolicyAction
    commit: CommitInfo
    reason: str = ""

    @property
    def should_revert(self) -> bool:
        return self.action == PolicyAction.REVERT


def identities_match(author: str, identity: str) -> bool:
    return author.lower() == identity.lower()


def should_revert(commit: CommitInfo, disallowed_identity: str) -> bool:
    """True iff ``commit`` was authored by ``disallowed_identity``."""
    return identities_match(commit.author, disallowed_identity)


@dataclass
class AuthorPolicy:
    """Reverts every commit authored by one disallowed identity."""

    disallowed_identity: str

    def evaluate(self, commit: CommitInfo) -> PolicyDecision:
        if should_revert(commit, self.disallowed_identity):
            return PolicyDecision(
                action=PolicyAction.REVERT,
                commit=commit,
                reason=f"author {commit.author!r} matches disallowed identity {self.disallowed_identity!r}",
            )
        return PolicyDecision(
            action=PolicyAction.ALLOW,
            commit=commit,
            reason=f"author {commit.author!r} is allowed",
        )
