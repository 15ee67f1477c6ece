"""Watch loop — synchronize, inspect the tip, revert it if disallowed, push.

Every cycle re-derives its decision from the freshly synchronized remote
state, so a cycle that failed half-way (network error, conflict, rejected
push) is simply superseded by the next one.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from enum import Enum

from autorevert.models import CommitInfo
from autorevert.revert.engine import RevertEngine
from autorevert.revert.models import RevertOutcome, RevertRequest, RevertStatus
from autorevert.sync.policy import AuthorPolicy
from autorevert.utils.git_ops import RepoHandle

logger = logging.getLogger(__name__)


class CycleStatus(Enum):
    EMPTY = "empty"  # Remote has no commits
    ALLOWED = "allowed"  # Tip author is not disallowed
    REVERTED = "reverted"  # Revert committed and pushed
    NOOP = "noop"  # Tip matched, but its change was already undone
    CONFLICT = "conflict"  # Revert conflicted or failed; nothing pushed
    ERROR = "error"  # Something raised; cycle abandoned


@dataclass
class CycleReport:
    """What one watch cycle observed and did."""

    status: CycleStatus
    tip: CommitInfo | None = None
    new_commit: str = ""
    outcome: RevertOutcome | None = None
    error: str = ""

    def summary(self) -> str:
        tip = f"{self.tip.short_id} by {self.tip.author}" if self.tip else "no tip"
        line = f"[{self.status.value}] {tip}"
        if self.new_commit:
            line += f" -> {self.new_commit[:7]}"
        if self.error:
            line += f": {self.error}"
        return line


class Ticker:
    """Fixed-interval scheduler with optional jitter and a stop signal."""

    def __init__(self, interval: float, jitter: float = 0.0, stop_event: threading.Event | None = None):
        self.interval = interval
        self.jitter = jitter
        self.stop_event = stop_event or threading.Event()

    def next_delay(self) -> float:
        if self.jitter <= 0:
            return self.interval
        return max(0.0, self.interval + random.uniform(-self.jitter, self.jitter))

    def wait(self) -> bool:
        """Sleep until the next tick. Returns False if stopped meanwhile."""
        return not self.stop_event.wait(self.next_delay())

    def stop(self) -> None:
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()


class RevertWatcher:
    """Runs the synchronize → evaluate → revert → push cycle forever.

    Cycles never overlap: the next one starts only after the previous one
    returned and the ticker's wait elapsed.
    """

    def __init__(
        self,
        handle: RepoHandle,
        policy: AuthorPolicy,
        engine: RevertEngine,
        ticker: Ticker,
        custom_title: str | None = None,
        custom_body: str | None = None,
    ):
        self.handle = handle
        self.policy = policy
        self.engine = engine
        self.ticker = ticker
        self.custom_title = custom_title
        self.custom_body = custom_body
        self.cycles = 0

    def run_cycle(self) -> CycleReport:
        """One cycle; exceptions propagate to the caller."""
        self.handle.synchronize()

        tip = self.handle.latest_commit()
        if tip is None:
            logger.info("Repository is empty")
            return CycleReport(status=CycleStatus.EMPTY)

        logger.info("Commit: %s | %s", tip.id, tip.author)
        decision = self.policy.evaluate(tip)
        if not decision.should_revert:
            return CycleReport(status=CycleStatus.ALLOWED, tip=tip)

        logger.warning("Disallowed commit %s: %s", tip.short_id, decision.reason)
        outcome = self.engine.revert(
            RevertRequest(
                commits=[tip],
                custom_title=self.custom_title,
                custom_body=self.custom_body,
            )
        )

        if outcome.status == RevertStatus.REVERTED:
            self.handle.push()
            return CycleReport(
                status=CycleStatus.REVERTED,
                tip=tip,
                new_commit=outcome.new_head.hexsha,
                outcome=outcome,
            )

        if outcome.status == RevertStatus.NOOP:
            return CycleReport(status=CycleStatus.NOOP, tip=tip, outcome=outcome)

        for line in outcome.conflict.describe():
            logger.error("Conflict reverting %s: %s", tip.short_id, line)
        return CycleReport(status=CycleStatus.CONFLICT, tip=tip, outcome=outcome)

    def tick(self) -> CycleReport:
        """One cycle with every error caught and reported."""
        self.cycles += 1
        try:
            report = self.run_cycle()
        except Exception as e:  # noqa: BLE001
            logger.exception("Watch cycle %d failed", self.cycles)
            report = CycleReport(status=CycleStatus.ERROR, error=str(e) or type(e).__name__)
        logger.debug("Cycle %d: %s", self.cycles, report.summary())
        return report

    def run_forever(self) -> None:
        """Tick until ``stop()`` is called."""
        logger.info(
            "Watching %s every %.1fs for commits by %r",
            self.handle.display_path,
            self.ticker.interval,
            self.policy.disallowed_identity,
        )
        while not self.ticker.stopped:
            self.tick()
            if not self.ticker.wait():
                break
        logger.info("Watcher stopped after %d cycle(s)", self.cycles)

    def stop(self) -> None:
        self.ticker.stop()
