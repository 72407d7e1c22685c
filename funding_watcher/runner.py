from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger

from funding_watcher.errors import ConfigurationError
from funding_watcher.models import FundingCandidate, ProcessResult, format_cursor, parse_cursor
from funding_watcher.watcher import Watcher


class ChainSource(Protocol):
    def poll(self, cursor: str) -> tuple[list[FundingCandidate], str]: ...


class CheckpointStore(Protocol):
    def get_cursor(self) -> str: ...

    def save_cursor(self, cursor: str) -> None: ...


class DedupeStore(Protocol):
    def seen(self, key: str) -> bool: ...

    def mark(self, key: str) -> None: ...


@dataclass
class Runner:
    """
    Poll loop for one watcher. A cycle either completes (candidates handled,
    cursor saved) or leaves the checkpoint untouched; the next tick is the retry.
    """

    name: str
    source: ChainSource
    watcher: Watcher
    checkpoints: CheckpointStore
    dedupe: DedupeStore
    poll_interval_sec: float = 5.0
    stop_event: threading.Event = field(default_factory=threading.Event)

    def stop(self) -> None:
        self.stop_event.set()

    def run(self) -> None:
        if self.source is None or self.checkpoints is None or self.dedupe is None or self.watcher is None:
            raise ConfigurationError("runner dependencies not configured")
        interval = self.poll_interval_sec if self.poll_interval_sec > 0 else 5.0

        cursor = self.checkpoints.get_cursor() or "0"
        logger.info("{}: starting watcher loop from cursor={}", self.name, cursor)

        while not self.stop_event.is_set():
            try:
                cursor = self.run_once(cursor)
            except Exception as e:
                logger.exception("{}: poll failed: {}", self.name, e)
            if self.stop_event.wait(interval):
                break
        logger.info("{}: watcher stopped at cursor={}", self.name, cursor)

    def run_once(self, cursor: str) -> str:
        """Run one cycle from `cursor` and return the cursor for the next one."""
        candidates, next_cursor = self.source.poll(cursor)

        confirmed = skipped = 0
        for candidate in candidates:
            key = candidate.event_key
            if self.dedupe.seen(key):
                skipped += 1
                continue

            try:
                result = self.watcher.process_candidate(candidate)
            except Exception:
                logger.error("{}: processing candidate {} failed; aborting cycle", self.name, key)
                raise

            if result is ProcessResult.CONFIRMED:
                self.dedupe.mark(key)
                confirmed += 1

        if parse_cursor(next_cursor) < parse_cursor(cursor):
            logger.warning(
                "{}: source returned cursor {} behind {}; keeping {}", self.name, next_cursor, cursor, cursor
            )
            next_cursor = format_cursor(parse_cursor(cursor))

        self.checkpoints.save_cursor(next_cursor)
        if candidates:
            logger.info(
                "{}: cycle done candidates={} confirmed={} deduped={} cursor={}",
                self.name,
                len(candidates),
                confirmed,
                skipped,
                next_cursor,
            )

        try:
            return self.checkpoints.get_cursor() or next_cursor
        except Exception as e:
            logger.warning("{}: cursor refresh failed, using {}: {}", self.name, next_cursor, e)
            return next_cursor
