"""Bounded fan-out of chunks to the inference client."""

from __future__ import annotations

import threading
import time
from typing import List, Optional, Protocol, Sequence

from .errors import ConfigError
from .logging import get_logger
from .models import STATUS_FAILED, Chunk, GenerationResult
from .prompting.builder import PromptBuilder

logger = get_logger("dispatcher")


class ChunkGenerator(Protocol):
    def generate(
        self,
        chunk: Chunk,
        prompt_template: PromptBuilder | str | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> GenerationResult:
        ...


class _Cursor:
    """Hands out chunk positions to workers, one at a time."""

    def __init__(self, total: int) -> None:
        self._next = 0
        self._total = total
        self._lock = threading.Lock()

    def take(self) -> Optional[int]:
        with self._lock:
            if self._next >= self._total:
                return None
            position = self._next
            self._next += 1
            return position


class Dispatcher:
    """Runs chunks through a fixed-size worker pool and returns results in chunk order."""

    def __init__(
        self,
        client: ChunkGenerator,
        concurrency_limit: int = 4,
        *,
        grace_period: float = 10.0,
        poll_interval: float = 0.05,
    ) -> None:
        if isinstance(concurrency_limit, bool) or not isinstance(concurrency_limit, int) or concurrency_limit <= 0:
            raise ConfigError(f"Concurrency limit must be a positive integer, got {concurrency_limit!r}")
        if grace_period < 0:
            raise ConfigError(f"Grace period must not be negative, got {grace_period!r}")
        self.client = client
        self.concurrency_limit = concurrency_limit
        self.grace_period = grace_period
        self.poll_interval = poll_interval

    def run(
        self,
        chunks: Sequence[Chunk],
        prompt_template: PromptBuilder | str | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> List[GenerationResult]:
        ordered = list(chunks)
        if not ordered:
            return []

        cancel = cancel_event or threading.Event()
        slots: List[Optional[GenerationResult]] = [None] * len(ordered)
        cursor = _Cursor(len(ordered))
        pool_size = min(self.concurrency_limit, len(ordered))

        workers = [
            threading.Thread(
                target=self._drain,
                args=(ordered, slots, cursor, prompt_template, cancel),
                name=f"dredger-dispatch-{number}",
                daemon=True,
            )
            for number in range(pool_size)
        ]
        logger.info("Dispatching %d chunks across %d workers", len(ordered), pool_size)
        for worker in workers:
            worker.start()
        self._await_workers(workers, cancel)

        snapshot = list(slots)
        results: List[GenerationResult] = []
        for chunk, slot in zip(ordered, snapshot):
            results.append(slot if slot is not None else GenerationResult.cancelled(chunk))
        return results

    def _drain(
        self,
        chunks: List[Chunk],
        slots: List[Optional[GenerationResult]],
        cursor: _Cursor,
        prompt_template: PromptBuilder | str | None,
        cancel: threading.Event,
    ) -> None:
        while not cancel.is_set():
            position = cursor.take()
            if position is None:
                return
            chunk = chunks[position]
            try:
                result = self.client.generate(chunk, prompt_template, cancel_event=cancel)
            except Exception as exc:
                # Isolate the failure to this chunk; the rest of the run continues.
                logger.exception("Unexpected error generating chunk %d", chunk.index)
                result = GenerationResult(
                    chunk_index=chunk.index,
                    unit_ids=chunk.unit_ids,
                    status=STATUS_FAILED,
                    error_kind="internal",
                    error_message=str(exc),
                )
            slots[position] = result

    def _await_workers(self, workers: List[threading.Thread], cancel: threading.Event) -> None:
        while any(worker.is_alive() for worker in workers):
            if cancel.wait(self.poll_interval):
                break
        else:
            return

        logger.warning(
            "Run cancelled; allowing in-flight chunks up to %.1fs to finish",
            self.grace_period,
        )
        deadline = time.monotonic() + self.grace_period
        for worker in workers:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            worker.join(remaining)
        abandoned = sum(1 for worker in workers if worker.is_alive())
        if abandoned:
            logger.warning("Abandoned %d in-flight chunk(s) after the grace period", abandoned)


__all__ = ["ChunkGenerator", "Dispatcher"]
