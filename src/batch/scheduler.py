# src/batch/scheduler.py - v1
"""Batch scheduler: sequential batches, full concurrency inside each batch.

State machine:

    IDLE -> SCHEDULING -> AWAITING_BATCH -> SCHEDULING | BACKOFF -> ... -> DONE

A batch only advances the cursor when every file in it succeeded. Any
failure leaves the cursor where it was, so the identical slice is retried
after the backoff (successful files of that slice are compressed again).
The completion callback runs exactly once, when the queue is exhausted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from tinyshrink.batch.backoff import BackoffController
from tinyshrink.batch.models import (
    BatchOutcome,
    CompressionResult,
    FileRecord,
    RunState,
    SchedulerState,
)
from tinyshrink.logging.context import set_batch_context

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5


class Worker(Protocol):
    async def process(self, record: FileRecord) -> CompressionResult: ...


class BatchScheduler:
    """Drive a candidate queue through a worker, one batch at a time.

    Args:
        worker: Object with ``async process(record) -> CompressionResult``.
        backoff: Controller consulted after a failed batch.
        batch_size: Files per batch, which is also the concurrency cap.
        on_complete: Called once with all results when the run is done.
        on_batch: Observer called after every batch attempt.
    """

    def __init__(
        self,
        worker: Worker,
        backoff: BackoffController | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_complete: Callable[[list[CompressionResult]], None] | None = None,
        on_batch: Callable[[BatchOutcome], None] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._worker = worker
        self._backoff = backoff or BackoffController()
        self._batch_size = batch_size
        self._on_complete = on_complete
        self._on_batch = on_batch
        self._state = RunState()

    @property
    def state(self) -> RunState:
        return self._state

    async def run(self, candidates: Sequence[FileRecord]) -> RunState:
        """Process every candidate and return the final RunState.

        Raises:
            RetryExhausted: If the backoff controller gives up on a batch.
        """
        state = RunState(candidate_queue=list(candidates))
        self._state = state
        batch: list[FileRecord] = []
        batch_index = 0
        last_error: BaseException | None = None

        state.state = SchedulerState.SCHEDULING
        while state.state is not SchedulerState.DONE:
            if state.state is SchedulerState.SCHEDULING:
                batch = state.candidate_queue[state.cursor : state.cursor + self._batch_size]
                state.state = SchedulerState.AWAITING_BATCH if batch else SchedulerState.DONE

            elif state.state is SchedulerState.AWAITING_BATCH:
                batch_index = state.cursor // self._batch_size
                set_batch_context(batch_index)
                state.attempts += 1
                results, errors = await self._run_batch(batch)
                outcome = BatchOutcome(
                    index=batch_index,
                    cursor=state.cursor,
                    paths=[record.path for record in batch],
                    succeeded=not errors,
                    errors=[str(e) for e in errors],
                )

                if errors:
                    last_error = errors[0]
                    state.failures += 1
                    for error in errors:
                        logger.error("Batch %d: %s", batch_index + 1, error)
                    state.state = SchedulerState.BACKOFF
                else:
                    state.results_collected.extend(results)
                    state.cursor += self._batch_size
                    state.failures = 0
                    self._backoff.reset_failures()
                    logger.info(
                        "Batch %d done (%d/%d files compressed)",
                        batch_index + 1,
                        len(state.results_collected),
                        len(state.candidate_queue),
                    )
                    state.state = SchedulerState.SCHEDULING

                if self._on_batch is not None:
                    self._on_batch(outcome)

            elif state.state is SchedulerState.BACKOFF:
                state.backoff_seconds = self._backoff.current_delay
                await self._backoff.wait(last_error)
                state.state = SchedulerState.SCHEDULING

        set_batch_context(None)
        self._finish(state)
        return state

    async def _run_batch(
        self, batch: list[FileRecord],
    ) -> tuple[list[CompressionResult], list[BaseException]]:
        """Run all workers of one batch and wait for every one of them."""
        outcomes = await asyncio.gather(
            *(self._worker.process(record) for record in batch),
            return_exceptions=True,
        )
        results: list[CompressionResult] = []
        errors: list[BaseException] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                errors.append(outcome)
            else:
                results.append(outcome)
        return results, errors

    def _finish(self, state: RunState) -> None:
        if state.completed or not state.is_complete:
            return
        state.completed = True
        if self._on_complete is not None and state.results_collected:
            self._on_complete(list(state.results_collected))
