"""Bounded-concurrency dispatch of verifier batches.

Batches run on a ThreadPoolExecutor with at most ``concurrency`` in
flight. A failing batch is logged and reported as failed; it never
affects the other batches. An overall timeout or a cancel event stops
submission and abandons whatever is still running: the executor is
shut down without waiting, so a hung request cannot stall the caller.

Outcomes come back in batch order.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")

logger = logging.getLogger(__name__)

# How often to re-check the cancel event while batches are in flight.
CANCEL_POLL_SECONDS = 0.05


class BatchStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass
class BatchOutcome(Generic[OutT]):
    index: int
    status: BatchStatus
    value: OutT | None = None
    error: str | None = None


def dispatch_batches(
    batches: Sequence[InT],
    worker: Callable[[InT], OutT],
    *,
    concurrency: int,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> list[BatchOutcome[OutT]]:
    """Run ``worker`` over ``batches`` with a bounded number in flight.

    Args:
        batches: Work items, one worker call each.
        worker: Called from pool threads; exceptions mark the batch FAILED.
        concurrency: Maximum worker calls running at once.
        timeout: Overall budget in seconds for the whole dispatch.
        cancel: When set, stop as if the timeout had expired.

    Returns:
        One BatchOutcome per batch, in input order. Batches not finished
        when the deadline hits or ``cancel`` is set are ABANDONED.
    """
    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    outcomes: dict[int, BatchOutcome[OutT]] = {}
    if not batches:
        return []

    deadline = time.monotonic() + timeout if timeout is not None else None
    pending = iter(enumerate(batches))
    future_to_idx: dict[Future, int] = {}
    active: set[Future] = set()

    pool = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="verify")

    def _submit() -> bool:
        try:
            idx, batch = next(pending)
        except StopIteration:
            return False
        fut = pool.submit(worker, batch)
        future_to_idx[fut] = idx
        active.add(fut)
        return True

    try:
        # Prime the window
        for _ in range(concurrency):
            if not _submit():
                break

        while active:
            if cancel is not None and cancel.is_set():
                logger.warning("Verification cancelled with %d batches in flight", len(active))
                break
            wait_for = None
            if deadline is not None:
                wait_for = deadline - time.monotonic()
                if wait_for <= 0:
                    logger.warning(
                        "Verification timed out after %.1fs with %d batches in flight",
                        timeout, len(active),
                    )
                    break
            if cancel is not None:
                wait_for = CANCEL_POLL_SECONDS if wait_for is None else min(wait_for, CANCEL_POLL_SECONDS)

            done, active = wait(active, timeout=wait_for, return_when=FIRST_COMPLETED)

            for fut in done:
                idx = future_to_idx.pop(fut)
                try:
                    outcomes[idx] = BatchOutcome(idx, BatchStatus.OK, value=fut.result())
                except Exception as e:  # noqa: BLE001
                    logger.exception("Verifier batch %d failed", idx)
                    outcomes[idx] = BatchOutcome(idx, BatchStatus.FAILED, error=str(e) or type(e).__name__)

            # Top up: one new submission per completion
            for _ in range(len(done)):
                if not _submit():
                    break
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    return [
        outcomes.get(i, BatchOutcome(i, BatchStatus.ABANDONED))
        for i in range(len(batches))
    ]
