"""Bounded worker pool between the walker and the aggregator."""
from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from yarawatch_core.models import Failed, ScanCandidate, Verdict

logger = logging.getLogger(__name__)

ScanFn = Callable[[Path], Verdict]

_DONE = object()
_PUT_POLL_S = 0.1


def dispatch(
    candidates: Iterable[ScanCandidate],
    scan: ScanFn,
    concurrency: int,
    stop: Optional[threading.Event] = None,
    on_worker_start: Optional[Callable[[], None]] = None,
) -> Iterator[Tuple[Path, Verdict]]:
    """
    Fan candidates out to `concurrency` worker threads and yield one
    (path, verdict) per scanned candidate, in completion order.

    Candidates are pulled lazily through a queue of 2 * concurrency slots,
    so traversal and scanning overlap and memory stays bounded. After a
    stop signal no new candidate is started; in-flight scans finish.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    halt = threading.Event()
    work: "queue.Queue[object]" = queue.Queue(maxsize=2 * concurrency)
    results: "queue.Queue[object]" = queue.Queue()
    producer_error: List[BaseException] = []

    def stopped() -> bool:
        return halt.is_set() or (stop is not None and stop.is_set())

    def produce() -> None:
        try:
            for candidate in candidates:
                while True:
                    if stopped():
                        return
                    try:
                        work.put(candidate, timeout=_PUT_POLL_S)
                        break
                    except queue.Full:
                        continue
        except BaseException as e:
            producer_error.append(e)
        finally:
            # workers keep draining until they see their sentinel
            for _ in range(concurrency):
                work.put(_DONE)

    def consume() -> None:
        if on_worker_start is not None:
            try:
                on_worker_start()
            except Exception:
                logger.exception("Worker start hook failed")
        while True:
            item = work.get()
            if item is _DONE:
                break
            if stopped():
                continue
            path = item.path
            try:
                verdict = scan(path)
            except Exception as e:
                logger.error("Failed to scan file %s: %s", path, e)
                verdict = Failed(str(e) or type(e).__name__)
            results.put((path, verdict))
        results.put(_DONE)

    threads = [threading.Thread(target=produce, name="yarawatch-walker", daemon=True)]
    threads += [
        threading.Thread(target=consume, name=f"yarawatch-worker-{i}", daemon=True)
        for i in range(concurrency)
    ]
    logger.info("Spawning %d scanner(s)...", concurrency)
    for t in threads:
        t.start()

    remaining = concurrency
    try:
        while remaining:
            item = results.get()
            if item is _DONE:
                remaining -= 1
                continue
            yield item
    finally:
        halt.set()
        for t in threads:
            t.join()

    if producer_error:
        raise producer_error[0]
