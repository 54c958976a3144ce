from __future__ import annotations

import logging
import os
import queue
import socket
import threading
import time
from typing import Callable, Iterator, List, Optional, Sequence

from .models import ResolvedAddress, ScanResult, ScanTask, bare_host

logger = logging.getLogger(__name__)

Connect = Callable[[str, int, float], bool]

# end-of-work / end-of-results marker
_DONE = object()

_PUT_POLL_S = 0.1


def worker_cap() -> int:
    """
    Connect scans are bound by sockets and context switches, not CPU.
    Cap the pool at twice the hardware parallelism.
    """
    return (os.cpu_count() or 1) * 2


def effective_workers(max_concurrency: int, total_tasks: Optional[int] = None) -> int:
    n = min(max_concurrency, worker_cap())
    if total_tasks is not None:
        n = min(n, total_tasks)
    return max(n, 1)


def probe(address: str, port: int, timeout_s: float) -> bool:
    try:
        with socket.create_connection((bare_host(address), port), timeout=timeout_s):
            return True
    except (socket.timeout, ConnectionRefusedError, OSError):
        return False


def scan_one(task: ScanTask, connect: Connect = probe) -> ScanResult:
    start = time.perf_counter()
    is_open = connect(task.address, task.port, task.timeout_s)
    elapsed = time.perf_counter() - start
    return ScanResult(
        address=task.address,
        port=task.port,
        is_open=is_open,
        elapsed_s=round(elapsed, 4),
    )


def iter_tasks(
    addresses: Sequence[ResolvedAddress],
    ports: Sequence[int],
    timeout_s: float,
) -> Iterator[ScanTask]:
    for a in addresses:
        for p in ports:
            yield ScanTask(a.address, p, timeout_s)


def _put(q: queue.Queue, item, stop: threading.Event) -> bool:
    # blocks while the queue is full, but still notices a stop request
    while not stop.is_set():
        try:
            q.put(item, timeout=_PUT_POLL_S)
            return True
        except queue.Full:
            continue
    return False


def _produce(
    tasks: queue.Queue,
    addresses: Sequence[ResolvedAddress],
    ports: Sequence[int],
    timeout_s: float,
    n_workers: int,
    stop: threading.Event,
) -> None:
    published = 0
    try:
        for task in iter_tasks(addresses, ports, timeout_s):
            if not _put(tasks, task, stop):
                logger.debug("Scan stopped after %d scheduled tasks", published)
                break
            published += 1
    finally:
        # one marker per worker closes the work queue
        for _ in range(n_workers):
            tasks.put(_DONE)


def _work(tasks: queue.Queue, results: queue.Queue, connect: Connect) -> None:
    while True:
        task = tasks.get()
        if task is _DONE:
            return
        try:
            result = scan_one(task, connect)
        except Exception:
            logger.exception("Probe of %s:%d failed", task.address, task.port)
            result = ScanResult(task.address, task.port, False)
        results.put(result)


def _close_when_done(workers: List[threading.Thread], results: queue.Queue) -> None:
    for w in workers:
        w.join()
    results.put(_DONE)


def run_scan(
    addresses: Sequence[ResolvedAddress],
    ports: Sequence[int],
    timeout_s: float,
    max_concurrency: int,
    connect: Connect = probe,
    stop: Optional[threading.Event] = None,
) -> Iterator[ScanResult]:
    """
    Bounded-queue scanner: one producer, a fixed worker pool, one closer.
    Yields results in completion order, one per scheduled task.
    Setting `stop` ends scheduling; tasks already queued still report.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be >= 1")

    stop = stop if stop is not None else threading.Event()
    total = len(addresses) * len(ports)
    if total == 0:
        return
    n_workers = effective_workers(max_concurrency, total)
    logger.debug("Starting %d workers for %d scans", n_workers, total)

    tasks: queue.Queue = queue.Queue(maxsize=max_concurrency)
    results: queue.Queue = queue.Queue(maxsize=max_concurrency)

    producer = threading.Thread(
        target=_produce,
        args=(tasks, addresses, ports, timeout_s, n_workers, stop),
        name="scan-producer",
        daemon=True,
    )
    workers = [
        threading.Thread(
            target=_work,
            args=(tasks, results, connect),
            name=f"scan-worker-{i}",
            daemon=True,
        )
        for i in range(n_workers)
    ]
    closer = threading.Thread(
        target=_close_when_done,
        args=(workers, results),
        name="scan-closer",
        daemon=True,
    )

    for w in workers:
        w.start()
    producer.start()
    closer.start()

    item = None
    try:
        while True:
            item = results.get()
            if item is _DONE:
                break
            yield item
    finally:
        if item is not _DONE:
            # consumer left early: stop scheduling and let the pool drain
            stop.set()
            while item is not _DONE:
                item = results.get()
        producer.join()
        closer.join()
