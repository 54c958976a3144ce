from __future__ import annotations

import csv
import json
import os
import sys
from datetime import datetime
from typing import List, Optional, TextIO

from .models import ScanConfig, ScanResult

PROGRESS_EVERY = 10
# scans this small get no progress lines at all
PROGRESS_MIN_TOTAL = 10


def banner_line(config: ScanConfig, n_addresses: int, n_ports: int, workers: int) -> str:
    line = (
        f"Scanning {n_addresses} target(s) across {n_ports} port(s) "
        f"with timeout {config.timeout_ms} ms using max {workers} threads"
    )
    if config.verbose:
        line += " (verbose mode)"
    return line


class Reporter:
    """
    Single consumer of scan results. Lines appear in completion order.
    Results are only retained when `keep` is set (for export).
    """

    def __init__(
        self,
        total: int,
        verbose: bool = False,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        progress_every: int = PROGRESS_EVERY,
        keep: bool = False,
        keep_closed: bool = True,
    ):
        self.total = total
        self.verbose = verbose
        self.out = out if out is not None else sys.stdout
        self.err = err if err is not None else sys.stderr
        self.progress_every = progress_every
        self.keep = keep
        self.keep_closed = keep_closed
        self.completed = 0
        self.open_count = 0
        self.results: List[ScanResult] = []

    def handle(self, r: ScanResult) -> None:
        self.completed += 1
        if self.keep and (r.is_open or self.keep_closed):
            self.results.append(r)

        if r.is_open:
            self.open_count += 1
            print(f"{r.endpoint} is open", file=self.out, flush=True)
        elif self.verbose:
            print(f"{r.endpoint} is closed", file=self.out, flush=True)

        if (
            self.progress_every > 0
            and self.total > PROGRESS_MIN_TOTAL
            and self.completed % self.progress_every == 0
        ):
            pct = self.completed * 100 // self.total
            print(
                f"\rProgress: {self.completed}/{self.total} scans completed ({pct}%)",
                end="",
                file=self.err,
                flush=True,
            )

    def summary(self, n_targets: int, n_ports: int) -> None:
        print(
            f"\rScan completed: {n_targets} target(s), {n_ports} port(s)",
            file=self.err,
            flush=True,
        )


def format_row(r: ScanResult) -> str:
    status = "open" if r.is_open else "closed"
    return f"{r.endpoint} | {status} ({r.elapsed_s:.4f}s)"


def _sort_key(r: ScanResult):
    return (r.address, r.port)


def save_results(
    results: List[ScanResult],
    fmt: str,
    out_dir: str = "SCANS",
    open_only: bool = False,
) -> str:
    if fmt not in ("txt", "csv", "json"):
        raise ValueError(f"Unsupported format: {fmt}")

    os.makedirs(out_dir, exist_ok=True)
    ts = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    path = os.path.join(out_dir, f"{ts}_port_scan.{fmt}")

    filtered = sorted((r for r in results if (r.is_open or not open_only)), key=_sort_key)

    if fmt == "txt":
        with open(path, "w", encoding="utf-8") as f:
            f.write(f"Found {sum(1 for r in results if r.is_open)} open ports\n")
            for r in filtered:
                f.write(format_row(r) + "\n")

    elif fmt == "csv":
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(["address", "port", "status", "elapsed_s"])
            for r in filtered:
                w.writerow([r.address, r.port, "open" if r.is_open else "closed", r.elapsed_s])

    else:
        payload = [
            {
                "address": r.address,
                "port": r.port,
                "status": "open" if r.is_open else "closed",
                "elapsed_s": r.elapsed_s,
            }
            for r in filtered
        ]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

    return path
