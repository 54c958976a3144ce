from __future__ import annotations

import argparse
import sys
import threading

from . import __version__
from .logger import create_logger
from .models import ScanConfig
from .output import Reporter, banner_line, save_results
from .ports import expand_ports, split_port_spec
from .scanner import effective_workers, run_scan
from .targets import resolve_all

DEFAULT_PORTS = "80,443"
DEFAULT_TIMEOUT_MS = 1000
DEFAULT_MAX_THREADS = 100


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1: {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="port-scanner",
        description="Concurrent TCP connect port scanner",
        epilog=(
            "examples:\n"
            "  port-scanner -t example.com -p 80,443\n"
            "  port-scanner -t 192.168.1.1 -p 1-1000 -T 500 -j 50\n"
            "  port-scanner -t localhost -p common"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-t", "--targets", help="Targets to scan (comma separated)")
    p.add_argument(
        "-p", "--ports",
        default=DEFAULT_PORTS,
        help=f"Ports to scan (comma separated, or 'common' or 'all'). Default: {DEFAULT_PORTS}",
    )
    p.add_argument(
        "-T", "--timeout",
        type=_positive_int,
        default=DEFAULT_TIMEOUT_MS,
        help=f"Connection timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    )
    p.add_argument(
        "-j", "--threads",
        type=_positive_int,
        default=DEFAULT_MAX_THREADS,
        help=f"Maximum number of concurrent threads (default: {DEFAULT_MAX_THREADS})",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose mode (show closed ports)")
    p.add_argument(
        "-V", "--version",
        action="version",
        version=f"Port Scanner version {__version__}",
        help="Show version information",
    )
    p.add_argument("--format", choices=["txt", "csv", "json"], help="Save results to file")
    p.add_argument("--out-dir", default="SCANS", help="Output directory for saved files")
    p.add_argument("--open-only", action="store_true", help="Only save open ports")
    return p


def config_from_args(args: argparse.Namespace) -> ScanConfig:
    return ScanConfig(
        targets=tuple(t.strip() for t in args.targets.split(",") if t.strip()),
        ports=tuple(split_port_spec(args.ports)),
        timeout_ms=args.timeout,
        max_concurrency=args.threads,
        verbose=args.verbose,
        export_format=args.format,
        out_dir=args.out_dir,
        open_only=args.open_only,
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.targets:
        parser.print_usage(sys.stderr)
        print("port-scanner: error: no targets given (-t)", file=sys.stderr)
        return 1

    config = config_from_args(args)
    logger = create_logger(verbose=config.verbose)

    addresses = resolve_all(config.targets)
    if not addresses:
        logger.error("No valid targets to scan")
        return 1

    ports = expand_ports(config.ports)
    if not ports:
        logger.error("No valid ports to scan")
        return 1

    total = len(addresses) * len(ports)
    workers = effective_workers(config.max_concurrency, total)
    print(banner_line(config, len(addresses), len(ports), workers), flush=True)

    reporter = Reporter(
        total=total,
        verbose=config.verbose,
        keep=config.export_format is not None,
        keep_closed=not config.open_only,
    )
    stop = threading.Event()
    interrupted = False
    scan = run_scan(
        addresses,
        ports,
        timeout_s=config.timeout_s,
        max_concurrency=config.max_concurrency,
        stop=stop,
    )
    try:
        for r in scan:
            reporter.handle(r)
    except KeyboardInterrupt:
        interrupted = True
        stop.set()
        # drains in-flight tasks when the interrupt landed outside the generator
        scan.close()
        logger.error("\nScan interrupted after %d/%d scans", reporter.completed, total)

    reporter.summary(len(addresses), len(ports))

    if config.export_format:
        path = save_results(
            reporter.results,
            fmt=config.export_format,
            out_dir=config.out_dir,
            open_only=config.open_only,
        )
        logger.info("Saved results to %s", path)

    return 130 if interrupted else 0
