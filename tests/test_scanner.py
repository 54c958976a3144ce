import threading
import time
from collections import Counter

import pytest

from port_scanner import scanner
from port_scanner.models import ResolvedAddress, ScanTask
from port_scanner.scanner import effective_workers, iter_tasks, probe, run_scan, scan_one


def _addrs(*ips):
    return [ResolvedAddress(ip, ip) for ip in ips]


def test_tasks_are_scheduled_addresses_outer_ports_inner():
    tasks = list(iter_tasks(_addrs("10.0.0.1", "[::1]"), [22, 80], 0.5))
    assert [(t.address, t.port) for t in tasks] == [
        ("10.0.0.1", 22),
        ("10.0.0.1", 80),
        ("[::1]", 22),
        ("[::1]", 80),
    ]
    assert all(t.timeout_s == 0.5 for t in tasks)


def test_worker_count_is_capped(monkeypatch):
    monkeypatch.setattr(scanner.os, "cpu_count", lambda: 4)
    assert effective_workers(100) == 8
    assert effective_workers(3) == 3
    assert effective_workers(100, total_tasks=2) == 2
    monkeypatch.setattr(scanner.os, "cpu_count", lambda: None)
    assert effective_workers(100) == 2


def test_every_task_yields_exactly_one_result():
    addresses = _addrs("10.0.0.1", "10.0.0.2", "10.0.0.3")
    ports = list(range(1, 41)) + [7, 7]

    results = list(
        run_scan(addresses, ports, 0.1, 5, connect=lambda a, p, t: p % 2 == 0)
    )

    assert len(results) == len(addresses) * len(ports)
    expected = Counter((a.address, p) for a in addresses for p in ports)
    assert Counter((r.address, r.port) for r in results) == expected
    assert all(r.is_open == (r.port % 2 == 0) for r in results)


def test_in_flight_connects_never_exceed_pool_size():
    lock = threading.Lock()
    state = {"now": 0, "peak": 0}

    def connect(address, port, timeout_s):
        with lock:
            state["now"] += 1
            state["peak"] = max(state["peak"], state["now"])
        time.sleep(0.005)
        with lock:
            state["now"] -= 1
        return False

    results = list(run_scan(_addrs("10.0.0.1"), list(range(1, 201)), 0.1, 4, connect=connect))

    assert len(results) == 200
    assert 1 <= state["peak"] <= effective_workers(4)


def test_producer_is_held_back_by_full_queue(monkeypatch):
    monkeypatch.setattr(scanner.os, "cpu_count", lambda: 1)
    release = threading.Event()
    pulled = []
    real_iter_tasks = scanner.iter_tasks

    def counting_iter_tasks(*args):
        for task in real_iter_tasks(*args):
            pulled.append(task)
            yield task

    monkeypatch.setattr(scanner, "iter_tasks", counting_iter_tasks)

    def connect(address, port, timeout_s):
        release.wait(5)
        return False

    results = []
    gen = run_scan(_addrs("10.0.0.1"), list(range(1, 1001)), 0.1, 2, connect=connect)
    consumer = threading.Thread(target=lambda: results.extend(gen))
    consumer.start()
    time.sleep(0.3)

    # 2 workers holding a task, 2 queued, 1 waiting on put
    assert len(pulled) <= 5

    release.set()
    consumer.join(10)
    assert not consumer.is_alive()
    assert len(results) == 1000


def test_failing_probe_still_counts_as_closed():
    def connect(address, port, timeout_s):
        if port == 3:
            raise RuntimeError("boom")
        return True

    results = list(run_scan(_addrs("10.0.0.1"), [1, 2, 3, 4], 0.1, 2, connect=connect))

    assert len(results) == 4
    assert {r.port: r.is_open for r in results} == {1: True, 2: True, 3: False, 4: True}


def test_stop_before_start_schedules_nothing():
    stop = threading.Event()
    stop.set()
    calls = []

    def connect(address, port, timeout_s):
        calls.append(port)
        return False

    assert list(run_scan(_addrs("10.0.0.1"), [1, 2, 3], 0.1, 2, connect=connect, stop=stop)) == []
    assert calls == []


def test_closing_early_leaves_no_threads_behind():
    gen = run_scan(_addrs("10.0.0.1"), list(range(1, 5001)), 0.1, 4, connect=lambda a, p, t: False)
    next(gen)
    gen.close()

    leftover = [t for t in threading.enumerate() if t.name.startswith("scan-")]
    assert leftover == []


def test_nothing_to_scan():
    assert list(run_scan([], [80], 0.1, 4)) == []
    assert list(run_scan(_addrs("10.0.0.1"), [], 0.1, 4)) == []


def test_concurrency_must_be_positive():
    with pytest.raises(ValueError):
        list(run_scan(_addrs("10.0.0.1"), [80], 0.1, 0))


def test_probe_against_local_listener(listener, closed_port):
    assert probe("127.0.0.1", listener, 1.0) is True
    assert probe("127.0.0.1", closed_port, 1.0) is False


def test_scan_one_reports_elapsed(listener):
    r = scan_one(ScanTask("127.0.0.1", listener, 1.0))
    assert r.is_open
    assert r.endpoint == f"127.0.0.1:{listener}"
    assert r.elapsed_s >= 0
