from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class ScanConfig:
    targets: Tuple[str, ...]
    ports: Tuple[str, ...]
    timeout_ms: int = 1000
    max_concurrency: int = 100
    verbose: bool = False
    export_format: Optional[str] = None
    out_dir: str = "SCANS"
    open_only: bool = False

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


def bare_host(address: str) -> str:
    # socket calls want the bare IPv6 literal
    return address.strip("[]")


@dataclass(frozen=True)
class ResolvedAddress:
    address: str
    target: str

    @property
    def host(self) -> str:
        return bare_host(self.address)


@dataclass(frozen=True)
class ScanTask:
    address: str
    port: int
    timeout_s: float


@dataclass(frozen=True)
class ScanResult:
    address: str
    port: int
    is_open: bool
    elapsed_s: float = 0.0

    @property
    def endpoint(self) -> str:
        return f"{self.address}:{self.port}"
