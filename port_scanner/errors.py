from __future__ import annotations

from typing import Optional


class PortScannerError(Exception):
    pass


class ResolutionError(PortScannerError):
    def __init__(self, target: str, cause: Optional[object] = None):
        self.target = target
        self.cause = cause
        msg = f"Failed to resolve {target}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class PortSpecError(PortScannerError):
    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(f"{reason}: {token}")
