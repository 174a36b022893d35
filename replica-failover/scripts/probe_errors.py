"""
Typed failures for a single replica probe
"""
from typing import Optional


class ProbeError(Exception):
    """Base class for anything that keeps a replica out of selection"""

    kind = "probe"

    def __init__(self, message: str, stage: Optional[str] = None, kind: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        if kind:
            self.kind = kind

    def __str__(self) -> str:
        if self.stage:
            return f"{self.kind} error during {self.stage}: {self.message}"
        return f"{self.kind} error: {self.message}"


class ProbeConnectionError(ProbeError):
    """Replica could not be reached or rejected authentication"""

    kind = "connection"


class ProbeQueryError(ProbeError):
    """Version or position query failed on the server"""

    kind = "query"


class ProbeParseError(ProbeError):
    """Result set was empty or did not hold well-formed offsets"""

    kind = "parse"


class ProbeDeadlineError(ProbeError):
    """Probe was still running when the evaluation deadline passed"""

    kind = "deadline"


class ProbeTimeoutError(ProbeError):
    """Probe ran past its own timeout"""

    kind = "timeout"
