"""
JUNKER Core Types

Data classes and enums used throughout the scanner.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import SplitResult

# =============================================================================
# OUTCOMES
# =============================================================================

class Outcome(Enum):
    """Terminal classification of one differential test"""
    R1_EQUAL_BASELINE = "R1_equal_baseline"  # Variant-A matched baseline (common case)
    R2_EQUAL_BASELINE = "R2_equal_baseline"  # Variant-B matched baseline
    R1_EQUAL_R2 = "R1_equal_R2"              # Both variants agree with each other
    VULNERABLE = "vulnerable"                # All three responses differ
    ERROR = "error"                          # Transport failure
    TIMEOUT = "timeout"                      # Deadline expired

    @property
    def color(self) -> str:
        """Rich console color for this outcome"""
        return {
            Outcome.R1_EQUAL_BASELINE: "dim",
            Outcome.R2_EQUAL_BASELINE: "dim",
            Outcome.R1_EQUAL_R2: "cyan",
            Outcome.VULNERABLE: "bright_red",
            Outcome.ERROR: "yellow",
            Outcome.TIMEOUT: "magenta",
        }[self]


class TestStatus(Enum):
    """Lifecycle of a test case"""
    __test__ = False  # not a pytest class

    PENDING = "pending"    # Generated, waiting in the queue
    RUNNING = "running"    # Claimed by a worker
    DONE = "done"          # Outcome assigned


# =============================================================================
# TEST CASES
# =============================================================================

@dataclass
class SmuggleTest:
    """
    One probe: a target address, a method and a pair of mutations.

    Created by the planner, claimed by exactly one worker, mutated in place
    while the differential exchange runs, then emitted once to the sink.
    """

    url: SplitResult
    ip: str
    method: str
    mutations: Tuple[str, str]

    # Result record
    status: TestStatus = TestStatus.PENDING
    outcome: Optional[Outcome] = None
    requests: List[bytes] = field(default_factory=list)
    responses: List[bytes] = field(default_factory=list)
    runs: int = 0
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def host(self) -> str:
        """Bare host name, used for SNI"""
        return self.url.hostname or ""

    @property
    def host_header(self) -> str:
        """Host header value: the authority without userinfo"""
        return self.url.netloc.rpartition("@")[2]

    @property
    def port(self) -> int:
        """Explicit URL port, else the scheme default"""
        if self.url.port:
            return self.url.port
        return 443 if self.url.scheme == "https" else 80

    @property
    def path(self) -> str:
        path = self.url.path or "/"
        if self.url.query:
            path = f"{path}?{self.url.query}"
        return path

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serializable record; raw bytes are kept byte-for-byte as latin-1 text"""
        return {
            "url": self.url.geturl(),
            "ip": self.ip,
            "method": self.method,
            "mutations": list(self.mutations),
            "outcome": self.outcome.value if self.outcome else None,
            "status": self.status.value,
            "requests": [r.decode("latin-1") for r in self.requests],
            "responses": [r.decode("latin-1") for r in self.responses],
            "runs": self.runs,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    def __str__(self) -> str:
        outcome = self.outcome.value if self.outcome else self.status.value
        return (f"[{outcome}] {self.method} {self.url.geturl()} @ {self.ip} "
                f"({self.mutations[0]} / {self.mutations[1]})")


# =============================================================================
# SCAN RESULTS
# =============================================================================

@dataclass
class ScanStats:
    """Counters for one scan run"""
    started_at: datetime
    completed_at: Optional[datetime] = None

    lines_read: int = 0
    input_errors: int = 0
    batches: int = 0
    tests_generated: int = 0

    outcomes: Dict[Outcome, int] = field(
        default_factory=lambda: {o: 0 for o in Outcome}
    )
    vulnerable: List[SmuggleTest] = field(default_factory=list)

    @property
    def tests_completed(self) -> int:
        return sum(self.outcomes.values())

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def record(self, test: SmuggleTest) -> None:
        """Count a finished test"""
        if test.outcome is None:
            return
        self.outcomes[test.outcome] += 1
        if test.outcome is Outcome.VULNERABLE:
            self.vulnerable.append(test)
