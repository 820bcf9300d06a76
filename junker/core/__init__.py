"""
JUNKER Core Module

Engine, transport, comparator, planning and scheduling.
"""

from .engine import JunkerEngine, ScanConfig
from .errors import ConfigError, InputError, JunkerError, TransportError, TransportTimeout
from .types import Outcome, ScanStats, SmuggleTest, TestStatus

__all__ = [
    "JunkerEngine",
    "ScanConfig",
    "Outcome",
    "ScanStats",
    "SmuggleTest",
    "TestStatus",
    "JunkerError",
    "ConfigError",
    "InputError",
    "TransportError",
    "TransportTimeout",
]
