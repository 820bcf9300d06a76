"""
JUNKER Reporters

JSON-lines result sink and the console summary.
"""

from .console import print_summary
from .jsonl import JsonlSink

__all__ = ["JsonlSink", "print_summary"]
