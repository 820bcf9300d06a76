"""
JUNKER Response Comparator

Decides whether two raw HTTP responses are "the same" for the purposes of
differential analysis. Exact equality is useless here: dates, request ids
and keep-alive counters differ between otherwise identical responses.

Two responses are equal when:
1. Their status lines are byte-identical, and
2. Their raw lengths are within ±20% of each other.
"""

# Allowed relative difference in raw response length
LENGTH_TOLERANCE = 0.2


def status_line(response: bytes) -> bytes:
    """First line of a raw response, without the line terminator"""
    line = response.split(b"\n", 1)[0]
    return line.rstrip(b"\r")


def lengths_close(a: int, b: int, tolerance: float = LENGTH_TOLERANCE) -> bool:
    """True if each length lies within the tolerance band of the other"""
    low, high = 1.0 - tolerance, 1.0 + tolerance
    return low * b <= a <= high * b and low * a <= b <= high * a


def responses_equal(a: bytes, b: bytes) -> bool:
    """Heuristic equality of two raw responses (status line + length band)"""
    if status_line(a) != status_line(b):
        return False
    return lengths_close(len(a), len(b))
