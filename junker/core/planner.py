"""
JUNKER Test-Plan Generator

Expands a resolved target into every unordered pair of distinct
mutations, per method. For n mutations that is C(n, 2) tests per
(target, address, method). Slot order follows catalog order and nothing
is shuffled here; randomisation belongs to the scheduler.
"""

from itertools import combinations
from typing import Iterable, List, Mapping
from urllib.parse import SplitResult

from .types import SmuggleTest


def mutation_pairs(catalog: Mapping[str, str]):
    """All unordered pairs of distinct mutation names"""
    return combinations(catalog.keys(), 2)


def expand(
    url: SplitResult,
    ip: str,
    methods: Iterable[str],
    catalog: Mapping[str, str],
) -> List[SmuggleTest]:
    """Generate the tests for one (url, ip) target"""
    return [
        SmuggleTest(url=url, ip=ip, method=method, mutations=(first, second))
        for method in methods
        for first, second in mutation_pairs(catalog)
    ]
