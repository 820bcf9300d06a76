"""
JUNKER Batch Scheduler

Reads target lines in fixed-size batches, expands every target of the
batch into tests and feeds them to the worker queue in random order.

Shuffling happens per batch: the mutation pairs for one target are mixed
with every other target's pairs from the same batch, so no server sees a
predictable sequence of probes. Batch size trades memory for the quality
of that mix. Nothing is shuffled across batch boundaries.
"""

import asyncio
import logging
import random
from itertools import islice
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence

from .errors import InputError
from .planner import expand
from .resolver import TargetResolver
from .types import ScanStats, SmuggleTest

logger = logging.getLogger(__name__)


def next_batch(it: Iterator[str], batch_size: int) -> List[str]:
    """Pull up to batch_size lines; may block on a slow input stream"""
    return list(islice(it, batch_size))


def shuffled(tests: List[SmuggleTest], rng: random.Random) -> Iterator[SmuggleTest]:
    """Draw uniformly at random from the pool until it is empty"""
    pool = list(tests)
    while pool:
        i = rng.randrange(len(pool))
        # Swap-pop keeps each draw O(1)
        pool[i], pool[-1] = pool[-1], pool[i]
        yield pool.pop()


class BatchScheduler:
    """Feeder side of the pipeline"""

    def __init__(
        self,
        resolver: TargetResolver,
        catalog: Mapping[str, str],
        methods: Sequence[str],
        batch_size: int = 200,
        rng: Optional[random.Random] = None,
        stats: Optional[ScanStats] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.resolver = resolver
        self.catalog = catalog
        self.methods = list(methods)
        self.batch_size = batch_size
        self.rng = rng or random.Random()
        self.stats = stats

    async def plan_batch(self, batch: Sequence[str]) -> List[SmuggleTest]:
        """Resolve and expand every line of a batch; bad lines are skipped"""
        tests: List[SmuggleTest] = []
        for raw in batch:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if self.stats:
                self.stats.lines_read += 1

            try:
                targets = await self.resolver.targets(line)
            except InputError as e:
                logger.warning("Skipping input line: %s", e)
                if self.stats:
                    self.stats.input_errors += 1
                continue

            for url, ip in targets:
                tests.extend(expand(url, ip, self.methods, self.catalog))
        return tests

    async def run(self, lines: Iterable[str], queue: asyncio.Queue) -> int:
        """Feed every test to the queue; returns the number of tests fed"""
        it = iter(lines)
        fed = 0
        number = 0
        while True:
            # Input may be a pipe from a slow producer; read it off the loop
            batch = await asyncio.to_thread(next_batch, it, self.batch_size)
            if not batch:
                break
            number += 1
            tests = await self.plan_batch(batch)
            logger.info("Batch %d: %d line(s), %d test(s)", number, len(batch), len(tests))
            if self.stats:
                self.stats.batches += 1
                self.stats.tests_generated += len(tests)

            for test in shuffled(tests, self.rng):
                await queue.put(test)
                fed += 1
            if len(batch) < self.batch_size:
                break
        return fed
