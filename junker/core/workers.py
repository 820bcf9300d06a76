"""
JUNKER Worker Pool

A fixed number of asyncio tasks, each looping: take one test from the
queue, run it through the prober, publish it to the result queue. A
worker stops when it takes the STOP sentinel; the feeder puts one
sentinel per worker once every test has been queued.
"""

import asyncio
import logging
from datetime import datetime, timezone

from .types import Outcome, SmuggleTest, TestStatus

logger = logging.getLogger(__name__)

# Close marker for both queues
STOP = None


class WorkerPool:
    """Runs ``size`` workers over a shared test queue"""

    def __init__(self, prober, size: int = 10):
        if size < 1:
            raise ValueError("size must be >= 1")
        self.prober = prober
        self.size = size

    async def close(self, tests: asyncio.Queue) -> None:
        """Signal that no more tests will arrive"""
        for _ in range(self.size):
            await tests.put(STOP)

    async def run(self, tests: asyncio.Queue, results: asyncio.Queue) -> None:
        """Return once every worker has drained the queue and exited"""
        await asyncio.gather(*(
            self._worker(n, tests, results) for n in range(self.size)
        ))

    async def _worker(self, n: int, tests: asyncio.Queue, results: asyncio.Queue) -> None:
        handled = 0
        while True:
            test = await tests.get()
            if test is STOP:
                break
            await results.put(await self._probe(test))
            handled += 1
        logger.debug("Worker %d finished after %d test(s)", n, handled)

    async def _probe(self, test: SmuggleTest) -> SmuggleTest:
        try:
            return await self.prober.probe(test)
        except Exception as e:
            # One broken test must not take the worker down with it
            logger.exception("Unexpected failure probing %s", test)
            test.outcome = Outcome.ERROR
            test.error = f"{type(e).__name__}: {e}"
            test.status = TestStatus.DONE
            if test.finished_at is None:
                test.finished_at = datetime.now(timezone.utc)
            return test
