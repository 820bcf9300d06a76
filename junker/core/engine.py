"""
JUNKER Core Engine

Wires the pipeline together:

    BatchScheduler ──(tests)──▶ WorkerPool ──(results)──▶ JsonlSink

Shutdown order: the feeder queues every test then one STOP per worker;
workers exit on STOP; only after all workers have returned is STOP put
on the result queue, so the sink drains every in-flight test before the
scan completes. If any stage fails (a sink that can no longer write, a
feeder error) the remaining stages are cancelled and the error raised.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional

import yaml

from junker.reporters.jsonl import JsonlSink
from junker.scanners.differential import DifferentialProber, with_default_headers

from . import mutations
from .errors import ConfigError
from .resolver import Lookup, TargetResolver
from .scheduler import BatchScheduler
from .transport import RawTransport
from .types import ScanStats, SmuggleTest
from .workers import STOP, WorkerPool

logger = logging.getLogger(__name__)


# YAML values arrive untyped; these coerce or raise ConfigError

def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _number(section: dict, key: str, default, kind):
    value = section.get(key, default)
    if value is None:
        return None
    # bool is an int subclass; 'workers: yes' is a mistake, not 1
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from e


def _flag(section: dict, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def _strings(section: dict, key: str, default: List[str]) -> List[str]:
    value = section.get(key, default)
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a string or a list of strings")
    return list(value)


@dataclass
class ScanConfig:
    """Scan configuration"""
    # Scanning
    workers: int = 10
    batch_size: int = 200
    resolve: bool = True
    seed: Optional[int] = None

    # Requests
    methods: List[str] = field(default_factory=lambda: ["POST"])
    timeout: float = 5.0
    headers: List[str] = field(default_factory=list)
    rounds: int = 1
    max_response_size: Optional[int] = None

    @classmethod
    def from_yaml(cls, path: Path) -> "ScanConfig":
        """Load config from YAML file"""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping")

        scanning = _section(data, "scanning")
        request = _section(data, "request")
        defaults = cls()
        return cls(
            workers=_number(scanning, "workers", defaults.workers, int),
            batch_size=_number(scanning, "batch_size", defaults.batch_size, int),
            resolve=_flag(scanning, "resolve", defaults.resolve),
            seed=_number(scanning, "seed", defaults.seed, int),
            methods=_strings(request, "methods", defaults.methods),
            timeout=_number(request, "timeout", defaults.timeout, float),
            headers=_strings(request, "headers", defaults.headers),
            rounds=_number(request, "rounds", defaults.rounds, int),
            max_response_size=_number(
                request, "max_response_size", defaults.max_response_size, int
            ),
        )

    def validate(self) -> "ScanConfig":
        if self.workers < 1:
            raise ConfigError("workers must be at least 1")
        if self.batch_size < 1:
            raise ConfigError("batch_size must be at least 1")
        if self.rounds < 1:
            raise ConfigError("rounds must be at least 1")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if not self.methods:
            raise ConfigError("at least one HTTP method is required")
        if self.max_response_size is not None and self.max_response_size < 1:
            raise ConfigError("max_response_size must be positive")
        for header in self.headers:
            if ":" not in header:
                raise ConfigError(f"header {header!r} is not in 'Name: value' form")
        return self

    def effective_headers(self) -> List[str]:
        """Extra headers with the User-Agent / Connection defaults applied"""
        return with_default_headers(self.headers)


class JunkerEngine:
    """
    The scan orchestrator.

    Usage:
        engine = JunkerEngine(ScanConfig(workers=20))
        stats = await engine.run(open("targets.txt"), JsonlSink(sys.stdout))

    Every collaborator can be injected (transport, DNS lookup, catalog,
    RNG) so a whole scan can be driven without touching the network.
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        transport=None,
        lookup: Optional[Lookup] = None,
        catalog: Optional[Mapping[str, str]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = (config or ScanConfig()).validate()
        self.catalog = catalog if catalog is not None else mutations.load()
        # Seeded once per run
        self.rng = rng or random.Random(self.config.seed)
        self.transport = transport or RawTransport(self.config.max_response_size)
        self.resolver = TargetResolver(resolve=self.config.resolve, lookup=lookup)
        self.prober = DifferentialProber(
            self.transport,
            self.catalog,
            headers=self.config.effective_headers(),
            timeout=self.config.timeout,
            rounds=self.config.rounds,
        )

    async def run(
        self,
        lines: Iterable[str],
        sink: JsonlSink,
        on_result: Optional[Callable[[SmuggleTest], None]] = None,
    ) -> ScanStats:
        """Scan every target in ``lines``; returns when all tests are drained"""
        stats = ScanStats(started_at=datetime.now(timezone.utc))
        tests: asyncio.Queue = asyncio.Queue(maxsize=1)
        results: asyncio.Queue = asyncio.Queue(maxsize=self.config.workers)

        scheduler = BatchScheduler(
            self.resolver,
            self.catalog,
            self.config.methods,
            batch_size=self.config.batch_size,
            rng=self.rng,
            stats=stats,
        )
        pool = WorkerPool(self.prober, size=self.config.workers)

        def record(test: SmuggleTest) -> None:
            stats.record(test)
            if on_result:
                on_result(test)

        async def feed() -> None:
            await scheduler.run(lines, tests)
            await pool.close(tests)

        async def work() -> None:
            await pool.run(tests, results)
            await results.put(STOP)

        logger.info(
            "Scanning with %d worker(s), %d mutation(s), methods %s",
            self.config.workers, len(self.catalog), ", ".join(self.config.methods),
        )
        await self._supervise(feed(), work(), sink.collect(results, on_result=record))

        stats.completed_at = datetime.now(timezone.utc)
        logger.info(
            "Scan complete: %d test(s) in %.1fs, %d vulnerable",
            stats.tests_completed, stats.duration, len(stats.vulnerable),
        )
        return stats

    @staticmethod
    async def _supervise(*stages) -> None:
        """
        Run the pipeline stages together.

        If any stage fails the others are cancelled and awaited before the
        error is re-raised, so no stage is left blocked on a queue whose
        other end has gone away.
        """
        tasks = [asyncio.ensure_future(stage) for stage in stages]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if task.exception() is not None:
                    raise task.exception()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
