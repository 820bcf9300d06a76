"""
JUNKER JSON-lines Sink

One JSON object per completed test, one test per line.
"""

import asyncio
import json
import logging
from typing import Callable, Optional, TextIO

from junker.core.types import SmuggleTest
from junker.core.workers import STOP

logger = logging.getLogger(__name__)


class JsonlSink:
    """Writes finished tests to a text stream (file or stdout)"""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.written = 0

    def emit(self, test: SmuggleTest) -> None:
        try:
            line = json.dumps(test.to_dict())
        except (TypeError, ValueError) as e:
            logger.error("Could not serialize %s: %s", test, e)
            return
        self.stream.write(line + "\n")
        self.stream.flush()
        self.written += 1

    async def collect(
        self,
        results: asyncio.Queue,
        on_result: Optional[Callable[[SmuggleTest], None]] = None,
    ) -> int:
        """Drain the result queue until STOP; returns records written"""
        while True:
            test = await results.get()
            if test is STOP:
                break
            self.emit(test)
            if on_result:
                on_result(test)
        return self.written
