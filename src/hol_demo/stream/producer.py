"""
Frame Producer
==============

Producer side of the request/response handoff inside a stream session.

The emitter asks for a frame by putting a request on one queue and
waits for the tagged result on another. Generation runs in this
producer task, so a slower or rate-limited source can replace the
generator without touching the emitter's cadence loop.

Design Rules:
    - One outstanding request at a time (both queues hold one item)
    - Generator errors are returned as FrameFailed, never raised
    - Runs until cancelled
"""

import asyncio
import logging
from typing import Callable

from hol_demo.stream.frame import FrameFailed, FrameReady, FrameResult


logger = logging.getLogger(__name__)


class FrameProducer:
    """
    Answers frame requests with FrameReady or FrameFailed results.

    Example:
        producer = FrameProducer(generate_random_jpeg)
        task = asyncio.create_task(producer.run())

        await producer.request()
        result = await producer.results.get()

        task.cancel()
    """

    def __init__(self, generate: Callable[[], bytes]) -> None:
        """
        Initialize producer.

        Args:
            generate: Synchronous callable returning encoded frame bytes
        """
        self._generate = generate
        self._requests: asyncio.Queue[None] = asyncio.Queue(maxsize=1)
        self.results: asyncio.Queue[FrameResult] = asyncio.Queue(maxsize=1)
        self.produced_count: int = 0

    async def request(self) -> None:
        """Ask for one frame. The result arrives on ``results``."""
        await self._requests.put(None)

    async def run(self) -> None:
        """Serve requests until the task is cancelled."""
        while True:
            await self._requests.get()

            try:
                result: FrameResult = FrameReady(self._generate())
                self.produced_count += 1
            except Exception as e:
                result = FrameFailed(e)

            await self.results.put(result)
