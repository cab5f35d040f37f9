import asyncio
from typing import List, Optional

from logging_config import get_logger
from relay import RelayEngine

logger = get_logger(__name__)


class LivenessMonitor:
    """Probes every connection on a fixed interval and evicts the silent ones.

    A connection that has not answered the previous probe by the next sweep is
    evicted, so an unresponsive peer lingers for at most two intervals.
    """

    def __init__(self, engine: RelayEngine, interval: float = 30.0):
        if interval <= 0:
            raise ValueError(f"Liveness interval must be positive, got {interval}")
        self.engine = engine
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Starting liveness monitor (interval {self.interval}s)")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Liveness monitor stopped")

    async def sweep(self) -> List[str]:
        """Run one probe round. Returns the ids of evicted connections."""
        evicted = []
        async with self.engine.lock:
            for connection in self.engine.registry.snapshot():
                if not connection.alive:
                    evicted.append(connection.id)
                    continue
                connection.alive = False
                if not connection.channel.probe():
                    logger.debug(f"Probe refused by {connection.id}")
                    evicted.append(connection.id)

        for connection_id in evicted:
            await self.engine.evict(connection_id)
        if evicted:
            logger.info(f"Liveness sweep evicted {len(evicted)} connection(s)")
        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Error during liveness sweep: {e}", exc_info=True)
