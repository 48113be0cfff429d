import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``job`` immediately and then every ``interval_seconds``.

    Each run is its own task: ``stop()`` ends the timer but lets a run that
    is already in flight finish. A failing run is logged and the timer keeps
    going.
    """

    def __init__(self, name: str, job: Callable[[], Awaitable[object]], interval_seconds: float):
        self.name = name
        self.job = job
        self.interval_seconds = interval_seconds
        self._timer: asyncio.Task | None = None
        self._runs: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def _run_once(self) -> None:
        try:
            await self.job()
        except Exception as e:
            logger.error(f"Periodic task '{self.name}' failed: {e}")

    def _spawn(self) -> None:
        run = asyncio.create_task(self._run_once())
        self._runs.add(run)
        run.add_done_callback(self._runs.discard)

    async def _loop(self) -> None:
        while True:
            self._spawn()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        self.stop()
        logger.info(f"Starting periodic task '{self.name}' every {self.interval_seconds}s")
        self._timer = asyncio.create_task(self._loop())

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_idle(self) -> None:
        if self._runs:
            await asyncio.gather(*self._runs, return_exceptions=True)
