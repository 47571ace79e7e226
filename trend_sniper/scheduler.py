"""
Delayed task scheduler for timed sells
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Tuple


class SellScheduler:
    """
    Runs one callback per key once its due timestamp passes

    Entries live only in memory; callers rebuild them from persisted state on
    restart.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.logger = logging.getLogger(__name__)
        self.clock = clock
        self._tasks: Dict[str, asyncio.Task] = {}
        self._due: Dict[str, float] = {}

    def schedule(self, key: str, due_at: float,
                 callback: Callable[[], Awaitable[None]]) -> bool:
        """Arm a task for key; returns False if one is already armed"""
        if self.is_scheduled(key):
            self.logger.debug(f"Task for {key} already scheduled, ignoring")
            return False

        self._due[key] = due_at
        self._tasks[key] = asyncio.create_task(self._run(key, due_at, callback))
        return True

    async def _run(self, key: str, due_at: float, callback: Callable[[], Awaitable[None]]):
        try:
            delay = max(0.0, due_at - self.clock())
            await asyncio.sleep(delay)
            await callback()
        except asyncio.CancelledError:
            self.logger.info(f"Scheduled task for {key} cancelled")
            raise
        except Exception as e:
            self.logger.error(f"Scheduled task for {key} crashed: {e}", exc_info=True)
        finally:
            self._tasks.pop(key, None)
            self._due.pop(key, None)

    def is_scheduled(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def pending(self) -> List[Tuple[str, float]]:
        """Armed (key, due_at) entries, soonest first"""
        return sorted(self._due.items(), key=lambda entry: entry[1])

    async def join(self):
        """Wait for every armed task to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
            for key in [k for k, task in self._tasks.items() if task.done()]:
                self._tasks.pop(key, None)
                self._due.pop(key, None)

    async def cancel_all(self):
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        # Tasks cancelled before their first step never reach _run's finally
        self._tasks.clear()
        self._due.clear()
