import logging
from datetime import time as dtime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ScheduleHandle:
    """Handle for a job registered on the bot's JobQueue."""

    def __init__(self, name: str, job: Any) -> None:
        self.name = name
        self.job = job
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.job.schedule_removal()
        self.cancelled = True
        logger.info("cancelled job %s", self.name)


class Scheduler:
    """Named periodic jobs over a python-telegram-bot ``JobQueue``.

    One handle per name: registering a name again cancels the previous job, so
    a restart of a view or worker never leaves two timers behind.
    """

    def __init__(self, job_queue: Any) -> None:
        self._queue = job_queue
        self._handles: Dict[str, ScheduleHandle] = {}

    def every(self, seconds: int, callback: Callable, name: str, first: Optional[float] = None, data: Any = None) -> ScheduleHandle:
        self.cancel(name)
        job = self._queue.run_repeating(callback, interval=seconds, first=first, name=name, data=data)
        return self._track(name, job)

    def daily(self, at: dtime, callback: Callable, name: str, data: Any = None) -> ScheduleHandle:
        self.cancel(name)
        job = self._queue.run_daily(callback, time=at, name=name, data=data)
        return self._track(name, job)

    def _track(self, name: str, job: Any) -> ScheduleHandle:
        handle = ScheduleHandle(name, job)
        self._handles[name] = handle
        return handle

    def get(self, name: str) -> Optional[ScheduleHandle]:
        return self._handles.get(name)

    def names(self) -> List[str]:
        return sorted(self._handles)

    def cancel(self, name: str) -> bool:
        handle = self._handles.pop(name, None)
        if not handle:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for name in list(self._handles):
            self.cancel(name)
