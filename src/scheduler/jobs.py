"""
Process-wide table of periodic jobs with manual "run now" triggers.
"""
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import schedule

from ..utils.logger import get_logger


class Job:
    """A named periodic job guarded against overlapping runs."""

    def __init__(self, name: str, func: Callable[[], Any], interval_minutes: int):
        self.logger = get_logger("scheduler")
        self.name = name
        self.func = func
        self.interval_minutes = interval_minutes
        self._lock = threading.Lock()
        self.run_count = 0
        self.last_started_at: Optional[datetime] = None
        self.last_finished_at: Optional[datetime] = None
        self.last_result: Any = None
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run_now(self, wait: bool = True) -> Any:
        """
        Run the job in the calling thread.

        Args:
            wait: Block until a run in progress finishes; when False an
                overlapping call is skipped

        Returns:
            The job result, or None when skipped or failed
        """
        if not self._lock.acquire(blocking=wait):
            self.logger.warning("Job already running, skipping", job=self.name)
            return None

        try:
            self.last_started_at = datetime.now(timezone.utc)
            self.logger.info("Job started", job=self.name)
            result = self.func()
            self.last_result = result
            self.last_error = None
            return result
        except Exception as e:
            self.last_error = str(e)
            self.logger.error("Job failed", job=self.name, error=str(e), exc_info=True)
            return None
        finally:
            self.last_finished_at = datetime.now(timezone.utc)
            self.run_count += 1
            self._lock.release()

    def status(self) -> Dict[str, Any]:
        result = self.last_result
        return {
            'name': self.name,
            'interval_minutes': self.interval_minutes,
            'running': self.is_running,
            'run_count': self.run_count,
            'last_started_at': self.last_started_at.isoformat() if self.last_started_at else None,
            'last_finished_at': self.last_finished_at.isoformat() if self.last_finished_at else None,
            'last_result': result.to_dict() if hasattr(result, 'to_dict') else result,
            'last_error': self.last_error,
        }


class JobRegistry:
    """Jobs keyed by name, each on its own timer."""

    def __init__(self, scheduler: Optional[schedule.Scheduler] = None):
        self.logger = get_logger("scheduler")
        self.scheduler = scheduler or schedule.Scheduler()
        self.jobs: Dict[str, Job] = {}
        self._stop = threading.Event()

    def register(self, name: str, func: Callable[[], Any], interval_minutes: int) -> Job:
        """Add a job and schedule it every `interval_minutes`."""
        if name in self.jobs:
            raise ValueError(f"Job {name} is already registered")
        if interval_minutes < 1:
            raise ValueError(f"Job {name} needs an interval of at least one minute")

        job = Job(name, func, interval_minutes)
        self.jobs[name] = job
        self.scheduler.every(interval_minutes).minutes.do(self._spawn, job).tag(name)
        self.logger.info("Job scheduled", job=name, interval_minutes=interval_minutes)
        return job

    def get(self, name: str) -> Job:
        try:
            return self.jobs[name]
        except KeyError:
            raise ValueError(f"Unknown job: {name}") from None

    def run_now(self, name: str, wait: bool = True) -> Any:
        """Manual trigger; shares the scheduled run path and its lock."""
        return self.get(name).run_now(wait=wait)

    def _spawn(self, job: Job) -> threading.Thread:
        # Timer ticks run on their own thread so a slow job does not delay the others
        thread = threading.Thread(target=job.run_now, kwargs={'wait': False}, name=f"job-{job.name}", daemon=True)
        thread.start()
        return thread

    def run_pending(self):
        self.scheduler.run_pending()

    def run_forever(self, poll_seconds: float = 1.0, run_immediately: bool = False):
        """Drive the timers until `stop()` is called."""
        self._stop.clear()
        self.logger.info("Scheduler started", jobs=list(self.jobs))
        if run_immediately:
            self.scheduler.run_all()
        while not self._stop.is_set():
            self.scheduler.run_pending()
            self._stop.wait(poll_seconds)
        self.logger.info("Scheduler stopped")

    def stop(self):
        self._stop.set()

    def status(self) -> List[Dict[str, Any]]:
        return [job.status() for job in self.jobs.values()]
