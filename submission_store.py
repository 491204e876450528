import secrets
import threading
from datetime import timedelta

import pytz
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.background import BackgroundScheduler

import config
from submission import utc_now


class ReadWriteLock:
    """Many concurrent readers or one writer"""

    def __init__(self):
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    def acquire_read(self):
        with self._condition:
            while self._writer:
                self._condition.wait()
            self._readers += 1

    def release_read(self):
        with self._condition:
            self._readers -= 1
            if self._readers == 0:
                self._condition.notify_all()

    def acquire_write(self):
        with self._condition:
            while self._writer or self._readers:
                self._condition.wait()
            self._writer = True

    def release_write(self):
        with self._condition:
            self._writer = False
            self._condition.notify_all()


class SubmissionStore:
    """In-memory hand-off cache from the webhook receiver to the poll endpoint.

    Records live for the retention window and vanish with the process.
    """

    def __init__(self, retention=None):
        self.retention = retention or timedelta(hours=config.RETENTION_HOURS)
        self._records = {}
        self._lock = ReadWriteLock()

    def put(self, submission, now=None):
        """Store a submission and return its new token"""
        token = secrets.token_hex(16)
        submission.received_at = now or utc_now()
        self._lock.acquire_write()
        try:
            self._records[token] = submission
        finally:
            self._lock.release_write()
        return token

    def get(self, token, now=None):
        """Return the stored submission, or None if unknown or expired"""
        if not token:
            return None
        self._lock.acquire_read()
        try:
            submission = self._records.get(token)
        finally:
            self._lock.release_read()
        if submission is None or self._is_expired(submission, now or utc_now()):
            return None
        return submission

    def sweep(self, now=None):
        """Drop every record older than the retention window"""
        now = now or utc_now()
        self._lock.acquire_write()
        try:
            expired = [token for token, submission in self._records.items()
                       if self._is_expired(submission, now)]
            for token in expired:
                del self._records[token]
        finally:
            self._lock.release_write()
        return len(expired)

    def _is_expired(self, submission, now):
        return now - submission.received_at > self.retention

    def __len__(self):
        self._lock.acquire_read()
        try:
            return len(self._records)
        finally:
            self._lock.release_read()


class SweepTask:
    """Hourly sweep of a store on an APScheduler background scheduler"""
    job_id = 'submission-sweep'

    def __init__(self, store, interval=None):
        self.store = store
        self.interval = interval or config.SWEEP_INTERVAL_SECONDS
        self._scheduler = None
        self._guard = threading.Lock()

    @property
    def running(self):
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        with self._guard:
            if self.running:
                return
            scheduler = BackgroundScheduler(timezone=pytz.utc, daemon=True)
            scheduler.add_listener(self._job_listener, EVENT_JOB_ERROR)
            scheduler.add_job(
                self.sweep,
                trigger='interval',
                seconds=self.interval,
                id=self.job_id,
                name='Sweep expired submissions',
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            scheduler.start()
            self._scheduler = scheduler

    def stop(self, wait=True):
        with self._guard:
            scheduler = self._scheduler
            self._scheduler = None
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=wait)

    def sweep(self):
        removed = self.store.sweep()
        if removed:
            print("Swept {} expired submissions".format(removed))
        return removed

    def _job_listener(self, event):
        print("Error sweeping submissions: {}".format(event.exception))


default_store = SubmissionStore()
_default_sweeper = SweepTask(default_store)


def start_default_sweeper():
    """Start the process-wide sweeper once; safe to call from every request"""
    _default_sweeper.start()
    return _default_sweeper
