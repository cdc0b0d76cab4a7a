# milli/services/recurrence.py
"""
Periodic sweep that mints new instances for repeating questionnaire assignments.

An assignment with a non-zero repeat interval is due when every one of its
instances is at least `repeat_interval` minutes old. Assignments without any
instance are left alone; creation always seeds one.

Overlapping sweeps are prevented in two places: a single-flight guard skips a
sweep while another is still running in this process, and each due assignment is
re-checked under a row lock before its instance is created, which also covers
several processes sweeping the same database.
"""
import asyncio
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from .. import models
from .assignments import create_instance, get_instances_for_assignment

logger = structlog.get_logger(__name__)

_sweep_lock = threading.Lock()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def needs_new_instance(
    instances: Sequence[models.QuestionnaireAssignmentInstance],
    repeat_interval: Optional[int],
    now: datetime,
) -> bool:
    if not repeat_interval or not instances:
        return False
    window = timedelta(minutes=repeat_interval)
    now = _as_utc(now)
    return all(now - _as_utc(instance.created) >= window for instance in instances)


def _repeating_assignments(db: Session) -> List[models.QuestionnaireAssignment]:
    return db.query(models.QuestionnaireAssignment).filter(
        models.QuestionnaireAssignment.repeat_interval.isnot(None),
        models.QuestionnaireAssignment.repeat_interval > 0,
    ).order_by(models.QuestionnaireAssignment.id).all()


def _sweep_assignment(db: Session, assignment_id: int, now: datetime) -> Optional[models.QuestionnaireAssignmentInstance]:
    # Lock the assignment row, then decide on fresh data
    assignment = db.query(models.QuestionnaireAssignment).filter(
        models.QuestionnaireAssignment.id == assignment_id
    ).with_for_update().first()
    if assignment is None:
        db.rollback()
        return None

    instances = get_instances_for_assignment(db, assignment.id)
    if not needs_new_instance(instances, assignment.repeat_interval, now):
        db.rollback()
        return None

    instance = create_instance(db, assignment, created=now)
    db.commit()
    logger.info(
        "recurrence.instance_created",
        assignment_id=assignment.id,
        instance_id=instance.id,
        repeat_interval=assignment.repeat_interval,
    )
    return instance


def sweep(db: Session, now: Optional[datetime] = None) -> List[models.QuestionnaireAssignmentInstance]:
    """Run one sweep and return the instances it created."""
    now = now or datetime.now(timezone.utc)
    if not _sweep_lock.acquire(blocking=False):
        logger.warning("recurrence.sweep_skipped", reason="previous sweep still running")
        return []
    try:
        created = []
        assignment_ids = [a.id for a in _repeating_assignments(db)]
        db.rollback()
        for assignment_id in assignment_ids:
            try:
                instance = _sweep_assignment(db, assignment_id, now)
            except Exception:
                db.rollback()
                logger.exception("recurrence.assignment_failed", assignment_id=assignment_id)
                continue
            if instance is not None:
                created.append(instance)
        logger.info("recurrence.sweep_finished", checked=len(assignment_ids), created=len(created))
        return created
    finally:
        _sweep_lock.release()


class RecurrenceScheduler:
    """Runs `sweep` on a fixed period from the application's event loop.

    Each sweep runs in a worker thread and is not awaited by the timer loop.
    """

    def __init__(self, session_factory: Callable[[], Session], interval_seconds: int = 60):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._sweeps: set = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _sweep_with_session(self) -> int:
        db = self.session_factory()
        try:
            return len(sweep(db))
        finally:
            db.close()

    async def run_once(self) -> int:
        return await asyncio.to_thread(self._sweep_with_session)

    def _fire(self) -> None:
        task = asyncio.create_task(self.run_once())
        self._sweeps.add(task)
        task.add_done_callback(self._sweep_done)

    def _sweep_done(self, task: asyncio.Task) -> None:
        self._sweeps.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("recurrence.sweep_failed", error=str(task.exception()))

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self._fire()

    def start(self) -> None:
        if self.running:
            return
        logger.info("recurrence.scheduler_started", interval_seconds=self.interval_seconds)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._sweeps:
            await asyncio.gather(*self._sweeps, return_exceptions=True)
        logger.info("recurrence.scheduler_stopped")
