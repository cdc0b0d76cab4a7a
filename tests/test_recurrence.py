# tests/test_recurrence.py
import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from milli.services import recurrence
from milli.services.assignments import create_assignment, get_instances_for_assignment
from milli.services.recurrence import RecurrenceScheduler, needs_new_instance, sweep

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _backdate(db, assignment, age):
    for instance in get_instances_for_assignment(db, assignment.id):
        instance.created = NOW - age
    db.commit()


def test_needs_new_instance_rule():
    old = SimpleNamespace(created=NOW - timedelta(minutes=2))
    fresh = SimpleNamespace(created=NOW - timedelta(seconds=30))

    assert needs_new_instance([old], 1, NOW) is True
    assert needs_new_instance([fresh], 1, NOW) is False
    assert needs_new_instance([old, fresh], 1, NOW) is False
    # Never repeats, or nothing to measure against
    assert needs_new_instance([old], 0, NOW) is False
    assert needs_new_instance([old], None, NOW) is False
    assert needs_new_instance([], 1, NOW) is False


def test_naive_timestamps_are_treated_as_utc():
    naive = SimpleNamespace(created=(NOW - timedelta(minutes=5)).replace(tzinfo=None))
    assert needs_new_instance([naive], 1, NOW) is True


def test_sweep_creates_one_instance_when_due(db, survey, doctor, patient):
    assignment = create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=1)
    _backdate(db, assignment, timedelta(minutes=2))

    created = sweep(db, now=NOW)

    assert len(created) == 1
    assert len(get_instances_for_assignment(db, assignment.id)) == 2
    # The new instance is fresh, so sweeping again at the same moment is a no-op
    assert sweep(db, now=NOW) == []
    assert len(get_instances_for_assignment(db, assignment.id)) == 2


def test_sweep_skips_recent_instances(db, survey, doctor, patient):
    assignment = create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=1)
    _backdate(db, assignment, timedelta(seconds=30))

    assert sweep(db, now=NOW) == []
    assert len(get_instances_for_assignment(db, assignment.id)) == 1


def test_sweep_ignores_non_repeating_assignments(db, survey, doctor, patient):
    assignment = create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=0)
    _backdate(db, assignment, timedelta(days=30))

    assert sweep(db, now=NOW) == []


def test_sweep_skips_zero_instance_assignments(db, survey, doctor, patient):
    assignment = create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=1)
    for instance in get_instances_for_assignment(db, assignment.id):
        db.delete(instance)
    db.commit()

    assert sweep(db, now=NOW) == []
    assert get_instances_for_assignment(db, assignment.id) == []


def test_overlapping_sweep_is_skipped(db, survey, doctor, patient):
    assignment = create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=1)
    _backdate(db, assignment, timedelta(minutes=2))

    assert recurrence._sweep_lock.acquire(blocking=False)
    try:
        assert sweep(db, now=NOW) == []
    finally:
        recurrence._sweep_lock.release()
    assert len(sweep(db, now=NOW)) == 1


@pytest.mark.asyncio
async def test_scheduler_run_once_uses_its_own_session(session_factory, db, survey, doctor, patient):
    assignment = create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=1)
    for instance in get_instances_for_assignment(db, assignment.id):
        instance.created = datetime.now(timezone.utc) - timedelta(minutes=5)
    db.commit()

    scheduler = RecurrenceScheduler(session_factory, interval_seconds=3600)
    assert await scheduler.run_once() == 1
    db.expire_all()
    assert len(get_instances_for_assignment(db, assignment.id)) == 2


@pytest.mark.asyncio
async def test_scheduler_start_and_stop(session_factory):
    scheduler = RecurrenceScheduler(session_factory, interval_seconds=3600)

    scheduler.start()
    assert scheduler.running
    scheduler.start()
    await asyncio.sleep(0)

    await scheduler.stop()
    assert not scheduler.running
