"""
Batch availability evaluation.

A test is split into named batches, each with its own student list and
start/end window. These functions decide which batch a student sits in and
whether that window is open at a given instant. They are pure and total:
missing batches or unreadable timestamps yield a negative answer, never an
exception, because the result gates access to a test.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


# ---------------------------
# Snapshots
# ---------------------------

@dataclass(frozen=True)
class BatchSnapshot:
    name: str
    start: Any  # datetime or ISO-8601 string
    end: Any
    students: Tuple[int, ...] = ()


@dataclass(frozen=True)
class TestSnapshot:
    id: int
    title: str
    subject: str
    class_name: str
    status: str
    batches: Tuple[BatchSnapshot, ...] = field(default_factory=tuple)


class Availability(str, enum.Enum):
    NO_BATCH = "no_batch"
    INVALID_WINDOW = "invalid_window"
    NOT_STARTED = "not_started"
    OPEN = "open"
    CLOSED = "closed"


VISIBLE_STATUS = "scheduled"


# ---------------------------
# Timestamp handling
# ---------------------------

def to_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a datetime or ISO-8601 string into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None for anything that
    cannot be read as a timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offsets can push year 1 or year 9999 out of range
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------
# Evaluator
# ---------------------------

def find_student_batch(test: TestSnapshot, student_id: int) -> Optional[BatchSnapshot]:
    """First batch listing the student, in batch order, or None."""
    for batch in test.batches:
        if student_id in batch.students:
            return batch
    return None


def resolve_availability(
    test: TestSnapshot, student_id: int, now: Any = None
) -> Availability:
    batch = find_student_batch(test, student_id)
    if batch is None:
        return Availability.NO_BATCH

    start = to_timestamp(batch.start)
    end = to_timestamp(batch.end)
    current = utcnow() if now is None else to_timestamp(now)
    if start is None or end is None or current is None:
        logger.warning(
            f"Unreadable schedule for test {test.id} batch '{batch.name}': "
            f"start={batch.start!r} end={batch.end!r} now={now!r}"
        )
        return Availability.INVALID_WINDOW

    if current < start:
        return Availability.NOT_STARTED
    if current > end:
        return Availability.CLOSED
    return Availability.OPEN


def is_available(test: TestSnapshot, student_id: int, now: Any = None) -> bool:
    """True iff the student's batch window contains `now` (both ends inclusive)."""
    return resolve_availability(test, student_id, now) is Availability.OPEN


def filter_visible_tests(
    tests: Iterable[TestSnapshot],
    student_id: int,
    subject_filter: Optional[str] = "",
    class_filter: Optional[str] = "",
) -> List[TestSnapshot]:
    """
    Tests a student should see in their listing, in input order.

    A test is visible when it is scheduled, the student is in one of its
    batches, and it matches the optional subject and class filters.
    """
    return [
        test
        for test in tests
        if test.status == VISIBLE_STATUS
        and find_student_batch(test, student_id) is not None
        and (not subject_filter or test.subject == subject_filter)
        and (not class_filter or test.class_name == class_filter)
    ]
