"""
Business rules shared by every write path.

Each check raises ValueError with a message fit to show the user. Nothing
here touches the database; callers load what a rule needs and pass it in.
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from schoolcbt.application.scheduling.availability import to_timestamp

CA1_TITLE = "Continuous Assessment 1 (CA 1)"
CA2_TITLE = "Continuous Assessment 2 (CA 2)"
EXAM_TITLE = "Examination"
TEST_TITLES = (CA1_TITLE, CA2_TITLE, EXAM_TITLE)

# Total marks each kind of test must carry
TITLE_TOTAL_MARKS = {CA1_TITLE: 20, CA2_TITLE: 20, EXAM_TITLE: 60}

TEST_STATUSES = ("draft", "approved", "scheduled", "active", "completed")

STATUS_TRANSITIONS: Dict[str, Set[str]] = {
    "draft": {"approved"},
    "approved": {"scheduled", "draft"},
    "scheduled": {"active", "completed", "approved"},
    "active": {"completed"},
    "completed": set(),
}

SESSION_LABEL_RE = re.compile(r"^\d{4}/\d{4} (First|Second|Third) Term$")
CLASS_NAME_RE = re.compile(r"^[A-Z0-9\s\-]+$")
IMAGE_URL_RE = re.compile(r"^https?://.+\..+")

CLASS_LEVELS = ("primary", "junior_secondary", "senior_secondary", "college")
OPTIONS_PER_QUESTION = 4
MAX_QUESTION_MARKS = 100


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


# ---------------------------
# Tests
# ---------------------------

def validate_positive(field_name: str, value) -> None:
    if value is None or value < 1:
        raise ValueError(f"{field_name} must be a positive number.")


def validate_session_label(name: str) -> None:
    if _blank(name) or not SESSION_LABEL_RE.match(name):
        raise ValueError('Invalid session format. Use "YYYY/YYYY First/Second/Third Term".')


def validate_title_marks(title: str, total_marks: int) -> None:
    if title not in TEST_TITLES:
        raise ValueError(f"Title must be {CA1_TITLE}, {CA2_TITLE}, or {EXAM_TITLE}.")
    expected = TITLE_TOTAL_MARKS[title]
    if total_marks != expected:
        kind = "Examinations" if title == EXAM_TITLE else "Continuous Assessments"
        raise ValueError(f"{kind} must have exactly {expected} marks.")


def validate_test_fields(
    *,
    title: str,
    subject: str,
    class_name: str,
    session: str,
    duration: int,
    question_count: int,
    total_marks: int,
) -> None:
    missing = [
        name
        for name, value in (("title", title), ("subject", subject), ("class", class_name), ("session", session))
        if _blank(value)
    ]
    if missing:
        raise ValueError(f"Missing or invalid fields: {', '.join(missing)}")
    validate_positive("Duration", duration)
    validate_positive("Question count", question_count)
    validate_positive("Total marks", total_marks)
    validate_title_marks(title, total_marks)
    validate_session_label(session)


def validate_status(status: str) -> None:
    if status not in TEST_STATUSES:
        raise ValueError(f"Invalid status. Use one of: {', '.join(TEST_STATUSES)}.")


def validate_status_transition(current: str, new: str) -> None:
    validate_status(new)
    if current == new:
        return
    if new not in STATUS_TRANSITIONS.get(current, set()):
        raise ValueError(f"Cannot move a test from '{current}' to '{new}'.")


# ---------------------------
# Questions
# ---------------------------

def validate_question(
    *,
    text: str,
    options: Sequence[str],
    correct_answer: str,
    marks: int,
    image_url: Optional[str] = None,
) -> None:
    if _blank(text):
        raise ValueError("Question text is required.")
    if options is None or len(options) != OPTIONS_PER_QUESTION:
        raise ValueError(f"A question must have exactly {OPTIONS_PER_QUESTION} options.")
    if any(_blank(opt) for opt in options):
        raise ValueError("Options cannot be empty.")
    if _blank(correct_answer) or correct_answer not in options:
        raise ValueError("Correct answer must be one of the options.")
    if marks is None or marks < 1 or marks > MAX_QUESTION_MARKS:
        raise ValueError(f"Marks must be between 1 and {MAX_QUESTION_MARKS}.")
    if image_url and not IMAGE_URL_RE.match(image_url):
        raise ValueError("Invalid image URL format.")


def validate_test_questions(
    *,
    subject: str,
    class_name: str,
    question_count: int,
    total_marks: int,
    question_ids: Sequence[int],
    questions: Iterable,
    marks: Sequence[int],
) -> None:
    """
    Check a test's question list before it replaces the current one.

    `questions` are the loaded question rows for `question_ids`; any id with
    no row is reported as invalid.
    """
    if len(question_ids) > question_count:
        raise ValueError(
            f"Number of questions ({len(question_ids)}) exceeds question count ({question_count})."
        )
    if len(set(question_ids)) != len(question_ids):
        raise ValueError("A question can only appear once in a test.")

    found = {q.id: q for q in questions}
    missing = [qid for qid in question_ids if qid not in found]
    if missing:
        raise ValueError(f"One or more question IDs are invalid: {missing}")

    for qid in question_ids:
        q = found[qid]
        if q.subject != subject or q.class_name != class_name:
            raise ValueError("Questions must match test subject and class.")
        validate_question(
            text=q.text,
            options=q.options,
            correct_answer=q.correct_answer,
            marks=q.marks,
        )

    if len(marks) != len(question_ids):
        raise ValueError("Number of question marks must match number of questions.")
    if any(m is None or m < 1 for m in marks):
        raise ValueError("Question mark must be a positive number.")
    marks_sum = sum(marks)
    if marks_sum != total_marks:
        raise ValueError(f"Sum of question marks ({marks_sum}) must equal total marks ({total_marks}).")


# ---------------------------
# Batches
# ---------------------------

def validate_batch_windows(batches: Sequence[Mapping]) -> None:
    """
    Each batch is a mapping with `name`, `start`, `end` and `students`.
    """
    names = []
    for batch in batches:
        name = batch.get("name")
        if _blank(name) or batch.get("start") is None or batch.get("end") is None:
            raise ValueError("Each batch requires name, start, and end time.")
        start = to_timestamp(batch["start"])
        end = to_timestamp(batch["end"])
        if start is None or end is None:
            raise ValueError(f"Invalid schedule for batch {name}: start and end must be ISO-8601 timestamps.")
        if start >= end:
            raise ValueError(f"Invalid schedule for batch {name}: End time must be after start time.")
        names.append(name.strip())

    duplicated = [name for name, count in Counter(names).items() if count > 1]
    if duplicated:
        raise ValueError(f"Batch names must be unique within a test: {', '.join(duplicated)}")


def validate_batch_students(
    *,
    subject: str,
    class_name: str,
    student_ids: Iterable[int],
    students: Mapping[int, Tuple[str, Set[Tuple[str, str]]]],
) -> None:
    """
    `students` maps a user id to (role, enrolled (subject, class) pairs).
    """
    for student_id in student_ids:
        entry = students.get(student_id)
        if entry is None:
            raise ValueError(f"Invalid student ID: {student_id}")
        role, enrolled = entry
        if role != "student" or (subject, class_name) not in enrolled:
            raise ValueError(f"Student {student_id} is not enrolled in {subject}/{class_name}.")


def find_repeated_students(batches: Sequence[Mapping]) -> List[int]:
    """Students listed in more than one batch, in first-seen order."""
    counts = Counter()
    order = []
    for batch in batches:
        for student_id in dict.fromkeys(batch.get("students") or []):
            if student_id not in counts:
                order.append(student_id)
            counts[student_id] += 1
    return [sid for sid in order if counts[sid] > 1]


# ---------------------------
# Classes
# ---------------------------

def normalize_class_name(name: str) -> str:
    normalized = (name or "").strip().upper()
    if len(normalized) < 2 or len(normalized) > 50:
        raise ValueError("Class name must be between 2 and 50 characters.")
    if not CLASS_NAME_RE.match(normalized):
        raise ValueError("Class name can only contain letters, numbers, spaces, and hyphens.")
    return normalized


def validate_class_fields(*, level: str, capacity: int) -> None:
    if level not in CLASS_LEVELS:
        raise ValueError(f"Level must be one of: {', '.join(CLASS_LEVELS)}.")
    if capacity is None or capacity < 1 or capacity > 100:
        raise ValueError("Capacity must be between 1 and 100.")
