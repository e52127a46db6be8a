from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from schoolcbt.application.auth.roles import AuthContext, Capability, Role
from schoolcbt.application.errors import NotFoundError, PermissionDeniedError
from schoolcbt.application.scheduling.availability import (
    Availability,
    BatchSnapshot,
    TestSnapshot,
    VISIBLE_STATUS,
    filter_visible_tests,
    find_student_batch,
    resolve_availability,
    to_timestamp,
)
from schoolcbt.application.validation.rules import (
    find_repeated_students,
    validate_batch_students,
    validate_batch_windows,
    validate_status_transition,
    validate_test_fields,
    validate_test_questions,
)
from schoolcbt.infrastructure.db.models.question_model import QuestionModel
from schoolcbt.infrastructure.db.models.test_model import BatchModel, TestModel, TestQuestionModel
from schoolcbt.infrastructure.db.models.user_model import UserModel
from schoolcbt.presentation.schemas.test_schema import (
    ScheduleRequest,
    TestCreate,
    TestQuestionsUpdate,
    TestUpdate,
)
import logging

logger = logging.getLogger(__name__)

AVAILABILITY_MESSAGES = {
    Availability.NO_BATCH: "You are not assigned to this test.",
    Availability.INVALID_WINDOW: "Test not available at this time.",
    Availability.NOT_STARTED: "Test not available at this time.",
    Availability.OPEN: "Test is open.",
    Availability.CLOSED: "Test window has closed.",
}

EDITABLE_BATCH_STATUSES = ("approved", "scheduled", "active")

# Gate outcomes that come before the batch window is looked at
NOT_SCHEDULED = "not_scheduled"
NOT_ENROLLED = "not_enrolled"


def to_snapshot(test: TestModel) -> TestSnapshot:
    return TestSnapshot(
        id=test.id,
        title=test.title,
        subject=test.subject,
        class_name=test.class_name,
        status=test.status,
        batches=tuple(
            BatchSnapshot(
                name=batch.name,
                start=batch.start_at,
                end=batch.end_at,
                students=tuple(student.id for student in batch.students),
            )
            for batch in test.batches
        ),
    )


def _check_teacher(ctx: AuthContext, test: TestModel) -> None:
    if ctx.is_admin:
        return
    if ctx.role is Role.TEACHER and ctx.teaches(test.subject, test.class_name):
        return
    logger.warning(f"User {ctx.user_id} is not assigned to {test.subject}/{test.class_name}")
    raise PermissionDeniedError("You are not assigned to this test's subject/class.")


def _load_questions(db: Session, question_ids: List[int]) -> List[QuestionModel]:
    if not question_ids:
        return []
    return db.query(QuestionModel).filter(QuestionModel.id.in_(question_ids)).all()


def _replace_questions(db: Session, test: TestModel, question_ids: List[int], marks: List[int]) -> None:
    test.questions.clear()
    db.flush()
    test.questions.extend(
        TestQuestionModel(question_id=qid, position=index, marks=mark)
        for index, (qid, mark) in enumerate(zip(question_ids, marks))
    )


# ---------------------------
# Authoring
# ---------------------------

def create_test(db: Session, data: TestCreate, ctx: AuthContext) -> TestModel:
    try:
        logger.info(f"User {ctx.user_id} creating test: {data.title} ({data.subject}/{data.class_name})")
        validate_test_fields(
            title=data.title,
            subject=data.subject,
            class_name=data.class_name,
            session=data.session,
            duration=data.duration,
            question_count=data.question_count,
            total_marks=data.total_marks,
        )
        if not (ctx.is_admin or ctx.teaches(data.subject, data.class_name)):
            logger.warning(f"User {ctx.user_id} not assigned to {data.subject}/{data.class_name}")
            raise PermissionDeniedError("You are not assigned to this subject/class.")

        test = TestModel(
            title=data.title,
            subject=data.subject,
            class_name=data.class_name,
            session=data.session,
            instructions=data.instructions,
            duration=data.duration,
            question_count=data.question_count,
            total_marks=data.total_marks,
            randomize=data.randomize,
            status="draft",
            created_by=ctx.user_id,
        )
        if data.questions:
            validate_test_questions(
                subject=data.subject,
                class_name=data.class_name,
                question_count=data.question_count,
                total_marks=data.total_marks,
                question_ids=data.questions,
                questions=_load_questions(db, data.questions),
                marks=data.question_marks,
            )
            test.questions = [
                TestQuestionModel(question_id=qid, position=index, marks=mark)
                for index, (qid, mark) in enumerate(zip(data.questions, data.question_marks))
            ]

        db.add(test)
        db.commit()
        db.refresh(test)
        logger.info(f"Test {test.id} created with {len(test.questions)} questions")
        return test
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating test: {e}", exc_info=True)
        db.rollback()
        raise


def get_test(db: Session, test_id: int) -> TestModel:
    test = db.query(TestModel).filter(TestModel.id == test_id).first()
    if not test:
        logger.warning(f"Test {test_id} not found")
        raise NotFoundError(f"Test {test_id} not found")
    return test


def update_test(db: Session, test_id: int, data: TestUpdate, ctx: AuthContext) -> TestModel:
    try:
        test = get_test(db, test_id)
        _check_teacher(ctx, test)
        if test.status != "draft":
            raise ValueError(f"Only draft tests can be edited (current status: {test.status}).")

        merged = {
            "title": data.title if data.title is not None else test.title,
            "session": data.session if data.session is not None else test.session,
            "duration": data.duration if data.duration is not None else test.duration,
            "question_count": data.question_count if data.question_count is not None else test.question_count,
            "total_marks": data.total_marks if data.total_marks is not None else test.total_marks,
        }
        validate_test_fields(subject=test.subject, class_name=test.class_name, **merged)
        if len(test.questions) > merged["question_count"]:
            raise ValueError(
                f"Number of questions ({len(test.questions)}) exceeds question count ({merged['question_count']})."
            )
        if test.questions:
            marks_sum = sum(link.marks for link in test.questions)
            if marks_sum != merged["total_marks"]:
                raise ValueError(
                    f"Sum of question marks ({marks_sum}) must equal total marks ({merged['total_marks']})."
                )

        for field, value in merged.items():
            setattr(test, field, value)
        if data.instructions is not None:
            test.instructions = data.instructions
        if data.randomize is not None:
            test.randomize = data.randomize
        db.commit()
        db.refresh(test)
        logger.info(f"Test {test_id} updated by user {ctx.user_id}")
        return test
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error updating test {test_id}: {e}", exc_info=True)
        raise


def set_test_questions(db: Session, test_id: int, data: TestQuestionsUpdate, ctx: AuthContext) -> TestModel:
    try:
        test = get_test(db, test_id)
        _check_teacher(ctx, test)
        if test.status != "draft":
            raise ValueError(f"Only draft tests can be edited (current status: {test.status}).")
        validate_test_questions(
            subject=test.subject,
            class_name=test.class_name,
            question_count=test.question_count,
            total_marks=test.total_marks,
            question_ids=data.questions,
            questions=_load_questions(db, data.questions),
            marks=data.question_marks,
        )
        _replace_questions(db, test, data.questions, data.question_marks)
        db.commit()
        db.refresh(test)
        logger.info(f"Test {test_id} now has {len(test.questions)} questions")
        return test
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error setting questions for test {test_id}: {e}", exc_info=True)
        raise


# ---------------------------
# Approval & scheduling
# ---------------------------

def _apply_status(test: TestModel, status: str) -> None:
    validate_status_transition(test.status, status)
    if status == "approved" and test.status == "draft" and len(test.questions) != test.question_count:
        raise ValueError(
            f"Test has {len(test.questions)} of {test.question_count} questions; complete it before approval."
        )
    if status == "scheduled" and not test.batches:
        raise ValueError("A test needs at least one batch to be scheduled.")
    logger.info(f"Test {test.id} status: {test.status} -> {status}")
    test.status = status


def set_test_status(db: Session, test_id: int, status: str, ctx: AuthContext) -> TestModel:
    try:
        test = get_test(db, test_id)
        _apply_status(test, status)
        db.commit()
        db.refresh(test)
        logger.info(f"Test {test_id} moved to '{status}' by user {ctx.user_id}")
        return test
    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error changing status of test {test_id}: {e}", exc_info=True)
        raise


def schedule_test(db: Session, test_id: int, data: ScheduleRequest, ctx: AuthContext) -> TestModel:
    try:
        test = get_test(db, test_id)

        if data.batches is not None:
            if test.status not in EDITABLE_BATCH_STATUSES:
                raise ValueError(f"Test must be approved before it can be scheduled (current status: {test.status}).")

            batches = [
                {
                    "name": batch.name.strip(),
                    "start": batch.schedule.start,
                    "end": batch.schedule.end,
                    "students": list(dict.fromkeys(batch.students)),
                }
                for batch in data.batches
            ]
            validate_batch_windows(batches)

            student_ids = {sid for batch in batches for sid in batch["students"]}
            users = (
                db.query(UserModel).filter(UserModel.id.in_(student_ids)).all() if student_ids else []
            )
            by_id = {u.id: u for u in users}
            validate_batch_students(
                subject=test.subject,
                class_name=test.class_name,
                student_ids=[sid for batch in batches for sid in batch["students"]],
                students={
                    u.id: (u.role, {(e.subject, e.class_name) for e in u.enrollments}) for u in users
                },
            )

            repeated = find_repeated_students(batches)
            if repeated:
                # Left in place; the first listed batch wins when evaluating access
                logger.warning(f"Test {test_id}: students {repeated} appear in more than one batch")

            test.batches.clear()
            db.flush()
            test.batches.extend(
                BatchModel(
                    name=batch["name"],
                    position=index,
                    start_at=to_timestamp(batch["start"]),
                    end_at=to_timestamp(batch["end"]),
                    students=[by_id[sid] for sid in batch["students"]],
                )
                for index, batch in enumerate(batches)
            )
            db.flush()

        if data.status:
            _apply_status(test, data.status)

        db.commit()
        db.refresh(test)
        logger.info(
            f"Test {test_id} scheduled by user {ctx.user_id}: status={test.status}, "
            f"batches={[(b.name, len(b.students)) for b in test.batches]}"
        )
        return test
    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error scheduling test {test_id}: {e}", exc_info=True)
        raise


# ---------------------------
# Listing & access
# ---------------------------

def list_tests(
    db: Session,
    ctx: AuthContext,
    subject: Optional[str] = None,
    class_name: Optional[str] = None,
) -> List[TestModel]:
    try:
        query = db.query(TestModel)
        if ctx.role is Role.STUDENT:
            query = query.filter(TestModel.status == VISIBLE_STATUS)
        tests = query.order_by(TestModel.id).all()

        if ctx.is_admin:
            visible = [
                t for t in tests
                if (not subject or t.subject == subject) and (not class_name or t.class_name == class_name)
            ]
        elif ctx.role is Role.TEACHER:
            visible = [
                t for t in tests
                if ctx.teaches(t.subject, t.class_name)
                and (not subject or t.subject == subject)
                and (not class_name or t.class_name == class_name)
            ]
        else:
            enrolled = [t for t in tests if ctx.is_enrolled(t.subject, t.class_name)]
            by_id = {t.id: t for t in enrolled}
            snapshots = filter_visible_tests(
                [to_snapshot(t) for t in enrolled], ctx.user_id, subject or "", class_name or ""
            )
            visible = [by_id[s.id] for s in snapshots]

        logger.info(f"User {ctx.user_id} ({ctx.role.value}) fetched {len(visible)} tests")
        return visible
    except Exception as e:
        logger.error(f"Error fetching tests: {e}", exc_info=True)
        raise


def student_gate(test: TestModel, ctx: AuthContext, now=None) -> Tuple[str, str]:
    """
    (status, message) for a student opening `test`. Only status "open"
    lets them in; both the access check and the availability report use this.
    """
    if test.status != VISIBLE_STATUS:
        return NOT_SCHEDULED, "Test is not scheduled."
    if not ctx.is_enrolled(test.subject, test.class_name):
        return NOT_ENROLLED, "You are not enrolled in this subject/class."
    availability = resolve_availability(to_snapshot(test), ctx.user_id, now)
    return availability.value, AVAILABILITY_MESSAGES[availability]


def check_student_access(test: TestModel, ctx: AuthContext, now=None) -> None:
    """Raise PermissionDeniedError unless the student may take the test now."""
    status, message = student_gate(test, ctx, now)
    if status != Availability.OPEN.value:
        logger.warning(f"Student {ctx.user_id} denied test {test.id}: {status}")
        raise PermissionDeniedError(message)


def get_test_for(db: Session, test_id: int, ctx: AuthContext, now=None) -> TestModel:
    test = get_test(db, test_id)
    if ctx.role is Role.STUDENT:
        check_student_access(test, ctx, now)
    else:
        _check_teacher(ctx, test)
    return test


def availability_for(db: Session, test_id: int, ctx: AuthContext, now=None) -> dict:
    test = get_test(db, test_id)
    status, message = student_gate(test, ctx, now)
    batch = find_student_batch(to_snapshot(test), ctx.user_id)
    return {
        "test_id": test.id,
        "status": status,
        "available": status == Availability.OPEN.value,
        "batch": batch.name if batch else None,
        "start": to_timestamp(batch.start) if batch else None,
        "end": to_timestamp(batch.end) if batch else None,
        "message": message,
    }


def delete_test(db: Session, test_id: int, ctx: AuthContext) -> dict:
    try:
        test = get_test(db, test_id)
        if not ctx.can(Capability.DELETE_TESTS):
            _check_teacher(ctx, test)
            if test.status != "draft":
                logger.warning(f"User {ctx.user_id} tried to delete non-draft test {test_id}")
                raise PermissionDeniedError("Only draft tests can be deleted by non-admins.")
        results = len(test.results)
        db.delete(test)
        db.commit()
        logger.info(f"Test {test_id} deleted by user {ctx.user_id} along with {results} results")
        return {"message": "Test and related results deleted successfully."}
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error deleting test {test_id}: {e}", exc_info=True)
        raise
