from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from schoolcbt.application.auth.roles import AuthContext, Role
from schoolcbt.application.errors import AlreadyExistsError, NotFoundError, PermissionDeniedError
from schoolcbt.application.grading.scoring import (
    grade_submission,
    letter_grade,
    percentage_of,
    validate_corrected_score,
)
from schoolcbt.infrastructure.db.models.result_model import ResultAnswerModel, ResultModel
from schoolcbt.infrastructure.db.models.test_model import TestModel
from schoolcbt.infrastructure.repositories.test_repo_impl import check_student_access, get_test
import logging

logger = logging.getLogger(__name__)


def _find_submission(db: Session, test_id: int, user_id: int) -> Optional[ResultModel]:
    return (
        db.query(ResultModel)
        .filter(ResultModel.test_id == test_id, ResultModel.user_id == user_id)
        .first()
    )


def submit_test(
    db: Session,
    test_id: int,
    answers: Dict[str, Optional[str]],
    ctx: AuthContext,
    now=None,
) -> ResultModel:
    """
    Grade and store a student's answers.

    Access is re-checked at submission time, so a window that closed while
    the student was answering rejects the submission.
    """
    try:
        test = get_test(db, test_id)
        check_student_access(test, ctx, now)

        if not test.questions:
            raise ValueError("No valid questions available for this test.")
        if len(test.questions) != test.question_count:
            raise ValueError("Test questions do not match the specified question count.")

        if _find_submission(db, test_id, ctx.user_id):
            logger.warning(f"Student {ctx.user_id} attempted to resubmit test {test_id}")
            raise AlreadyExistsError("You have already submitted this test.")

        graded = grade_submission(test.questions, answers, test.total_marks)
        result = ResultModel(
            test_id=test.id,
            user_id=ctx.user_id,
            score=graded.score,
            total_marks=graded.total_marks,
            total_questions=len(test.questions),
            percentage=graded.percentage,
            grade=graded.grade,
            answers=[
                ResultAnswerModel(
                    question_id=a.question_id,
                    position=index,
                    selected_option=a.selected_option,
                    correct_option=a.correct_option,
                    is_correct=a.is_correct,
                    marks_awarded=a.marks_awarded,
                )
                for index, a in enumerate(graded.answers)
            ],
        )
        db.add(result)
        db.commit()
        db.refresh(result)
        logger.info(
            f"Student {ctx.user_id} submitted test {test_id}: "
            f"{graded.score}/{graded.total_marks} ({graded.correct_count} correct)"
        )
        return result
    except IntegrityError:
        # Lost a race with a concurrent submission; the unique constraint caught it
        db.rollback()
        logger.warning(f"Concurrent duplicate submission of test {test_id} by user {ctx.user_id}")
        raise AlreadyExistsError("You have already submitted this test.")
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error submitting test {test_id} for user {ctx.user_id}: {e}", exc_info=True)
        raise


def _check_result_access(ctx: AuthContext, test: TestModel) -> None:
    if ctx.is_admin:
        return
    if ctx.role is Role.TEACHER and ctx.teaches(test.subject, test.class_name):
        return
    raise PermissionDeniedError("You are not assigned to this test's subject/class.")


def list_results(
    db: Session,
    ctx: AuthContext,
    test_id: Optional[int] = None,
    student_id: Optional[int] = None,
    subject: Optional[str] = None,
    class_name: Optional[str] = None,
) -> List[ResultModel]:
    try:
        query = db.query(ResultModel).join(TestModel)
        if test_id is not None:
            query = query.filter(ResultModel.test_id == test_id)
        if student_id is not None:
            query = query.filter(ResultModel.user_id == student_id)
        if subject:
            query = query.filter(TestModel.subject == subject)
        if class_name:
            query = query.filter(TestModel.class_name == class_name)
        results = query.order_by(ResultModel.score.desc(), ResultModel.id).all()
        if not ctx.is_admin:
            results = [r for r in results if ctx.teaches(r.test.subject, r.test.class_name)]
        logger.info(f"User {ctx.user_id} fetched {len(results)} results")
        return results
    except Exception as e:
        logger.error(f"Error fetching results: {e}", exc_info=True)
        raise


def list_test_results(db: Session, test_id: int, ctx: AuthContext) -> List[ResultModel]:
    test = get_test(db, test_id)
    _check_result_access(ctx, test)
    return list_results(db, ctx, test_id=test_id)


def get_result(db: Session, result_id: int, ctx: AuthContext) -> ResultModel:
    result = db.query(ResultModel).filter(ResultModel.id == result_id).first()
    if not result:
        logger.warning(f"Result {result_id} not found")
        raise NotFoundError(f"Result {result_id} not found")
    _check_result_access(ctx, result.test)
    return result


def correct_score(
    db: Session,
    result_id: int,
    score: int,
    remarks: Optional[str],
    ctx: AuthContext,
) -> ResultModel:
    try:
        result = get_result(db, result_id, ctx)
        validate_corrected_score(score, result.total_marks)
        previous = result.score
        result.score = score
        result.percentage = percentage_of(score, result.total_marks)
        result.grade = letter_grade(result.percentage)
        result.reviewed_by = ctx.user_id
        result.reviewed_at = datetime.now(timezone.utc)
        if remarks is not None:
            if len(remarks) > 500:
                raise ValueError("Remarks cannot exceed 500 characters.")
            result.remarks = remarks
        db.commit()
        db.refresh(result)
        logger.info(f"Result {result_id} score corrected by user {ctx.user_id}: {previous} -> {score}")
        return result
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error correcting result {result_id}: {e}", exc_info=True)
        raise


def delete_result(db: Session, result_id: int, ctx: AuthContext) -> dict:
    try:
        result = get_result(db, result_id, ctx)
        db.delete(result)
        db.commit()
        logger.info(f"Result {result_id} deleted by user {ctx.user_id}")
        return {"message": "Result deleted successfully"}
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error deleting result {result_id}: {e}", exc_info=True)
        raise
