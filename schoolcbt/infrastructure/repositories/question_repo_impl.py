from typing import List, Optional
from sqlalchemy.orm import Session
from schoolcbt.application.auth.roles import AuthContext
from schoolcbt.application.errors import NotFoundError, PermissionDeniedError
from schoolcbt.application.validation.rules import validate_question
from schoolcbt.infrastructure.db.models.question_model import QuestionModel
from schoolcbt.infrastructure.db.models.test_model import TestQuestionModel
from schoolcbt.presentation.schemas.question_schema import QuestionCreate, QuestionUpdate
import logging

logger = logging.getLogger(__name__)


def _check_assignment(ctx: AuthContext, subject: str, class_name: str) -> None:
    if ctx.is_admin or ctx.teaches(subject, class_name):
        return
    logger.warning(f"User {ctx.user_id} is not assigned to {subject}/{class_name}")
    raise PermissionDeniedError("You are not assigned to this subject/class.")


def create_question(db: Session, data: QuestionCreate, ctx: AuthContext) -> QuestionModel:
    try:
        _check_assignment(ctx, data.subject, data.class_name)
        options = [opt.strip() for opt in data.options]
        correct = data.correct_answer.strip()
        validate_question(
            text=data.text,
            options=options,
            correct_answer=correct,
            marks=data.marks,
            image_url=data.image_url,
        )
        question = QuestionModel(
            subject=data.subject,
            class_name=data.class_name,
            text=data.text.strip(),
            formula=data.formula,
            options=options,
            correct_answer=correct,
            marks=data.marks,
            image_url=data.image_url,
            save_to_bank=data.save_to_bank,
            created_by=ctx.user_id,
        )
        db.add(question)
        db.commit()
        db.refresh(question)
        logger.info(f"Question {question.id} created by user {ctx.user_id} for {data.subject}/{data.class_name}")
        return question
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating question: {e}", exc_info=True)
        db.rollback()
        raise


def list_questions(
    db: Session,
    ctx: AuthContext,
    subject: Optional[str] = None,
    class_name: Optional[str] = None,
    bank_only: bool = False,
) -> List[QuestionModel]:
    try:
        query = db.query(QuestionModel)
        if subject:
            query = query.filter(QuestionModel.subject == subject)
        if class_name:
            query = query.filter(QuestionModel.class_name == class_name)
        if bank_only:
            query = query.filter(QuestionModel.save_to_bank.is_(True))
        questions = query.order_by(QuestionModel.id).all()
        if not ctx.is_admin:
            questions = [q for q in questions if ctx.teaches(q.subject, q.class_name)]
        logger.info(f"User {ctx.user_id} fetched {len(questions)} questions")
        return questions
    except Exception as e:
        logger.error(f"Error fetching questions: {e}", exc_info=True)
        raise


def get_question(db: Session, question_id: int, ctx: AuthContext) -> QuestionModel:
    question = db.query(QuestionModel).filter(QuestionModel.id == question_id).first()
    if not question:
        raise NotFoundError(f"Question {question_id} not found")
    _check_assignment(ctx, question.subject, question.class_name)
    return question


def update_question(db: Session, question_id: int, data: QuestionUpdate, ctx: AuthContext) -> QuestionModel:
    try:
        question = get_question(db, question_id, ctx)
        text = data.text if data.text is not None else question.text
        options = [opt.strip() for opt in data.options] if data.options is not None else list(question.options)
        correct = data.correct_answer.strip() if data.correct_answer is not None else question.correct_answer
        marks = data.marks if data.marks is not None else question.marks
        image_url = data.image_url if data.image_url is not None else question.image_url
        validate_question(text=text, options=options, correct_answer=correct, marks=marks, image_url=image_url)

        question.text = text.strip()
        question.options = options
        question.correct_answer = correct
        question.marks = marks
        question.image_url = image_url
        if data.formula is not None:
            question.formula = data.formula
        if data.save_to_bank is not None:
            question.save_to_bank = data.save_to_bank
        db.commit()
        db.refresh(question)
        logger.info(f"Question {question_id} updated by user {ctx.user_id}")
        return question
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error updating question {question_id}: {e}", exc_info=True)
        raise


def delete_question(db: Session, question_id: int, ctx: AuthContext) -> dict:
    try:
        question = get_question(db, question_id, ctx)
        usage = db.query(TestQuestionModel).filter(TestQuestionModel.question_id == question_id).count()
        if usage:
            logger.warning(f"Refusing to delete question {question_id}: used in {usage} test(s)")
            raise ValueError(f"Question is used in {usage} test(s); remove it from those tests first")
        db.delete(question)
        db.commit()
        logger.info(f"Question {question_id} deleted by user {ctx.user_id}")
        return {"message": "Question deleted successfully"}
    except (ValueError, PermissionDeniedError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error deleting question {question_id}: {e}", exc_info=True)
        raise
