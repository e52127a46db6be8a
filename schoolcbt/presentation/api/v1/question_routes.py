from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session
from schoolcbt.application.admin.bulk_question_import_usecase import process_bulk_import
from schoolcbt.application.auth.roles import AuthContext, Capability
from schoolcbt.application.errors import NotFoundError, PermissionDeniedError
from schoolcbt.infrastructure.repositories.question_repo_impl import (
    create_question,
    delete_question,
    get_question,
    list_questions,
    update_question,
)
from schoolcbt.presentation.dependencies import get_db, require
from schoolcbt.presentation.schemas.question_schema import (
    BulkQuestionMeta,
    BulkUploadResponse,
    QuestionCreate,
    QuestionOut,
    QuestionUpdate,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/questions", tags=["Questions"])

can_manage_questions = require(Capability.MANAGE_QUESTIONS)


@router.get("", response_model=List[QuestionOut])
def get_questions(
    subject: Optional[str] = None,
    class_name: Optional[str] = None,
    bank_only: bool = False,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(can_manage_questions),
):
    try:
        return list_questions(db, user, subject, class_name, bank_only)
    except Exception as e:
        logger.error(f"Error fetching questions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("", response_model=QuestionOut, status_code=201)
def add_question(
    question: QuestionCreate,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(can_manage_questions),
):
    try:
        logger.info(f"User {user.user_id} is creating a question for {question.subject}/{question.class_name}")
        return create_question(db, question, user)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        logger.warning(f"Validation error during question creation by user {user.user_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error during question creation by user {user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/bulk", response_model=BulkUploadResponse)
def bulk_upload_questions(
    file: UploadFile = File(...),
    subject: str = Form(...),
    class_name: str = Form(...),
    save_to_bank: bool = Form(True),
    db: Session = Depends(get_db),
    user: AuthContext = Depends(can_manage_questions),
):
    meta = BulkQuestionMeta(subject=subject, class_name=class_name, save_to_bank=save_to_bank)
    try:
        content = file.file.read()
        return process_bulk_import(db, content, file.filename or "", meta, user)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        logger.warning(f"Bulk import rejected for user {user.user_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Bulk import failed for user {user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/{question_id}", response_model=QuestionOut)
def get_one_question(
    question_id: int,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(can_manage_questions),
):
    try:
        return get_question(db, question_id, user)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.put("/{question_id}", response_model=QuestionOut)
def modify_question(
    question_id: int,
    question: QuestionUpdate,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(can_manage_questions),
):
    try:
        return update_question(db, question_id, question, user)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{question_id}")
def remove_question(
    question_id: int,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(can_manage_questions),
):
    try:
        return delete_question(db, question_id, user)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
