from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from schoolcbt.application.auth.roles import AuthContext, Capability
from schoolcbt.application.errors import NotFoundError, PermissionDeniedError
from schoolcbt.infrastructure.repositories.result_repo_impl import (
    correct_score,
    delete_result,
    get_result,
    list_results,
)
from schoolcbt.presentation.dependencies import get_db, require
from schoolcbt.presentation.schemas.result_schema import ResultOut, ResultUpdate
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/results", tags=["Results"])


@router.get("", response_model=List[ResultOut])
def get_results(
    test_id: Optional[int] = None,
    student_id: Optional[int] = None,
    subject: Optional[str] = None,
    class_name: Optional[str] = None,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(require(Capability.VIEW_RESULTS)),
):
    try:
        return list_results(db, user, test_id, student_id, subject, class_name)
    except Exception as e:
        logger.error(f"Error fetching results: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/{result_id}", response_model=ResultOut)
def get_one_result(
    result_id: int,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(require(Capability.VIEW_RESULTS)),
):
    try:
        return get_result(db, result_id, user)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.put("/{result_id}", response_model=ResultOut)
def edit_score(
    result_id: int,
    body: ResultUpdate,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_RESULTS)),
):
    try:
        logger.info(f"Admin {admin.user_id} correcting result {result_id} to {body.score}")
        return correct_score(db, result_id, body.score, body.remarks, admin)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        logger.warning(f"Score correction rejected for result {result_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error correcting result {result_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.delete("/{result_id}")
def remove_result(
    result_id: int,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_RESULTS)),
):
    try:
        return delete_result(db, result_id, admin)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
