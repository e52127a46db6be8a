from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from schoolcbt.application.auth.roles import AuthContext, Capability
from schoolcbt.application.errors import NotFoundError
from schoolcbt.presentation.schemas.academic_session_schema import AcademicSessionCreate, AcademicSessionOut
from schoolcbt.presentation.dependencies import get_db, get_current_user, require
from schoolcbt.infrastructure.repositories.academic_session_repo_impl import (
    activate_session,
    create_session,
    delete_session,
    get_active_session,
    get_all_sessions,
    get_session_by_id,
    update_session,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sessions", tags=["Academic Sessions"])


@router.get("", response_model=List[AcademicSessionOut])
def list_sessions(db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    return get_all_sessions(db)


@router.get("/active", response_model=AcademicSessionOut)
def active_session(db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    try:
        return get_active_session(db)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{session_id}", response_model=AcademicSessionOut)
def get_session(
    session_id: int,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    try:
        return get_session_by_id(db, session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=AcademicSessionOut, status_code=201)
def add_session(
    session: AcademicSessionCreate,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_SESSIONS)),
):
    try:
        return create_session(db, session)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{session_id}", response_model=AcademicSessionOut)
def modify_session(
    session_id: int,
    session: AcademicSessionCreate,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_SESSIONS)),
):
    try:
        return update_session(db, session_id, session)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{session_id}/activate", response_model=AcademicSessionOut)
def activate(
    session_id: int,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_SESSIONS)),
):
    try:
        return activate_session(db, session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{session_id}")
def remove_session(
    session_id: int,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_SESSIONS)),
):
    try:
        return delete_session(db, session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
