from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from schoolcbt.application.auth.roles import AuthContext, Capability
from schoolcbt.application.errors import NotFoundError
from schoolcbt.presentation.schemas.class_schema import ClassCreate, ClassOut
from schoolcbt.presentation.dependencies import get_db, get_current_user, require
from schoolcbt.infrastructure.repositories.class_repo_impl import (
    create_class,
    get_all_classes,
    get_class_by_id,
    update_class,
    delete_class,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/classes", tags=["Classes"])


@router.post("", response_model=ClassOut, status_code=201)
def add_class(
    school_class: ClassCreate,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_CLASSES)),
):
    try:
        return create_class(db, school_class)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=List[ClassOut])
def list_classes(db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    return get_all_classes(db)


@router.get("/{class_id}", response_model=ClassOut)
def get_class(
    class_id: int,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    try:
        return get_class_by_id(db, class_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{class_id}", response_model=ClassOut)
def modify_class(
    class_id: int,
    school_class: ClassCreate,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_CLASSES)),
):
    try:
        return update_class(db, class_id, school_class)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{class_id}")
def remove_class(
    class_id: int,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require(Capability.MANAGE_CLASSES)),
):
    try:
        return delete_class(db, class_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
