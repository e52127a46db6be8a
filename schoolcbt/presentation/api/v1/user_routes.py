from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from schoolcbt.application.auth.roles import AuthContext, Capability
from schoolcbt.application.errors import NotFoundError
from schoolcbt.infrastructure.repositories.user_repo_impl import (
    create_user,
    delete_user,
    get_user_by_id,
    list_students_for,
    list_users,
    set_blocked,
    update_user,
)
from schoolcbt.presentation.dependencies import get_db, require
from schoolcbt.presentation.schemas.user_schema import BlockRequest, UserCreate, UserOut, UserUpdate
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["Users"])

# Scheduling needs to pick students, so listing is open to both user managers and schedulers
can_list_users = require(Capability.SCHEDULE_TESTS)
can_manage_users = require(Capability.MANAGE_USERS)


@router.get("", response_model=List[UserOut])
def get_users(
    role: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(can_list_users),
):
    return list_users(db, role)


@router.get("/students", response_model=List[UserOut])
def get_students_for(
    subject: str,
    class_name: str,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(can_list_users),
):
    return list_students_for(db, subject, class_name)


@router.post("", response_model=UserOut, status_code=201)
def add_user(
    user: UserCreate,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(can_manage_users),
):
    try:
        logger.info(f"Admin {admin.user_id} is creating user: {user.username} ({user.role})")
        return create_user(db, user)
    except ValueError as e:
        logger.warning(f"Validation error during user creation by admin {admin.user_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(can_list_users),
):
    try:
        return get_user_by_id(db, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{user_id}", response_model=UserOut)
def modify_user(
    user_id: int,
    user: UserUpdate,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(can_manage_users),
):
    try:
        return update_user(db, user_id, user)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{user_id}/block", response_model=UserOut)
def block_user(
    user_id: int,
    body: BlockRequest,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(can_manage_users),
):
    if user_id == admin.user_id:
        raise HTTPException(status_code=400, detail="You cannot block your own account")
    try:
        return set_blocked(db, user_id, body.blocked)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{user_id}")
def remove_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(can_manage_users),
):
    if user_id == admin.user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    try:
        return delete_user(db, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
