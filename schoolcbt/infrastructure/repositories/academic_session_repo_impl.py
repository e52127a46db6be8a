from typing import Optional
from sqlalchemy.orm import Session
from schoolcbt.application.errors import AlreadyExistsError, NotFoundError
from schoolcbt.application.validation.rules import validate_session_label
from schoolcbt.infrastructure.db.models.academic_session_model import AcademicSessionModel
from schoolcbt.infrastructure.db.models.test_model import TestModel
from schoolcbt.presentation.schemas.academic_session_schema import AcademicSessionCreate
import logging

logger = logging.getLogger(__name__)


def _deactivate_others(db: Session, keep_id: Optional[int]) -> None:
    query = db.query(AcademicSessionModel).filter(AcademicSessionModel.is_active.is_(True))
    if keep_id is not None:
        query = query.filter(AcademicSessionModel.id != keep_id)
    for other in query.all():
        other.is_active = False


def create_session(db: Session, data: AcademicSessionCreate) -> AcademicSessionModel:
    try:
        name = data.name.strip()
        validate_session_label(name)
        if db.query(AcademicSessionModel).filter(AcademicSessionModel.name == name).first():
            logger.warning(f"Attempt to create duplicate session: {name}")
            raise AlreadyExistsError(f"Session '{name}' already exists")

        session = AcademicSessionModel(name=name, is_active=data.is_active)
        db.add(session)
        db.flush()
        if session.is_active:
            _deactivate_others(db, session.id)
        db.commit()
        db.refresh(session)
        logger.info(f"Created session: {session.name} (ID: {session.id}, active: {session.is_active})")
        return session
    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error creating session: {e}", exc_info=True)
        raise


def get_all_sessions(db: Session):
    return db.query(AcademicSessionModel).order_by(AcademicSessionModel.name.desc()).all()


def get_session_by_id(db: Session, session_id: int) -> AcademicSessionModel:
    session = db.query(AcademicSessionModel).filter(AcademicSessionModel.id == session_id).first()
    if not session:
        logger.warning(f"Session with id {session_id} not found")
        raise NotFoundError(f"Session with id {session_id} not found")
    return session


def get_active_session(db: Session) -> AcademicSessionModel:
    session = db.query(AcademicSessionModel).filter(AcademicSessionModel.is_active.is_(True)).first()
    if not session:
        raise NotFoundError("No active session")
    return session


def update_session(db: Session, session_id: int, data: AcademicSessionCreate) -> AcademicSessionModel:
    try:
        session = get_session_by_id(db, session_id)
        name = data.name.strip()
        validate_session_label(name)
        if name != session.name:
            if db.query(AcademicSessionModel).filter(AcademicSessionModel.name == name).first():
                raise AlreadyExistsError(f"Session '{name}' already exists")
        session.name = name
        session.is_active = data.is_active
        if session.is_active:
            _deactivate_others(db, session.id)
        db.commit()
        db.refresh(session)
        logger.info(f"Updated session: {session.name} (ID: {session_id})")
        return session
    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error updating session {session_id}: {e}", exc_info=True)
        raise


def activate_session(db: Session, session_id: int) -> AcademicSessionModel:
    session = get_session_by_id(db, session_id)
    _deactivate_others(db, session.id)
    session.is_active = True
    db.commit()
    db.refresh(session)
    logger.info(f"Activated session: {session.name} (ID: {session_id})")
    return session


def delete_session(db: Session, session_id: int) -> dict:
    session = get_session_by_id(db, session_id)
    if session.is_active:
        raise ValueError("Cannot delete the active session")
    in_use = db.query(TestModel).filter(TestModel.session == session.name).count()
    if in_use:
        logger.warning(f"Refusing to delete session {session.name}: used by {in_use} tests")
        raise ValueError(f"Cannot delete session '{session.name}': it is used by {in_use} test(s)")
    name = session.name
    db.delete(session)
    db.commit()
    logger.info(f"Deleted session: {name} (ID: {session_id})")
    return {"message": f"Session '{name}' deleted successfully"}
