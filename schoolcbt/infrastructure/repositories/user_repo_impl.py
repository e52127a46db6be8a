from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from schoolcbt.application.auth.roles import AuthContext, Role
from schoolcbt.application.errors import AlreadyExistsError, NotFoundError
from schoolcbt.infrastructure.db.models.user_model import (
    UserModel,
    TeachingAssignmentModel,
    EnrollmentModel,
)
from schoolcbt.infrastructure.security.password_service import hash_password, verify_password
from schoolcbt.presentation.schemas.user_schema import UserCreate, UserUpdate, SubjectClassPair
import logging

logger = logging.getLogger(__name__)

VALID_ROLES = {role.value for role in Role}


def _pairs(model, items: List[SubjectClassPair]):
    seen = set()
    rows = []
    for item in items:
        key = (item.subject.strip(), item.class_name.strip())
        if not all(key) or key in seen:
            continue
        seen.add(key)
        rows.append(model(subject=key[0], class_name=key[1]))
    return rows


def to_auth_context(user: UserModel) -> AuthContext:
    return AuthContext(
        user_id=user.id,
        username=user.username,
        role=Role(user.role),
        teaching=frozenset((t.subject, t.class_name) for t in user.teaching),
        enrolled=frozenset((e.subject, e.class_name) for e in user.enrollments),
    )


def create_user(db: Session, data: UserCreate) -> UserModel:
    try:
        if data.role not in VALID_ROLES:
            raise ValueError(f"Invalid role '{data.role}'")
        if not data.username.strip() or not data.password:
            raise ValueError("Username and password are required")
        if db.query(UserModel).filter(UserModel.username == data.username.strip()).first():
            logger.warning(f"Attempt to create duplicate user: {data.username}")
            raise AlreadyExistsError(f"Username '{data.username}' already exists")

        user = UserModel(
            username=data.username.strip(),
            password_hash=hash_password(data.password),
            name=data.name,
            surname=data.surname,
            role=data.role,
            class_name=data.class_name if data.role == Role.STUDENT.value else None,
        )
        if data.role == Role.TEACHER.value:
            user.teaching = _pairs(TeachingAssignmentModel, data.teaching)
        if data.role == Role.STUDENT.value:
            user.enrollments = _pairs(EnrollmentModel, data.enrollments)

        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Created user: {user.username} (ID: {user.id}, role: {user.role})")
        return user
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Database integrity error creating user: {e}")
        raise ValueError(f"Database error: {str(e)}")
    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error creating user: {e}", exc_info=True)
        raise


def get_user_by_id(db: Session, user_id: int) -> UserModel:
    user = db.query(UserModel).filter(UserModel.id == user_id).first()
    if not user:
        logger.warning(f"User with id {user_id} not found")
        raise NotFoundError(f"User with id {user_id} not found")
    return user


def get_user_by_username(db: Session, username: str) -> Optional[UserModel]:
    return db.query(UserModel).filter(UserModel.username == username).first()


def list_users(db: Session, role: Optional[str] = None) -> List[UserModel]:
    try:
        query = db.query(UserModel)
        if role:
            query = query.filter(UserModel.role == role)
        users = query.order_by(UserModel.surname, UserModel.name).all()
        logger.info(f"Retrieved {len(users)} users (role filter: {role})")
        return users
    except Exception as e:
        logger.error(f"Error fetching users: {e}", exc_info=True)
        raise


def list_students_for(db: Session, subject: str, class_name: str) -> List[UserModel]:
    """Students enrolled in a subject/class pair, the pool a batch is drawn from."""
    return (
        db.query(UserModel)
        .join(EnrollmentModel)
        .filter(
            UserModel.role == Role.STUDENT.value,
            EnrollmentModel.subject == subject,
            EnrollmentModel.class_name == class_name,
        )
        .order_by(UserModel.surname, UserModel.name)
        .all()
    )


def update_user(db: Session, user_id: int, data: UserUpdate) -> UserModel:
    try:
        user = get_user_by_id(db, user_id)
        if data.name is not None:
            user.name = data.name
        if data.surname is not None:
            user.surname = data.surname
        if data.password:
            user.password_hash = hash_password(data.password)
        if data.class_name is not None and user.role == Role.STUDENT.value:
            user.class_name = data.class_name
        if data.teaching is not None and user.role == Role.TEACHER.value:
            user.teaching = _pairs(TeachingAssignmentModel, data.teaching)
        if data.enrollments is not None and user.role == Role.STUDENT.value:
            user.enrollments = _pairs(EnrollmentModel, data.enrollments)
        db.commit()
        db.refresh(user)
        logger.info(f"Updated user: {user.username} (ID: {user_id})")
        return user
    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error updating user {user_id}: {e}", exc_info=True)
        raise


def set_blocked(db: Session, user_id: int, blocked: bool) -> UserModel:
    user = get_user_by_id(db, user_id)
    user.blocked = blocked
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.username} (ID: {user_id}) {'blocked' if blocked else 'unblocked'}")
    return user


def delete_user(db: Session, user_id: int) -> dict:
    try:
        user = get_user_by_id(db, user_id)
        username = user.username
        db.delete(user)
        db.commit()
        logger.info(f"Deleted user: {username} (ID: {user_id})")
        return {"message": f"User '{username}' deleted successfully"}
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Cannot delete user {user_id}: {e}")
        raise ValueError("Cannot delete user: it is referenced by tests, questions or results")
    except ValueError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error deleting user {user_id}: {e}", exc_info=True)
        raise


def authenticate(db: Session, username: str, password: str) -> Optional[UserModel]:
    user = get_user_by_username(db, username)
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login attempt for username: {username}")
        return None
    if user.blocked:
        logger.warning(f"Blocked user attempted login: {username}")
        return None
    return user


def ensure_super_admin(db: Session, username: str, password: str) -> UserModel:
    existing = get_user_by_username(db, username)
    if existing:
        return existing
    user = create_user(
        db,
        UserCreate(
            username=username,
            password=password,
            name="System",
            surname="Administrator",
            role=Role.SUPER_ADMIN.value,
        ),
    )
    logger.info(f"Bootstrapped super admin account: {username}")
    return user
