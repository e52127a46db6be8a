from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from schoolcbt.application.errors import AlreadyExistsError, NotFoundError
from schoolcbt.application.validation.rules import normalize_class_name, validate_class_fields
from schoolcbt.infrastructure.db.models.class_model import SchoolClassModel
from schoolcbt.infrastructure.db.models.test_model import TestModel
from schoolcbt.infrastructure.db.models.user_model import UserModel
from schoolcbt.presentation.schemas.class_schema import ClassCreate
import logging

logger = logging.getLogger(__name__)


def create_class(db: Session, class_data: ClassCreate) -> SchoolClassModel:
    """Create a new class"""
    try:
        name = normalize_class_name(class_data.name)
        validate_class_fields(level=class_data.level, capacity=class_data.capacity)

        existing = db.query(SchoolClassModel).filter(SchoolClassModel.name == name).first()
        if existing:
            logger.warning(f"Attempt to create duplicate class: {name}")
            raise AlreadyExistsError(f"Class '{name}' already exists")

        school_class = SchoolClassModel(
            name=name,
            level=class_data.level,
            capacity=class_data.capacity,
            description=class_data.description,
        )
        db.add(school_class)
        db.commit()
        db.refresh(school_class)
        logger.info(f"Created class: {school_class.name} (ID: {school_class.id})")
        return school_class

    except IntegrityError as e:
        db.rollback()
        logger.error(f"Database integrity error creating class: {e}")
        raise ValueError(f"Database error: {str(e)}")
    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error creating class: {e}", exc_info=True)
        raise


def get_all_classes(db: Session):
    """Get all classes"""
    try:
        classes = db.query(SchoolClassModel).order_by(SchoolClassModel.name).all()
        logger.info(f"Retrieved {len(classes)} classes")
        return classes
    except Exception as e:
        logger.error(f"Error fetching classes: {e}", exc_info=True)
        raise


def get_class_by_id(db: Session, class_id: int) -> SchoolClassModel:
    school_class = db.query(SchoolClassModel).filter(SchoolClassModel.id == class_id).first()
    if not school_class:
        logger.warning(f"Class with id {class_id} not found")
        raise NotFoundError(f"Class with id {class_id} not found")
    return school_class


def update_class(db: Session, class_id: int, class_data: ClassCreate) -> SchoolClassModel:
    """Update a class"""
    try:
        school_class = get_class_by_id(db, class_id)
        name = normalize_class_name(class_data.name)
        validate_class_fields(level=class_data.level, capacity=class_data.capacity)

        if name != school_class.name:
            existing = db.query(SchoolClassModel).filter(SchoolClassModel.name == name).first()
            if existing:
                logger.warning(f"Cannot update class {class_id}: name '{name}' already exists")
                raise AlreadyExistsError(f"Class name '{name}' already exists")

        school_class.name = name
        school_class.level = class_data.level
        school_class.capacity = class_data.capacity
        school_class.description = class_data.description
        db.commit()
        db.refresh(school_class)
        logger.info(f"Updated class: {school_class.name} (ID: {class_id})")
        return school_class

    except ValueError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error updating class {class_id}: {e}", exc_info=True)
        raise


def delete_class(db: Session, class_id: int) -> dict:
    """Delete a class that no student or test refers to"""
    try:
        school_class = get_class_by_id(db, class_id)
        students = db.query(UserModel).filter(UserModel.class_name == school_class.name).count()
        tests = db.query(TestModel).filter(TestModel.class_name == school_class.name).count()
        if students or tests:
            logger.warning(
                f"Refusing to delete class {school_class.name}: {students} students, {tests} tests"
            )
            raise ValueError(
                f"Cannot delete class '{school_class.name}': it has {students} student(s) and {tests} test(s)"
            )

        class_name = school_class.name
        db.delete(school_class)
        db.commit()
        logger.info(f"Deleted class: {class_name} (ID: {class_id})")
        return {"message": f"Class '{class_name}' deleted successfully"}

    except ValueError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error deleting class {class_id}: {e}", exc_info=True)
        raise
