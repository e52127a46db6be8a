import sys
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from schoolcbt.config import BOOTSTRAP_ADMIN_PASSWORD, BOOTSTRAP_ADMIN_USERNAME, LOG_LEVEL
from schoolcbt.presentation.api.v1.auth_routes import router as auth_router
from schoolcbt.presentation.api.v1.class_routes import router as class_router
from schoolcbt.presentation.api.v1.question_routes import router as question_router
from schoolcbt.presentation.api.v1.result_routes import router as result_router
from schoolcbt.presentation.api.v1.session_routes import router as session_router
from schoolcbt.presentation.api.v1.test_routes import router as test_router
from schoolcbt.presentation.api.v1.user_routes import router as user_router
from schoolcbt.infrastructure.db.session import Base, SessionLocal, engine
from schoolcbt.infrastructure.db.models.user_model import UserModel, TeachingAssignmentModel, EnrollmentModel
from schoolcbt.infrastructure.db.models.class_model import SchoolClassModel
from schoolcbt.infrastructure.db.models.academic_session_model import AcademicSessionModel
from schoolcbt.infrastructure.db.models.question_model import QuestionModel
from schoolcbt.infrastructure.db.models.test_model import TestModel, TestQuestionModel, BatchModel
from schoolcbt.infrastructure.db.models.result_model import ResultModel, ResultAnswerModel
from schoolcbt.infrastructure.repositories.user_repo_impl import ensure_super_admin

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

if BOOTSTRAP_ADMIN_USERNAME and BOOTSTRAP_ADMIN_PASSWORD:
    db = SessionLocal()
    try:
        ensure_super_admin(db, BOOTSTRAP_ADMIN_USERNAME, BOOTSTRAP_ADMIN_PASSWORD)
    finally:
        db.close()

# Initialize FastAPI app
app = FastAPI(title="School CBT API")

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred."}
    )

# Include routers
app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
app.include_router(user_router, prefix="/api")
app.include_router(class_router, prefix="/api")
app.include_router(session_router, prefix="/api")
app.include_router(question_router, prefix="/api")
app.include_router(test_router, prefix="/api")
app.include_router(result_router, prefix="/api")


@app.get("/")
def root():
    return {"message": "Welcome to School CBT API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
