import sys
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.application.exam_session.errors import ExamSessionError
from app.presentation.api.routers.exam_session_router import router as exam_session_router
from app.infrastructure.db.session import Base, engine
from app.infrastructure.db.models.exam_model import ExamModel  # noqa: F401
from app.infrastructure.db.models.question_model import QuestionModel  # noqa: F401
from app.infrastructure.db.models.attempt_model import AttemptModel  # noqa: F401
from app.infrastructure.db.models.answer_model import AnswerModel  # noqa: F401

# Create tables
Base.metadata.create_all(bind=engine)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(title="Exam Session API")


# Domain errors that escape a router still get their own status and body
@app.exception_handler(ExamSessionError)
async def exam_session_exception_handler(request: Request, exc: ExamSessionError):
    logger.warning(f"Unhandled domain error on {request.url.path}: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred."}
    )

# Include routers
app.include_router(exam_session_router, prefix="/api")


# Optional root endpoint
@app.get("/")
def root():
    return {"message": "Welcome to the Exam Session API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
