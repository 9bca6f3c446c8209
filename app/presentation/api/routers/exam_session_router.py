import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.application.exam_session.errors import AlreadySubmitted, ExamSessionError
from app.application.exam_session.session_facade import ExamSessionFacade
from app.presentation.dependencies import (
    admin_required,
    get_current_user,
    get_session_facade,
)
from app.presentation.schemas.exam_session_schema import (
    AnswerOut,
    AnswerRequest,
    AttemptOut,
    AttemptResultsOut,
    AttemptStatusOut,
    StartAttemptRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Exam Sessions"])


def _fail(e: Exception, context: str) -> NoReturn:
    if isinstance(e, ExamSessionError):
        logger.warning(f"{context}: {e.code}: {e}")
        detail = e.to_detail()
        if isinstance(e, AlreadySubmitted) and e.attempt is not None:
            detail["attempt"] = AttemptOut.model_validate(e.attempt).model_dump(mode="json")
        raise HTTPException(status_code=e.status_code, detail=detail)
    logger.error(f"Unexpected error while {context}: {e}", exc_info=True)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred.",
    )


# --------------------------------------------------
# 1. Start an attempt
# --------------------------------------------------
@router.post(
    "/exams/{exam_id}/start",
    response_model=AttemptOut,
    status_code=status.HTTP_201_CREATED,
)
def start_attempt(
    exam_id: int,
    payload: Optional[StartAttemptRequest] = None,
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    """
    Starts an attempt on an exam, or resumes the caller's unfinished one when
    only one attempt per exam is allowed.
    """
    payload = payload or StartAttemptRequest()
    try:
        logger.info(f"Starting attempt on exam {exam_id}")
        attempt = facade.start_attempt(
            exam_id,
            caller=current_user,
            student_name=payload.student_name,
            student_email=payload.student_email,
        )
        return AttemptOut.model_validate(attempt)
    except Exception as e:
        _fail(e, f"starting exam {exam_id}")


# --------------------------------------------------
# 2. Attempts of the current student
# --------------------------------------------------
@router.get("/attempts", response_model=List[AttemptOut])
def list_my_attempts(
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    try:
        attempts = facade.list_my_attempts(caller=current_user)
        return [AttemptOut.model_validate(a) for a in attempts]
    except Exception as e:
        _fail(e, "listing attempts")


# --------------------------------------------------
# 3. One attempt, with the server-side countdown
# --------------------------------------------------
@router.get("/attempts/{attempt_id}", response_model=AttemptStatusOut)
def get_attempt(
    attempt_id: str,
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    try:
        return AttemptStatusOut.model_validate(facade.get_attempt(attempt_id, caller=current_user))
    except Exception as e:
        _fail(e, f"fetching attempt {attempt_id}")


# --------------------------------------------------
# 4. Answers
# --------------------------------------------------
@router.get("/attempts/{attempt_id}/answers", response_model=List[AnswerOut])
def list_answers(
    attempt_id: str,
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    """Saved answers, so a crashed browser can restore its state."""
    try:
        answers = facade.list_answers(attempt_id, caller=current_user)
        return [AnswerOut.model_validate(a) for a in answers]
    except Exception as e:
        _fail(e, f"fetching answers for attempt {attempt_id}")


@router.post("/attempts/{attempt_id}/answers", response_model=AnswerOut)
def save_answer(
    attempt_id: str,
    answer: AnswerRequest,
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    """
    Saves or replaces the answer to one question.
    """
    try:
        saved = facade.record_answer(
            attempt_id,
            answer.question_id,
            answer.user_answer,
            answer.is_marked_for_review,
            caller=current_user,
        )
        return AnswerOut.model_validate(saved)
    except Exception as e:
        _fail(e, f"saving answer for attempt {attempt_id}")


# --------------------------------------------------
# 5. Submission
# --------------------------------------------------
@router.post("/attempts/{attempt_id}/submit", response_model=AttemptResultsOut)
def submit_attempt(
    attempt_id: str,
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    """
    Manually submits an attempt and returns its results.
    """
    try:
        logger.info(f"Submitting attempt {attempt_id}")
        results = facade.submit(attempt_id, caller=current_user)
        return AttemptResultsOut.model_validate(results)
    except Exception as e:
        _fail(e, f"submitting attempt {attempt_id}")


@router.post("/attempts/{attempt_id}/time-up", response_model=AttemptResultsOut)
def time_up(
    attempt_id: str,
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    """
    Submission fired by the client countdown. Never reports an error just
    because the attempt was already submitted.
    """
    try:
        logger.info(f"Time up for attempt {attempt_id}")
        results = facade.time_up(attempt_id, caller=current_user)
        return AttemptResultsOut.model_validate(results)
    except AlreadySubmitted:
        # Another submit still holds the lock; it will finish on its own
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"code": "submission_in_progress", "message": "Submission in progress"},
        )
    except Exception as e:
        _fail(e, f"handling time-up for attempt {attempt_id}")


# --------------------------------------------------
# 6. Results (after submission)
# --------------------------------------------------
@router.get("/attempts/{attempt_id}/results", response_model=AttemptResultsOut)
def get_results(
    attempt_id: str,
    current_user: Optional[dict] = Depends(get_current_user),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    try:
        results = facade.get_results(attempt_id, caller=current_user)
        return AttemptResultsOut.model_validate(results)
    except Exception as e:
        _fail(e, f"fetching results for attempt {attempt_id}")


@router.get("/exams/{exam_id}/attempts", response_model=List[AttemptOut])
def list_exam_attempts(
    exam_id: int,
    admin: dict = Depends(admin_required),
    facade: ExamSessionFacade = Depends(get_session_facade),
):
    try:
        logger.info(f"Admin {admin['user_id']} listing attempts for exam {exam_id}")
        return [AttemptOut.model_validate(a) for a in facade.list_exam_attempts(exam_id)]
    except Exception as e:
        _fail(e, f"listing attempts for exam {exam_id}")
