import logging
from typing import List, Optional

from app.application.exam_session.answer_ledger import AnswerLedger
from app.application.exam_session.attempt_lifecycle import AttemptLifecycleManager
from app.application.exam_session.errors import AlreadySubmitted, NotYetSubmitted
from app.application.exam_session.policies import (
    AccessPolicy,
    AttemptPolicy,
    IdentityResolver,
)
from app.application.exam_session.ports import StorageGateway
from app.application.exam_session.records import (
    Answer,
    Attempt,
    AttemptResults,
    AttemptView,
    ResultRow,
)
from app.application.exam_session.scoring import percentage

logger = logging.getLogger(__name__)


class ExamSessionFacade:
    """
    The only entry point the HTTP layer talks to.

    Composes the lifecycle manager, the answer ledger and the scoring engine,
    and applies the deployment's identity, attempt and access policies.
    ``caller`` is the decoded token payload, or None for anonymous requests.
    """

    def __init__(
        self,
        *,
        storage: StorageGateway,
        lifecycle: AttemptLifecycleManager,
        ledger: AnswerLedger,
        identity_resolver: IdentityResolver,
        attempt_policy: AttemptPolicy,
        access_policy: AccessPolicy,
    ):
        self._storage = storage
        self._lifecycle = lifecycle
        self._ledger = ledger
        self._identities = identity_resolver
        self._attempt_policy = attempt_policy
        self._access = access_policy

    # ---------------------------
    # Public API
    # ---------------------------

    def start_attempt(
        self,
        exam_id: int,
        caller: Optional[dict] = None,
        student_name: Optional[str] = None,
        student_email: Optional[str] = None,
    ) -> Attempt:
        identity = self._identities.resolve(caller, student_name, student_email)
        existing = self._attempt_policy.existing_attempt(self._storage, exam_id, identity)
        if existing is not None:
            return existing
        return self._lifecycle.start(exam_id, identity)

    def get_attempt(self, attempt_id: str, caller: Optional[dict] = None) -> AttemptView:
        attempt = self._authorize(attempt_id, caller)
        return AttemptView(
            attempt=attempt,
            time_remaining=self._lifecycle.time_remaining(attempt),
            deadline=self._lifecycle.deadline(attempt),
        )

    def record_answer(
        self,
        attempt_id: str,
        question_id: int,
        user_answer: Optional[str],
        is_marked_for_review: bool = False,
        caller: Optional[dict] = None,
    ) -> Answer:
        self._authorize(attempt_id, caller)
        return self._ledger.record_answer(attempt_id, question_id, user_answer, is_marked_for_review)

    def list_answers(self, attempt_id: str, caller: Optional[dict] = None) -> List[Answer]:
        self._authorize(attempt_id, caller)
        return self._ledger.answers_for(attempt_id)

    def submit(self, attempt_id: str, caller: Optional[dict] = None) -> AttemptResults:
        self._authorize(attempt_id, caller)
        submitted = self._lifecycle.submit(attempt_id)
        return self._build_results(submitted)

    def time_up(self, attempt_id: str, caller: Optional[dict] = None) -> AttemptResults:
        """
        Submission triggered by the countdown reaching zero.

        Losing the race to a manual submit is not an error here: the exam is
        submitted either way, so the stored results are returned.
        """
        self._authorize(attempt_id, caller)
        try:
            submitted = self._lifecycle.submit(attempt_id)
        except AlreadySubmitted as e:
            logger.info(f"Time-up on attempt {attempt_id} found it already submitted")
            attempt = e.attempt or self._lifecycle.get(attempt_id)
            if not attempt.is_submitted:
                # A concurrent submit still holds the lock; re-read once it is visible
                attempt = self._lifecycle.get(attempt_id)
            if not attempt.is_submitted:
                raise
            return self._build_results(attempt)
        return self._build_results(submitted)

    def get_results(self, attempt_id: str, caller: Optional[dict] = None) -> AttemptResults:
        attempt = self._authorize(attempt_id, caller)
        return self._build_results(attempt)

    def list_my_attempts(self, caller: Optional[dict] = None) -> List[Attempt]:
        identity = self._identities.resolve(caller)
        return self._access.attempts_of(self._storage, identity)

    def list_exam_attempts(self, exam_id: int) -> List[Attempt]:
        return self._storage.get_attempts_for_exam(exam_id)

    # ---------------------------
    # Helpers
    # ---------------------------

    def _authorize(self, attempt_id: str, caller: Optional[dict]) -> Attempt:
        attempt = self._lifecycle.get(attempt_id)
        identity = self._identities.resolve(caller)
        self._access.check(attempt, identity)
        return attempt

    def _build_results(self, attempt: Attempt) -> AttemptResults:
        if not attempt.is_submitted:
            logger.warning(f"Results requested for unsubmitted attempt {attempt.id}")
            raise NotYetSubmitted(f"Attempt {attempt.id} has not been submitted yet")

        answers = {a.question_id: a for a in self._storage.get_answers_for_attempt(attempt.id)}
        questions = self._storage.get_questions_for_exam(attempt.exam_id)

        rows = []
        points_awarded = 0
        points_possible = 0
        for question in questions:
            answer = answers.get(question.id)
            # Frozen flags written at submission, not a fresh re-score
            is_correct = bool(answer.is_correct) if answer is not None else False
            points_possible += question.points
            if is_correct:
                points_awarded += question.points
            rows.append(
                ResultRow(
                    question=question,
                    user_answer=answer.user_answer if answer is not None else None,
                    is_correct=is_correct,
                )
            )

        score = attempt.score or 0
        return AttemptResults(
            attempt=attempt,
            results=rows,
            score=score,
            total_questions=attempt.total_questions,
            percentage=percentage(score, attempt.total_questions),
            points_awarded=points_awarded,
            points_possible=points_possible,
        )
