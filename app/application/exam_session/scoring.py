from typing import Dict, Iterable, List

from app.application.exam_session.records import (
    Answer,
    Question,
    QuestionOutcome,
    ScoreResult,
)


def score_attempt(answers: Iterable[Answer], questions: Iterable[Question]) -> ScoreResult:
    """
    Score an attempt by exact string match.

    Walks the exam's questions rather than the answers, so an unanswered
    question is reported as incorrect instead of being skipped. Answers to
    questions outside the exam never match anything.

    ``score`` counts correct questions. ``points_awarded`` is the weighted
    total and is reported alongside it, never in its place.
    """
    by_question: Dict[int, Answer] = {a.question_id: a for a in answers}
    ordered = sorted(questions, key=lambda q: (q.order_index, q.id))

    outcomes: List[QuestionOutcome] = []
    score = 0
    points_awarded = 0
    points_possible = 0

    for question in ordered:
        answer = by_question.get(question.id)
        user_answer = answer.user_answer if answer is not None else None
        # Case-sensitive, whitespace-exact; no normalization, no partial credit
        is_correct = user_answer is not None and user_answer == question.correct_answer

        points_possible += question.points
        if is_correct:
            score += 1
            points_awarded += question.points

        outcomes.append(
            QuestionOutcome(
                question_id=question.id,
                user_answer=user_answer,
                correct_answer=question.correct_answer,
                is_correct=is_correct,
                points=question.points,
            )
        )

    return ScoreResult(
        score=score,
        points_awarded=points_awarded,
        points_possible=points_possible,
        outcomes=outcomes,
    )


def percentage(score: int, total_questions: int) -> int:
    """Whole-number percentage, halves rounded up; 0 for an empty exam."""
    if not total_questions:
        return 0
    return (200 * score + total_questions) // (2 * total_questions)
