from app.application.exam_session.records import Answer, Question
from app.application.exam_session.scoring import percentage, score_attempt


def _question(qid, correct, order=None, points=1, kind="fill_blank"):
    return Question(
        id=qid,
        exam_id=1,
        question_text=f"Q{qid}",
        question_type=kind,
        correct_answer=correct,
        order_index=qid if order is None else order,
        points=points,
    )


def _answer(qid, value):
    return Answer(id=qid * 10, attempt_id="attempt", question_id=qid, user_answer=value)


def test_exact_match_is_case_sensitive():
    questions = [_question(1, "A"), _question(2, "True"), _question(3, "Paris")]
    answers = [_answer(1, "A"), _answer(2, "False"), _answer(3, "paris")]

    result = score_attempt(answers, questions)

    assert result.score == 1
    assert [o.is_correct for o in result.outcomes] == [True, False, False]
    assert percentage(result.score, len(questions)) == 33


def test_whitespace_is_not_normalized():
    result = score_attempt([_answer(1, "Paris ")], [_question(1, "Paris")])

    assert result.score == 0


def test_unanswered_questions_count_as_incorrect():
    questions = [_question(1, "A"), _question(2, "B")]

    result = score_attempt([], questions)

    assert result.score == 0
    assert len(result.outcomes) == 2
    assert all(o.user_answer is None and not o.is_correct for o in result.outcomes)


def test_answers_to_unknown_questions_are_ignored():
    result = score_attempt([_answer(99, "A")], [_question(1, "A")])

    assert result.score == 0
    assert [o.question_id for o in result.outcomes] == [1]


def test_outcomes_follow_question_order():
    questions = [_question(1, "A", order=2), _question(2, "B", order=0), _question(3, "C", order=1)]

    result = score_attempt([], questions)

    assert [o.question_id for o in result.outcomes] == [2, 3, 1]


def test_points_are_reported_without_changing_score():
    questions = [_question(1, "A", points=5), _question(2, "B", points=1)]
    answers = [_answer(1, "A"), _answer(2, "C")]

    result = score_attempt(answers, questions)

    assert result.score == 1
    assert result.points_awarded == 5
    assert result.points_possible == 6


def test_scoring_is_deterministic():
    questions = [_question(1, "A"), _question(2, "True")]
    answers = [_answer(2, "True"), _answer(1, "B")]

    assert score_attempt(answers, questions) == score_attempt(answers, questions)


def test_percentage_rounds_half_up_and_handles_empty_exam():
    assert percentage(1, 8) == 13
    assert percentage(2, 3) == 67
    assert percentage(3, 3) == 100
    assert percentage(0, 0) == 0
