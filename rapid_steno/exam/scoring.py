from typing import Iterable, Mapping, Optional

from .views import GradedAnswer, GradedSubmission, QuestionView


def grade_answers(questions: Iterable[QuestionView], chosen: Mapping[int, Optional[int]]) -> GradedSubmission:
    """
    Grade the answered questions only. A correct option earns the question's
    points, anything else earns 0. Negative points are stored on questions
    but are not deducted here.
    """
    questions = list(questions)
    by_id = {q.id: q for q in questions}

    graded = []
    for question_id, option_id in chosen.items():
        if option_id is None:
            continue
        q = by_id.get(question_id)
        if q is None:
            continue
        option = q.option(option_id)
        is_correct = bool(option and option.is_correct)
        graded.append(GradedAnswer(
            question_id=question_id,
            chosen_option_id=option_id,
            is_correct=is_correct,
            score=q.points if is_correct else 0,
        ))

    return GradedSubmission(
        answers=tuple(graded),
        total_score=sum(a.score for a in graded),
        max_score=sum(q.points for q in questions),
    )


def percentage(score: float, max_score: float) -> float:
    if max_score <= 0:
        return 0.0
    return round(score / max_score * 100, 2)


def letter_grade(pct: float) -> str:
    if pct >= 90:
        return "A"
    if pct >= 80:
        return "B"
    if pct >= 70:
        return "C"
    if pct >= 60:
        return "D"
    return "F"


def performance_message(pct: float) -> str:
    if pct >= 90:
        return "Outstanding work! You've mastered this material!"
    if pct >= 80:
        return "Great job! You're showing excellent progress!"
    if pct >= 70:
        return "Good work! Keep building on this foundation!"
    if pct >= 60:
        return "You're on the right track! A bit more practice will help you excel!"
    if pct >= 50:
        return "You're making progress! Keep studying and you'll improve!"
    return "Don't give up! Every challenge is an opportunity to grow stronger!"
