from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# (minimum percentage, grade), highest first
GRADE_BANDS = (
    (90, "A+"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
    (40, "E"),
)


@dataclass
class GradedAnswer:
    question_id: int
    selected_option: Optional[str]
    correct_option: str
    is_correct: bool
    marks_awarded: int


@dataclass
class GradedSubmission:
    score: int
    total_marks: int
    percentage: float
    grade: str
    answers: List[GradedAnswer]

    @property
    def correct_count(self) -> int:
        return sum(1 for a in self.answers if a.is_correct)


def letter_grade(percentage: float) -> str:
    for minimum, grade in GRADE_BANDS:
        if percentage >= minimum:
            return grade
    return "F"


def percentage_of(score: float, total_marks: int) -> float:
    if not total_marks:
        return 0.0
    return round(score / total_marks * 100, 2)


def grade_submission(
    questions: Sequence,
    answers: Mapping[str, Optional[str]],
    total_marks: int,
) -> GradedSubmission:
    """
    Score a submission.

    `questions` are the test's question links in order; each exposes
    `question_id`, `marks` (the test's mark for it) and `question` with
    `correct_answer` and `marks`. `answers` maps a question id (as a string,
    the way it arrives in JSON) to the chosen option.
    """
    graded: List[GradedAnswer] = []
    score = 0
    for link in questions:
        selected = answers.get(str(link.question_id))
        correct = link.question.correct_answer
        is_correct = selected is not None and selected == correct
        mark = link.marks or link.question.marks or 1
        awarded = mark if is_correct else 0
        score += awarded
        graded.append(
            GradedAnswer(
                question_id=link.question_id,
                selected_option=selected,
                correct_option=correct,
                is_correct=is_correct,
                marks_awarded=awarded,
            )
        )

    percentage = percentage_of(score, total_marks)
    logger.debug(f"Graded submission: score={score}/{total_marks} ({percentage}%)")
    return GradedSubmission(
        score=score,
        total_marks=total_marks,
        percentage=percentage,
        grade=letter_grade(percentage),
        answers=graded,
    )


def validate_corrected_score(score, total_marks: int) -> None:
    if score is None or score < 0 or score > total_marks:
        raise ValueError("Score must be a number between 0 and total marks.")
