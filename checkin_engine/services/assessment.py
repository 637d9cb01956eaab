"""
Self-assessment questions shown when a check-in is answered.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from checkin_engine.core.errors import GoalNotFound
from checkin_engine.repositories.base import CheckInStore, GoalLookup
from checkin_engine.services.checkin import get_checkin

RATING_SCALE = tuple(str(n) for n in range(1, 11))


@dataclass(frozen=True, slots=True)
class AssessmentQuestion:
    question: str
    type: str  # rating | text | number | multiple_choice
    options: Optional[tuple[str, ...]] = None


BASE_QUESTIONS = (
    AssessmentQuestion("How would you rate your overall progress on this goal?", "rating", RATING_SCALE),
    AssessmentQuestion("What challenges did you face this period?", "text"),
    AssessmentQuestion("What achievements are you proud of?", "text"),
    AssessmentQuestion(
        "How motivated do you feel about continuing this goal?",
        "multiple_choice",
        ("Very High", "High", "Medium", "Low", "Very Low"),
    ),
)

CATEGORY_QUESTIONS = {
    "learning": (
        AssessmentQuestion("What new concepts or skills did you learn?", "text"),
        AssessmentQuestion(
            "How confident do you feel with the material?",
            "multiple_choice",
            ("Very Confident", "Confident", "Somewhat Confident", "Not Very Confident", "Not Confident"),
        ),
    ),
    "fitness": (
        AssessmentQuestion("How many times did you exercise this period?", "number"),
        AssessmentQuestion("How do you feel physically?", "multiple_choice", ("Excellent", "Good", "Fair", "Poor")),
    ),
    "career": (
        AssessmentQuestion("What professional skills did you develop?", "text"),
        AssessmentQuestion("How satisfied are you with your career progress?", "rating", RATING_SCALE),
    ),
}


def assessment_questions(category: Optional[str]) -> list[AssessmentQuestion]:
    """Base questions, followed by the goal category's own questions when it has any."""
    return [*BASE_QUESTIONS, *CATEGORY_QUESTIONS.get(category or "", ())]


async def questions_for_checkin(
    store: CheckInStore, goals: GoalLookup, checkin_id: UUID, *, user_id: Optional[UUID] = None
) -> list[AssessmentQuestion]:
    ci = await get_checkin(store, checkin_id, user_id=user_id)
    goal = await goals.get_goal(ci.goal_id)
    if goal is None:
        raise GoalNotFound(f"Goal {ci.goal_id} not found")
    return assessment_questions(goal.category)
