# ABOUTME: Pydantic models for the AI output contract (RefinedGoal) and the guardrail rejection.
# ABOUTME: validate_refined_goal() checks any decoded object and reports every violated constraint at once.

from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, ValidationError, field_validator

from core.errors import ContractViolationError

MIN_KEY_RESULTS = 3
MAX_KEY_RESULTS = 5
MIN_CONFIDENCE_SCORE = 1
MAX_CONFIDENCE_SCORE = 10

REFINED_GOAL_DESCRIPTION = (
    "SMART version of the goal (Specific, Measurable, Achievable, Relevant, Time-bound)"
)
KEY_RESULTS_DESCRIPTION = "Array of 3-5 measurable key results/milestones"
CONFIDENCE_SCORE_DESCRIPTION = "Confidence score 1-10 that the input was a valid goal"

NO_GOAL_PROVIDED = "No goal provided"

NonEmptyStr = Annotated[str, StringConstraints(strict=True, min_length=1)]


class RefinedGoal(BaseModel):
    """Structured output from the goal-refinement model."""

    refined_goal: NonEmptyStr = Field(description=REFINED_GOAL_DESCRIPTION)
    key_results: list[NonEmptyStr] = Field(
        description=KEY_RESULTS_DESCRIPTION,
        min_length=MIN_KEY_RESULTS,
        max_length=MAX_KEY_RESULTS,
    )
    confidence_score: int = Field(
        description=CONFIDENCE_SCORE_DESCRIPTION,
        ge=MIN_CONFIDENCE_SCORE,
        le=MAX_CONFIDENCE_SCORE,
        strict=True,
    )

    @field_validator("confidence_score", mode="before")
    @classmethod
    def integral_float_to_int(cls, value):
        # JSON 7.0 is an integer value; bools and strings still fail the strict check.
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    @classmethod
    def empty(cls) -> "RefinedGoal":
        """Sentinel returned for empty input. Built without validation: it is outside the model's bounds on purpose."""
        return cls.model_construct(
            refined_goal=NO_GOAL_PROVIDED, key_results=[], confidence_score=0
        )


class GuardrailRejection(BaseModel):
    """Negative result for structurally valid but low-confidence output; carries no goal data."""

    error: str


def _describe_error(error: dict) -> str:
    location = ".".join(str(part) for part in error["loc"]) or "response"
    return f"{location}: {error['msg']}"


def validate_refined_goal(data: object) -> RefinedGoal:
    """Validate a decoded model reply. Raises ContractViolationError listing every violation."""
    try:
        return RefinedGoal.model_validate(data)
    except ValidationError as e:
        raise ContractViolationError([_describe_error(err) for err in e.errors()]) from e
