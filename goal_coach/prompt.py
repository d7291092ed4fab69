# ABOUTME: Builds the model instruction text and the response-schema descriptor for one refinement call.
# ABOUTME: Pure function of the user's text; the schema bounds come from core.schemas so prompt and validator agree.

from dataclasses import dataclass
from typing import Any

from core.schemas import (
    CONFIDENCE_SCORE_DESCRIPTION,
    KEY_RESULTS_DESCRIPTION,
    MAX_CONFIDENCE_SCORE,
    MAX_KEY_RESULTS,
    MIN_CONFIDENCE_SCORE,
    MIN_KEY_RESULTS,
    REFINED_GOAL_DESCRIPTION,
)

GOAL_INSTRUCTION = """You are an expert goal-setting coach. Analyze the following vague goal and convert it into a SMART goal (Specific, Measurable, Achievable, Relevant, Time-bound).

User Input: "{user_input}"

Respond with a JSON object containing:
1. refined_goal: A clear, SMART version of the goal
2. key_results: An array of {min_kr}-{max_kr} measurable milestones/key results
3. confidence_score: An integer {min_score}-{max_score} indicating your confidence that the input was actually a goal ({min_score} = definitely not a goal, {max_score} = definitely a valid goal)

If the input is nonsensical or obviously not a goal, set confidence_score to a low number and provide the best interpretation you can.

Return ONLY valid JSON, no markdown formatting."""


@dataclass(frozen=True)
class RefinementRequest:
    """Instruction text plus the schema descriptor used to constrain the model's JSON output."""

    prompt: str
    response_schema: dict[str, Any]


def build_response_schema() -> dict[str, Any]:
    """Schema descriptor in the Gemini structured-output format, mirroring RefinedGoal's constraints."""
    return {
        "type": "OBJECT",
        "properties": {
            "refined_goal": {
                "type": "STRING",
                "description": REFINED_GOAL_DESCRIPTION,
            },
            "key_results": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "min_items": MIN_KEY_RESULTS,
                "max_items": MAX_KEY_RESULTS,
                "description": KEY_RESULTS_DESCRIPTION,
            },
            "confidence_score": {
                "type": "INTEGER",
                "minimum": MIN_CONFIDENCE_SCORE,
                "maximum": MAX_CONFIDENCE_SCORE,
                "description": CONFIDENCE_SCORE_DESCRIPTION,
            },
        },
        "required": ["refined_goal", "key_results", "confidence_score"],
        "property_ordering": ["refined_goal", "key_results", "confidence_score"],
    }


def build_refinement_request(user_input: str) -> RefinementRequest:
    """Wrap the user's text, verbatim, in the goal-coach instruction."""
    prompt = GOAL_INSTRUCTION.format(
        user_input=user_input,
        min_kr=MIN_KEY_RESULTS,
        max_kr=MAX_KEY_RESULTS,
        min_score=MIN_CONFIDENCE_SCORE,
        max_score=MAX_CONFIDENCE_SCORE,
    )
    return RefinementRequest(prompt=prompt, response_schema=build_response_schema())
