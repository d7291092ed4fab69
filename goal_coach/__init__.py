# ABOUTME: Goal coach refinement package; exposes the orchestrator and its default wiring.
# ABOUTME: Use refine_goal() for API integration, or build a GoalRefiner with an explicit gateway and sink.

from goal_coach.refiner import GoalRefiner, get_refiner, refine_goal

__all__ = ["GoalRefiner", "get_refiner", "refine_goal"]
