# ABOUTME: Refinement orchestrator: input check, prompt build, gateway call, schema validation, confidence guardrail.
# ABOUTME: refine() returns RefinedGoal or GuardrailRejection and emits one TelemetryRecord per call.

import logging
import time
from functools import lru_cache
from typing import Any

from core.config import TELEMETRY_STRICT, load_gateway_settings
from core.schemas import GuardrailRejection, RefinedGoal, validate_refined_goal
from core.telemetry import (
    DatabaseTelemetrySink,
    TelemetryRecord,
    TelemetrySink,
    estimate_tokens,
)
from goal_coach.gateway import GeminiGateway
from goal_coach.prompt import build_refinement_request

logger = logging.getLogger(__name__)

# Stricter than the schema's minimum of 1: low but valid scores are rejected, not failed.
MIN_ACCEPTED_CONFIDENCE = 4
GUARDRAIL_MESSAGE = "Input does not appear to be a valid goal."
EMPTY_INPUT_MARKER = "EMPTY_INPUT"


class GoalRefiner:
    """Turns free-text intent into a validated RefinedGoal using the AI gateway."""

    def __init__(
        self,
        gateway: GeminiGateway,
        telemetry_sink: TelemetrySink,
        *,
        strict_telemetry: bool = False,
        min_confidence: int = MIN_ACCEPTED_CONFIDENCE,
    ):
        self.gateway = gateway
        self.telemetry_sink = telemetry_sink
        self.strict_telemetry = strict_telemetry
        self.min_confidence = min_confidence

    def refine(self, user_input: Any) -> RefinedGoal | GuardrailRejection:
        """Refine user_input. Raises GoalRefinementError subclasses on configuration, transport or contract failure."""
        start = time.perf_counter()
        if not isinstance(user_input, str) or not user_input.strip():
            return self._handle_empty_input(start)

        prompt_tokens = 0
        try:
            request = build_refinement_request(user_input)
            prompt_tokens = estimate_tokens(request.prompt)
            reply = self.gateway.refine(request)
            goal = validate_refined_goal(reply.payload)
        except Exception as e:
            self._emit(
                TelemetryRecord.create(
                    model=self.gateway.model,
                    success=False,
                    latency_ms=_elapsed_ms(start),
                    user_input=user_input,
                    error_message=str(e),
                )
            )
            raise

        latency_ms = _elapsed_ms(start)
        if isinstance(reply.prompt_tokens, int):
            prompt_tokens = reply.prompt_tokens
        completion_tokens = (
            reply.completion_tokens
            if isinstance(reply.completion_tokens, int)
            else estimate_tokens(goal.model_dump_json())
        )
        self._emit(
            TelemetryRecord.create(
                model=self.gateway.model,
                success=True,
                latency_ms=latency_ms,
                user_input=user_input,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                output=goal.model_dump(),
            )
        )

        if goal.confidence_score < self.min_confidence:
            logger.info(
                "Rejected low-confidence refinement (score %d < %d)",
                goal.confidence_score,
                self.min_confidence,
            )
            return GuardrailRejection(error=GUARDRAIL_MESSAGE)
        return goal

    def _handle_empty_input(self, start: float) -> RefinedGoal:
        """Skip the model call for empty input but still return a uniform shape and log the call."""
        goal = RefinedGoal.empty()
        self._emit(
            TelemetryRecord.create(
                model=self.gateway.model,
                success=True,
                latency_ms=_elapsed_ms(start),
                user_input=EMPTY_INPUT_MARKER,
                output=goal.model_dump(),
            )
        )
        return goal

    def _emit(self, record: TelemetryRecord) -> None:
        try:
            self.telemetry_sink.emit(record)
        except Exception:
            if self.strict_telemetry:
                raise
            logger.exception("Telemetry sink failed; continuing without a log record")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


@lru_cache(maxsize=1)
def get_refiner() -> GoalRefiner:
    """Default refiner wired from environment settings and the database telemetry sink."""
    return GoalRefiner(
        GeminiGateway(load_gateway_settings()),
        DatabaseTelemetrySink(),
        strict_telemetry=TELEMETRY_STRICT,
    )


def refine_goal(user_input: Any) -> RefinedGoal | GuardrailRejection:
    """Refine user_input with the default refiner."""
    return get_refiner().refine(user_input)
