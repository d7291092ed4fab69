# ABOUTME: Exception taxonomy for the goal-refinement pipeline.
# ABOUTME: Configuration, transport and contract failures are separate types so retry and HTTP mapping can tell them apart.


class GoalRefinementError(Exception):
    """Base class for every failure the refinement pipeline raises to callers."""


class ConfigurationError(GoalRefinementError):
    """Required configuration (e.g. the API key) is missing. Never retried."""


class TransportError(GoalRefinementError):
    """Network failure or non-success status from the model endpoint. Retried."""


class ContractViolationError(GoalRefinementError):
    """Model output did not match the requested structure. Never retried."""

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        super().__init__("Model output violated the goal schema: " + "; ".join(self.violations))


class ResponseParseError(ContractViolationError):
    """The reply envelope had no text payload, or the payload was not valid JSON."""

    def __init__(self, reason: str):
        super().__init__([reason])
        self.args = (f"Failed to parse API response: {reason}",)


class TelemetryWriteError(GoalRefinementError):
    """The telemetry sink could not persist a record."""
