# ABOUTME: Refinement-call telemetry: immutable TelemetryRecord, cost estimation, stdout and database sinks, log queries.
# ABOUTME: Costs are estimates at the default model's rates (Gemini 2.5 Flash: $0.075/1M input, $0.30/1M output).

import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from core.database import AICallLog, get_session
from core.errors import TelemetryWriteError

logger = logging.getLogger(__name__)

# Estimated pricing per 1M tokens (USD), Gemini 2.5 Flash rates
INPUT_COST_PER_1M = 0.075
OUTPUT_COST_PER_1M = 0.30

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str | None) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def estimate_cost_usd(prompt_tokens: int, completion_tokens: int) -> tuple[float, float]:
    """Return estimated (input_cost, completion_cost) in USD at the Gemini 2.5 Flash rates."""
    return (
        (prompt_tokens / 1_000_000) * INPUT_COST_PER_1M,
        (completion_tokens / 1_000_000) * OUTPUT_COST_PER_1M,
    )


@dataclass(frozen=True)
class TelemetryRecord:
    """Structured telemetry entry for one refinement call. Immutable once created."""

    timestamp: datetime
    model: str
    success: bool
    latency_ms: float
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    input_cost: float
    completion_cost: float
    total_cost: float
    input: str
    output: dict[str, Any] | None
    error_message: str | None

    @classmethod
    def create(
        cls,
        *,
        model: str,
        success: bool,
        latency_ms: float,
        user_input: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        output: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> "TelemetryRecord":
        input_cost, completion_cost = estimate_cost_usd(prompt_tokens, completion_tokens)
        return cls(
            timestamp=datetime.now(tz=timezone.utc),
            model=model,
            success=success,
            latency_ms=latency_ms,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            input_cost=input_cost,
            completion_cost=completion_cost,
            total_cost=input_cost + completion_cost,
            input=user_input,
            output=output,
            error_message=error_message,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["latency_ms"] = round(self.latency_ms, 2)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def summary_line(self) -> str:
        status = "OK" if self.success else "FAILED"
        error = f" | Error: {self.error_message}" if self.error_message else ""
        return (
            f"[{self.timestamp.isoformat()}] {status} {self.model} | "
            f"Latency: {round(self.latency_ms)}ms | Tokens: {self.total_tokens} | "
            f"Cost: ${self.total_cost:.6f}{error}"
        )


class TelemetrySink(Protocol):
    """Accepts one TelemetryRecord per refinement call; never read back by the pipeline."""

    def emit(self, record: TelemetryRecord) -> None: ...


class StdoutTelemetrySink:
    """Print a structured JSON log line to stdout for each call."""

    def emit(self, record: TelemetryRecord) -> None:
        print(record.to_json(), flush=True)


class DatabaseTelemetrySink:
    """Append each record to the ai_call_logs table."""

    def emit(self, record: TelemetryRecord) -> None:
        row = AICallLog(
            timestamp=record.timestamp,
            model=record.model,
            success=record.success,
            latency_ms=record.latency_ms,
            prompt_tokens=record.prompt_tokens,
            completion_tokens=record.completion_tokens,
            total_tokens=record.total_tokens,
            input_cost=record.input_cost,
            completion_cost=record.completion_cost,
            total_cost=record.total_cost,
            input=record.input,
            output=json.dumps(record.output) if record.output is not None else None,
            error_message=record.error_message,
        )
        try:
            with get_session() as session:
                session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            raise TelemetryWriteError(f"Failed to store AI call log: {e}") from e
        logger.info(record.summary_line())


def _as_utc(value: datetime) -> datetime:
    """Stored timestamps are UTC; some drivers return them without tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _log_to_json(log: AICallLog) -> dict:
    """Serialize an AICallLog row for the telemetry API."""
    return {
        "id": log.id,
        "timestamp": _as_utc(log.timestamp).isoformat(),
        "model": log.model,
        "success": log.success,
        "latency_ms": log.latency_ms,
        "prompt_tokens": log.prompt_tokens,
        "completion_tokens": log.completion_tokens,
        "total_tokens": log.total_tokens,
        "input_cost": log.input_cost,
        "completion_cost": log.completion_cost,
        "total_cost": log.total_cost,
        "input": log.input,
        "output": json.loads(log.output) if log.output else None,
        "error_message": log.error_message,
    }


def list_call_logs(day: date | None = None) -> list[dict]:
    """Return stored call logs newest first, optionally only those from one UTC day."""
    with get_session() as session:
        stmt = select(AICallLog).order_by(AICallLog.timestamp.desc())
        if day is not None:
            start = datetime.combine(day, time.min, tzinfo=timezone.utc)
            stmt = stmt.where(AICallLog.timestamp >= start).where(
                AICallLog.timestamp < start + timedelta(days=1)
            )
        return [_log_to_json(log) for log in session.exec(stmt)]


def summarize_call_logs() -> dict:
    """Aggregate counts, latency, tokens and cost over every stored call log."""
    logs = list_call_logs()
    if not logs:
        return {
            "total_calls": 0,
            "successful_calls": 0,
            "failed_calls": 0,
            "average_latency_ms": 0,
            "total_tokens": 0,
            "total_cost": 0.0,
        }
    successful = sum(1 for log in logs if log["success"])
    return {
        "total_calls": len(logs),
        "successful_calls": successful,
        "failed_calls": len(logs) - successful,
        "average_latency_ms": round(sum(log["latency_ms"] for log in logs) / len(logs)),
        "total_tokens": sum(log["total_tokens"] for log in logs),
        "total_cost": round(sum(log["total_cost"] for log in logs), 6),
    }
