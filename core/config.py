# ABOUTME: Shared app configuration and constants for the API and the refinement pipeline (core package).
# ABOUTME: GatewaySettings is built from the environment and passed explicitly to the AI gateway.

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_GOALS_PAGE_SIZE = 20
MAX_GOALS_PAGE_SIZE = 100

DEFAULT_MODEL = "gemini-2.5-flash"
_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_RETRY_BACKOFF_SECONDS = 4.0
_DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0


def _parse_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class GatewaySettings:
    """Everything the AI gateway needs: credential, model and retry/timeout policy."""

    api_key: str | None
    model: str = DEFAULT_MODEL
    max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    retry_backoff_seconds: float = _DEFAULT_RETRY_BACKOFF_SECONDS
    request_timeout_seconds: float = _DEFAULT_REQUEST_TIMEOUT_SECONDS
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 1024


def load_gateway_settings() -> GatewaySettings:
    """Read gateway settings from the environment. A missing key is not an error here; the gateway raises on use."""
    api_key = os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY")
    return GatewaySettings(
        api_key=api_key or None,
        model=os.environ.get("GEMINI_MODEL", DEFAULT_MODEL),
        max_attempts=max(1, _parse_int("AI_MAX_ATTEMPTS", _DEFAULT_MAX_ATTEMPTS)),
        retry_backoff_seconds=max(
            0.0, _parse_float("AI_RETRY_BACKOFF_SECONDS", _DEFAULT_RETRY_BACKOFF_SECONDS)
        ),
        request_timeout_seconds=_parse_float(
            "AI_REQUEST_TIMEOUT_SECONDS", _DEFAULT_REQUEST_TIMEOUT_SECONDS
        ),
    )


# Telemetry sink failures are logged and swallowed unless this is set.
TELEMETRY_STRICT = _parse_flag("TELEMETRY_STRICT")

# CORS: comma-separated origins; default allows a local dashboard. Set in production.
_raw_cors = os.environ.get("CORS_ORIGINS", "http://localhost:5173")
CORS_ORIGINS = [o.strip() for o in _raw_cors.split(",") if o.strip()] or [
    "http://localhost:5173"
]
