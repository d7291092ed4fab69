# ABOUTME: AI gateway: one logical Gemini generate_content call with bounded retry on transport failures.
# ABOUTME: Extracts the single text part, strips an optional code fence, and decodes it as JSON (tagged parse result).

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx
from google import genai
from google.genai import errors, types

from core.config import GatewaySettings
from core.errors import ConfigurationError, ResponseParseError, TransportError
from goal_coach.prompt import RefinementRequest
from goal_coach.retry import bounded_retry

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


@dataclass(frozen=True)
class ParsedCandidate:
    """Decoded JSON payload of the model's reply; fenced is True if it arrived inside a code block."""

    data: Any
    fenced: bool


@dataclass(frozen=True)
class ParseFailure:
    reason: str


@dataclass(frozen=True)
class GatewayReply:
    """Decoded payload plus the raw text and any token usage the endpoint reported."""

    payload: Any
    raw_text: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


def parse_candidate_text(text: str) -> ParsedCandidate | ParseFailure:
    """Decode the model's text payload, unwrapping a ```json fenced block if present."""
    match = _FENCE_RE.search(text)
    fenced = match is not None
    body = match.group(1) if match else text
    try:
        return ParsedCandidate(data=json.loads(body.strip()), fenced=fenced)
    except json.JSONDecodeError as e:
        return ParseFailure(reason=str(e))


def extract_candidate_text(response: Any) -> str | None:
    """Return the text of the first part of the first candidate, or None if the envelope lacks one."""
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None)
    if not parts:
        return None
    text = getattr(parts[0], "text", None)
    return text if isinstance(text, str) and text else None


class GeminiGateway:
    """Calls the Gemini API for a refinement request. Settings are explicit; the SDK client is built on first use."""

    def __init__(self, settings: GatewaySettings, client: genai.Client | None = None):
        self.settings = settings
        self._client = client

    @property
    def model(self) -> str:
        return self.settings.model

    def _get_client(self) -> genai.Client:
        if self._client is None:
            timeout_ms = int(self.settings.request_timeout_seconds * 1000)
            self._client = genai.Client(
                api_key=self.settings.api_key,
                http_options=types.HttpOptions(timeout=timeout_ms),
            )
        return self._client

    def _generation_config(self, request: RefinementRequest) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=self.settings.temperature,
            top_k=self.settings.top_k,
            top_p=self.settings.top_p,
            max_output_tokens=self.settings.max_output_tokens,
            response_mime_type="application/json",
            response_schema=request.response_schema,
        )

    def _call_once(self, request: RefinementRequest) -> Any:
        """One HTTP attempt. SDK status errors and httpx transport errors become TransportError."""
        try:
            return self._get_client().models.generate_content(
                model=self.settings.model,
                contents=request.prompt,
                config=self._generation_config(request),
            )
        except errors.APIError as e:
            raise TransportError(f"Gemini API error ({e.code}): {e.message}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to call Gemini API: {e}") from e

    def refine(self, request: RefinementRequest) -> GatewayReply:
        """Send the request, retrying transport failures; parse failures are raised immediately."""
        if not self.settings.api_key:
            raise ConfigurationError("GOOGLE_API_KEY environment variable is not set")

        retryer = bounded_retry(
            attempts=self.settings.max_attempts,
            backoff_seconds=self.settings.retry_backoff_seconds,
            retry_on=TransportError,
        )
        try:
            response = retryer(self._call_once, request)
        except TransportError:
            logger.error("All %d Gemini attempts failed", self.settings.max_attempts)
            raise

        text = extract_candidate_text(response)
        if text is None:
            raise ResponseParseError("Invalid API response structure")
        logger.debug("Raw model text: %s", text)

        parsed = parse_candidate_text(text)
        if isinstance(parsed, ParseFailure):
            raise ResponseParseError(parsed.reason)
        if parsed.fenced:
            logger.debug("Model wrapped its JSON in a code fence; unwrapped")

        usage = getattr(response, "usage_metadata", None)
        return GatewayReply(
            payload=parsed.data,
            raw_text=text,
            prompt_tokens=getattr(usage, "prompt_token_count", None),
            completion_tokens=getattr(usage, "candidates_token_count", None),
        )
