"""Gemini client used as the single outbound call of the inference scheduler."""

from __future__ import annotations

import json
import logging
from typing import Mapping, Protocol, TypeAlias

import httpx

from medsim_api.core.errors import InferenceFailure

logger = logging.getLogger(__name__)

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]

FINISHED_REASONS = frozenset({"STOP", "FINISH", "MAX_TOKENS"})


class GenerationConfig:
    """Typed container for Gemini generation configuration parameters."""

    __slots__ = (
        "_temperature",
        "_top_p",
        "_top_k",
        "_max_output_tokens",
        "_response_mime_type",
    )

    def __init__(
        self,
        *,
        temperature: float | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        max_output_tokens: int | None = None,
        response_mime_type: str | None = None,
    ) -> None:
        self._temperature = temperature
        self._top_p = top_p
        self._top_k = top_k
        self._max_output_tokens = max_output_tokens
        self._response_mime_type = response_mime_type

    def as_payload(self) -> JSONObject:
        """Render the config as the JSON payload expected by Gemini."""
        payload: JSONObject = {}
        if self._temperature is not None:
            payload["temperature"] = self._temperature
        if self._top_p is not None:
            payload["topP"] = self._top_p
        if self._top_k is not None:
            payload["topK"] = self._top_k
        if self._max_output_tokens is not None:
            payload["maxOutputTokens"] = self._max_output_tokens
        if self._response_mime_type:
            payload["responseMimeType"] = self._response_mime_type
        return payload


class InferenceClient(Protocol):
    """A single fallible call to the generative provider. No retries, no caching."""

    async def invoke(self, prompt: str) -> str: ...

    async def aclose(self) -> None: ...


class GeminiInferenceClient:
    """Thin async client for Google Gemini text generation."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        endpoint: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        system_instruction: str | None = None,
        generation_config: GenerationConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("A Gemini API key is required.")
        self._api_key = api_key
        self._model = model
        self._system_instruction = system_instruction
        self._generation_config = generation_config
        self._client = http_client or httpx.AsyncClient(
            base_url=endpoint,
            timeout=httpx.Timeout(timeout),
            headers={
                "Content-Type": "application/json",
            },
        )
        self._owns_client = http_client is None

    @property
    def model(self) -> str:
        return self._model

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def invoke(self, prompt: str) -> str:
        """Send one prompt and return the generated text."""
        model_path = self._model if self._model.startswith("models/") else f"models/{self._model}"
        url = f"/{model_path}:generateContent"

        payload: JSONObject = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if self._system_instruction:
            payload["system_instruction"] = {"parts": [{"text": self._system_instruction}]}
        if self._generation_config is not None:
            config_payload = self._generation_config.as_payload()
            if config_payload:
                payload["generationConfig"] = config_payload

        try:
            response = await self._client.post(
                url,
                headers={"x-goog-api-key": self._api_key},
                json=payload,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            error_summary = _summarize_response_error(exc.response)
            logger.error(
                "Gemini request failed",
                extra={
                    "status_code": exc.response.status_code,
                    "url": str(exc.request.url),
                    "model": self._model,
                    "error_summary": error_summary,
                    "request_id": exc.response.headers.get("x-request-id"),
                },
            )
            raise InferenceFailure(
                f"Gemini request failed ({exc.response.status_code}): {error_summary}",
                cause=exc,
            ) from exc
        except httpx.TimeoutException as exc:
            raise InferenceFailure("Gemini request timed out.", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise InferenceFailure(f"Gemini transport error: {exc}", cause=exc) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise InferenceFailure("Gemini response was not valid JSON.", cause=exc) from exc
        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: Mapping[str, object]) -> str:
        """Pull the first non-empty text part out of a generateContent response."""
        if not isinstance(data, Mapping):
            raise InferenceFailure("Gemini response did not contain a JSON object.")
        feedback = data.get("promptFeedback")
        if isinstance(feedback, Mapping) and feedback.get("blockReason"):
            raise InferenceFailure(f"Gemini blocked the request: {feedback['blockReason']}")

        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise InferenceFailure("Gemini response did not contain any candidates.")

        candidate = candidates[0]
        if not isinstance(candidate, Mapping):
            raise InferenceFailure("Gemini candidate was malformed.")
        finish_reason = candidate.get("finishReason")
        if finish_reason and finish_reason not in FINISHED_REASONS:
            raise InferenceFailure(
                f"Gemini did not finish successfully (finishReason={finish_reason})."
            )

        content = candidate.get("content")
        parts = content.get("parts", []) if isinstance(content, Mapping) else []
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, Mapping) and isinstance(part.get("text"), str)
        ]
        text = "".join(texts).strip()
        if not text:
            raise InferenceFailure("Gemini response did not contain any text.")
        return text


class UnconfiguredInferenceClient:
    """Stands in for Gemini when no API key is set; every call fails so callers fall back."""

    async def invoke(self, prompt: str) -> str:
        raise InferenceFailure("Gemini API is not configured.")

    async def aclose(self) -> None:
        return None


def _summarize_response_error(response: httpx.Response) -> str:
    """Provide a concise textual summary for logging Gemini HTTP errors."""
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or "No response body"

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            status = error.get("status") or error.get("code")
            summary_parts = []
            if isinstance(status, str) and status:
                summary_parts.append(status)
            if isinstance(message, str) and message:
                summary_parts.append(message)
            return ": ".join(summary_parts) or "Gemini returned an error"
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(payload, list):
        return f"Response contained {len(payload)} error item(s)"
    return json.dumps(payload)


__all__ = [
    "GeminiInferenceClient",
    "GenerationConfig",
    "InferenceClient",
    "JSONObject",
    "JSONValue",
    "UnconfiguredInferenceClient",
]
