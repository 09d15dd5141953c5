"""
Text generation backed by Google Gemini.

Used for flashcard generation. Responses are requested as JSON and parsed
into a dict. When the primary model times out or runs out of quota, the
request is retried once on the cheaper fallback model before giving up.
"""

from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger

from config import get_settings
from ceprep.errors import GenerationFailed

# Exception class names raised by google-api-core for timeouts and quota exhaustion
FALLBACK_ERRORS = {"DeadlineExceeded", "ResourceExhausted", "TooManyRequests", "ServiceUnavailable"}


def should_fall_back(error: Exception) -> bool:
    """True for timeout and quota errors."""
    if isinstance(error, TimeoutError):
        return True
    if type(error).__name__ in FALLBACK_ERRORS:
        return True
    message = str(error).lower()
    return "quota" in message or "timed out" in message or "429" in message


def parse_json_response(text: str) -> dict[str, Any]:
    """Parse a JSON object from a model response, tolerating code fences."""
    code_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    candidate = code_match.group(1).strip() if code_match else text.strip()
    if not candidate.startswith("{"):
        obj_match = re.search(r"\{[\s\S]*\}", candidate)
        if not obj_match:
            raise ValueError("No JSON object in response")
        candidate = obj_match.group(0)
    data = json.loads(candidate)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class TextGenerator:
    """
    Gemini client with one-step model fallback.

    Example:
        >>> generator = TextGenerator()
        >>> data = generator.generate("Return {\"cards\": []}", max_tokens=500)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        fallback_model: str | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model_name = model_name or settings.ai_model
        self.fallback_model = fallback_model or settings.ai_fallback_model
        self.temperature = settings.ai_temperature
        self._clients: dict[str, Any] = {}

    def client(self, model_name: str):
        """Lazy-load a Gemini model client."""
        if model_name not in self._clients:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._clients[model_name] = genai.GenerativeModel(model_name=model_name)
        return self._clients[model_name]

    def generate(self, prompt: str, max_tokens: int = 2000) -> dict[str, Any]:
        """
        Generate a JSON object for the prompt.

        Raises:
            GenerationFailed: both models failed, or the response was not JSON.
        """
        try:
            text = self._call(self.model_name, prompt, max_tokens)
        except Exception as e:  # Classified below; non-fallback errors are re-raised as GenerationFailed
            if not should_fall_back(e) or self.fallback_model == self.model_name:
                raise GenerationFailed(f"{self.model_name}: {e}") from e
            logger.warning(f"{self.model_name} unavailable ({e}); retrying with {self.fallback_model}")
            try:
                text = self._call(self.fallback_model, prompt, max_tokens)
            except Exception as fallback_error:  # Second failure is final
                raise GenerationFailed(f"{self.fallback_model}: {fallback_error}") from fallback_error

        try:
            return parse_json_response(text)
        except (ValueError, json.JSONDecodeError) as e:
            raise GenerationFailed(f"Unparseable response: {e}") from e

    def _call(self, model_name: str, prompt: str, max_tokens: int) -> str:
        response = self.client(model_name).generate_content(
            prompt,
            generation_config={
                "temperature": self.temperature,
                "top_p": 0.8,
                "max_output_tokens": max_tokens,
                "response_mime_type": "application/json",
            },
        )
        if not response.text:
            raise GenerationFailed(f"Empty response from {model_name}")
        return response.text
