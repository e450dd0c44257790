"""
Gemini generative model client.

Implements the GenerativeModelClient protocol from
core.content.orchestrator. Translates our request parts into SDK content
parts and asks for JSON output.

Gemini returns 503 when the model is overloaded, which happens often
enough with long videos that it's retried here with a linear backoff
(5s, then 10s). Everything else fails immediately.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Sequence

from ...core.content.models import FilePart, Part, TextPart, VideoPart
from ...core.content.orchestrator import GenerativeModelClient
from ...core.errors import ConfigurationError, GenerationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
RETRY_BASE_DELAY_SECONDS = 5.0


def to_sdk_parts(parts: Sequence[Part]) -> list[Any]:
    """Convert request parts into google.generativeai content parts."""
    contents: list[Any] = []
    for part in parts:
        if isinstance(part, TextPart):
            contents.append(part.text)
        elif isinstance(part, (VideoPart, FilePart)):
            file_data = {"file_uri": part.uri}
            if part.mime_type:
                file_data["mime_type"] = part.mime_type
            contents.append({"file_data": file_data})
        else:
            raise TypeError(f"Unsupported part type: {type(part).__name__}")
    return contents


class GeminiModelClient:
    """
    Multimodal generation with google-generativeai.

    The client is safe to share across requests; the SDK model object
    holds no per-request state.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        max_attempts: int = 3,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
    ) -> None:
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for Gemini generation")

        import google.generativeai as genai
        from google.api_core.exceptions import ServiceUnavailable

        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(model)
        self._model_name = model
        self._overloaded = ServiceUnavailable
        self._max_attempts = max(1, max_attempts)
        self._retry_base_delay = retry_base_delay
        logger.info("Gemini model client initialized", extra={"model": model})

    async def generate(self, parts: Sequence[Part], response_format: str = "json") -> str:
        contents = to_sdk_parts(parts)
        generation_config = None
        if response_format == "json":
            generation_config = {"response_mime_type": "application/json"}

        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._model.generate_content_async(
                    contents,
                    generation_config=generation_config,
                )
                return response.text
            except self._overloaded as e:
                if attempt >= self._max_attempts:
                    raise GenerationError(
                        "Gemini is overloaded, please try again later",
                        details={"model": self._model_name, "attempts": attempt, "error": str(e)},
                    ) from e
                delay = self._retry_base_delay * attempt
                logger.warning(
                    "Gemini overloaded, retrying",
                    extra={"attempt": attempt, "max_attempts": self._max_attempts, "delay_seconds": delay}
                )
                await asyncio.sleep(delay)
            except ValueError as e:
                # response.text raises when the candidate was blocked or empty
                raise GenerationError(
                    "Gemini returned no usable text",
                    details={"model": self._model_name, "error": str(e)},
                ) from e
            except Exception as e:
                logger.error(
                    "Gemini generation failed",
                    extra={"model": self._model_name, "error": str(e)},
                    exc_info=e,
                )
                raise GenerationError(
                    f"Gemini generation failed: {e}",
                    details={"model": self._model_name},
                ) from e

        raise GenerationError("Gemini generation failed", details={"model": self._model_name})


MOCK_METADATA = {
    "titleA": "Mock Title: What You Get",
    "titleB": "Mock Title: The Problem It Solves",
    "titleC": "Mock Title: The Technique Behind It",
    "description": "A mock description generated without calling Gemini.",
    "tags": ["mock", "vidscribe", "development"],
}

MOCK_ARTICLE = {
    "titleA": "Mock Article: What You Get",
    "titleB": "Mock Article: The Problem It Solves",
    "titleC": "Mock Article: The Technique Behind It",
    "article_text": "## Introduction\n\nThis article was generated in mock mode.\n\n## Conclusion\n\nNo model was called.",
    "seo_description": "Mock article generated without calling Gemini.",
    "screenshots": [
        {"timestamp_seconds": "00:05", "reason_for_screenshot": "Opening shot"},
        {"timestamp_seconds": "01:30", "reason_for_screenshot": "Key moment"},
    ],
}


class MockModelClient:
    """
    Canned responses for local development and tests.

    Without explicit responses, returns an article when the prompt asks for
    article_text and metadata otherwise. With responses, returns them in
    order (the last one repeats). Every call's parts are recorded.
    """

    def __init__(self, responses: Optional[Sequence[str]] = None) -> None:
        self._responses = list(responses or [])
        self.calls: list[list[Part]] = []
        logger.info("Initialized mock model client")

    async def generate(self, parts: Sequence[Part], response_format: str = "json") -> str:
        self.calls.append(list(parts))

        if self._responses:
            if len(self._responses) > 1:
                return self._responses.pop(0)
            return self._responses[0]

        prompt = next((p.text for p in reversed(parts) if isinstance(p, TextPart)), "")
        canned = MOCK_ARTICLE if "article_text" in prompt else MOCK_METADATA
        return json.dumps(canned)


def create_model_client(
    api_key: str = "",
    model: str = DEFAULT_MODEL,
    mock_mode: bool = False,
    max_attempts: int = 3,
) -> GenerativeModelClient:
    """Factory: real Gemini client, or canned responses in mock mode."""
    if mock_mode:
        return MockModelClient()
    return GeminiModelClient(api_key=api_key, model=model, max_attempts=max_attempts)
