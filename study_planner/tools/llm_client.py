"""Generative-text client: the TextGenerator protocol and its Gemini implementation."""
import logging
import os
from typing import Optional, Protocol

from google import genai
from google.genai import errors, types

from study_planner.models.ai_response import ChatMessage, GenerationRequest, GenerationResponse
from study_planner.tools.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class TextGenerator(Protocol):
    """Anything that turns a GenerationRequest into a GenerationResponse."""

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        ...


def default_model() -> str:
    """Model identifier from CHAT_MODEL, or the default."""
    return os.getenv("CHAT_MODEL", DEFAULT_MODEL)


class GeminiTextGenerator:
    """
    TextGenerator backed by the google-genai SDK.

    System messages become the system instruction; user and assistant
    messages become the conversation contents. JSON output is requested.
    """

    def __init__(self, api_key: str):
        self.client = genai.Client(api_key=api_key)

    @classmethod
    def from_env(cls) -> Optional["GeminiTextGenerator"]:
        """Build a generator from GOOGLE_API_KEY, or None when it is not set."""
        api_key = os.getenv("GOOGLE_API_KEY")
        if not api_key:
            logger.info("GOOGLE_API_KEY not set; running without a text generator")
            return None
        return cls(api_key=api_key)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        system = "\n\n".join(m.content for m in request.messages if m.role == "system")
        contents = [
            types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[types.Part(text=m.content)],
            )
            for m in request.messages
            if m.role != "system"
        ]

        logger.info(f"Calling LLM ({request.model}) with {len(contents)} message(s)")
        try:
            response = await self.client.aio.models.generate_content(
                model=request.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    system_instruction=system or None,
                    temperature=request.temperature,
                    max_output_tokens=request.max_output_tokens,
                    response_mime_type="application/json",
                ),
            )
        except errors.APIError as e:
            raise ExternalServiceError(f"Generation failed ({e.code}): {e.message}", status_code=e.code) from e
        except Exception as e:
            raise ExternalServiceError(f"Generation failed: {e}") from e

        text = response.text or ""
        logger.info(f"LLM response received, length: {len(text)} chars")
        logger.debug(text)

        if not text:
            return GenerationResponse()
        return GenerationResponse(candidates=[ChatMessage(role="assistant", content=text)])
