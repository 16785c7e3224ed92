import asyncio
import base64
from typing import Any, List, Optional

from google.api_core import exceptions as google_exceptions
import google.generativeai as genai
import structlog

from vision_testgen.config.settings import settings
from vision_testgen.core.errors import CompletionOutcome
from vision_testgen.repositories.interfaces.completion_provider import (
    CompletionParameters,
    ICompletionProvider,
    outcome_for_status,
)
from vision_testgen.services.prompt_builder import Prompt

logger = structlog.get_logger()


class GeminiProvider(ICompletionProvider):
    """Google Gemini implementation of the completion provider."""

    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self.api_key = api_key or settings.gemini_api_key
        self.default_model = model or settings.gemini_model
        self.model: Optional[genai.GenerativeModel] = None
        if self.api_key:
            genai.configure(api_key=self.api_key)
            self.model = genai.GenerativeModel(self.default_model)

    @property
    def is_configured(self) -> bool:
        return self.model is not None

    def build_parts(self, prompt: Prompt) -> List[Any]:
        parts: List[Any] = [prompt.instructions]
        for segment in prompt.segments:
            if segment.kind == "image":
                parts.append({"mime_type": segment.media_type, "data": base64.b64decode(segment.data)})
            else:
                parts.append(segment.text)
        return parts

    async def complete(self, prompt: Prompt, params: CompletionParameters) -> CompletionOutcome:
        if self.model is None:
            return CompletionOutcome.fatal("Gemini API key is not configured")

        def sync_call():
            model = self.model
            assert model is not None
            if params.model and params.model != self.default_model:
                model = genai.GenerativeModel(params.model)
            response = model.generate_content(
                self.build_parts(prompt),
                generation_config=genai.types.GenerationConfig(
                    max_output_tokens=params.max_tokens,
                    temperature=params.temperature,
                    # Ask the model to return raw JSON, no prose
                    response_mime_type="application/json",
                ),
            )
            return getattr(response, "text", None) or ""

        try:
            text = await asyncio.get_event_loop().run_in_executor(None, sync_call)
        except google_exceptions.ServiceUnavailable as e:
            logger.warning("Gemini service unavailable", error=str(e))
            return CompletionOutcome.transient(str(e), 503)
        except google_exceptions.GoogleAPICallError as e:
            logger.warning("Gemini request failed", status=e.code, error=str(e))
            return outcome_for_status(e.code if isinstance(e.code, int) else None, str(e))
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            # ValueError: blocked or empty candidates when reading response.text
            logger.error("Gemini request error", error=str(e))
            return CompletionOutcome.fatal(str(e))
        return CompletionOutcome.success(text)
