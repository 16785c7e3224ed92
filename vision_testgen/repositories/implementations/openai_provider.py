import asyncio
from typing import Any, Dict, List, Optional

from openai import OpenAI
import openai
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


class OpenAIProvider(ICompletionProvider):
    """OpenAI chat completions (vision) implementation of the completion provider."""

    name = "openai"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key or settings.openai_api_key
        self.default_model = model or settings.openai_model
        self.client: Optional[OpenAI] = None
        if self.api_key:
            self.client = OpenAI(base_url=base_url or settings.openai_base_url, api_key=self.api_key)

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def build_messages(self, prompt: Prompt) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt.instructions}]
        for segment in prompt.segments:
            if segment.kind == "image":
                content.append(
                    {"type": "image_url", "image_url": {"url": f"data:{segment.media_type};base64,{segment.data}"}}
                )
            else:
                content.append({"type": "text", "text": segment.text})
        return [{"role": "user", "content": content}]

    async def complete(self, prompt: Prompt, params: CompletionParameters) -> CompletionOutcome:
        if self.client is None:
            return CompletionOutcome.fatal("OpenAI API key is not configured")

        def sync_call():
            client = self.client
            assert client is not None
            return client.chat.completions.create(
                messages=self.build_messages(prompt),
                temperature=params.temperature,
                max_tokens=params.max_tokens,
                model=params.model or self.default_model,
            )

        try:
            response = await asyncio.get_event_loop().run_in_executor(None, sync_call)
        except openai.APIStatusError as e:
            logger.warning("OpenAI request failed", status=e.status_code, error=str(e))
            return outcome_for_status(e.status_code, str(e))
        except openai.OpenAIError as e:
            logger.error("OpenAI request error", error=str(e))
            return CompletionOutcome.fatal(str(e))

        # Safely extract generated content
        generated_content = ""
        if getattr(response, "choices", None):
            choice = response.choices[0]
            message = getattr(choice, "message", None)
            generated_content = getattr(message, "content", None) or getattr(choice, "text", "") or ""
        return CompletionOutcome.success(generated_content)
