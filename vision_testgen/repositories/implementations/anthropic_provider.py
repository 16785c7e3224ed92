import asyncio
from typing import Any, Dict, List, Optional

import anthropic
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


class AnthropicProvider(ICompletionProvider):
    """Anthropic Claude Messages API implementation of the completion provider."""

    name = "anthropic"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self.api_key = api_key or settings.anthropic_api_key
        self.default_model = model or settings.anthropic_model
        self.client: Optional[anthropic.Anthropic] = None
        if self.api_key:
            self.client = anthropic.Anthropic(api_key=self.api_key)

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def build_content(self, prompt: Prompt) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt.instructions}]
        for segment in prompt.segments:
            if segment.kind == "image":
                content.append(
                    {
                        "type": "image",
                        "source": {"type": "base64", "media_type": segment.media_type, "data": segment.data},
                    }
                )
            else:
                content.append({"type": "text", "text": segment.text})
        return content

    async def complete(self, prompt: Prompt, params: CompletionParameters) -> CompletionOutcome:
        if self.client is None:
            return CompletionOutcome.fatal("Anthropic API key is not configured")

        def sync_call():
            # Type guard for static analyzers
            client = self.client
            assert client is not None
            return client.messages.create(
                model=params.model or self.default_model,
                max_tokens=params.max_tokens,
                temperature=params.temperature,
                messages=[{"role": "user", "content": self.build_content(prompt)}],
            )

        try:
            response = await asyncio.get_event_loop().run_in_executor(None, sync_call)
        except anthropic.APIStatusError as e:
            logger.warning("Anthropic request failed", status=e.status_code, error=str(e))
            return outcome_for_status(e.status_code, str(e))
        except anthropic.APIError as e:
            logger.error("Anthropic request error", error=str(e))
            return CompletionOutcome.fatal(str(e))

        text = "".join(
            getattr(block, "text", "") for block in (response.content or []) if getattr(block, "type", "") == "text"
        )
        return CompletionOutcome.success(text)
