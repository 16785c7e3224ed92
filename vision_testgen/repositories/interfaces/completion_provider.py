from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from vision_testgen.core.errors import CompletionOutcome
from vision_testgen.services.prompt_builder import Prompt

# Upstream status codes that signal temporary overload
OVERLOAD_STATUS_CODES = frozenset({503, 529})


@dataclass(frozen=True)
class CompletionParameters:
    model: Optional[str] = None
    temperature: float = 0.05
    max_tokens: int = 8000


def outcome_for_status(status_code: Optional[int], message: str) -> CompletionOutcome:
    """Classify an upstream HTTP failure as transient overload or fatal."""
    if status_code in OVERLOAD_STATUS_CODES or "overloaded" in (message or "").lower():
        return CompletionOutcome.transient(message, status_code)
    return CompletionOutcome.fatal(message, status_code)


class ICompletionProvider(ABC):
    """Interface for one upstream text-generation vendor.

    Implementations never raise for upstream failures; they return a tagged
    ``CompletionOutcome`` and leave the retry decision to the caller.
    """

    name: str = ""
    default_model: str = ""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are available"""
        pass

    @abstractmethod
    async def complete(self, prompt: Prompt, params: CompletionParameters) -> CompletionOutcome:
        """Run one completion for the prompt and return its raw text or failure"""
        pass
