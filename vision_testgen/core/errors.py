from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GenerationError(Exception):
    """Base class for failures surfaced by the generation pipeline."""


class TransportError(GenerationError):
    """The upstream completion provider could not produce a response."""

    def __init__(self, message: str, status_code: Optional[int] = None, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider = provider


class TransportTransientError(TransportError):
    """Provider stayed overloaded for the whole retry budget. Safe to retry later."""

    retryable = True

    def __init__(
        self,
        message: str,
        retry_after: int,
        attempts: int,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code, provider=provider)
        self.retry_after = retry_after
        self.attempts = attempts


class TransportFatalError(TransportError):
    """Auth failure, malformed request, quota exceeded or other permanent rejection."""

    retryable = False


class ParseError(GenerationError):
    """The model response could not be coerced into a test case collection."""

    def __init__(self, message: str, raw_excerpt: str = ""):
        super().__init__(message)
        self.message = message
        self.raw_excerpt = raw_excerpt


@dataclass(frozen=True)
class FieldRepairWarning:
    """A single field that had to be repaired. Expected, never fatal."""

    case_index: int
    field: str
    reason: str


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class TransportFailure:
    kind: FailureKind
    message: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class CompletionOutcome:
    """Tagged result of one provider call: either ``text`` or ``failure`` is set."""

    text: Optional[str] = None
    failure: Optional[TransportFailure] = None

    @classmethod
    def success(cls, text: str) -> "CompletionOutcome":
        return cls(text=text)

    @classmethod
    def transient(cls, message: str, status_code: Optional[int] = None) -> "CompletionOutcome":
        return cls(failure=TransportFailure(FailureKind.TRANSIENT, message, status_code))

    @classmethod
    def fatal(cls, message: str, status_code: Optional[int] = None) -> "CompletionOutcome":
        return cls(failure=TransportFailure(FailureKind.FATAL, message, status_code))

    @property
    def ok(self) -> bool:
        return self.failure is None
