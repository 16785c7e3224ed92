import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from vision_testgen.config.settings import settings
from vision_testgen.core.errors import (
    CompletionOutcome,
    FailureKind,
    TransportFatalError,
    TransportTransientError,
)
from vision_testgen.repositories.interfaces.completion_provider import CompletionParameters, ICompletionProvider
from vision_testgen.services.prompt_builder import Prompt

logger = structlog.get_logger()


class RetryDecision(str, Enum):
    RETURN = "return"
    RETRY = "retry"
    FAIL_FATAL = "fail_fatal"
    FAIL_EXHAUSTED = "fail_exhausted"


def decide(outcome: CompletionOutcome, attempt: int, max_attempts: int) -> RetryDecision:
    """What to do with one provider outcome; depends only on its tag and the attempt number."""
    if outcome.ok:
        return RetryDecision.RETURN
    assert outcome.failure is not None
    if outcome.failure.kind is FailureKind.FATAL:
        return RetryDecision.FAIL_FATAL
    if attempt < max_attempts:
        return RetryDecision.RETRY
    return RetryDecision.FAIL_EXHAUSTED


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay after failed ``attempt`` (1-based): base doubled each attempt, capped."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


class CompletionClient:
    """Thin transport over one provider, guarded by a bounded backoff policy.

    Only transient overload is retried. Anything else surfaces on the first
    failure. The client never looks at the response content.
    """

    def __init__(
        self,
        provider: ICompletionProvider,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        retry_after: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.max_attempts = max_attempts or settings.max_attempts
        self.base_delay = settings.retry_base_delay_seconds if base_delay is None else base_delay
        self.max_delay = settings.retry_max_delay_seconds if max_delay is None else max_delay
        self.retry_after = settings.overload_retry_after_seconds if retry_after is None else retry_after
        self._sleep = sleep

    async def complete(self, prompt: Prompt, params: CompletionParameters) -> str:
        provider = self.provider.name
        for attempt in range(1, self.max_attempts + 1):
            logger.info("Completion attempt", provider=provider, attempt=attempt, max_attempts=self.max_attempts)
            outcome = await self.provider.complete(prompt, params)
            decision = decide(outcome, attempt, self.max_attempts)

            if decision is RetryDecision.RETURN:
                logger.info("Completion succeeded", provider=provider, attempt=attempt)
                return outcome.text or ""

            failure = outcome.failure
            assert failure is not None
            logger.warning(
                "Completion attempt failed",
                provider=provider,
                attempt=attempt,
                kind=failure.kind.value,
                status=failure.status_code,
                error=failure.message,
            )

            if decision is RetryDecision.FAIL_FATAL:
                raise TransportFatalError(failure.message, status_code=failure.status_code, provider=provider)
            if decision is RetryDecision.FAIL_EXHAUSTED:
                raise TransportTransientError(
                    f"{provider} is temporarily overloaded: {failure.message}",
                    retry_after=self.retry_after,
                    attempts=attempt,
                    status_code=failure.status_code,
                    provider=provider,
                )

            delay = backoff_delay(attempt, self.base_delay, self.max_delay)
            logger.info("Waiting before retry", provider=provider, delay_seconds=delay)
            await self._sleep(delay)

        # max_attempts < 1 never enters the loop
        raise TransportFatalError("No completion attempts were made", provider=provider)
