import asyncio
import json
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from main import app
from vision_testgen.core.cache import ResultCache
from vision_testgen.core.dependencies import get_completion_providers, get_generation_service
from vision_testgen.core.errors import CompletionOutcome
from vision_testgen.models.schemas import GenerationRequest, PageInput
from vision_testgen.repositories.interfaces.completion_provider import CompletionParameters, ICompletionProvider
from vision_testgen.services.completion_client import CompletionClient
from vision_testgen.services.prompt_builder import Prompt
from vision_testgen.services.test_case_service import TestCaseGenerationService


def completion_text(*titles: str) -> str:
    """A well-formed model response with one Functional test case per title"""
    cases = [
        {
            "type": "Functional",
            "title": title,
            "preconditions": "• User is logged out",
            "testSteps": "1. Open Login\n2. Submit the form",
            "testData": "• Username: demo",
            "expectedResults": "• Dashboard is shown",
        }
        for title in titles
    ]
    return json.dumps({"testCases": cases})


class FakeProvider(ICompletionProvider):
    """Returns scripted outcomes in order; the last one repeats once the script runs out."""

    def __init__(self, outcomes: Optional[List[CompletionOutcome]] = None, name: str = "anthropic"):
        self.name = name
        self.default_model = f"{name}-test-model"
        self.outcomes = list(outcomes or [CompletionOutcome.success(completion_text("Login works"))])
        self.calls: List[CompletionParameters] = []
        self.prompts: List[Prompt] = []
        self.gate: Optional[asyncio.Event] = None

    @property
    def is_configured(self) -> bool:
        return True

    async def complete(self, prompt: Prompt, params: CompletionParameters) -> CompletionOutcome:
        self.calls.append(params)
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        index = min(len(self.calls), len(self.outcomes)) - 1
        return self.outcomes[index]


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def completion_body():
    return completion_text


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def result_cache():
    return ResultCache(max_entries=16)


@pytest.fixture
def generation_service(fake_provider, recording_sleep, result_cache):
    client = CompletionClient(fake_provider, max_attempts=3, base_delay=1.0, max_delay=10.0, retry_after=30, sleep=recording_sleep)
    return TestCaseGenerationService(
        completion_clients={fake_provider.name: client},
        cache=result_cache,
        default_provider=fake_provider.name,
        coalesce_requests=True,
    )


@pytest.fixture
def login_request():
    return GenerationRequest(
        pages=[
            PageInput(name="Login", filename="login.png", ocr_text="Username Password Sign in", index=0),
            PageInput(name="Dashboard", filename="dashboard.png", ocr_text="Welcome back", index=1),
        ]
    )


@pytest.fixture
def test_client(generation_service, fake_provider):
    """Synchronous test client wired to the fake provider"""
    app.dependency_overrides[get_generation_service] = lambda: generation_service
    app.dependency_overrides[get_completion_providers] = lambda: [fake_provider]
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
