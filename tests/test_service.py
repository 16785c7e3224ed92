import asyncio
import threading

import pytest

from vision_testgen.core.errors import CompletionOutcome, ParseError, TransportFatalError
from vision_testgen.models.schemas import ElementCorrection, GenerationRequest, PageInput
from vision_testgen.services import test_case_service
from vision_testgen.services.completion_client import CompletionClient
from vision_testgen.services.test_case_service import TestCaseGenerationService, UnknownProviderError


@pytest.mark.asyncio
async def test_identical_requests_hit_the_provider_once(generation_service, fake_provider, login_request):
    first = await generation_service.generate(login_request)
    second = await generation_service.generate(login_request)

    assert len(fake_provider.calls) == 1
    assert second is first
    assert first.all_test_cases[0].title == "Login works"
    assert "cached" not in second.metadata


@pytest.mark.asyncio
async def test_force_regenerate_bypasses_and_overwrites_cache(
    generation_service, fake_provider, completion_body, login_request
):
    fake_provider.outcomes = [
        CompletionOutcome.success(completion_body("First")),
        CompletionOutcome.success(completion_body("Second")),
    ]
    first = await generation_service.generate(login_request)
    regenerated = await generation_service.generate(login_request.model_copy(update={"force_regenerate": True}))
    cached = await generation_service.generate(login_request)

    assert len(fake_provider.calls) == 2
    assert first.all_test_cases[0].title == "First"
    assert regenerated.all_test_cases[0].title == "Second"
    assert cached is regenerated
    assert fake_provider.calls[0].temperature < fake_provider.calls[1].temperature
    assert regenerated.metadata["regenerated"] is True


@pytest.mark.asyncio
async def test_concurrent_identical_requests_are_coalesced(generation_service, fake_provider, login_request):
    fake_provider.gate = asyncio.Event()

    pending = [asyncio.ensure_future(generation_service.generate(login_request)) for _ in range(3)]
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    fake_provider.gate.set()
    results = await asyncio.gather(*pending)

    assert len(fake_provider.calls) == 1
    assert results[0] is results[1] is results[2]
    assert generation_service._in_flight == {}


@pytest.mark.asyncio
async def test_without_coalescing_each_request_calls_upstream(fake_provider, recording_sleep, result_cache, login_request):
    service = TestCaseGenerationService(
        completion_clients={fake_provider.name: CompletionClient(fake_provider, sleep=recording_sleep)},
        cache=result_cache,
        default_provider=fake_provider.name,
        coalesce_requests=False,
    )
    fake_provider.gate = asyncio.Event()

    pending = [asyncio.ensure_future(service.generate(login_request)) for _ in range(2)]
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    fake_provider.gate.set()
    await asyncio.gather(*pending)

    assert len(fake_provider.calls) == 2


@pytest.mark.asyncio
async def test_parse_error_is_not_retried_or_cached(generation_service, fake_provider, result_cache, login_request):
    fake_provider.outcomes = [CompletionOutcome.success("I cannot do that.")]

    with pytest.raises(ParseError):
        await generation_service.generate(login_request)

    assert len(fake_provider.calls) == 1
    assert len(result_cache) == 0


@pytest.mark.asyncio
async def test_fatal_transport_error_propagates(generation_service, fake_provider, login_request):
    fake_provider.outcomes = [CompletionOutcome.fatal("quota exceeded", 429)]

    with pytest.raises(TransportFatalError):
        await generation_service.generate(login_request)


@pytest.mark.asyncio
async def test_corrections_reach_the_prompt_and_the_fingerprint(generation_service, fake_provider, login_request):
    corrections = [ElementCorrection(page_index=0, detected_text="Sgn in", label="Sign in", element_type="button")]

    plain = await generation_service.generate(login_request)
    corrected = await generation_service.generate_with_corrections(login_request, corrections)

    assert len(fake_provider.calls) == 2
    assert plain.metadata["fingerprint"] != corrected.metadata["fingerprint"]
    instructions = fake_provider.prompts[1].instructions
    assert "USER-PROVIDED ELEMENT CORRECTIONS" in instructions
    assert '"Sgn in" is identified as button: Sign in' in instructions


@pytest.mark.asyncio
async def test_result_metadata(generation_service, login_request):
    result = await generation_service.generate(login_request)

    assert result.metadata["provider"] == "anthropic"
    assert result.metadata["model"] == "anthropic-test-model"
    assert result.metadata["screenshotCount"] == 0
    assert result.metadata["regenerated"] is False


def test_provider_aliases_resolve(generation_service):
    assert generation_service.client_for("Claude").provider.name == "anthropic"
    assert generation_service.client_for(None).provider.name == "anthropic"
    with pytest.raises(UnknownProviderError):
        generation_service.client_for("gpt-4-vision")


@pytest.mark.asyncio
async def test_same_upload_filename_with_different_bytes_is_not_served_from_cache(generation_service, fake_provider):
    first = GenerationRequest(pages=[PageInput(image_bytes=b"\x89PNG login screen", filename="screenshot.png", index=0)])
    second = GenerationRequest(pages=[PageInput(image_bytes=b"\x89PNG cart screen", filename="screenshot.png", index=0)])

    await generation_service.generate(first)
    await generation_service.generate(second)

    assert len(fake_provider.calls) == 2


@pytest.mark.asyncio
async def test_prompt_is_built_off_the_event_loop(generation_service, fake_provider, monkeypatch, tmp_path):
    path = tmp_path / "login.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 16)
    threads = []
    original = test_case_service.build_prompt

    def recording_build_prompt(request):
        threads.append(threading.current_thread())
        return original(request)

    monkeypatch.setattr(test_case_service, "build_prompt", recording_build_prompt)
    request = GenerationRequest(pages=[PageInput(name="Login", image_path=str(path), index=0)])

    result = await generation_service.generate(request)

    assert threads and threads[0] is not threading.main_thread()
    assert result.metadata["screenshotCount"] == 1
    assert fake_provider.prompts[0].image_count == 1
