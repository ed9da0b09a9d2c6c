"""Integration tests for primary/secondary fallback."""

import pytest

from creative_ai_system.exceptions import (
    FatalProviderError,
    GenerationTimeoutError,
    TransientProviderError,
    ValidationException,
)
from creative_ai_system.models import (
    AttemptOutcome,
    CreativeRequest,
    ExecutionTrace,
    Modality,
    Provider,
    ReferenceMedia,
    RemoteMedia,
)
from creative_ai_system.orchestrator import ProviderFallbackOrchestrator

from tests.fakes import PNG_BYTES, FakePrimary, FakeSecondary, FakeVideoJob


def image_request(**kwargs):
    return CreativeRequest(modality=Modality.IMAGE, prompt="Summer sale poster", **kwargs)


def video_request(**kwargs):
    return CreativeRequest(modality=Modality.VIDEO, prompt="Product reveal", **kwargs)


@pytest.fixture
def build(retry_policy, poller, persistence):
    def _build(primary=None, secondary=None):
        primary = primary or FakePrimary()
        secondary = secondary or FakeSecondary()
        orchestrator = ProviderFallbackOrchestrator(
            primary, secondary, retry_policy=retry_policy, poller=poller, reference_uploader=persistence
        )
        return orchestrator, primary, secondary

    return _build


@pytest.mark.integration
class TestProviderFailover:
    """Test provider failover mechanisms."""

    async def test_primary_success(self, orchestrator, primary, secondary):
        trace = ExecutionTrace()
        outcome = await orchestrator.generate(image_request(aspect_ratio="1.91:1"), trace)

        assert outcome.used_provider == Provider.GOOGLE
        assert outcome.used_model == "gemini-3-pro-image-preview"
        assert not outcome.used_fallback
        assert primary.calls == [("image", "gemini-3-pro-image-preview", "16:9", "1K")]
        assert secondary.call_count == 0
        assert [a.outcome for a in trace.attempts] == [AttemptOutcome.SUCCESS]
        assert trace.attempts[0].usage.image_count == 1

    async def test_transient_primary_retries_then_falls_back(self, build, fake_sleep):
        orchestrator, primary, secondary = build(
            primary=FakePrimary(errors=[TransientProviderError("503 overloaded")] * 3)
        )
        trace = ExecutionTrace()
        outcome = await orchestrator.generate(image_request(), trace)

        assert len(primary.calls) == 3
        assert fake_sleep.calls == [1.0, 2.0]
        assert secondary.call_count == 1
        assert outcome.used_provider == Provider.FAL
        assert outcome.used_fallback
        assert outcome.used_model == "fal-ai/gemini-3-pro-image-preview"
        assert [(a.provider, a.outcome) for a in trace.attempts] == [
            (Provider.GOOGLE, AttemptOutcome.TRANSIENT_ERROR),
            (Provider.FAL, AttemptOutcome.SUCCESS),
        ]
        assert trace.attempts[1].metadata == {"fallback": True}

    async def test_fatal_primary_falls_back_without_retry(self, build):
        orchestrator, primary, secondary = build(
            primary=FakePrimary(errors=[FatalProviderError("invalid argument")])
        )
        outcome = await orchestrator.generate(image_request(model_hint="gemini-2.5-flash-image"))

        assert len(primary.calls) == 1
        assert secondary.image_calls[0].endpoint == "fal-ai/gemini-25-flash-image"
        assert outcome.used_fallback
        assert outcome.attempts[0].error == "invalid argument"

    async def test_secondary_failure_is_terminal(self, build):
        orchestrator, primary, secondary = build(
            primary=FakePrimary(errors=[FatalProviderError("primary down")]),
            secondary=FakeSecondary(errors=[FatalProviderError("secondary down")]),
        )
        trace = ExecutionTrace()
        with pytest.raises(FatalProviderError, match="secondary down"):
            await orchestrator.generate(image_request(), trace)

        assert len(primary.calls) == 1
        assert secondary.call_count == 1
        assert [a.outcome for a in trace.attempts] == [AttemptOutcome.FATAL_ERROR] * 2

    async def test_primary_timeout_is_terminal(self, build):
        orchestrator, primary, secondary = build(primary=FakePrimary(job=FakeVideoJob(polls_until_done=None)))
        trace = ExecutionTrace()
        with pytest.raises(GenerationTimeoutError):
            await orchestrator.generate(
                video_request(model_hint="veo-3.1", aspect_ratio="16:9", duration_seconds=5), trace
            )

        assert secondary.call_count == 0
        assert len(trace.attempts) == 1
        assert trace.attempts[0].outcome == AttemptOutcome.TIMEOUT

    async def test_fixed_duration_model_ignores_requested_duration(self, orchestrator, primary, secondary):
        trace = ExecutionTrace()
        outcome = await orchestrator.generate(video_request(model_hint="sora-2", duration_seconds=5), trace)

        assert primary.calls == []
        assert secondary.video_calls[0].duration_seconds == 12
        assert secondary.video_calls[0].endpoint == "fal-ai/sora-2/text-to-video"
        assert outcome.used_provider == Provider.FAL
        assert not outcome.used_fallback
        assert outcome.usage.video_duration_seconds == 12
        assert trace.attempts[0].metadata == {"fallback": False}

    async def test_veo_primary_polls_job(self, orchestrator, primary, secondary):
        outcome = await orchestrator.generate(
            video_request(model_hint="veo-3.1", aspect_ratio="4:5", duration_seconds=5)
        )

        assert primary.calls == [("video", "veo-3.1-fast-generate-preview", "9:16", 6)]
        assert primary.job.submits == 1
        assert isinstance(outcome.result_ref, RemoteMedia)
        assert outcome.usage.video_duration_seconds == 6
        assert secondary.call_count == 0

    async def test_veo_submit_failure_falls_back(self, build):
        orchestrator, primary, secondary = build(
            primary=FakePrimary(errors=[FatalProviderError("video model unavailable in region")])
        )
        outcome = await orchestrator.generate(video_request(model_hint="veo-3.1", duration_seconds=7))

        params = secondary.video_calls[0]
        assert params.endpoint == "fal-ai/veo3.1/fast"
        assert params.duration_seconds == 8
        assert params.generate_audio is True
        assert outcome.used_fallback

    async def test_text_has_no_fallback(self, build):
        orchestrator, primary, secondary = build(primary=FakePrimary(errors=[FatalProviderError("blocked")]))
        with pytest.raises(FatalProviderError):
            await orchestrator.generate(CreativeRequest(modality=Modality.TEXT, prompt="tagline"))
        assert secondary.call_count == 0

    async def test_validation_error_makes_no_calls(self, orchestrator, primary, secondary):
        trace = ExecutionTrace()
        with pytest.raises(ValidationException):
            await orchestrator.generate(image_request(model_hint="dall-e-3"), trace)
        assert trace.attempts == []
        assert primary.calls == []

    async def test_reference_bytes_uploaded_for_secondary(self, build, blob_store):
        orchestrator, primary, secondary = build(primary=FakePrimary(errors=[FatalProviderError("down")]))
        request = image_request(
            reference_media=[
                ReferenceMedia(data=PNG_BYTES, mime_type="image/png"),
                ReferenceMedia(url="https://cdn.example/logo.png"),
            ]
        )
        await orchestrator.generate(request)

        params = secondary.image_calls[0]
        assert params.endpoint == "fal-ai/gemini-3-pro-image-preview/edit"
        assert params.image_urls[0].startswith("https://blob.local/reference-")
        assert params.image_urls[1] == "https://cdn.example/logo.png"
        assert len(blob_store) == 1

    async def test_secondary_only_transient_is_retried(self, build, fake_sleep):
        orchestrator, primary, secondary = build(
            secondary=FakeSecondary(errors=[TransientProviderError("503")])
        )
        trace = ExecutionTrace()
        await orchestrator.generate(image_request(model_hint="fal-ai/gemini-25-flash-image"), trace)

        assert secondary.call_count == 2
        assert fake_sleep.calls == [1.0]
        assert len(trace.attempts) == 1

    async def test_stream_text(self, orchestrator):
        stream = orchestrator.stream_text(CreativeRequest(modality=Modality.TEXT, prompt="tagline"))
        chunks = [chunk async for chunk in stream]

        assert stream.model == "gemini-3-pro-preview"
        assert stream.text == "Fresh summer deals"
        assert chunks[-1].is_final

    def test_stream_rejects_media(self, orchestrator):
        with pytest.raises(ValidationException):
            orchestrator.stream_text(image_request())
