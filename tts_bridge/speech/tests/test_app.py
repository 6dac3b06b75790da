"""Tests for the text-to-speech streaming endpoint."""

import asyncio

import httpx
import numpy as np
import pytest
from fastapi.testclient import TestClient

from tts_bridge.speech.app import create_app
from tts_bridge.speech.config import BridgeConfig
from tts_bridge.speech.resampler import resample

ENDPOINT = "/text-to-speech-stream"
INVALID_TEXT_MESSAGE = "Text is required and must be a non-empty string"


@pytest.fixture
def provider_audio() -> bytes:
    """Half a second of a 24 kHz ramp, as the provider would return it."""
    return (np.arange(12000, dtype=np.int64) % 2000 - 1000).astype("<i2").tobytes()


@pytest.fixture
def build_client(bridge_config, make_provider, make_synthesis_client):
    def _build(
        handler, config: BridgeConfig | None = None, *, raise_server_exceptions: bool = True
    ):
        config = config or bridge_config
        provider = make_provider(handler)
        app = create_app(config, synthesis_client=make_synthesis_client(config, provider))
        return TestClient(app, raise_server_exceptions=raise_server_exceptions), provider

    return _build


class TestTextToSpeechStream:
    """Successful synthesis requests."""

    @pytest.mark.component
    def test_streams_downsampled_pcm(self, build_client, provider_audio):
        client, provider = build_client(
            lambda request: httpx.Response(200, content=provider_audio)
        )

        with client:
            response = client.post(ENDPOINT, json={"text": "Your call is important"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/l16"
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["connection"] == "keep-alive"
        assert response.content == resample(provider_audio, 24000)
        assert len(response.content) == 8000
        assert provider.payloads[0]["input"] == "Your call is important"

    @pytest.mark.component
    def test_uses_configured_source_rate(self, build_client, provider_audio):
        config = BridgeConfig(
            environ={}, provider_base_url="http://kokoro.test:8880", source_sample_rate=22050
        )
        client, _ = build_client(
            lambda request: httpx.Response(200, content=provider_audio), config
        )

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 200
        assert response.content == resample(provider_audio, 22050)

    @pytest.mark.component
    def test_empty_provider_payload_streams_nothing(self, build_client):
        client, _ = build_client(lambda request: httpx.Response(200, content=b""))

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.component
    def test_correlation_id_is_echoed(self, build_client):
        client, _ = build_client(lambda request: httpx.Response(200, content=b"\x00" * 6))

        response = client.post(
            ENDPOINT,
            json={"text": "hello"},
            headers={"X-Correlation-ID": "call-1234567890"},
        )

        assert response.headers["x-correlation-id"] == "call-1234567890"

    @pytest.mark.component
    def test_stream_log_lines_carry_correlation_id(self, build_client, capture_logs):
        client, _ = build_client(lambda request: httpx.Response(200, content=b"\x00" * 1200))
        read_events = capture_logs()

        response = client.post(
            ENDPOINT,
            json={"text": "hello"},
            headers={"X-Correlation-ID": "call-77"},
        )

        assert response.status_code == 200
        completed = [e for e in read_events() if e["event"] == "tts.stream_completed"]
        assert len(completed) == 1
        assert completed[0]["correlation_id"] == "call-77"
        assert completed[0]["chunks_sent"] == 2


class TestInputValidation:
    """Requests rejected before the provider is contacted."""

    @pytest.mark.component
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"text": None},
            {"text": ""},
            {"text": "   \n\t"},
            {"text": 12},
            {"text": ["hello"]},
            {"message": "hello"},
        ],
    )
    def test_bad_text_returns_400(self, build_client, body):
        client, provider = build_client(lambda request: httpx.Response(200, content=b""))

        response = client.post(ENDPOINT, json=body)

        assert response.status_code == 400
        assert response.json() == {"message": INVALID_TEXT_MESSAGE}
        assert provider.requests == []

    @pytest.mark.component
    def test_malformed_json_returns_400(self, build_client):
        client, provider = build_client(lambda request: httpx.Response(200, content=b""))

        response = client.post(
            ENDPOINT, content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == INVALID_TEXT_MESSAGE
        assert provider.requests == []

    @pytest.mark.component
    def test_text_is_trimmed_before_synthesis(self, build_client):
        client, provider = build_client(lambda request: httpx.Response(200, content=b""))

        client.post(ENDPOINT, json={"text": "  padded  "})

        assert provider.payloads[0]["input"] == "padded"


class TestUpstreamFailures:
    """Provider failures map to 500 responses."""

    @pytest.mark.component
    def test_provider_error_returns_generic_500(self, build_client):
        client, _ = build_client(lambda request: httpx.Response(503, text="overloaded"))

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        assert response.json() == {"message": "Error communicating with Kokoro TTS"}

    @pytest.mark.component
    def test_development_mode_includes_details(self, build_client):
        config = BridgeConfig(
            environ={}, provider_base_url="http://kokoro.test:8880", environment="development"
        )
        client, _ = build_client(lambda request: httpx.Response(503, text="overloaded"), config)

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Error communicating with Kokoro TTS"
        assert "overloaded" in body["details"]

    @pytest.mark.component
    def test_transport_timeout_returns_500(self, build_client):
        def timeout(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        client, _ = build_client(timeout)

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        assert response.json()["message"] == "Error communicating with Kokoro TTS"

    @pytest.mark.component
    def test_stalled_provider_returns_500_instead_of_hanging(self, build_client):
        config = BridgeConfig(
            environ={}, provider_base_url="http://kokoro.test:8880", timeout=0.1
        )

        async def stall(request):
            await asyncio.sleep(30)
            return httpx.Response(200, content=b"")

        client, _ = build_client(stall, config)

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500

    @pytest.mark.component
    def test_malformed_audio_returns_processing_error(self, build_client):
        client, _ = build_client(lambda request: httpx.Response(200, content=b"\x00" * 7))

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        assert response.json() == {"message": "Error processing audio"}

    @pytest.mark.component
    def test_unexpected_provider_failure_returns_json_500(self, build_client):
        def broken_adapter(request):
            raise RuntimeError("provider adapter blew up")

        client, _ = build_client(broken_adapter, raise_server_exceptions=False)

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"message": "Error communicating with Kokoro TTS"}

    @pytest.mark.component
    def test_unexpected_provider_failure_details_in_development(self, build_client):
        config = BridgeConfig(
            environ={}, provider_base_url="http://kokoro.test:8880", environment="development"
        )

        def broken_adapter(request):
            raise RuntimeError("provider adapter blew up")

        client, _ = build_client(broken_adapter, config, raise_server_exceptions=False)

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        assert response.json()["details"] == "provider adapter blew up"

    @pytest.mark.component
    def test_unexpected_resampler_failure_returns_processing_error(
        self, build_client, monkeypatch
    ):
        def out_of_memory(buffer, input_rate):
            raise MemoryError()

        monkeypatch.setattr("tts_bridge.speech.app.downsample_to_8khz", out_of_memory)
        client, _ = build_client(
            lambda request: httpx.Response(200, content=b"\x00" * 12),
            raise_server_exceptions=False,
        )

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        assert response.json() == {"message": "Error processing audio"}

    @pytest.mark.component
    def test_any_other_failure_is_rendered_as_json(self, build_client, monkeypatch):
        client, _ = build_client(
            lambda request: httpx.Response(200, content=b""), raise_server_exceptions=False
        )

        async def explode(text):
            raise KeyError("voice")

        monkeypatch.setattr(client.app.state.synthesis_client, "synthesize", explode)

        response = client.post(ENDPOINT, json={"text": "hello"})

        assert response.status_code == 500
        assert response.json() == {"message": "Error communicating with Kokoro TTS"}


class TestServiceEndpoints:
    """Health and metrics endpoints."""

    @pytest.mark.component
    def test_health(self, build_client, bridge_config):
        client, _ = build_client(lambda request: httpx.Response(200, content=b""))

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "provider_url": "http://kokoro.test:8880/v1/audio/speech",
            "sample_rate": 8000,
            "source_sample_rate": 24000,
            "chunk_size": 320,
        }

    @pytest.mark.component
    def test_metrics_exposes_request_counters(self, build_client):
        client, _ = build_client(lambda request: httpx.Response(200, content=b"\x00" * 12))

        client.post(ENDPOINT, json={"text": "hello"})
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "tts_bridge_requests_total" in response.text
        assert "tts_bridge_streamed_chunks_total" in response.text
