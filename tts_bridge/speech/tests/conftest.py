"""Test configuration for tts_bridge.speech."""

from __future__ import annotations

import json
import logging
import struct
from collections.abc import Callable, Iterable, Iterator
from io import StringIO
from typing import Any

import httpx
import pytest
import structlog

from tts_bridge.common.logging import configure_logging
from tts_bridge.speech.config import BridgeConfig
from tts_bridge.speech.synthesis_client import SynthesisClient


class ProviderStub:
    """Records requests made to the fake synthesis provider."""

    def __init__(self, handler: Callable[[httpx.Request], Any]) -> None:
        self._handler = handler
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self._handler(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Configuration isolated from the process environment."""
    return BridgeConfig(
        environ={},
        provider_base_url="http://kokoro.test:8880",
        voice="af_alloy",
        speed=1.3,
        timeout=2.0,
        log_json=True,
    )


@pytest.fixture
def make_provider() -> Callable[[Callable[[httpx.Request], Any]], ProviderStub]:
    return ProviderStub


@pytest.fixture
def make_synthesis_client() -> Callable[[BridgeConfig, ProviderStub], SynthesisClient]:
    def _make(config: BridgeConfig, provider: ProviderStub) -> SynthesisClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(provider))
        return SynthesisClient(config, client=client)

    return _make


@pytest.fixture
def pcm() -> Callable[[Iterable[int]], bytes]:
    """Pack signed 16-bit samples as little-endian PCM."""

    def _pack(samples: Iterable[int]) -> bytes:
        values = list(samples)
        return struct.pack(f"<{len(values)}h", *values)

    return _pack


@pytest.fixture
def unpack_pcm() -> Callable[[bytes], list[int]]:
    """Unpack little-endian PCM into signed 16-bit samples."""

    def _unpack(data: bytes) -> list[int]:
        return list(struct.unpack(f"<{len(data) // 2}h", data))

    return _unpack


@pytest.fixture
def capture_logs() -> Iterator[Callable[[], Callable[[], list[dict[str, Any]]]]]:
    """Redirect JSON logs into memory; call the result to read parsed events.

    Call it after ``create_app``, which installs its own handler.
    """
    original_config = structlog.get_config()
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level

    def _capture() -> Callable[[], list[dict[str, Any]]]:
        output = StringIO()
        configure_logging("INFO", json_logs=True, service_name="tts-bridge", stream=output)
        return lambda: [json.loads(line) for line in output.getvalue().splitlines()]

    yield _capture

    structlog.configure(**original_config)
    root.handlers = original_handlers
    root.setLevel(original_level)
