"""HTTP client for the OpenAI-compatible speech synthesis provider.

The provider answers ``POST /v1/audio/speech`` with a streamed WAV payload.
The whole payload is collected before it is handed on, since resampling
needs complete sample frames.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx

from tts_bridge.common.logging import get_logger
from tts_bridge.speech.config import BridgeConfig
from tts_bridge.speech.errors import (
    InvalidInputError,
    UpstreamError,
    UpstreamTimeoutError,
)

logger = get_logger(__name__)

_ERROR_BODY_LIMIT = 500


def normalize_text(text: Any) -> str:
    """Return ``text`` trimmed, or raise ``InvalidInputError`` when it is unusable."""
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError()
    return text.strip()


class SynthesisClient:
    """Fetches synthesized speech for a piece of text."""

    def __init__(
        self,
        config: BridgeConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the synthesis client.

        Args:
            config: Bridge configuration providing URL, voice, speed and timeout.
            client: Optional pre-built ``httpx.AsyncClient``. When omitted a
                pooled client is created and closed by ``aclose``.
        """
        self.config = config
        self.timeout = config.timeout
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=min(5.0, self.timeout),
                    read=self.timeout,
                    write=self.timeout,
                    pool=self.timeout,
                )
            )
        self._client = client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
            logger.info("tts.synthesis_client_closed")

    def build_payload(self, text: str) -> dict[str, Any]:
        return {
            "input": text,
            "voice": self.config.voice,
            "response_format": self.config.response_format,
            "speed": self.config.speed,
        }

    async def synthesize(self, text: Any) -> bytes:
        """Synthesize ``text`` and return the provider's complete audio payload.

        Raises:
            InvalidInputError: ``text`` is not a string or is blank.
            UpstreamTimeoutError: The provider did not finish within the timeout.
            UpstreamError: Transport failure or non-success provider response.
        """
        text = normalize_text(text)
        payload = self.build_payload(text)
        url = self.config.speech_url

        logger.info(
            "tts.provider_request",
            url=url,
            voice=payload["voice"],
            speed=payload["speed"],
            response_format=payload["response_format"],
            text_length=len(text),
            timeout=self.timeout,
        )

        start_time = time.perf_counter()
        try:
            audio = await asyncio.wait_for(
                self._fetch(url, payload), timeout=self.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.error(
                "tts.provider_timeout",
                url=url,
                timeout=self.timeout,
                error_type=type(exc).__name__,
            )
            raise UpstreamTimeoutError(
                details=f"Provider did not respond within {self.timeout:g} seconds"
            ) from exc
        except httpx.HTTPStatusError as exc:
            logger.error(
                "tts.provider_error_status",
                url=url,
                status_code=exc.response.status_code,
            )
            raise UpstreamError(details=str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "tts.provider_transport_error",
                url=url,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise UpstreamError(details=str(exc) or type(exc).__name__) from exc
        except Exception as exc:
            logger.exception(
                "tts.provider_unexpected_error",
                url=url,
                error_type=type(exc).__name__,
            )
            raise UpstreamError(details=str(exc) or type(exc).__name__) from exc

        logger.info(
            "tts.provider_audio_received",
            size_bytes=len(audio),
            duration_ms=int((time.perf_counter() - start_time) * 1000),
        )
        return audio

    async def _fetch(self, url: str, payload: dict[str, Any]) -> bytes:
        buffer = bytearray()
        async with self._client.stream("POST", url, json=payload) as response:
            if not response.is_success:
                body = await response.aread()
                message = body[:_ERROR_BODY_LIMIT].decode("utf-8", errors="replace")
                raise httpx.HTTPStatusError(
                    f"Provider returned HTTP {response.status_code}: {message}",
                    request=response.request,
                    response=response,
                )
            async for fragment in response.aiter_bytes():
                buffer.extend(fragment)
        return bytes(buffer)


__all__ = ["SynthesisClient", "normalize_text"]
