"""FastAPI service streaming 8 kHz telephony PCM for submitted text."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import BaseModel, StrictStr, field_validator

from tts_bridge.common.logging import configure_logging, get_logger
from tts_bridge.common.middleware import CorrelationMiddleware, get_correlation_id
from tts_bridge.speech.config import OUTPUT_SAMPLE_RATE, BridgeConfig
from tts_bridge.speech.errors import (
    BridgeError,
    InvalidInputError,
    StreamProcessingError,
    UpstreamError,
    UpstreamTimeoutError,
)
from tts_bridge.speech.resampler import downsample_to_8khz
from tts_bridge.speech.streaming import CHUNK_SIZE, stream_pcm
from tts_bridge.speech.synthesis_client import SynthesisClient

SERVICE_NAME = "tts-bridge"
STREAM_MEDIA_TYPE = "audio/l16"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

logger = get_logger(__name__)

_REQUESTS = Counter(
    "tts_bridge_requests_total",
    "Text-to-speech stream requests by outcome",
    ["status"],
)
_SYNTHESIS_DURATION = Histogram(
    "tts_bridge_synthesis_seconds",
    "Time spent waiting for the synthesis provider",
    buckets=(0.25, 0.5, 1, 2, 4, 8, 16, 30, float("inf")),
)
_UPSTREAM_SIZE = Histogram(
    "tts_bridge_upstream_audio_bytes",
    "Size of audio payloads received from the synthesis provider",
    buckets=(4096, 16384, 65536, 131072, 262144, 524288, 1048576, float("inf")),
)
_STREAMED_CHUNKS = Counter(
    "tts_bridge_streamed_chunks_total",
    "PCM chunks written to clients",
)


class SpeechRequest(BaseModel):
    text: StrictStr

    @field_validator("text")
    @classmethod
    def _require_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("text must not be blank")
        return stripped


class HealthResponse(BaseModel):
    status: str
    provider_url: str
    sample_rate: int
    source_sample_rate: int
    chunk_size: int


def _status_label(exc: BridgeError) -> str:
    if isinstance(exc, InvalidInputError):
        return "invalid_input"
    if isinstance(exc, UpstreamTimeoutError):
        return "upstream_timeout"
    if isinstance(exc, StreamProcessingError):
        return "processing_error"
    return "upstream_error"


def _count_chunk(_: int) -> None:
    _STREAMED_CHUNKS.inc()


def create_app(
    config: BridgeConfig | None = None,
    synthesis_client: SynthesisClient | None = None,
) -> FastAPI:
    """Build the bridge application.

    Args:
        config: Service configuration; loaded from the environment when omitted.
        synthesis_client: Provider client to use. When omitted one is created
            from ``config`` and closed on shutdown.
    """
    config = config or BridgeConfig()
    configure_logging(
        config.log_level, json_logs=config.log_json, service_name=SERVICE_NAME
    )

    owns_client = synthesis_client is None
    client = synthesis_client or SynthesisClient(config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "tts.startup_complete",
            port=config.port,
            provider_url=config.speech_url,
            voice=config.voice,
            source_sample_rate=config.source_sample_rate,
        )
        yield
        if owns_client:
            await client.aclose()
        logger.info("tts.shutdown")

    app = FastAPI(title="Telephony Text-to-Speech Bridge", lifespan=lifespan)
    app.state.config = config
    app.state.synthesis_client = client
    app.add_middleware(CorrelationMiddleware)

    @app.exception_handler(BridgeError)
    async def _bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
        _REQUESTS.labels(status=_status_label(exc)).inc()
        logger.warning(
            "tts.request_failed",
            path=request.url.path,
            status_code=exc.status_code,
            error=exc.message,
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_payload(include_details=config.debug),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return await _bridge_error_handler(
            request, InvalidInputError(details=str(exc.errors()))
        )

    @app.exception_handler(Exception)
    async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("tts.unhandled_error", path=request.url.path)
        return await _bridge_error_handler(
            request, UpstreamError(details=str(exc) or type(exc).__name__)
        )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            provider_url=config.speech_url,
            sample_rate=OUTPUT_SAMPLE_RATE,
            source_sample_rate=config.source_sample_rate,
            chunk_size=CHUNK_SIZE,
        )

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/text-to-speech-stream")
    async def text_to_speech_stream(payload: SpeechRequest) -> StreamingResponse:
        start_time = time.perf_counter()
        audio = await client.synthesize(payload.text)
        _SYNTHESIS_DURATION.observe(time.perf_counter() - start_time)
        _UPSTREAM_SIZE.observe(len(audio))

        try:
            pcm = await asyncio.to_thread(
                downsample_to_8khz, audio, config.source_sample_rate
            )
        except Exception as exc:
            logger.error(
                "tts.downsample_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                input_bytes=len(audio),
                source_sample_rate=config.source_sample_rate,
            )
            raise StreamProcessingError(details=str(exc) or type(exc).__name__) from exc

        logger.info(
            "tts.audio_downsampled",
            input_bytes=len(audio),
            output_bytes=len(pcm),
            source_sample_rate=config.source_sample_rate,
            output_sample_rate=OUTPUT_SAMPLE_RATE,
        )
        _REQUESTS.labels(status="success").inc()
        return StreamingResponse(
            stream_pcm(
                pcm,
                CHUNK_SIZE,
                correlation_id=get_correlation_id(),
                on_chunk=_count_chunk,
            ),
            media_type=STREAM_MEDIA_TYPE,
            headers=STREAM_HEADERS,
        )

    return app


__all__ = ["SpeechRequest", "create_app"]
