"""Configuration for the speech bridge service."""

from __future__ import annotations

from tts_bridge.common.config import (
    BaseConfig,
    Environment,
    FieldDefinition,
    validate_port,
    validate_positive,
    validate_url,
)

OUTPUT_SAMPLE_RATE = 8000


class BridgeConfig(BaseConfig):
    """Provider, listener and logging settings for the bridge.

    Example:
        config = BridgeConfig(provider_base_url="http://kokoro:8880", voice="af_bella")
    """

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="provider_base_url",
                field_type=str,
                default="http://localhost:8880",
                description="Base URL of the OpenAI-compatible speech provider",
                validator=validate_url,
                env_var="KOKORO_BASE_URL",
            ),
            FieldDefinition(
                name="voice",
                field_type=str,
                default="af_alloy",
                description="Provider voice identifier",
                env_var="KOKORO_VOICE",
            ),
            FieldDefinition(
                name="speed",
                field_type=float,
                default=1.3,
                description="Speech speed factor sent to the provider",
                env_var="KOKORO_SPEED",
                min_value=0.25,
                max_value=4.0,
            ),
            FieldDefinition(
                name="response_format",
                field_type=str,
                default="wav",
                description="Audio container requested from the provider",
                env_var="KOKORO_RESPONSE_FORMAT",
                choices=["wav"],
            ),
            FieldDefinition(
                name="source_sample_rate",
                field_type=int,
                default=24000,
                description="Native sample rate of the provider's PCM payload",
                validator=validate_positive,
                env_var="KOKORO_SAMPLE_RATE",
            ),
            FieldDefinition(
                name="timeout",
                field_type=float,
                default=30.0,
                description="Provider request timeout in seconds",
                validator=validate_positive,
                env_var="KOKORO_TIMEOUT",
                max_value=300.0,
            ),
            FieldDefinition(
                name="host",
                field_type=str,
                default="0.0.0.0",
                description="Interface the HTTP server binds to",
                env_var="HOST",
            ),
            FieldDefinition(
                name="port",
                field_type=int,
                default=6012,
                description="Port the HTTP server listens on",
                validator=validate_port,
                env_var="PORT",
            ),
            FieldDefinition(
                name="environment",
                field_type=str,
                default=Environment.PRODUCTION.value,
                description="Deployment environment; development exposes error details",
                env_var="ENVIRONMENT",
                choices=[env.value for env in Environment],
            ),
            FieldDefinition(
                name="log_level",
                field_type=str,
                default="INFO",
                description="Log level",
                env_var="LOG_LEVEL",
                choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            ),
            FieldDefinition(
                name="log_json",
                field_type=bool,
                default=True,
                description="Use JSON logging format",
                env_var="LOG_JSON",
            ),
        ]

    @property
    def debug(self) -> bool:
        """Whether upstream error details are returned to callers."""
        return self.environment == Environment.DEVELOPMENT.value

    @property
    def speech_url(self) -> str:
        return f"{self.provider_base_url.rstrip('/')}/v1/audio/speech"


__all__ = ["OUTPUT_SAMPLE_RATE", "BridgeConfig"]
