"""Configuration primitives for the telephony TTS bridge.

Configuration classes declare their fields as ``FieldDefinition`` entries.
Values are resolved in order: field default, environment variable, then
explicit constructor keyword arguments, and are validated once at
construction time.
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class Environment(Enum):
    """Supported environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class ConfigError(Exception):
    """Base exception for configuration-related errors."""


class ValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, field_name: str, value: Any, message: str) -> None:
        self.field = field_name
        self.value = value
        self.message = message
        super().__init__(f"Validation failed for field '{field_name}': {message}")


class RequiredFieldError(ConfigError):
    """Exception raised when a required field is missing."""

    def __init__(self, field_name: str) -> None:
        self.field = field_name
        super().__init__(f"Required field '{field_name}' is missing")


@dataclass
class FieldDefinition:
    """Definition for a configuration field with validation rules."""

    name: str
    field_type: type[Any]
    default: Any = None
    required: bool = False
    description: str = ""
    validator: Callable[[Any], bool] | None = None
    env_var: str | None = None
    choices: list[Any] | None = None
    min_value: int | float | None = None
    max_value: int | float | None = None

    def __post_init__(self) -> None:
        if self.required and self.default is not None:
            raise ValueError(
                f"Field '{self.name}' cannot be both required and have a default value"
            )
        if self.choices and self.default is not None and self.default not in self.choices:
            raise ValueError(f"Field '{self.name}' default value not in choices")


class BaseConfig(ABC):
    """Base configuration class with validation and environment loading."""

    def __init__(
        self, *, environ: Mapping[str, str] | None = None, **kwargs: Any
    ) -> None:
        self._values: dict[str, Any] = {}
        self._load_from_environment(os.environ if environ is None else environ)
        self._load_from_kwargs(kwargs)
        self._validate()

    @classmethod
    @abstractmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        """Get field definitions for this configuration class."""

    def _load_from_environment(self, environ: Mapping[str, str]) -> None:
        for field_def in self.get_field_definitions():
            if not field_def.env_var:
                continue
            raw = environ.get(field_def.env_var)
            if raw is None or raw == "":
                continue
            try:
                self._values[field_def.name] = self._convert_env_value(
                    raw, field_def.field_type
                )
            except ValueError as exc:
                raise ValidationError(
                    field_def.name,
                    raw,
                    f"{field_def.env_var} is not a valid {field_def.field_type.__name__}",
                ) from exc

    def _load_from_kwargs(self, kwargs: dict[str, Any]) -> None:
        known = {field_def.name for field_def in self.get_field_definitions()}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise ConfigError(
                f"Unknown configuration field(s) for {type(self).__name__}: {', '.join(unknown)}"
            )
        self._values.update(kwargs)

    @staticmethod
    def _convert_env_value(value: str, field_type: type[Any]) -> Any:
        if field_type is bool:
            return value.strip().lower() in _TRUE_VALUES
        if field_type is int:
            return int(value)
        if field_type is float:
            return float(value)
        return value

    def _validate(self) -> None:
        for field_def in self.get_field_definitions():
            value = self._values.get(field_def.name, field_def.default)

            if value is None:
                if field_def.required:
                    raise RequiredFieldError(field_def.name)
                self._values[field_def.name] = None
                continue

            self._values[field_def.name] = self._validate_field(field_def, value)

    def _validate_field(self, field_def: FieldDefinition, value: Any) -> Any:
        # ints are accepted where floats are declared; bools are never numbers
        if field_def.field_type is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if field_def.field_type in (int, float) and isinstance(value, bool):
            raise ValidationError(
                field_def.name, value, f"Expected {field_def.field_type.__name__}"
            )
        if not isinstance(value, field_def.field_type):
            raise ValidationError(
                field_def.name, value, f"Expected {field_def.field_type.__name__}"
            )

        if field_def.choices:
            if isinstance(value, str):
                for choice in field_def.choices:
                    if isinstance(choice, str) and choice.lower() == value.lower():
                        value = choice
                        break
            if value not in field_def.choices:
                raise ValidationError(
                    field_def.name, value, f"Must be one of {field_def.choices}"
                )

        if field_def.min_value is not None and value < field_def.min_value:
            raise ValidationError(
                field_def.name, value, f"Must be >= {field_def.min_value}"
            )
        if field_def.max_value is not None and value > field_def.max_value:
            raise ValidationError(
                field_def.name, value, f"Must be <= {field_def.max_value}"
            )

        if field_def.validator and not field_def.validator(value):
            raise ValidationError(field_def.name, value, "Custom validation failed")

        return value

    def __getattr__(self, name: str) -> Any:
        values = self.__dict__.get("_values", {})
        if name in values:
            return values[name]
        raise AttributeError(f"Configuration field '{name}' not found")

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return self._values.copy()


_URL_PATTERN = re.compile(
    r"^https?://"
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|"
    r"localhost|"
    r"[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?|"  # bare hostnames such as docker service names
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"
    r"(?::\d+)?"
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)


def validate_url(url: str) -> bool:
    """Return True when ``url`` is an absolute http(s) URL."""
    if not url:
        return False
    return bool(_URL_PATTERN.match(url))


def validate_port(port: int) -> bool:
    """Return True for a usable TCP port number."""
    return 1 <= port <= 65535


def validate_positive(value: float) -> bool:
    return value > 0


__all__ = [
    "BaseConfig",
    "ConfigError",
    "Environment",
    "FieldDefinition",
    "RequiredFieldError",
    "ValidationError",
    "validate_port",
    "validate_positive",
    "validate_url",
]
