"""Typed, environment-driven configuration sections.

A section is a ``BaseConfig`` subclass listing its fields as
``FieldDefinition`` entries. ``ConfigBuilder`` reads every section of a
service from the environment (or an injected mapping) into a
``ServiceConfig`` whose sections are reachable as attributes:

    config = (
        ConfigBuilder.for_service("gateway")
        .add_config("logging", LoggingConfig)
        .load()
    )
    config.validate()
    config.logging.level
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from voice_gateway.common.structured_logging import get_logger


logger = get_logger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")
_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


class ValidationError(Exception):
    """A configured value has the wrong type or breaks a field rule."""

    def __init__(self, field_name: str, value: Any, message: str) -> None:
        self.field = field_name
        self.value = value
        self.message = message
        super().__init__(f"Invalid value for '{field_name}': {message}")


class RequiredFieldError(Exception):
    """A required field has no value in the environment."""

    def __init__(self, field_name: str) -> None:
        self.field = field_name
        super().__init__(f"Missing required field '{field_name}'")


@dataclass
class FieldDefinition:
    """One configuration field: its type, default, source variable and rules."""

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
    pattern: str | None = None

    def __post_init__(self) -> None:
        if self.required and self.default is not None:
            raise ValueError(f"required field '{self.name}' cannot declare a default")
        if self.choices and self.default is not None and self.default not in self.choices:
            raise ValueError(f"default of '{self.name}' is not one of its choices")

    def check(self, value: Any) -> None:
        """Raise ``ValidationError``/``RequiredFieldError`` if ``value`` breaks a rule."""
        if value is None:
            if self.required:
                raise RequiredFieldError(self.name)
            return

        # ints are acceptable wherever a float is declared
        accepted: tuple[type[Any], ...] = (
            (float, int) if self.field_type is float else (self.field_type,)
        )
        wrong_bool = isinstance(value, bool) and self.field_type is not bool
        if wrong_bool or not isinstance(value, accepted):
            raise ValidationError(
                self.name,
                value,
                f"expected {self.field_type.__name__}, got {type(value).__name__}",
            )

        if self.choices and value not in self.choices:
            raise ValidationError(self.name, value, f"must be one of {self.choices}")
        if self.min_value is not None and value < self.min_value:
            raise ValidationError(self.name, value, f"must be >= {self.min_value}")
        if self.max_value is not None and value > self.max_value:
            raise ValidationError(self.name, value, f"must be <= {self.max_value}")
        if self.pattern and isinstance(value, str) and not re.match(self.pattern, value):
            raise ValidationError(self.name, value, f"must match {self.pattern}")
        if self.validator and not self.validator(value):
            raise ValidationError(self.name, value, "rejected by validator")


class BaseConfig(ABC):
    """A configuration section."""

    def __init__(self, **kwargs: Any) -> None:
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @classmethod
    @abstractmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        """Fields of this section."""

    def validate(self) -> None:
        for field_def in self.get_field_definitions():
            field_def.check(getattr(self, field_def.name, None))


class LoggingConfig(BaseConfig):
    """Log level and output format."""

    def __init__(self, level: str = "INFO", json_logs: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.level = level
        self.json_logs = json_logs

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="level",
                field_type=str,
                default="INFO",
                choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                env_var="LOG_LEVEL",
            ),
            FieldDefinition(
                name="json_logs",
                field_type=bool,
                default=True,
                description="JSON lines when true, console rendering otherwise",
                env_var="LOG_JSON",
            ),
        ]


class EnvironmentLoader:
    """Reads field values from ``os.environ`` or an injected mapping."""

    def __init__(self, prefix: str = "", environ: Mapping[str, str] | None = None) -> None:
        self.prefix = f"{prefix.upper()}_" if prefix else ""
        self._environ = os.environ if environ is None else environ

    def variable_for(self, field_def: FieldDefinition) -> str:
        return field_def.env_var or f"{self.prefix}{field_def.name.upper()}"

    def load_field(self, field_def: FieldDefinition) -> Any:
        env_var = self.variable_for(field_def)
        raw = self._environ.get(env_var)
        if raw is None:
            if field_def.required:
                raise RequiredFieldError(field_def.name)
            return field_def.default
        try:
            return _convert(raw, field_def.field_type)
        except ValueError as exc:
            raise ValidationError(
                field_def.name, raw, f"cannot parse {env_var}: {exc}"
            ) from exc

    def load_config(self, config_class: type[BaseConfig]) -> BaseConfig:
        values = {}
        for field_def in config_class.get_field_definitions():
            try:
                values[field_def.name] = self.load_field(field_def)
            except (RequiredFieldError, ValidationError) as exc:
                logger.error(
                    "config.load_field_failed",
                    field=field_def.name,
                    env_var=self.variable_for(field_def),
                    error=str(exc),
                )
                raise
        return config_class(**values)


def _convert(raw: str, target_type: type[Any]) -> Any:
    if target_type is bool:
        return raw.strip().lower() in _TRUE_VALUES
    if target_type in (int, float):
        return target_type(raw.strip())
    return raw


@dataclass
class ServiceConfig:
    """All configuration sections of one service."""

    service_name: str
    configs: Mapping[str, BaseConfig]

    def get_config(self, name: str) -> BaseConfig:
        try:
            return self.configs[name]
        except KeyError:
            raise KeyError(f"no configuration section '{name}'") from None

    def validate(self) -> None:
        for name, section in self.configs.items():
            try:
                section.validate()
            except (ValidationError, RequiredFieldError) as exc:
                logger.error(
                    "config.section_validation_failed",
                    service=self.service_name,
                    section=name,
                    error=str(exc),
                )
                raise

    def __getattr__(self, name: str) -> BaseConfig:
        # dataclass fields are found by normal lookup; only sections land here
        if name.startswith("__") or name == "configs":
            raise AttributeError(name)
        try:
            return self.get_config(name)
        except KeyError as exc:
            raise AttributeError(name) from exc


class ConfigBuilder:
    """Collects the sections of a service, loading each from the environment."""

    def __init__(self, service_name: str, *, environ: Mapping[str, str] | None = None) -> None:
        self.service_name = service_name
        self.loader = EnvironmentLoader(service_name, environ)
        self._configs: dict[str, BaseConfig] = {}

    @classmethod
    def for_service(
        cls, service_name: str, *, environ: Mapping[str, str] | None = None
    ) -> ConfigBuilder:
        return cls(service_name, environ=environ)

    def add_config(self, name: str, config_class: type[BaseConfig]) -> ConfigBuilder:
        self._configs[name] = self.loader.load_config(config_class)
        return self

    def load(self) -> ServiceConfig:
        return ServiceConfig(service_name=self.service_name, configs=dict(self._configs))


def validate_url(value: str) -> bool:
    """True for http(s) URLs."""
    return bool(_URL_RE.match(value))


__all__ = [
    "BaseConfig",
    "ConfigBuilder",
    "EnvironmentLoader",
    "FieldDefinition",
    "LoggingConfig",
    "RequiredFieldError",
    "ServiceConfig",
    "ValidationError",
    "validate_url",
]
