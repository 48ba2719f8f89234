"""
Global configuration for the dhook client.

Defaults follow Discord's documented and observed limits, so most applications
never need to configure anything. Call DHOOK.configure() at application
startup to change them.

Hierarchy of precedence (highest to lowest):
1. ClientOptions passed to the Client constructor
2. Values set via DHOOK.configure()
3. Environment variables (DHOOK_*) - when allow_env_override=True
4. Hardcoded defaults (in dataclass fields)

Example:
    >>> from dhook import DHOOK
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> timeout = DHOOK.config.webhook.http_timeout
    >>>
    >>> # Custom configuration
    >>> DHOOK.configure(
    ...     webhook={"http_timeout": 10.0},
    ...     rate_limit={"webhook_max_requests": 5, "webhook_time_window": 2.0},
    ... )
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any, Self

# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Environment Variables
# =============================================================================


class EnvVars:
    """
    Utility class for reading environment variables with type conversion.

    Example:
        >>> EnvVars.get("DHOOK_WEBHOOK_HTTP_TIMEOUT", type_hint=float)
        30.0
        >>> EnvVars.get("UNDEFINED_VAR", type_hint=int)
        None
    """

    @staticmethod
    def get(var_name: str, type_hint: Any) -> Any:
        """
        Read an environment variable converted to the type of a config field.

        Args:
            var_name: The environment variable name.
            type_hint: Field type (`int` or `float`), also as a string annotation.

        Returns:
            The converted value, or None if env var is not set/empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:
            return None

        converter = EnvVars._infer_converter(type_hint)
        try:
            return converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        """
        Infer converter function from type hint.

        Handles both actual types and string annotations (PEP 563).
        Config fields are either `int` or `float`.
        """
        if type_hint is int or str(type_hint) == "int":
            return int
        return float


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration dataclasses.

    Provides `.with_overrides()` for creating new instances with partial
    field updates and `.with_env_vars()` for applying the environment
    variables declared in the field metadata.

    Example:
        >>> config = WebhookConfig()
        >>> custom = config.with_overrides({"http_timeout": 10.0})
        >>> custom.http_timeout
        10.0
    """

    def with_overrides(self, overrides: dict[str, Any]) -> Self:
        """
        Return a new instance with specified fields overridden.

        None values are ignored.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields

        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        filtered = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return new instance with environment variables applied.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if env_var:
                value = EnvVars.get(var_name=env_var, type_hint=f.type)
                if value is not None:
                    overrides[f.name] = value
        return self.with_overrides(overrides)

    def _require_positive(self, section: str, *names: str) -> None:
        for name in names:
            value = getattr(self, name)
            if value <= 0:
                raise ConfigValidationError(name, value, "Must be greater than 0.", section=section)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class WebhookConfig(OverridableConfig):
    """
    Configuration for webhook requests.

    Attributes:
        http_timeout: Timeout in seconds for a single HTTP request to Discord.
            Env var: DHOOK_WEBHOOK_HTTP_TIMEOUT

        retry_after_default: Cooldown in seconds applied after an HTTP 429
            response without a valid Retry-After header.
            Env var: DHOOK_WEBHOOK_RETRY_AFTER_DEFAULT

    Example:
        >>> from dhook import DHOOK
        >>> DHOOK.config.webhook.http_timeout
        30.0
    """

    http_timeout: float = field(default=30.0, metadata={"env": "DHOOK_WEBHOOK_HTTP_TIMEOUT"})
    retry_after_default: float = field(default=60.0, metadata={"env": "DHOOK_WEBHOOK_RETRY_AFTER_DEFAULT"})

    def validate(self) -> Self:
        """Validate webhook configuration fields."""
        self._require_positive("webhook", "http_timeout", "retry_after_default")
        return self


@dataclass(frozen=True)
class RateLimitConfig(OverridableConfig):
    """
    Configuration of the fixed rate limits respected by the client.

    The global limit is shared by all webhooks of a Client, the webhook limit
    applies to each webhook separately. The dynamic per-route limit is taken
    from the response headers and needs no configuration.

    Attributes:
        global_max_requests: Requests allowed per global time window.
            Env var: DHOOK_RATE_LIMIT_GLOBAL_MAX_REQUESTS

        global_time_window: Global time window in seconds.
            Env var: DHOOK_RATE_LIMIT_GLOBAL_TIME_WINDOW

        webhook_max_requests: Requests allowed per webhook time window.
            Env var: DHOOK_RATE_LIMIT_WEBHOOK_MAX_REQUESTS

        webhook_time_window: Webhook time window in seconds.
            Env var: DHOOK_RATE_LIMIT_WEBHOOK_TIME_WINDOW

    Example:
        >>> from dhook import DHOOK
        >>> DHOOK.config.rate_limit.global_max_requests
        50
    """

    global_max_requests: int = field(default=50, metadata={"env": "DHOOK_RATE_LIMIT_GLOBAL_MAX_REQUESTS"})
    global_time_window: float = field(default=1.0, metadata={"env": "DHOOK_RATE_LIMIT_GLOBAL_TIME_WINDOW"})
    webhook_max_requests: int = field(default=30, metadata={"env": "DHOOK_RATE_LIMIT_WEBHOOK_MAX_REQUESTS"})
    webhook_time_window: float = field(default=60.0, metadata={"env": "DHOOK_RATE_LIMIT_WEBHOOK_TIME_WINDOW"})

    def validate(self) -> Self:
        """Validate rate limit configuration fields."""
        self._require_positive(
            "rate_limit",
            "global_max_requests",
            "global_time_window",
            "webhook_max_requests",
            "webhook_time_window",
        )
        return self


@dataclass(frozen=True)
class DhookConfig:
    """
    Global configuration for the dhook client.

    Access via the global `DHOOK.config` property.

    Attributes:
        webhook: Webhook request configuration.
        rate_limit: Fixed rate limit configuration.
    """

    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    def with_env_vars(self) -> DhookConfig:
        """Return a new config with DHOOK_* environment variables applied on top."""
        return DhookConfig(
            webhook=self.webhook.with_env_vars(),
            rate_limit=self.rate_limit.with_env_vars(),
        )

    def with_section_overrides(
        self,
        *,
        webhook: dict[str, Any] | None = None,
        rate_limit: dict[str, Any] | None = None,
    ) -> DhookConfig:
        """Return a new config with overrides applied to nested sections."""
        return DhookConfig(
            webhook=self.webhook.with_overrides(webhook or {}),
            rate_limit=self.rate_limit.with_overrides(rate_limit or {}),
        )


# =============================================================================
# Global Configuration Singleton
# =============================================================================


class _DHOOK:
    """
    Singleton for client configuration.

    Use `DHOOK.configure()` to customize settings and `DHOOK.config`
    to access current configuration.

    Example:
        >>> from dhook import DHOOK
        >>> DHOOK.configure(webhook={"http_timeout": 10.0})
        >>> print(DHOOK.config.webhook.http_timeout)
    """

    def __init__(self) -> None:
        self._config: DhookConfig = DhookConfig().with_env_vars()

    def configure(
        self,
        *,
        webhook: dict[str, Any] | None = None,
        rate_limit: dict[str, Any] | None = None,
        allow_env_override: bool = True,
    ) -> DhookConfig:
        """
        Configure client settings.

        Only affects clients created after this call.

        Args:
            webhook: Webhook config overrides (http_timeout, retry_after_default).
            rate_limit: Rate limit config overrides.
            allow_env_override: If True (default), env vars are used as fallback
                for fields NOT provided. If False, ignores env vars entirely.

        Returns:
            The configured DhookConfig instance.

        Raises:
            ValueError: If any dict contains unknown field names.
            ConfigValidationError: If any config value fails validation.
        """
        base = DhookConfig()
        if allow_env_override:
            base = base.with_env_vars()

        self._config = base.with_section_overrides(webhook=webhook, rate_limit=rate_limit)
        return self.validate()

    @property
    def config(self) -> DhookConfig:
        """Access current configuration (read-only)."""
        return self._config

    def reset(self) -> DhookConfig:
        """
        Reset configuration to defaults + env vars.

        Useful for testing to ensure clean state between tests.
        """
        self._config = DhookConfig().with_env_vars()
        return self.validate()

    def validate(self) -> DhookConfig:
        """
        Validate current configuration.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config.webhook.validate()
        self._config.rate_limit.validate()
        return self._config

    def __repr__(self) -> str:
        return f"DHOOK(config={self._config!r})"


# Global singleton instance - always reflects current configuration
DHOOK: _DHOOK = _DHOOK()
DHOOK.validate()
