# src/claimcheck/core/config.py
"""
Configuration schema and loading for claimcheck.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Strategies (blob naming, body replacement, size criteria) are runtime
bindings, not settings; they are passed to ClaimCheckClient directly.
"""

import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_MESSAGE_SIZE_THRESHOLD = 64 * 1024
DEFAULT_QUEUE_NAME = "my-queue"
DEFAULT_CONTAINER_NAME = "large-messages"

# Flat option names accepted for the nested retry block, as older
# configuration files spell them.
_FLAT_RETRY_ALIASES = {
    "retryMaxAttempts": "max_attempts",
    "retryBackoffMillis": "backoff_millis",
    "retryBackoffMultiplier": "backoff_multiplier",
    "retryMaxBackoffMillis": "max_backoff_millis",
}


class RetrySettings(BaseModel):
    """Retry behavior for blob and queue transport calls."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_attempts: int = Field(default=3, gt=0, description="Total attempts including the first")
    backoff_millis: int = Field(default=1000, ge=0, description="Delay before the second attempt")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Growth factor per attempt")
    max_backoff_millis: int = Field(default=30_000, ge=0, description="Upper bound on any single delay")


class ClientSettings(BaseModel):
    """Behavior of one ClaimCheckClient.

    Field names are snake_case; the camelCase names used by existing
    configuration files are accepted as aliases.
    """

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    message_size_threshold: int = Field(
        default=DEFAULT_MESSAGE_SIZE_THRESHOLD,
        ge=0,
        alias="messageSizeThreshold",
        description="Bodies strictly larger than this many UTF-8 bytes are offloaded",
    )
    always_through_blob: bool = Field(default=False, alias="alwaysThroughBlob")
    cleanup_blob_on_delete: bool = Field(default=True, alias="cleanupBlobOnDelete")
    blob_key_prefix: str = Field(default="", alias="blobKeyPrefix")
    retry: RetrySettings = Field(default_factory=RetrySettings)
    ignore_payload_not_found: bool = Field(default=False, alias="ignorePayloadNotFound")
    receive_only_mode: bool = Field(default=False, alias="receiveOnlyMode")
    blob_access_tier: Literal["Hot", "Cool", "Cold", "Archive"] | None = Field(default=None, alias="blobAccessTier")
    blob_ttl_days: int = Field(default=0, ge=0, alias="blobTtlDays", description="0 disables expiry metadata")
    sas_enabled: bool = Field(default=False, alias="sasEnabled")
    sas_token_validation_time: timedelta = Field(default=timedelta(days=7), alias="sasTokenValidationTime")
    tracing_enabled: bool = Field(default=True, alias="tracingEnabled")
    compression_enabled: bool = Field(default=False, alias="compressionEnabled")
    deduplication_enabled: bool = Field(default=False, alias="deduplicationEnabled")
    deduplication_cache_size: int = Field(default=10_000, gt=0, alias="deduplicationCacheSize")
    dead_letter_enabled: bool = Field(default=False, alias="deadLetterEnabled")
    dead_letter_queue_name: str = Field(default="", alias="deadLetterQueueName", description="Empty means '<queue>-dlq'")
    dead_letter_max_dequeue_count: int = Field(default=5, gt=0, alias="deadLetterMaxDequeueCount")

    @model_validator(mode="before")
    @classmethod
    def fold_flat_retry_options(cls, data: Any) -> Any:
        """Move retryMaxAttempts-style keys into the nested retry block."""
        if not isinstance(data, dict):
            return data
        flat = {alias: data[alias] for alias in _FLAT_RETRY_ALIASES if alias in data}
        if not flat:
            return data

        folded = {k: v for k, v in data.items() if k not in flat}
        retry = folded.get("retry", {})
        if isinstance(retry, RetrySettings):
            retry = retry.model_dump()
        folded["retry"] = {**retry, **{_FLAT_RETRY_ALIASES[k]: v for k, v in flat.items()}}
        return folded

    @field_validator("blob_access_tier", mode="before")
    @classmethod
    def normalize_access_tier(cls, v: Any) -> Any:
        """Accept tier names in any case ("hot", "COOL")."""
        if isinstance(v, str):
            return v.strip().capitalize() or None
        return v

    @field_validator("sas_token_validation_time")
    @classmethod
    def validate_sas_window(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("sas_token_validation_time must be positive")
        return v


_CLIENT_ALIASES = {field.alias: name for name, field in ClientSettings.model_fields.items() if field.alias}


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class LoggingSettings(BaseModel):
    """Console logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: LogLevel = Field(default="INFO")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")
    sdk_level: LogLevel = Field(
        default="WARNING",
        description="Floor for the Azure SDK, urllib3 and OpenTelemetry loggers; never below level",
    )

    @field_validator("level", "sdk_level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class ClaimCheckSettings(BaseModel):
    """Top-level configuration.

    The azure block holds AzureAuthConfig options; it is validated when the
    transports are built so that receive-only consumers and tests can load
    settings without the Azure SDK installed.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    queue_name: str = Field(default=DEFAULT_QUEUE_NAME, description="Primary queue")
    container_name: str = Field(default=DEFAULT_CONTAINER_NAME, description="Blob container for offloaded payloads")
    azure: dict[str, Any] = Field(default_factory=dict, description="Azure authentication options")
    client: ClientSettings = Field(default_factory=ClientSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("queue_name", "container_name")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @property
    def dead_letter_queue_name(self) -> str:
        """Effective dead-letter queue name."""
        return self.client.dead_letter_queue_name or f"{self.queue_name}-dlq"


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Unset variables with no default are left as-is so validation reports them.
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_upper_keys(value: Any) -> Any:
    """Lowercase ALL-CAPS keys (Dynaconf env overrides) but keep camelCase.

    ALL-CAPS keys are applied last so an env override wins over a file key
    that lowercases to the same name.
    """
    if isinstance(value, dict):
        ordered = sorted(value.items(), key=lambda item: _is_env_key(item[0]))
        return {(k.lower() if _is_env_key(k) else k): _lower_upper_keys(v) for k, v in ordered}
    return value


def _is_env_key(key: Any) -> bool:
    return isinstance(key, str) and key.isupper()


def _client_option_rank(key: Any) -> int:
    if _is_env_key(key):
        return 3
    if key in _FLAT_RETRY_ALIASES:
        return 2
    if key in _CLIENT_ALIASES:
        return 0
    return 1


def _canonical_client_options(options: dict[str, Any]) -> dict[str, Any]:
    """Rename client options to their field names before validation.

    Dynaconf keeps a file key and the CLAIMCHECK_CLIENT__* override side by
    side (messageSizeThreshold next to MESSAGE_SIZE_THRESHOLD). Precedence,
    lowest first: camelCase file keys, snake_case file keys, flat retry*
    keys, environment keys.
    """
    canonical: dict[str, Any] = {}
    for key in sorted(options, key=_client_option_rank):
        value = _lower_upper_keys(options[key])
        if key in _FLAT_RETRY_ALIASES:
            name, value = "retry", {_FLAT_RETRY_ALIASES[key]: value}
        else:
            name = _CLIENT_ALIASES.get(key, key.lower() if _is_env_key(key) else key)
        previous = canonical.get(name)
        if name == "retry" and isinstance(previous, dict) and isinstance(value, dict):
            value = {**previous, **value}
        canonical[name] = value
    return canonical


def load_settings(config_path: Path) -> ClaimCheckSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (CLAIMCHECK_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: CLAIMCHECK_CLIENT__MESSAGE_SIZE_THRESHOLD
    for nested keys.

    Raises:
        pydantic.ValidationError: If configuration fails validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="CLAIMCHECK",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    client_options = raw_config.get("client")
    if isinstance(client_options, dict):
        raw_config["client"] = _canonical_client_options(client_options)
    raw_config = _lower_upper_keys(raw_config)
    raw_config = _expand_env_vars(raw_config)

    return ClaimCheckSettings(**raw_config)
