"""Engine configuration for shellgate.

Provides EngineSettings, the read-only key-value store the execution
engine consumes (default timeout, cache capacities, performance mode).

Settings Management:
    The module provides both global singleton and context-based settings:

    1. Global singleton (simple cases):
        set_settings(my_settings)
        settings = get_settings()

    2. Context-based (isolated contexts, tests):
        with SettingsContext(my_settings):
            settings = get_settings()  # Returns my_settings

Settings Loading Priority (highest to lowest):
    1. Constructor arguments
    2. Environment variables (SHELLGATE_* prefix)
    3. Project config (./.shellgate/settings.yaml)
    4. User config (~/.shellgate/settings.yaml)
    5. .env file
    6. Default values
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Generator, Tuple, Type

import yaml
from pydantic import ValidationError
from pydantic_settings import (
    BaseSettings as PydanticBaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from shellgate.logging import Loggers
from shellgate.settings_mixins import ExecutionSettingsMixin, LoggingSettingsMixin

__all__ = [
    "EngineSettings",
    "SettingsContext",
    "SettingsValidationError",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "get_context_settings",
    "load_settings_file",
    "update_settings",
    "validate_settings",
    "reload_settings",
]

APP_DIR_NAME = ".shellgate"
SETTINGS_FILE_NAME = "settings.yaml"

logger = Loggers.config()


class SettingsValidationError(Exception):
    """Raised when settings validation fails."""

    pass


def _get_yaml_config_source(
    settings_cls: Type[PydanticBaseSettings],
    yaml_file: Path,
) -> PydanticBaseSettingsSource | None:
    """Create a YAML config source if the file exists.

    Args:
        settings_cls: The settings class
        yaml_file: Path to YAML config file

    Returns:
        YamlConfigSettingsSource if file exists, None otherwise
    """
    if not yaml_file.is_file():
        return None
    return YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)


class EngineSettings(ExecutionSettingsMixin, LoggingSettingsMixin, PydanticBaseSettings):
    """Settings for the safe command-execution engine.

    Mixins provide organized settings:
    - ExecutionSettingsMixin: Timeout, caches, shell, performance mode
    - LoggingSettingsMixin: Log level and format
    """

    model_config = SettingsConfigDict(
        env_prefix="SHELLGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[PydanticBaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources for layered YAML configuration.

        Note: YAML sources are only included if the files exist.
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
        ]

        project_yaml = _get_yaml_config_source(
            settings_cls,
            Path.cwd() / APP_DIR_NAME / SETTINGS_FILE_NAME,
        )
        if project_yaml:
            sources.append(project_yaml)

        user_yaml = _get_yaml_config_source(
            settings_cls,
            Path.home() / APP_DIR_NAME / SETTINGS_FILE_NAME,
        )
        if user_yaml:
            sources.append(user_yaml)

        sources.append(dotenv_settings)

        return tuple(sources)


def load_settings_file(path: Path | str) -> EngineSettings:
    """Load settings from an explicit YAML file.

    Values in the file take precedence over environment variables.
    A missing file yields the default settings.

    Args:
        path: Path to YAML configuration file.

    Returns:
        EngineSettings instance.

    Raises:
        SettingsValidationError: If the file content is invalid.
    """
    path = Path(path)
    if not path.exists():
        return EngineSettings()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise SettingsValidationError(f"Settings file {path} must contain a mapping")

    try:
        return EngineSettings(**data)
    except ValidationError as e:
        raise SettingsValidationError(str(e)) from e


def update_settings(settings: EngineSettings, **changes: Any) -> EngineSettings:
    """Return a validated copy of settings with some values changed.

    Unknown keys are rejected rather than silently ignored.

    Args:
        settings: Settings to start from.
        **changes: Field values to change.

    Returns:
        New EngineSettings instance.

    Raises:
        SettingsValidationError: On unknown keys or invalid values.
    """
    unknown = sorted(set(changes) - set(EngineSettings.model_fields))
    if unknown:
        raise SettingsValidationError(
            f"Unknown configuration key(s): {', '.join(unknown)}"
        )

    data = settings.model_dump()
    data.update(changes)
    try:
        updated = EngineSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsValidationError(str(e)) from e

    for key, value in changes.items():
        logger.debug("configuration_updated", key=key, value=value)
    return updated


# Context variable for settings (takes precedence over global singleton)
_settings_context: ContextVar[EngineSettings | None] = ContextVar(
    "settings_context", default=None
)

# Global settings instance holder (fallback when no context)
_settings_instance: EngineSettings | None = None


def get_settings() -> EngineSettings:
    """Get the current settings instance.

    Settings resolution order:
    1. Context variable (set via SettingsContext or set_context_settings)
    2. Global singleton (set via set_settings)
    3. Fresh EngineSettings instance (created on first access)

    Returns:
        EngineSettings instance for the current context
    """
    context_settings = _settings_context.get()
    if context_settings is not None:
        return context_settings

    global _settings_instance
    if _settings_instance is None:
        _settings_instance = EngineSettings()
    return _settings_instance


def set_settings(settings: EngineSettings) -> None:
    """Set the global settings instance.

    Note: For isolated contexts (e.g., testing), prefer using
    SettingsContext instead.

    Args:
        settings: Settings instance to use globally
    """
    global _settings_instance
    _settings_instance = settings


def set_context_settings(settings: EngineSettings | None) -> Token:
    """Set settings for the current context.

    Args:
        settings: Settings to use in current context, or None to clear

    Returns:
        Token that can be used to reset the context variable.
    """
    return _settings_context.set(settings)


def get_context_settings() -> EngineSettings | None:
    """Get settings from current context (if any)."""
    return _settings_context.get()


@contextmanager
def SettingsContext(settings: EngineSettings) -> Generator[EngineSettings, None, None]:
    """Context manager for isolated settings.

    Example:
        with SettingsContext(test_settings) as s:
            engine = SafeExecEngine()  # Engine picks up test_settings

    Args:
        settings: Settings to use within the context

    Yields:
        The settings instance
    """
    token = _settings_context.set(settings)
    try:
        yield settings
    finally:
        _settings_context.reset(token)


def reload_settings() -> EngineSettings:
    """Reload settings (clears global singleton and context cache).

    Returns:
        Fresh EngineSettings instance
    """
    global _settings_instance
    _settings_instance = None
    _settings_context.set(None)
    return get_settings()


def validate_settings(settings: EngineSettings) -> None:
    """Validate settings for runtime use.

    Performs validation that can only be done at runtime:
    - The configured shell is installed
    - At least one timeout helper name is configured

    Args:
        settings: Settings to validate

    Raises:
        SettingsValidationError: If validation fails
    """
    errors = []

    if not settings.shell_available():
        errors.append(f"Configured shell '{settings.shell}' was not found on PATH.")

    if not any(helper.strip() for helper in settings.timeout_helpers):
        errors.append(
            "No timeout helpers configured; commands would run without a time bound."
        )

    if errors:
        raise SettingsValidationError("\n".join(errors))
