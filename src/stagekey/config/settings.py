"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with STAGEKEY_ prefix
3. .env file named by STAGEKEY_ENV_FILE (if set and present)

These settings drive the front-end (logging, generated module layout,
resolver defaults). Keys themselves are declared in code, not here.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import stagekey.emitter as emitter


def _get_env_file() -> str | None:
    """Return STAGEKEY_ENV_FILE if it names an existing file."""
    if env_file := _os.environ.get("STAGEKEY_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


class Settings(_pydantic_settings.BaseSettings):
    """
    stagekey front-end settings.

    All settings can be overridden via environment variables with the
    STAGEKEY_ prefix, e.g. STAGEKEY_LOG_LEVEL=debug.
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="STAGEKEY_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: _typing.Literal["debug", "info", "warning", "error"] = "warning"
    """Root log level for the command-line front-end."""

    module_name: str = emitter.MODULE_NAME
    """Name of the generated key module."""

    runtime_module: str = emitter.RUNTIME_MODULE
    """Import path generated code uses for runtime support."""

    allow_unknown: bool = False
    """Ignore options no key claims instead of failing."""

    env_prefix: str | None = None
    """Derive an env-var fallback (PREFIX + NAME) for keys that declare none."""

    @_pydantic.field_validator("log_level", mode="before")
    @classmethod
    def _lower_log_level(cls, value: _typing.Any) -> _typing.Any:
        return value.lower() if isinstance(value, str) else value

    @_pydantic.field_validator("module_name")
    @classmethod
    def _check_module_name(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"module_name must be a Python identifier, got {value!r}")
        return value

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation and CI environments.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]
