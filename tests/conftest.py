"""
Shared pytest fixtures for stagekey tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import stagekey.config as config
import stagekey.converters as converters
import stagekey.keys as keys
import stagekey.runtime as runtime

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "STAGEKEY_LOG_LEVEL",
    "STAGEKEY_MODULE_NAME",
    "STAGEKEY_RUNTIME_MODULE",
    "STAGEKEY_ALLOW_UNKNOWN",
    "STAGEKEY_ENV_PREFIX",
    "STAGEKEY_ENV_FILE",
    "APP_PORT",
    "APP_DEBUG",
]


# =============================================================================
# Registry Isolation
# =============================================================================


@_pytest.fixture(autouse=True)
def fresh_registry() -> _typing.Iterator[keys.KeyRegistry]:
    """
    Give every test its own default key registry and no runtime keys.

    Key names are process-wide, so without this two tests declaring `port`
    would collide.
    """
    registry = keys.KeyRegistry()
    previous = keys.set_default_registry(registry)
    runtime.reset()
    try:
        yield registry
    finally:
        keys.set_default_registry(previous)
        runtime.reset()


# =============================================================================
# Environment Isolation
# =============================================================================


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """
    Return environment dict with test-related keys removed.

    Use with mock.patch.dict to isolate tests from the actual environment.
    """
    return {k: v for k, v in _os.environ.items() if k not in ENV_KEYS_TO_CLEAR}


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]):
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def clean_settings(isolated_env) -> config.Settings:
    """Settings instance isolated from environment and .env file."""
    with isolated_env:
        return config.Settings.construct_without_dotenv()


# =============================================================================
# Sample Keys
# =============================================================================


@_pytest.fixture
def port() -> keys.Key[int]:
    """`port`: int, default 8080, both stages."""
    return keys.create("port", converters.INT, doc="Listening port.", default=8080)


@_pytest.fixture
def buffer_size() -> keys.Key[int]:
    """`buffer_size`: int, default 1024, both stages."""
    return keys.create("buffer_size", converters.INT, doc="Buffer size in bytes.", default=1024)


@_pytest.fixture
def fast(buffer_size: keys.Key[int]) -> keys.Key[bool]:
    """Proxy `fast` that sets `buffer_size` to 65536."""
    return keys.proxy(
        "fast",
        doc="Tune for throughput.",
        setters=keys.Setters().add(buffer_size, lambda _on: 65536),
    )
