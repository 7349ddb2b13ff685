"""
Configuration module for stagekey.

Uses pydantic-settings for environment variable loading.
"""

from stagekey.config.settings import Settings

__all__ = ["Settings"]
