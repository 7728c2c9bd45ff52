"""
Settings for the API, the lifecycle rules and Snowflake.

Loaded from environment variables or .env with pydantic-settings.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
