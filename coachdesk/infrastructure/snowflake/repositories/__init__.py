"""Snowflake-backed repositories. Currently just the client table."""

from .clients import SnowflakeClientRepository

__all__ = ["SnowflakeClientRepository"]
