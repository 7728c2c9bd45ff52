"""
Snowflake persistence for client records.

Implements the ClientRepository protocol from core.lifecycle.service.
"""

from .client import MockSnowflakeConnection, create_snowflake_connection
from .repositories.clients import SnowflakeClientRepository, SnowflakeConfig

__all__ = [
    "MockSnowflakeConnection",
    "SnowflakeClientRepository",
    "SnowflakeConfig",
    "create_snowflake_connection",
]
