"""
Snowflake connections for the client table.

Two ways to get a connection:
- get_snowflake_connection: a real snowflake-connector-python connection
- MockSnowflakeConnection: an in-memory stand-in for dev, tests and CI

Callers don't touch either directly. They hand the connection to
SnowflakeClientRepository, which owns the SQL.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from .repositories.clients import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """The client table can't be reached with the configured credentials."""
    pass


def _read_private_key(key_path: str) -> bytes:
    """
    Read a PEM private key and return it as unencrypted PKCS8 DER.

    The connector's `private_key` argument takes DER bytes, not a path.
    """
    from cryptography.hazmat.primitives import serialization

    with open(key_path, "rb") as handle:
        key = serialization.load_pem_private_key(handle.read(), password=None)

    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _connect_kwargs(config: SnowflakeConfig) -> dict[str, Any]:
    """Connector arguments for `config`. Key-pair auth wins over password."""
    kwargs: dict[str, Any] = {
        "account": config.account,
        "user": config.user,
        "database": config.database,
        "schema": config.schema,
        "warehouse": config.warehouse,
        "role": config.role,
    }

    if config.private_key_path:
        kwargs["private_key"] = _read_private_key(config.private_key_path)
        auth = "key_pair"
    elif config.password:
        kwargs["password"] = config.password
        auth = "password"
    else:
        raise SnowflakeConnectionError(
            "Snowflake needs a password or a private key path"
        )

    logger.info("Snowflake credentials loaded", extra={"auth": auth, "account": config.account})
    return kwargs


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Open a connection for one unit of work and close it afterwards.

        with get_snowflake_connection(config) as conn:
            repository = SnowflakeClientRepository(conn)
    """
    import snowflake.connector

    kwargs = _connect_kwargs(config)
    try:
        conn = snowflake.connector.connect(**kwargs)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Could not connect to Snowflake",
            extra={"account": config.account, "error": str(e)}
        )
        raise SnowflakeConnectionError(f"Could not connect to Snowflake: {e}") from e

    logger.debug(
        "Snowflake connection open",
        extra={"database": config.database, "schema": config.schema},
    )
    try:
        yield conn
    finally:
        conn.close()
        logger.debug("Snowflake connection closed")


# ---------------------------------------------------------------------------
# In-memory connection
# ---------------------------------------------------------------------------

# Column order of the MERGE source row in SnowflakeClientRepository.save_client
_ROW_FIELDS = (
    "code", "name", "mobile_number", "onboarding_state", "activated_at",
    "raw_status", "end_date", "follow_up_day", "snapshot", "created_at",
)

# Column order of SUMMARY_COLUMNS
_SUMMARY_FIELDS = _ROW_FIELDS[:8]


class MockSnowflakeCursor:
    """
    Cursor over a dict of client rows.

    Recognises the handful of statements SnowflakeClientRepository
    issues by their shape. Anything else returns no rows.
    """

    def __init__(self, rows: dict[int, dict]) -> None:
        self._rows = rows
        self._results: list[tuple] = []
        self._rowcount = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> "MockSnowflakeCursor":
        statement = " ".join(query.upper().split())
        logger.debug("Mock cursor execute", extra={"statement": statement[:80]})

        self._results = []
        self._rowcount = 0
        if statement.startswith("MERGE INTO CLIENTS"):
            self._upsert(params or ())
        elif statement.startswith("SELECT"):
            self._results = self._select(statement, params or ())
        return self

    def _upsert(self, params: tuple) -> None:
        row = dict(zip(_ROW_FIELDS, params))
        self._rows[int(row["code"])] = row
        self._rowcount = 1

    def _select(self, statement: str, params: tuple) -> list[tuple]:
        if "MAX(CODE)" in statement:
            return [(max(self._rows, default=0) + 1,)]

        if statement.startswith("SELECT SNAPSHOT"):
            if "WHERE CODE" in statement:
                row = self._rows.get(int(params[0]))
                return [(row["snapshot"],)] if row else []
            return [(self._rows[code]["snapshot"],) for code in sorted(self._rows)]

        if statement.startswith("SELECT CODE, NAME"):
            return [
                tuple(self._rows[code][field] for field in _SUMMARY_FIELDS)
                for code in sorted(self._rows)
            ]

        return []

    def fetchone(self) -> Optional[tuple]:
        return self._results[0] if self._results else None

    def fetchall(self) -> list[tuple]:
        return list(self._results)

    def close(self) -> None:
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


class MockSnowflakeConnection:
    """
    Keeps the clients table in a dict for the life of the object.

    The API reuses one instance across requests in mock mode, so data
    lasts until the process exits.
    """

    def __init__(self) -> None:
        self._clients: dict[int, dict] = {}
        logger.info("Using in-memory client table (Snowflake mock mode)")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self._clients)

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    def close(self) -> None:
        pass

    # Test helpers
    def _get_row(self, code: int) -> Optional[dict]:
        return self._clients.get(code)

    def _clear(self) -> None:
        self._clients.clear()


@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """A real connection, or a throwaway in-memory one in mock mode."""
    if mock_mode:
        yield MockSnowflakeConnection()
        return

    if config is None:
        raise ValueError("config is required when not in mock mode")

    with get_snowflake_connection(config) as conn:
        yield conn
