"""
Snowflake repository for client records.

Each client is one row. The full snapshot lives in a VARIANT column as
a JSON document; the fields list views need (name, status toggle,
current end date, follow-up day) are copied into plain columns next to
it so dashboards can read summaries without pulling whole histories.

Derived status is never stored. Only the facts it's derived from are.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

from coachdesk.core.lifecycle.errors import ClientNotFound
from coachdesk.core.lifecycle.models import (
    ClientEntity,
    ClientSummary,
    FollowUpDay,
    FollowUpEntry,
    OnboardingState,
    PauseRecord,
    ProgressEntry,
    RawStatus,
    SubscriptionPeriod,
)


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "COACHDESK"
    schema: str = "LIFECYCLE"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


SNAPSHOT_COLUMNS = "snapshot"
SUMMARY_COLUMNS = (
    "code, name, mobile_number, onboarding_state, activated_at, "
    "raw_status, end_date, follow_up_day"
)

# Instants are TIMESTAMP_TZ. A bare TIMESTAMP defaults to TIMESTAMP_NTZ,
# which drops the offset and reads back naive.
CLIENTS_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS clients (
        code INTEGER NOT NULL PRIMARY KEY,
        name VARCHAR NOT NULL,
        mobile_number VARCHAR NOT NULL,
        onboarding_state VARCHAR NOT NULL,
        activated_at TIMESTAMP_TZ,
        raw_status VARCHAR NOT NULL,
        end_date TIMESTAMP_TZ,
        follow_up_day VARCHAR,
        snapshot VARIANT NOT NULL,
        created_at TIMESTAMP_TZ NOT NULL,
        updated_at TIMESTAMP_TZ
    )
"""


class SnowflakeClientRepository:
    """
    Client persistence backed by a single `clients` table.

    Implements the ClientRepository protocol the lifecycle service
    depends on:
    - save_client: upsert the whole snapshot (last write wins)
    - get_client: load one snapshot by code
    - list_clients: every snapshot, ordered by code
    - list_summaries: the lightweight projection for lists
    - next_code: the next free client code
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def create_table(self) -> None:
        """Create the clients table if it isn't there yet."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(CLIENTS_TABLE_DDL)
            self._conn.commit()
            logger.info("Clients table ready")
        finally:
            cursor.close()

    def save_client(self, client: ClientEntity) -> None:
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                MERGE INTO clients AS target
                USING (
                    SELECT %s AS code, %s AS name, %s AS mobile_number,
                           %s AS onboarding_state, %s AS activated_at,
                           %s AS raw_status, %s AS end_date, %s AS follow_up_day,
                           %s AS snapshot, %s AS created_at
                ) AS source
                ON target.code = source.code
                WHEN MATCHED THEN UPDATE SET
                    name = source.name,
                    mobile_number = source.mobile_number,
                    onboarding_state = source.onboarding_state,
                    activated_at = source.activated_at,
                    raw_status = source.raw_status,
                    end_date = source.end_date,
                    follow_up_day = source.follow_up_day,
                    snapshot = PARSE_JSON(source.snapshot),
                    updated_at = CURRENT_TIMESTAMP()
                WHEN NOT MATCHED THEN INSERT (
                    code, name, mobile_number, onboarding_state, activated_at,
                    raw_status, end_date, follow_up_day, snapshot, created_at,
                    updated_at
                ) VALUES (
                    source.code, source.name, source.mobile_number,
                    source.onboarding_state, source.activated_at, source.raw_status,
                    source.end_date, source.follow_up_day,
                    PARSE_JSON(source.snapshot), source.created_at,
                    CURRENT_TIMESTAMP()
                )
            """, (
                client.code,
                client.name,
                client.mobile_number,
                client.onboarding_state.value,
                _utc(client.activated_at),
                client.raw_status.value,
                _utc(client.end_date),
                client.follow_up_day.value if client.follow_up_day else None,
                json.dumps(client_to_document(client)),
                _utc(client.created_at),
            ))

            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to save client",
                extra={"client_code": client.code, "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def get_client(self, code: int) -> ClientEntity:
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                f"SELECT {SNAPSHOT_COLUMNS} FROM clients WHERE code = %s",
                (code,),
            )
            row = cursor.fetchone()
            if not row:
                raise ClientNotFound(f"Client {code} not found", code)

            document = self._parse_variant_json(row[0])
            if document is None:
                raise ValueError(f"Client {code} has an unreadable snapshot")
            return client_from_document(document)

        finally:
            cursor.close()

    def list_clients(self) -> list[ClientEntity]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"SELECT {SNAPSHOT_COLUMNS} FROM clients ORDER BY code")
            clients = []
            for row in cursor.fetchall():
                document = self._parse_variant_json(row[0])
                if document is None:
                    logger.warning("Skipping client row with empty snapshot")
                    continue
                clients.append(client_from_document(document))
            return clients

        finally:
            cursor.close()

    def list_summaries(self) -> list[ClientSummary]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"SELECT {SUMMARY_COLUMNS} FROM clients ORDER BY code")
            return [self._build_summary(row) for row in cursor.fetchall()]

        finally:
            cursor.close()

    def next_code(self) -> int:
        cursor = self._conn.cursor()

        try:
            cursor.execute("SELECT COALESCE(MAX(code), 0) + 1 FROM clients")
            row = cursor.fetchone()
            return int(row[0]) if row else 1

        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _build_summary(self, row) -> ClientSummary:
        return ClientSummary(
            code=int(row[0]),
            name=row[1],
            mobile_number=row[2],
            onboarding_state=OnboardingState(row[3]),
            activated_at=_as_datetime(row[4]),
            raw_status=RawStatus(row[5]),
            end_date=_as_datetime(row[6]),
            follow_up_day=FollowUpDay(row[7]) if row[7] else None,
        )

    def _parse_variant_json(self, variant_data):
        """
        Parse Snowflake VARIANT data that might be a string or already parsed.

        snowflake-connector-python returns VARIANT as a JSON string; the
        mock connection hands back whatever was stored.
        """
        if not variant_data:
            return None

        if isinstance(variant_data, str):
            try:
                return json.loads(variant_data)
            except json.JSONDecodeError as e:
                logger.error(
                    "Failed to parse VARIANT JSON string",
                    extra={"variant_data": variant_data[:100], "error": str(e)}
                )
                return None

        return variant_data


# ---------------------------------------------------------------------------
# Snapshot documents
# ---------------------------------------------------------------------------

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return value.astimezone(timezone.utc) if value is not None else None


def _as_datetime(value) -> Optional[datetime]:
    """
    A stored instant as an aware datetime.

    Naive values (TIMESTAMP_NTZ columns, offset-less ISO strings) were
    written as UTC.
    """
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def client_to_document(client: ClientEntity) -> dict[str, Any]:
    """Flatten a client snapshot into JSON-safe primitives."""
    return {
        "code": client.code,
        "name": client.name,
        "mobile_number": client.mobile_number,
        "notes": client.notes,
        "onboarding_state": client.onboarding_state.value,
        "initial_plan_days": client.initial_plan_days,
        "created_at": _iso(client.created_at),
        "activated_at": _iso(client.activated_at),
        "raw_status": client.raw_status.value,
        "subscriptions": [
            {
                "plan_duration_days": period.plan_duration_days,
                "extra_days": period.extra_days,
                "start_date": _iso(period.start_date),
                "end_date": _iso(period.end_date),
                "created_at": _iso(period.created_at),
            }
            for period in client.subscriptions
        ],
        "pause_entries": [
            {
                "timestamp": _iso(record.timestamp),
                "duration_days": record.duration_days,
                "reason": record.reason,
                "resumed": record.resumed,
            }
            for record in client.pause_entries
        ],
        "total_paused_seconds": client.total_paused_duration.total_seconds(),
        "follow_up_day": client.follow_up_day.value if client.follow_up_day else None,
        "follow_up_history": [
            {
                "timestamp": _iso(entry.timestamp),
                "follow_up_day": entry.follow_up_day.value,
                "done": entry.done,
                "notes": entry.notes,
            }
            for entry in client.follow_up_history
        ],
        "progress": [
            {
                "timestamp": _iso(entry.timestamp),
                "weight_kg": entry.weight_kg,
                "neck_inch": entry.neck_inch,
                "chest_inch": entry.chest_inch,
                "waist_inch": entry.waist_inch,
                "hips_inch": entry.hips_inch,
                "thigh_inch": entry.thigh_inch,
            }
            for entry in client.progress
        ],
    }


def client_from_document(doc: dict[str, Any]) -> ClientEntity:
    """Rebuild a client snapshot from its stored document."""
    return ClientEntity(
        code=int(doc["code"]),
        name=doc["name"],
        mobile_number=doc["mobile_number"],
        notes=doc.get("notes", ""),
        onboarding_state=OnboardingState(doc["onboarding_state"]),
        initial_plan_days=doc.get("initial_plan_days"),
        created_at=_as_datetime(doc["created_at"]),
        activated_at=_as_datetime(doc.get("activated_at")),
        raw_status=RawStatus(doc.get("raw_status", RawStatus.ACTIVE.value)),
        subscriptions=tuple(
            SubscriptionPeriod(
                plan_duration_days=int(item["plan_duration_days"]),
                extra_days=int(item["extra_days"]),
                start_date=_as_datetime(item["start_date"]),
                end_date=_as_datetime(item["end_date"]),
                created_at=_as_datetime(item["created_at"]),
            )
            for item in doc.get("subscriptions", [])
        ),
        pause_entries=tuple(
            PauseRecord(
                timestamp=_as_datetime(item["timestamp"]),
                duration_days=int(item["duration_days"]),
                reason=item["reason"],
                resumed=bool(item["resumed"]),
            )
            for item in doc.get("pause_entries", [])
        ),
        total_paused_duration=timedelta(seconds=doc.get("total_paused_seconds", 0)),
        follow_up_day=FollowUpDay(doc["follow_up_day"]) if doc.get("follow_up_day") else None,
        follow_up_history=tuple(
            FollowUpEntry(
                timestamp=_as_datetime(item["timestamp"]),
                follow_up_day=FollowUpDay(item["follow_up_day"]),
                done=bool(item["done"]),
                notes=item.get("notes", ""),
            )
            for item in doc.get("follow_up_history", [])
        ),
        progress=tuple(
            ProgressEntry(
                timestamp=_as_datetime(item["timestamp"]),
                weight_kg=item["weight_kg"],
                neck_inch=item["neck_inch"],
                chest_inch=item["chest_inch"],
                waist_inch=item["waist_inch"],
                hips_inch=item["hips_inch"],
                thigh_inch=item["thigh_inch"],
            )
            for item in doc.get("progress", [])
        ),
    )
