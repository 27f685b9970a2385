"""
SQLite lead store using aiosqlite for async I/O.

Provides:
- Lead persistence including the deep dive status fields and JSON result blob
- Signal and communication history
- Social profiles with a unique (lead_id, profile_type, url) index

Database file: data/deep_dive.db (see Settings.resolved_database_path)
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from deep_dive.core.exceptions import DatabaseError
from deep_dive.core.logging import get_logger
from deep_dive.database.models import Communication, Lead, Signal, SocialProfile, utc_now
from deep_dive.database.store import LeadStore

logger = get_logger(__name__)

LEAD_COLUMNS = (
    "organization_id",
    "name",
    "platform",
    "handle",
    "role",
    "country",
    "notes",
    "category",
    "website",
    "email",
    "deep_dive_status",
    "deep_dive_error",
    "deep_dive_last_run_at",
    "deep_dive_data",
    "created_at",
)


def _dump_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class SQLiteLeadStore(LeadStore):
    """
    Async SQLite lead store.

    Usage:
        store = SQLiteLeadStore(Path("data/deep_dive.db"))
        await store.connect()
        lead = await store.save_lead(Lead(name="Avery Lin"))
        profiles = await store.list_social_profiles(lead.id)
        await store.disconnect()
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or Path("data/deep_dive.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection and create schema if needed."""
        try:
            self._db = await aiosqlite.connect(str(self.db_path))
            self._db.row_factory = aiosqlite.Row
            await self._create_schema()
            logger.info("sqlite_connected", path=str(self.db_path))
        except Exception as e:
            raise DatabaseError("sqlite", "connect", str(e)) from e

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    async def _create_schema(self) -> None:
        assert self._db is not None
        await self._db.executescript("""
            CREATE TABLE IF NOT EXISTS leads (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                organization_id INTEGER,
                name TEXT NOT NULL,
                platform TEXT,
                handle TEXT,
                role TEXT,
                country TEXT,
                notes TEXT,
                category TEXT,
                website TEXT,
                email TEXT,
                deep_dive_status TEXT NOT NULL DEFAULT 'idle',
                deep_dive_error TEXT,
                deep_dive_last_run_at TIMESTAMP,
                deep_dive_data TEXT NOT NULL DEFAULT '{}',
                created_at TIMESTAMP NOT NULL
            );

            CREATE TABLE IF NOT EXISTS signals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                lead_id INTEGER NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
                source TEXT,
                author_name TEXT,
                author_handle TEXT,
                title TEXT,
                content TEXT,
                url TEXT,
                captured_at TIMESTAMP NOT NULL,
                created_at TIMESTAMP NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_signals_lead_captured
                ON signals(lead_id, captured_at);

            CREATE TABLE IF NOT EXISTS communications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                lead_id INTEGER NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
                channel TEXT,
                summary TEXT,
                notes TEXT,
                link TEXT,
                occurred_at TIMESTAMP NOT NULL,
                created_at TIMESTAMP NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_communications_lead_occurred
                ON communications(lead_id, occurred_at);

            CREATE TABLE IF NOT EXISTS social_profiles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                lead_id INTEGER NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
                profile_type TEXT NOT NULL,
                url TEXT NOT NULL,
                handle TEXT,
                source TEXT NOT NULL DEFAULT 'deep_dive',
                notes TEXT,
                metadata TEXT NOT NULL DEFAULT '{}',
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_social_profiles_identity
                ON social_profiles(lead_id, profile_type, url);
        """)
        await self._db.commit()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise DatabaseError("sqlite", "query", "store is not connected")
        return self._db

    # ── Leads ────────────────────────────────────────────────────

    async def get_lead(self, lead_id: int) -> Lead | None:
        db = self._conn()
        async with db.execute("SELECT * FROM leads WHERE id = ?", (lead_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        data = dict(row)
        data["deep_dive_data"] = json.loads(data["deep_dive_data"] or "{}")
        return Lead.model_validate(data)

    async def save_lead(self, lead: Lead) -> Lead:
        db = self._conn()
        values: list[Any] = [
            lead.organization_id,
            lead.name,
            lead.platform,
            lead.handle,
            lead.role,
            lead.country,
            lead.notes,
            lead.category,
            lead.website,
            lead.email,
            lead.deep_dive_status.value,
            lead.deep_dive_error,
            _dump_time(lead.deep_dive_last_run_at),
            json.dumps(lead.deep_dive_data, default=str),
            _dump_time(lead.created_at),
        ]
        try:
            if lead.id is None:
                placeholders = ", ".join("?" for _ in LEAD_COLUMNS)
                cursor = await db.execute(
                    f"INSERT INTO leads ({', '.join(LEAD_COLUMNS)}) VALUES ({placeholders})",
                    values,
                )
                lead.id = cursor.lastrowid
            else:
                assignments = ", ".join(f"{column} = ?" for column in LEAD_COLUMNS)
                await db.execute(
                    f"UPDATE leads SET {assignments} WHERE id = ?",
                    [*values, lead.id],
                )
            await db.commit()
        except aiosqlite.Error as e:
            raise DatabaseError("sqlite", "save_lead", str(e)) from e
        return lead

    # ── History ──────────────────────────────────────────────────

    async def add_signal(self, signal: Signal) -> Signal:
        db = self._conn()
        try:
            cursor = await db.execute(
                """INSERT INTO signals
                   (lead_id, source, author_name, author_handle, title, content, url,
                    captured_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    signal.lead_id,
                    signal.source,
                    signal.author_name,
                    signal.author_handle,
                    signal.title,
                    signal.content,
                    signal.url,
                    _dump_time(signal.captured_at),
                    _dump_time(signal.created_at),
                ),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise DatabaseError("sqlite", "add_signal", str(e)) from e
        signal.id = cursor.lastrowid
        return signal

    async def add_communication(self, communication: Communication) -> Communication:
        db = self._conn()
        try:
            cursor = await db.execute(
                """INSERT INTO communications
                   (lead_id, channel, summary, notes, link, occurred_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    communication.lead_id,
                    communication.channel,
                    communication.summary,
                    communication.notes,
                    communication.link,
                    _dump_time(communication.occurred_at),
                    _dump_time(communication.created_at),
                ),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise DatabaseError("sqlite", "add_communication", str(e)) from e
        communication.id = cursor.lastrowid
        return communication

    async def list_signals(self, lead_id: int, limit: int) -> list[Signal]:
        db = self._conn()
        async with db.execute(
            "SELECT * FROM signals WHERE lead_id = ? ORDER BY captured_at DESC LIMIT ?",
            (lead_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [Signal.model_validate(dict(row)) for row in rows]

    async def list_communications(self, lead_id: int, limit: int) -> list[Communication]:
        db = self._conn()
        async with db.execute(
            "SELECT * FROM communications WHERE lead_id = ? ORDER BY occurred_at DESC LIMIT ?",
            (lead_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [Communication.model_validate(dict(row)) for row in rows]

    # ── Social profiles ──────────────────────────────────────────

    async def list_social_profiles(self, lead_id: int) -> list[SocialProfile]:
        db = self._conn()
        async with db.execute(
            "SELECT * FROM social_profiles WHERE lead_id = ? ORDER BY id",
            (lead_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        profiles = []
        for row in rows:
            data = dict(row)
            data["metadata"] = json.loads(data["metadata"] or "{}")
            profiles.append(SocialProfile.model_validate(data))
        return profiles

    async def save_social_profile(self, profile: SocialProfile) -> SocialProfile:
        db = self._conn()
        profile.updated_at = utc_now()
        metadata = json.dumps(profile.metadata, default=str)
        try:
            if profile.id is None:
                cursor = await db.execute(
                    """INSERT INTO social_profiles
                       (lead_id, profile_type, url, handle, source, notes, metadata,
                        created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        profile.lead_id,
                        profile.profile_type,
                        profile.url,
                        profile.handle,
                        profile.source,
                        profile.notes,
                        metadata,
                        _dump_time(profile.created_at),
                        _dump_time(profile.updated_at),
                    ),
                )
                profile.id = cursor.lastrowid
            else:
                await db.execute(
                    """UPDATE social_profiles
                       SET profile_type = ?, url = ?, handle = ?, source = ?, notes = ?,
                           metadata = ?, updated_at = ?
                       WHERE id = ?""",
                    (
                        profile.profile_type,
                        profile.url,
                        profile.handle,
                        profile.source,
                        profile.notes,
                        metadata,
                        _dump_time(profile.updated_at),
                        profile.id,
                    ),
                )
            await db.commit()
        except aiosqlite.Error as e:
            raise DatabaseError("sqlite", "save_social_profile", str(e)) from e
        return profile

    async def delete_social_profile(self, profile_id: int) -> None:
        db = self._conn()
        try:
            await db.execute("DELETE FROM social_profiles WHERE id = ?", (profile_id,))
            await db.commit()
        except aiosqlite.Error as e:
            raise DatabaseError("sqlite", "delete_social_profile", str(e)) from e
