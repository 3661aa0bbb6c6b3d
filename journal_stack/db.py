from __future__ import annotations

import sqlite3
from typing import Any

from .config import JournalConfig
from .models import Discovery, NewDiscovery
from .utils import now_millis


def connect_sqlite(cfg: JournalConfig) -> sqlite3.Connection:
    cfg.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    # The async store hands this connection to worker threads one call at a time.
    conn = sqlite3.connect(cfg.sqlite_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS discoveries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id TEXT NOT NULL,
            name TEXT NOT NULL,
            fact TEXT NOT NULL,
            image_path TEXT NOT NULL,
            captured_at INTEGER NOT NULL,
            created_at INTEGER NOT NULL,
            category TEXT NOT NULL DEFAULT 'Flower',
            location TEXT NOT NULL DEFAULT '',
            notes TEXT NOT NULL DEFAULT ''
        );

        CREATE INDEX IF NOT EXISTS idx_discoveries_owner_captured
            ON discoveries (owner_id, captured_at DESC);
        """
    )

    # Journals created before category/location/notes existed
    _migrations = [
        "ALTER TABLE discoveries ADD COLUMN category TEXT NOT NULL DEFAULT 'Flower'",
        "ALTER TABLE discoveries ADD COLUMN location TEXT NOT NULL DEFAULT ''",
        "ALTER TABLE discoveries ADD COLUMN notes TEXT NOT NULL DEFAULT ''",
    ]
    for stmt in _migrations:
        try:
            conn.execute(stmt)
        except sqlite3.OperationalError:
            pass

    conn.commit()


def row_to_discovery(row: sqlite3.Row) -> Discovery:
    return Discovery(
        id=int(row["id"]),
        owner_id=row["owner_id"],
        name=row["name"],
        fact=row["fact"],
        image_path=row["image_path"],
        category=row["category"],
        captured_at=int(row["captured_at"]),
        created_at=int(row["created_at"]),
        location=row["location"] or "",
        notes=row["notes"] or "",
    )


def _payload(record: NewDiscovery | Discovery) -> dict[str, Any]:
    created_at = record.created_at if record.created_at is not None else now_millis()
    return {
        "id": getattr(record, "id", None),
        "owner_id": record.owner_id,
        "name": record.name,
        "fact": record.fact,
        "image_path": record.image_path,
        "captured_at": int(record.captured_at),
        "created_at": int(created_at),
        "category": record.category,
        "location": record.location or "",
        "notes": record.notes or "",
    }


def insert_discovery(conn: sqlite3.Connection, record: NewDiscovery | Discovery) -> int:
    if not record.owner_id:
        raise ValueError("owner_id must not be empty")
    cur = conn.execute(
        """
        INSERT INTO discoveries (
            id,owner_id,name,fact,image_path,captured_at,created_at,category,location,notes
        ) VALUES (
            :id,:owner_id,:name,:fact,:image_path,:captured_at,:created_at,:category,:location,:notes
        )
        ON CONFLICT(id) DO UPDATE SET
            owner_id=excluded.owner_id,
            name=excluded.name,
            fact=excluded.fact,
            image_path=excluded.image_path,
            captured_at=excluded.captured_at,
            created_at=excluded.created_at,
            category=excluded.category,
            location=excluded.location,
            notes=excluded.notes
        """,
        _payload(record),
    )
    conn.commit()
    record_id = getattr(record, "id", None)
    return int(record_id) if record_id is not None else int(cur.lastrowid)


def get_discovery_by_id(conn: sqlite3.Connection, discovery_id: int) -> Discovery | None:
    row = conn.execute("SELECT * FROM discoveries WHERE id = ? LIMIT 1", (int(discovery_id),)).fetchone()
    return row_to_discovery(row) if row else None


def get_owner_of(conn: sqlite3.Connection, discovery_id: int) -> str | None:
    row = conn.execute("SELECT owner_id FROM discoveries WHERE id = ?", (int(discovery_id),)).fetchone()
    return row["owner_id"] if row else None


def update_discovery(conn: sqlite3.Connection, record: Discovery) -> int:
    cur = conn.execute(
        """
        UPDATE discoveries SET
            owner_id=:owner_id, name=:name, fact=:fact, image_path=:image_path,
            captured_at=:captured_at, created_at=:created_at, category=:category,
            location=:location, notes=:notes
        WHERE id=:id
        """,
        _payload(record),
    )
    conn.commit()
    return cur.rowcount


def delete_discovery_by_id(conn: sqlite3.Connection, discovery_id: int) -> int:
    cur = conn.execute("DELETE FROM discoveries WHERE id = ?", (int(discovery_id),))
    conn.commit()
    return cur.rowcount


def delete_discoveries_by_owner(conn: sqlite3.Connection, owner_id: str) -> int:
    cur = conn.execute("DELETE FROM discoveries WHERE owner_id = ?", (owner_id,))
    conn.commit()
    return cur.rowcount


def list_discoveries_by_owner(conn: sqlite3.Connection, owner_id: str) -> list[Discovery]:
    rows = conn.execute(
        "SELECT * FROM discoveries WHERE owner_id = ? ORDER BY captured_at DESC, id DESC",
        (owner_id,),
    ).fetchall()
    return [row_to_discovery(r) for r in rows]
