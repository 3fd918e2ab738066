# src/wallboard/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from wallboard.runtime.events import EventRecord

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding. Unknown types fail fast."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


def _wall_key(wall_id: int) -> str:
    """u64 wall id as fixed-width decimal text; SQLite INTEGER stops at 2**63 - 1."""
    return f"{int(wall_id):020d}"


class SqliteDB:
    """Single SQLite file holding the ledger snapshot, the event log and receipts.

    Connections are never shared between threads. Writers take BEGIN IMMEDIATE,
    which serializes instructions touching the same ledger.
    """

    SCHEMA_VERSION = 2

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        mode = (os.environ.get("WALLBOARD_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("WALLBOARD_SQLITE_SYNCHRONOUS") or default).strip().upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        timeout_s = float(_env_int("WALLBOARD_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=timeout_s,
            isolation_level=None,  # BEGIN/COMMIT managed in write_tx()
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA journal_mode=WAL;")
        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute(f"PRAGMA busy_timeout={int(timeout_s * 1000)};")
        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  height INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                  seq INTEGER PRIMARY KEY AUTOINCREMENT,
                  tx_id TEXT NOT NULL,
                  height INTEGER NOT NULL,
                  name TEXT NOT NULL,
                  wall_id TEXT NOT NULL,
                  fields_json TEXT NOT NULL,
                  data_b64 TEXT NOT NULL,
                  created_ts_ms INTEGER NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_events_wall ON events(wall_id, seq);")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS receipts (
                  tx_id TEXT PRIMARY KEY,
                  ok INTEGER NOT NULL,
                  receipt_json TEXT NOT NULL,
                  created_ts_ms INTEGER NOT NULL
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            elif str(row["value"]) != str(self.SCHEMA_VERSION):
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={row['value']} want={self.SCHEMA_VERSION}. Refuse to start."
                )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return "database is locked" in msg or "database is busy" in msg

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Write transaction with bounded retry on writer-lock contention.

        Everything executed on the yielded connection commits together or is
        rolled back together.
        """
        deadline_ts = _now_ms() + max(250, _env_int("WALLBOARD_SQLITE_WRITE_DEADLINE_MS", 30_000))
        base_sleep = 0.005
        max_sleep = 0.25

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                    time.sleep(sleep_s * (0.5 + random.random()))
                    attempt += 1

            try:
                yield con
                con.execute("COMMIT;")
            except BaseException:
                con.execute("ROLLBACK;")
                raise


class SqliteLedgerStore:
    """Ledger snapshot persisted as a single row."""

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError("sqlite ledger_state is missing")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("ledger_state is not a JSON object")
        return st

    @staticmethod
    def write_in(con: sqlite3.Connection, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        con.execute(
            """
            INSERT INTO ledger_state(id, height, state_json, updated_ts_ms)
            VALUES(1, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              height=excluded.height,
              state_json=excluded.state_json,
              updated_ts_ms=excluded.updated_ts_ms;
            """,
            (int(st.get("height", 0)), _canon_json(st), _now_ms()),
        )

    def write(self, st: Json) -> None:
        with self._db.write_tx() as con:
            self.write_in(con, st)


class SqliteEventLog:
    """Append-only event log. Sequence numbers give the total order consumers see."""

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db

    @staticmethod
    def append_in(con: sqlite3.Connection, *, tx_id: str, height: int, records: Iterable[EventRecord]) -> List[int]:
        seqs: List[int] = []
        now = _now_ms()
        for rec in records:
            cur = con.execute(
                """
                INSERT INTO events(tx_id, height, name, wall_id, fields_json, data_b64, created_ts_ms)
                VALUES(?, ?, ?, ?, ?, ?, ?);
                """,
                (str(tx_id), int(height), rec.name, _wall_key(rec.wall_id), _canon_json(rec.fields), rec.data_b64, now),
            )
            seqs.append(int(cur.lastrowid))
        return seqs

    def list(
        self,
        *,
        after: int = 0,
        wall_id: Optional[int] = None,
        name: Optional[str] = None,
        limit: int = 100,
    ) -> List[Json]:
        sql = "SELECT seq, tx_id, height, name, wall_id, fields_json, data_b64 FROM events WHERE seq > ?"
        args: List[Any] = [int(after)]
        if wall_id is not None:
            sql += " AND wall_id = ?"
            args.append(_wall_key(wall_id))
        if name:
            sql += " AND name = ?"
            args.append(str(name))
        sql += " ORDER BY seq ASC LIMIT ?;"
        args.append(max(1, min(int(limit), 1000)))

        with self._db.connection() as con:
            rows = con.execute(sql, tuple(args)).fetchall()
        return [
            {
                "seq": int(r["seq"]),
                "tx_id": str(r["tx_id"]),
                "height": int(r["height"]),
                "name": str(r["name"]),
                "wall_id": int(r["wall_id"]),
                "fields": json.loads(str(r["fields_json"])),
                "data": str(r["data_b64"]),
            }
            for r in rows
        ]


class SqliteReceiptStore:
    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db

    @staticmethod
    def put_in(con: sqlite3.Connection, *, tx_id: str, receipt: Json) -> None:
        con.execute(
            """
            INSERT INTO receipts(tx_id, ok, receipt_json, created_ts_ms) VALUES(?, ?, ?, ?)
            ON CONFLICT(tx_id) DO UPDATE SET
              ok=excluded.ok, receipt_json=excluded.receipt_json, created_ts_ms=excluded.created_ts_ms
            WHERE receipts.ok = 0;
            """,
            (str(tx_id), 1 if receipt.get("ok") else 0, _canon_json(receipt), _now_ms()),
        )

    def put(self, *, tx_id: str, receipt: Json) -> None:
        with self._db.write_tx() as con:
            self.put_in(con, tx_id=tx_id, receipt=receipt)

    def get(self, tx_id: str) -> Optional[Json]:
        with self._db.connection() as con:
            row = con.execute("SELECT receipt_json FROM receipts WHERE tx_id=? LIMIT 1;", (str(tx_id),)).fetchone()
        if row is None:
            return None
        out = json.loads(str(row["receipt_json"]))
        return out if isinstance(out, dict) else None
