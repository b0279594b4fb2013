"""SQLite-backed expense repository for local runs and tests."""

from __future__ import annotations

import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from gastos_bot import get_logger
from gastos_bot.models import ExpenseRecord
from gastos_bot.storage.base import ExpenseStorageError

LOGGER = get_logger("storage.sqlite")

# document key -> column name
_COLUMNS: dict[str, str] = {
    "fechaServidor": "fecha_servidor",
    "lugar": "lugar",
    "monto": "monto",
    "moneda": "moneda",
    "userWaId": "user_wa_id",
    "raw": "raw",
    "fuente": "fuente",
    "year": "year",
    "mes": "mes",
    "dia": "dia",
    "quincena": "quincena",
    "createdAt": "created_at",
}
_TIMESTAMP_KEYS = ("fechaServidor", "createdAt")


class SQLiteExpenseRepository:
    """Stores one row per expense in a ``gastos`` table."""

    def __init__(self, db_path: str | Path, *, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            self._db_path,
            timeout=timeout,
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        # One connection is shared by every webhook thread.
        self._lock = threading.Lock()
        self._initialize_schema()

    def close(self) -> None:
        """Close the underlying SQLite connection."""

        with self._lock:
            self._conn.close()

    def add(self, record: ExpenseRecord) -> str:
        """Insert the record and return its row id as a string."""

        document = record.to_document()
        document["createdAt"] = datetime.now(UTC).replace(microsecond=0)
        columns = [_COLUMNS[key] for key in document]
        values = [self._to_column_value(value) for value in document.values()]
        placeholders = ", ".join("?" for _ in columns)
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    f"INSERT INTO gastos ({', '.join(columns)}) VALUES ({placeholders})",
                    values,
                )
                row_id = str(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise ExpenseStorageError(f"Failed to store expense: {exc}") from exc
        LOGGER.debug("Stored expense id=%s sender=%s", row_id, record.sender_id)
        return row_id

    def list_for_period(
        self,
        *,
        year: int,
        month: int,
        quincena: int,
        sender_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return the documents stored for one quincena, oldest first."""

        query = "SELECT * FROM gastos WHERE year = ? AND mes = ? AND quincena = ?"
        params: list[Any] = [year, month, quincena]
        if sender_id is not None:
            query += " AND user_wa_id = ?"
            params.append(sender_id)
        query += " ORDER BY fecha_servidor ASC, id ASC"
        try:
            with self._lock:
                rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise ExpenseStorageError(f"Failed to query expenses: {exc}") from exc
        return [self._row_to_document(row) for row in rows]

    def _initialize_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS gastos (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    fecha_servidor TEXT NOT NULL,
                    lugar TEXT NOT NULL,
                    monto REAL NOT NULL,
                    moneda TEXT NOT NULL,
                    user_wa_id TEXT NOT NULL,
                    raw TEXT NOT NULL,
                    fuente TEXT NOT NULL,
                    year INTEGER NOT NULL,
                    mes INTEGER NOT NULL,
                    dia INTEGER NOT NULL,
                    quincena INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_gastos_period
                ON gastos(year, mes, quincena, user_wa_id)
                """
            )

    @staticmethod
    def _to_column_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> dict[str, Any]:
        document: dict[str, Any] = {"id": str(row["id"])}
        for key, column in _COLUMNS.items():
            document[key] = row[column]
        for key in _TIMESTAMP_KEYS:
            document[key] = datetime.fromisoformat(document[key])
        return document


__all__ = ["SQLiteExpenseRepository"]
