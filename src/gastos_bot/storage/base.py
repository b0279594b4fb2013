"""Repository contract shared by the expense storage backends."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from gastos_bot.models import ExpenseRecord


class ExpenseStorageError(RuntimeError):
    """Raised when an expense cannot be written to or read from storage."""


@runtime_checkable
class ExpenseRepository(Protocol):
    """Persistence operations the ingestion graph relies on."""

    def add(self, record: ExpenseRecord) -> str:
        """Persist the record and return the backend document id."""

    def list_for_period(
        self,
        *,
        year: int,
        month: int,
        quincena: int,
        sender_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return stored documents for one quincena, oldest first."""


__all__ = ["ExpenseRepository", "ExpenseStorageError"]
