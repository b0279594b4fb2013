"""Expense storage backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ExpenseRepository, ExpenseStorageError
from .sqlite import SQLiteExpenseRepository

if TYPE_CHECKING:
    from gastos_bot.config import Settings


def create_expense_repository(settings: "Settings") -> ExpenseRepository:
    """Return the repository selected by ``STORAGE_BACKEND``."""

    if settings.storage_backend == "sqlite":
        return SQLiteExpenseRepository(settings.expenses_db)
    from .firestore import FirestoreExpenseRepository

    return FirestoreExpenseRepository.from_settings(settings)


__all__ = [
    "ExpenseRepository",
    "ExpenseStorageError",
    "SQLiteExpenseRepository",
    "create_expense_repository",
]
