"""Ingestion state model for the LangGraph pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from gastos_bot.models import ExpenseRecord, MessageSource
from gastos_bot.parsing import ParsedExpense

IngestionStatus = Literal["pending", "saved", "invalid", "failed"]


@dataclass(slots=True)
class IngestionState:
    """LangGraph state for a single inbound chat message."""

    sender_id: str = ""
    source: MessageSource = "whatsapp-cloud"
    pending_message: str | None = None
    parsed: ParsedExpense | None = None
    record: ExpenseRecord | None = None
    record_id: str | None = None
    status: IngestionStatus = "pending"
    reply_text: str | None = None
    error_log: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        """Add a human-readable error entry."""
        if message:
            self.error_log.append(message)


__all__ = [
    "IngestionState",
    "IngestionStatus",
]
