"""Domain models shared by the ingestion graph and the storage backends."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from gastos_bot.parsing import ParsedExpense, accounting_period

MessageSource = Literal["whatsapp-cloud", "telegram"]


@dataclass(frozen=True, slots=True)
class ExpenseRecord:
    """Expense ready to be persisted, stamped with server time and period."""

    server_timestamp: datetime
    label: str
    amount: float
    currency: str
    sender_id: str
    raw_text: str
    source: MessageSource
    year: int
    month: int
    day: int
    quincena: int

    def __post_init__(self) -> None:
        if self.server_timestamp.tzinfo is None:
            raise ValueError("server_timestamp must be timezone-aware.")
        if not self.label:
            raise ValueError("Expense label cannot be blank.")
        if not self.sender_id:
            raise ValueError("Expense sender_id cannot be blank.")

    @classmethod
    def from_parsed(
        cls,
        parsed: ParsedExpense,
        *,
        sender_id: str,
        source: MessageSource,
        server_timestamp: datetime,
    ) -> "ExpenseRecord":
        """Build a record from a complete parse and a reference-timezone timestamp."""

        if parsed.label is None or parsed.amount is None:
            raise ValueError(
                f"Parsed expense is missing {sorted(parsed.missing_fields)}."
            )
        period = accounting_period(server_timestamp)
        return cls(
            server_timestamp=server_timestamp,
            label=parsed.label,
            amount=parsed.amount,
            currency=parsed.currency,
            sender_id=sender_id,
            raw_text=parsed.raw_text,
            source=source,
            year=period.year,
            month=period.month,
            day=period.day,
            quincena=period.quincena,
        )

    def to_document(self) -> dict[str, Any]:
        """Render the storage document using the established field names."""

        return {
            "fechaServidor": self.server_timestamp,
            "lugar": self.label,
            "monto": self.amount,
            "moneda": self.currency,
            "userWaId": self.sender_id,
            "raw": self.raw_text,
            "fuente": self.source,
            "year": self.year,
            "mes": self.month,
            "dia": self.day,
            "quincena": self.quincena,
        }


__all__ = ["ExpenseRecord", "MessageSource"]
