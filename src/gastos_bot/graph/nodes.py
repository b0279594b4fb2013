"""LangGraph node helpers for the expense ingestion flow."""

from __future__ import annotations

from datetime import datetime

from gastos_bot import get_logger
from gastos_bot.graph.state import IngestionState
from gastos_bot.models import ExpenseRecord
from gastos_bot.parsing import ParsedExpense, parse_expense_text
from gastos_bot.storage import ExpenseRepository, ExpenseStorageError

LOGGER = get_logger("graph.nodes")

USAGE_PROMPT = "Envíame el gasto como: 'lugar monto' (ej: super 23.50 USD)"
FORMAT_ERROR_PROMPT = (
    "Formato inválido. Usa: 'lugar monto' (ej: farmacia 12,30). "
    "Moneda opcional: '5 USD'."
)
STORAGE_ERROR_REPLY = "No pude guardar el gasto en este momento. Intenta de nuevo."


def format_amount(amount: float) -> str:
    """Two decimals with comma thousands grouping, e.g. ``1,234.50``."""
    return f"{amount:,.2f}"


def format_confirmation(record: ExpenseRecord) -> str:
    return f"✅ Guardado: {record.label} – {format_amount(record.amount)} {record.currency}"


def parse_inbound_message(
    state: IngestionState,
    *,
    message: str,
    default_currency: str,
) -> ParsedExpense:
    """Parse the pending message and flag the attempt invalid when incomplete."""

    parsed = parse_expense_text(message, default_currency=default_currency)
    state.parsed = parsed
    state.record = None
    state.record_id = None

    if not parsed.is_complete:
        LOGGER.debug(
            "parse_inbound_message missing fields: %s", sorted(parsed.missing_fields)
        )
        state.status = "invalid"
        state.reply_text = FORMAT_ERROR_PROMPT
        return parsed

    state.status = "pending"
    return parsed


def build_expense_record(
    state: IngestionState,
    *,
    server_timestamp: datetime,
) -> ExpenseRecord:
    """Stamp the parsed expense with server time and its accounting period."""

    if state.parsed is None or not state.parsed.is_complete:
        raise ValueError("Cannot build an expense record from an incomplete parse.")
    record = ExpenseRecord.from_parsed(
        state.parsed,
        sender_id=state.sender_id,
        source=state.source,
        server_timestamp=server_timestamp,
    )
    state.record = record
    return record


def persist_expense_record(
    state: IngestionState,
    *,
    repository: ExpenseRepository,
) -> str | None:
    """Store the record and set the confirmation (or failure) reply."""

    record = state.record
    if record is None:
        raise ValueError("Cannot persist without an expense record.")

    try:
        record_id = repository.add(record)
    except ExpenseStorageError as exc:
        LOGGER.exception("Failed to store expense for sender=%s", state.sender_id)
        state.record_error(str(exc))
        state.status = "failed"
        state.reply_text = STORAGE_ERROR_REPLY
        return None

    state.record_id = record_id
    state.status = "saved"
    state.reply_text = format_confirmation(record)
    LOGGER.info(
        "Saved expense id=%s sender=%s quincena=%s",
        record_id,
        state.sender_id,
        record.quincena,
    )
    return record_id


__all__ = [
    "FORMAT_ERROR_PROMPT",
    "STORAGE_ERROR_REPLY",
    "USAGE_PROMPT",
    "build_expense_record",
    "format_amount",
    "format_confirmation",
    "parse_inbound_message",
    "persist_expense_record",
]
