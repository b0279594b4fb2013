"""Expense message parsing for "lugar monto [moneda]" chat messages."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

_AMOUNT_PATTERN = re.compile(r"^-?[0-9]+(?:\.[0-9]+)?$")
_CURRENCY_PATTERN = re.compile(r"^[a-z]{3}$")

REQUIRED_FIELDS = ("label", "amount")


@dataclass(frozen=True, slots=True)
class ParsedExpense:
    """Structured representation of a parsed expense message."""

    raw_text: str
    label: str | None
    amount: float | None
    currency: str

    @property
    def missing_fields(self) -> frozenset[str]:
        """Required fields the message did not provide."""
        return frozenset(
            field for field in REQUIRED_FIELDS if getattr(self, field) is None
        )

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields


def parse_expense_text(
    message: str | None,
    *,
    default_currency: str,
) -> ParsedExpense:
    """Split a chat message into label, amount and currency.

    Tokens are scanned left to right. The first token shaped like a decimal
    number becomes the amount and the first 3-letter word becomes the currency;
    everything else, including later numbers and 3-letter words, is kept as
    label text in its original order. Commas are always read as decimal points,
    so ``"12,30"`` is ``12.3`` and ``"1,234"`` is ``1.234``.

    The parser never raises: messages missing a label or an amount come back
    with those fields set to ``None`` and the caller decides what to do.
    """

    raw_text = (message or "").strip()
    if not raw_text:
        return ParsedExpense(
            raw_text=raw_text,
            label=None,
            amount=None,
            currency=default_currency.upper(),
        )

    normalized = raw_text.replace(",", ".").lower()

    amount: float | None = None
    currency: str | None = None
    fragments: list[str] = []
    for token in normalized.split():
        if amount is None and _AMOUNT_PATTERN.match(token):
            amount = float(token)
            continue
        if currency is None and _CURRENCY_PATTERN.match(token):
            currency = token.upper()
            continue
        fragments.append(token)

    label = " ".join(fragments).strip() or None
    if amount is not None and not math.isfinite(amount):
        amount = None

    return ParsedExpense(
        raw_text=raw_text,
        label=label,
        amount=amount,
        currency=(currency or default_currency).upper(),
    )


__all__ = ["ParsedExpense", "REQUIRED_FIELDS", "parse_expense_text"]
