"""Accounting period helpers (month halves, a.k.a. quincenas)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal

Quincena = Literal[1, 2]

FIRST_QUINCENA_LAST_DAY = 15


def quincena_for(moment: date) -> Quincena:
    """Return 1 for days 1-15 of the month and 2 for the rest.

    ``datetime`` values are accepted as well; their day-of-month is used as-is,
    so convert to the reference timezone before calling.
    """

    return 1 if moment.day <= FIRST_QUINCENA_LAST_DAY else 2


@dataclass(frozen=True, slots=True)
class AccountingPeriod:
    """Calendar fields stored alongside each expense."""

    year: int
    month: int
    day: int
    quincena: Quincena


def accounting_period(moment: date) -> AccountingPeriod:
    return AccountingPeriod(
        year=moment.year,
        month=moment.month,
        day=moment.day,
        quincena=quincena_for(moment),
    )


__all__ = ["AccountingPeriod", "Quincena", "accounting_period", "quincena_for"]
