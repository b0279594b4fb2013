"""Parsing helpers for the expense bot."""

from .expense import ParsedExpense, parse_expense_text
from .period import AccountingPeriod, accounting_period, quincena_for

__all__ = [
    "AccountingPeriod",
    "ParsedExpense",
    "accounting_period",
    "parse_expense_text",
    "quincena_for",
]
