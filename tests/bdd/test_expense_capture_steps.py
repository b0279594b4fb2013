from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from gastos_bot.graph import FORMAT_ERROR_PROMPT, IngestionState, build_ingestion_graph
from gastos_bot.integrations.ingestion import ingest_message
from gastos_bot.storage import SQLiteExpenseRepository

from .feature_registry import materialize_inline_feature

FEATURE_TEXT = """
Feature: Capture an expense from a chat message
  Lucía keeps track of household spending per quincena by texting the bot
  "lugar monto [moneda]" and expects every valid message to be saved once.

  Background:
    Given the bot stores expenses in "USD" by default

  Scenario: A pharmacy purchase late on the 15th lands in the first quincena
    Given it is "2025-03-15 23:10" in Panama
    When Lucía sends "Farmacia 12,30"
    Then the bot replies "✅ Guardado: farmacia – 12.30 USD"
    And 1 expense is stored for 2025-03 quincena 1
    And the stored expense keeps the original text "Farmacia 12,30"

  Scenario: An explicit currency overrides the default
    Given it is "2025-03-16 08:00" in Panama
    When Lucía sends "taxi 5 eur"
    Then the bot replies "✅ Guardado: taxi – 5.00 EUR"
    And 1 expense is stored for 2025-03 quincena 2

  Scenario: A message without an amount is rejected
    Given it is "2025-03-16 08:00" in Panama
    When Lucía sends "supermercado"
    Then the bot replies with the format help
    And 0 expenses are stored for 2025-03 quincena 2
"""


FEATURE_PATH = materialize_inline_feature(
    __file__, "test_expense_capture.feature", FEATURE_TEXT
)
scenarios(str(FEATURE_PATH), features_base_dir=str(FEATURE_PATH.parent))

PANAMA = ZoneInfo("America/Panama")
SENDER_ID = "50760000000"


@dataclass
class CaptureScenarioState:
    """Real graph and SQLite store wired with a frozen clock."""

    repository: SQLiteExpenseRepository
    default_currency: str = "USD"
    now: datetime | None = None
    results: list[IngestionState] = field(default_factory=list)

    def send(self, settings, text: str) -> IngestionState:
        if self.now is None:
            pytest.fail("Scenario must set the current time first.")
        moment = self.now
        graph = build_ingestion_graph(
            settings=settings, repository=self.repository, clock=lambda: moment
        )
        result = ingest_message(graph, sender_id=SENDER_ID, source="whatsapp-cloud", text=text)
        self.results.append(result)
        return result

    @property
    def last_reply(self) -> str | None:
        assert self.results, "No message was sent."
        return self.results[-1].reply_text


@pytest.fixture
def capture_state(tmp_path):
    repository = SQLiteExpenseRepository(tmp_path / "gastos.sqlite")
    yield CaptureScenarioState(repository=repository)
    repository.close()


@given(parsers.parse('the bot stores expenses in "{currency}" by default'))
def given_default_currency(capture_state: CaptureScenarioState, currency: str) -> None:
    capture_state.default_currency = currency


@given(parsers.parse('it is "{moment}" in Panama'))
def given_current_time(capture_state: CaptureScenarioState, moment: str) -> None:
    capture_state.now = datetime.strptime(moment, "%Y-%m-%d %H:%M").replace(tzinfo=PANAMA)


@when(parsers.parse('Lucía sends "{text}"'))
def when_user_sends(capture_state: CaptureScenarioState, make_settings, text: str) -> None:
    settings = make_settings(DEFAULT_CURRENCY=capture_state.default_currency)
    capture_state.send(settings, text)


@then(parsers.parse('the bot replies "{reply}"'))
def then_bot_replies(capture_state: CaptureScenarioState, reply: str) -> None:
    assert capture_state.last_reply == reply


@then("the bot replies with the format help")
def then_bot_replies_format_help(capture_state: CaptureScenarioState) -> None:
    assert capture_state.last_reply == FORMAT_ERROR_PROMPT


@then(
    parsers.re(
        r"(?P<count>\d+) expenses? (?:is|are) stored for "
        r"(?P<year>\d{4})-(?P<month>\d{2}) quincena (?P<quincena>[12])"
    )
)
def then_expenses_stored(
    capture_state: CaptureScenarioState, count: str, year: str, month: str, quincena: str
) -> None:
    stored = capture_state.repository.list_for_period(
        year=int(year), month=int(month), quincena=int(quincena), sender_id=SENDER_ID
    )
    assert len(stored) == int(count)


@then(parsers.parse('the stored expense keeps the original text "{text}"'))
def then_raw_text_kept(capture_state: CaptureScenarioState, text: str) -> None:
    stored = capture_state.repository.list_for_period(
        year=capture_state.now.year,
        month=capture_state.now.month,
        quincena=1 if capture_state.now.day <= 15 else 2,
    )
    assert [document["raw"] for document in stored] == [text]
