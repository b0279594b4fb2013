"""Integration tests for the WhatsApp webhook Flask app."""

from __future__ import annotations

import pytest

from gastos_bot.graph import FORMAT_ERROR_PROMPT, USAGE_PROMPT, build_ingestion_graph
from gastos_bot.integrations.webhook import create_webhook_app
from gastos_bot.integrations.whatsapp import WhatsAppClientError
from gastos_bot.storage import SQLiteExpenseRepository


class RecordingClient:
    """Captures outbound replies instead of calling the Graph API."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self._fail = fail

    def send_text(self, to: str, body: str) -> str:
        self.sent.append((to, body))
        if self._fail:
            raise WhatsAppClientError("rate limited")
        return f"wamid.{len(self.sent)}"


class ExplodingGraph:
    def invoke(self, state):
        raise RuntimeError("graph crashed")


def _message(sender: str, body: str | None = None, *, message_type: str = "text") -> dict:
    message: dict = {"from": sender, "id": f"wamid.in.{sender}", "type": message_type}
    if body is not None:
        message["text"] = {"body": body}
    return message


def _payload(*messages: dict) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA", "changes": [{"field": "messages", "value": {"messages": list(messages)}}]}],
    }


@pytest.fixture
def repository(tmp_path):
    repo = SQLiteExpenseRepository(tmp_path / "gastos.sqlite")
    yield repo
    repo.close()


@pytest.fixture
def client_double() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def app(make_settings, repository, fixed_clock, client_double):
    settings = make_settings()
    graph = build_ingestion_graph(settings=settings, repository=repository, clock=fixed_clock)
    return create_webhook_app(settings=settings, graph=graph, client=client_double)


def test_ping(app) -> None:
    response = app.test_client().get("/")

    assert response.status_code == 200
    assert "gastos-bot" in response.get_data(as_text=True)


def test_verification_echoes_challenge(app) -> None:
    response = app.test_client().get(
        "/webhook",
        query_string={
            "hub.mode": "subscribe",
            "hub.verify_token": "verify-me",
            "hub.challenge": "1158201444",
        },
    )

    assert response.status_code == 200
    assert response.get_data(as_text=True) == "1158201444"


def test_verification_rejects_wrong_token(app) -> None:
    response = app.test_client().get(
        "/webhook",
        query_string={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
    )

    assert response.status_code == 403


def test_text_message_is_stored_and_confirmed(app, repository, client_double) -> None:
    response = app.test_client().post(
        "/webhook", json=_payload(_message("50760000000", "Super 23,50"))
    )

    assert response.status_code == 200
    assert client_double.sent == [("50760000000", "✅ Guardado: super – 23.50 USD")]
    [stored] = repository.list_for_period(year=2025, month=3, quincena=2)
    assert stored["userWaId"] == "50760000000"
    assert stored["fuente"] == "whatsapp-cloud"
    assert stored["raw"] == "Super 23,50"


def test_invalid_text_gets_format_help(app, repository, client_double) -> None:
    response = app.test_client().post("/webhook", json=_payload(_message("507", "hola")))

    assert response.status_code == 200
    assert client_double.sent == [("507", FORMAT_ERROR_PROMPT)]
    assert repository.list_for_period(year=2025, month=3, quincena=2) == []


def test_non_text_message_gets_usage_prompt(app, client_double) -> None:
    response = app.test_client().post(
        "/webhook", json=_payload(_message("507", message_type="image"))
    )

    assert response.status_code == 200
    assert client_double.sent == [("507", USAGE_PROMPT)]


def test_every_message_in_a_batch_is_processed(app, repository, client_double) -> None:
    app.test_client().post(
        "/webhook",
        json=_payload(_message("1", "taxi 5"), _message("2", "cine 8 eur")),
    )

    assert [to for to, _ in client_double.sent] == ["1", "2"]
    assert len(repository.list_for_period(year=2025, month=3, quincena=2)) == 2


@pytest.mark.parametrize(
    "body",
    [
        {"object": "whatsapp_business_account", "entry": [{"changes": [{"value": {"statuses": []}}]}]},
        {},
        None,
    ],
)
def test_events_without_messages_are_acknowledged(app, client_double, body) -> None:
    client = app.test_client()
    if body is None:
        response = client.post("/webhook", data="not json", content_type="text/plain")
    else:
        response = client.post("/webhook", json=body)

    assert response.status_code == 200
    assert client_double.sent == []


def test_send_failures_still_acknowledge(make_settings, repository, fixed_clock) -> None:
    settings = make_settings()
    failing = RecordingClient(fail=True)
    graph = build_ingestion_graph(settings=settings, repository=repository, clock=fixed_clock)
    app = create_webhook_app(settings=settings, graph=graph, client=failing)

    response = app.test_client().post("/webhook", json=_payload(_message("507", "super 10")))

    assert response.status_code == 200
    assert len(failing.sent) == 1
    assert len(repository.list_for_period(year=2025, month=3, quincena=2)) == 1


def test_processing_errors_still_acknowledge(make_settings, client_double) -> None:
    app = create_webhook_app(
        settings=make_settings(), graph=ExplodingGraph(), client=client_double
    )

    response = app.test_client().post(
        "/webhook",
        json=_payload(_message("1", "super 10"), _message("2", message_type="image")),
    )

    assert response.status_code == 200
    assert client_double.sent == [("2", USAGE_PROMPT)]
