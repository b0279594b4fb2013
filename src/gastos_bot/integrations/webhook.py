"""Flask application serving the WhatsApp Cloud API webhook.

Routes:
- GET  /          - ping
- GET  /webhook   - Meta subscription verification (hub.* query params)
- POST /webhook   - inbound WhatsApp messages
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app, request

from gastos_bot import get_logger
from gastos_bot.config import Settings
from gastos_bot.graph import USAGE_PROMPT
from gastos_bot.integrations.ingestion import IngestionGraph, ingest_message
from gastos_bot.integrations.whatsapp import (
    InboundMessage,
    WhatsAppClient,
    WhatsAppClientError,
    iter_inbound_messages,
    verify_subscription,
)

LOGGER = get_logger("integrations.webhook")
EXTENSION_KEY = "gastos_bot"
SOURCE = "whatsapp-cloud"


@dataclass(slots=True)
class WebhookContext:
    """Collaborators shared by every webhook request."""

    settings: Settings
    graph: IngestionGraph
    client: WhatsAppClient


def create_webhook_app(
    *,
    settings: Settings,
    graph: IngestionGraph,
    client: WhatsAppClient,
) -> Flask:
    """Return a Flask app wired to the ingestion graph and Graph API client."""

    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = WebhookContext(
        settings=settings, graph=graph, client=client
    )
    app.add_url_rule("/", "ping", _ping, methods=["GET"])
    app.add_url_rule("/webhook", "verify_webhook", _verify_webhook, methods=["GET"])
    app.add_url_rule("/webhook", "receive_webhook", _receive_webhook, methods=["POST"])
    return app


def _context() -> WebhookContext:
    return current_app.extensions[EXTENSION_KEY]


def _ping() -> tuple[str, int]:
    return "OK - gastos-bot (WhatsApp)", 200


def _verify_webhook() -> tuple[str, int]:
    challenge = verify_subscription(
        mode=request.args.get("hub.mode"),
        token=request.args.get("hub.verify_token"),
        challenge=request.args.get("hub.challenge"),
        expected_token=_context().settings.whatsapp_verify_token,
    )
    if challenge is None:
        LOGGER.warning("Rejected webhook verification (mode=%s)", request.args.get("hub.mode"))
        return "Forbidden", 403
    return challenge, 200


def _receive_webhook() -> tuple[str, int]:
    # Always 200: Meta retries non-2xx deliveries in a loop.
    context = _context()
    payload = request.get_json(silent=True) or {}
    for message in iter_inbound_messages(payload):
        try:
            _handle_message(context, message)
        except Exception:
            LOGGER.exception(
                "Webhook error while processing WhatsApp message id=%s", message.message_id
            )
    return "OK", 200


def _handle_message(context: WebhookContext, message: InboundMessage) -> None:
    if message.text is None:
        LOGGER.debug(
            "Non-text WhatsApp message type=%s from=%s", message.message_type, message.sender_id
        )
        reply = USAGE_PROMPT
    else:
        state = ingest_message(
            context.graph,
            sender_id=message.sender_id,
            source=SOURCE,
            text=message.text,
        )
        reply = state.reply_text
    if reply:
        _send_reply(context.client, message.sender_id, reply)


def _send_reply(client: WhatsAppClient, to: str, body: str) -> None:
    try:
        client.send_text(to, body)
    except WhatsAppClientError:
        LOGGER.exception("Failed to send WhatsApp reply to=%s", to)


__all__ = ["WebhookContext", "create_webhook_app"]
