"""Transport adapters for WhatsApp Cloud API and Telegram."""

from .ingestion import IngestionGraph, ingest_message
from .telegram import (
    MiddlewareCallable,
    create_application,
    handle_expense_message,
    handle_help,
    register_handler,
    set_ingestion_graph,
)
from .telegram_auth import TelegramAuthorizationMiddleware
from .webhook import create_webhook_app
from .whatsapp import (
    InboundMessage,
    WhatsAppClient,
    WhatsAppClientError,
    iter_inbound_messages,
    verify_subscription,
)

__all__ = [
    "InboundMessage",
    "IngestionGraph",
    "MiddlewareCallable",
    "TelegramAuthorizationMiddleware",
    "WhatsAppClient",
    "WhatsAppClientError",
    "create_application",
    "create_webhook_app",
    "handle_expense_message",
    "handle_help",
    "ingest_message",
    "iter_inbound_messages",
    "register_handler",
    "set_ingestion_graph",
    "verify_subscription",
]
