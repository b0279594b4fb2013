"""CLI entrypoint for the expense bot."""

from __future__ import annotations

import argparse
from typing import Sequence
from urllib.parse import urlparse

from telegram.ext import CommandHandler, MessageHandler, filters

from gastos_bot import get_logger, set_log_level
from gastos_bot.config import Settings, get_settings
from gastos_bot.graph import build_ingestion_graph
from gastos_bot.integrations import (
    WhatsAppClient,
    create_application,
    create_webhook_app,
    handle_expense_message,
    handle_help,
    register_handler,
    set_ingestion_graph,
)

LOGGER = get_logger("app")
HELP_COMMANDS = ("start", "ayuda")


class _Channel:
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"


class _TelegramMode:
    POLLING = "polling"
    WEBHOOK = "webhook"


def _register_telegram_handlers(application) -> None:
    register_handler(application, CommandHandler(list(HELP_COMMANDS), handle_help))
    register_handler(
        application,
        MessageHandler(filters.TEXT & ~filters.COMMAND, handle_expense_message),
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the expense bot on the WhatsApp Cloud API webhook or Telegram."
    )
    parser.add_argument(
        "--channel",
        choices=(_Channel.WHATSAPP, _Channel.TELEGRAM),
        default=_Channel.WHATSAPP,
        help="Messaging channel to serve (default: whatsapp).",
    )
    parser.add_argument(
        "--listen",
        default="0.0.0.0",
        help="IP address or host to listen on for webhook servers.",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="TCP port for the webhook listener (defaults to $PORT, or 8443 for Telegram).",
    )
    parser.add_argument(
        "--mode",
        choices=(_TelegramMode.POLLING, _TelegramMode.WEBHOOK),
        default=_TelegramMode.POLLING,
        help="Telegram execution mode (default: polling).",
    )
    parser.add_argument(
        "--webhook-url",
        help="Full HTTPS URL Telegram should call when running in webhook mode.",
    )
    parser.add_argument(
        "--url-path",
        help="Override the path portion used by the Telegram webhook server.",
    )
    parser.add_argument(
        "--drop-pending-updates",
        action="store_true",
        help="Drop pending Telegram updates before starting.",
    )
    args = parser.parse_args(argv)
    if (
        args.channel == _Channel.TELEGRAM
        and args.mode == _TelegramMode.WEBHOOK
        and not args.webhook_url
    ):
        parser.error("--webhook-url is required when --mode webhook")
    args.error = parser.error
    return args


def _resolve_webhook_path(webhook_url: str, override: str | None) -> str:
    candidate = override or urlparse(webhook_url).path or ""
    return candidate.strip().strip("/")


def _run_whatsapp(args: argparse.Namespace, settings: Settings) -> None:
    if settings.whatsapp_token is None or not settings.whatsapp_phone_number_id:
        args.error("WHATSAPP_TOKEN and WHATSAPP_PHONE_NUMBER_ID must be set for --channel whatsapp")
    if settings.whatsapp_verify_token is None:
        LOGGER.warning("WHATSAPP_VERIFY_TOKEN is not set; webhook verification will be rejected.")

    graph = build_ingestion_graph(settings=settings)
    with WhatsAppClient.from_settings(settings) as client:
        app = create_webhook_app(settings=settings, graph=graph, client=client)
        port = args.port or settings.port
        LOGGER.info("WhatsApp webhook listening on %s:%d", args.listen, port)
        app.run(host=args.listen, port=port)


def _run_telegram(args: argparse.Namespace, settings: Settings) -> None:
    if settings.telegram_token is None:
        args.error("TELEGRAM_TOKEN must be set for --channel telegram")

    application = create_application(settings=settings)
    set_ingestion_graph(application, build_ingestion_graph(settings=settings))
    _register_telegram_handlers(application)

    drop_updates = True if args.drop_pending_updates else None
    if args.mode == _TelegramMode.POLLING:
        LOGGER.info("Starting Telegram polling (dropping pending=%s)", drop_updates)
        application.run_polling(drop_pending_updates=drop_updates)
        return

    webhook_path = _resolve_webhook_path(args.webhook_url, args.url_path)
    port = args.port or 8443
    LOGGER.info(
        "Starting Telegram webhook listener on %s:%d/%s (webhook=%s)",
        args.listen,
        port,
        webhook_path,
        args.webhook_url,
    )
    application.run_webhook(
        listen=args.listen,
        port=port,
        webhook_url=args.webhook_url,
        url_path=webhook_path,
        drop_pending_updates=drop_updates,
        secret_token=settings.telegram_webhook_secret,
    )


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()
    set_log_level(settings.log_level)

    if args.channel == _Channel.TELEGRAM:
        _run_telegram(args, settings)
    else:
        _run_whatsapp(args, settings)


if __name__ == "__main__":
    main()
