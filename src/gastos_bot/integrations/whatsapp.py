"""WhatsApp Cloud API client and webhook payload helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator, Mapping

import httpx
from langsmith import traceable
from pydantic import SecretStr

from gastos_bot import get_logger

if TYPE_CHECKING:
    from gastos_bot.config import Settings

LOGGER = get_logger("integrations.whatsapp")

DEFAULT_API_BASE_URL = "https://graph.facebook.com"
DEFAULT_API_VERSION = "v21.0"


class WhatsAppClientError(RuntimeError):
    """Raised when the Graph API rejects or fails to deliver a message."""


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """A single message extracted from a Cloud API webhook event."""

    sender_id: str
    message_id: str | None
    message_type: str
    text: str | None


def iter_inbound_messages(payload: Mapping[str, Any] | None) -> Iterator[InboundMessage]:
    """Yield every message in ``entry[].changes[].value.messages[]``.

    Status callbacks and other events without ``messages`` yield nothing.
    Messages without a sender are skipped.
    """

    if not isinstance(payload, Mapping):
        return
    for entry in _as_list(payload.get("entry")):
        for change in _as_list(entry.get("changes")):
            value = change.get("value")
            if not isinstance(value, Mapping):
                continue
            for message in _as_list(value.get("messages")):
                sender = message.get("from")
                if not sender:
                    LOGGER.warning("Skipping WhatsApp message without sender: %s", message.get("id"))
                    continue
                text_block = message.get("text")
                body = text_block.get("body") if isinstance(text_block, Mapping) else None
                text = body.strip() if isinstance(body, str) and body.strip() else None
                yield InboundMessage(
                    sender_id=str(sender),
                    message_id=message.get("id"),
                    message_type=str(message.get("type") or "unknown"),
                    text=text,
                )


def verify_subscription(
    *,
    mode: str | None,
    token: str | None,
    challenge: str | None,
    expected_token: str | SecretStr | None,
) -> str | None:
    """Return the challenge to echo when Meta's verification request is valid."""

    expected = _secret_value(expected_token)
    if not expected or mode != "subscribe" or token != expected:
        return None
    return challenge or ""


class WhatsAppClient:
    """Synchronous client for sending text replies through the Graph API."""

    def __init__(
        self,
        *,
        access_token: str | SecretStr,
        phone_number_id: str,
        api_version: str = DEFAULT_API_VERSION,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
        user_agent: str = "gastos-bot/0.1",
    ) -> None:
        if not phone_number_id:
            raise ValueError("phone_number_id is required to send WhatsApp messages.")
        self._base_url = base_url.rstrip("/")
        self._messages_path = f"/{api_version.strip('/')}/{phone_number_id}/messages"
        self._auth_header = f"Bearer {_secret_value(access_token)}"

        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=self._base_url,
            timeout=timeout,
            headers={"User-Agent": user_agent},
        )

    @classmethod
    def from_settings(
        cls, settings: "Settings", **client_kwargs: Any
    ) -> "WhatsAppClient":
        """Instantiate a client from shared Settings."""

        if settings.whatsapp_token is None or not settings.whatsapp_phone_number_id:
            raise ValueError(
                "WHATSAPP_TOKEN and WHATSAPP_PHONE_NUMBER_ID are required for the WhatsApp channel."
            )
        return cls(
            access_token=settings.whatsapp_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            api_version=settings.whatsapp_api_version,
            base_url=settings.whatsapp_api_base_url,
            **client_kwargs,
        )

    def __enter__(self) -> "WhatsAppClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client if we created it."""
        if self._owns_client:
            self._client.close()

    @traceable(run_type="tool", name="whatsapp.send_text")
    def send_text(self, to: str, body: str) -> str | None:
        """Send a plain text message and return the Graph API message id."""

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }
        try:
            response = self._client.post(
                self._messages_path,
                json=payload,
                headers={
                    "Authorization": self._auth_header,
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise WhatsAppClientError("WhatsApp send timed out.") from exc
        except httpx.HTTPStatusError as exc:
            detail = self._extract_error(exc.response)
            raise WhatsAppClientError(
                f"WhatsApp send failed ({exc.response.status_code}): {detail}"
            ) from exc
        except httpx.HTTPError as exc:
            raise WhatsAppClientError(f"WhatsApp send failed: {exc}") from exc

        message_id = self._extract_message_id(response)
        LOGGER.debug("Sent WhatsApp message to=%s id=%s", to, message_id)
        return message_id

    @staticmethod
    def _extract_message_id(response: httpx.Response) -> str | None:
        try:
            data = response.json()
        except ValueError:
            return None
        messages = data.get("messages") if isinstance(data, dict) else None
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            return messages[0].get("id")
        return None

    @staticmethod
    def _extract_error(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return response.text or f"HTTP {response.status_code}"


def _as_list(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _secret_value(value: str | SecretStr | None) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return value.get_secret_value()


__all__ = [
    "InboundMessage",
    "WhatsAppClient",
    "WhatsAppClientError",
    "iter_inbound_messages",
    "verify_subscription",
]
