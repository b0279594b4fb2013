"""Firestore-backed expense repository."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from gastos_bot import get_logger
from gastos_bot.models import ExpenseRecord
from gastos_bot.storage.base import ExpenseStorageError

if TYPE_CHECKING:
    from gastos_bot.config import Settings

LOGGER = get_logger("storage.firestore")
DEFAULT_COLLECTION = "gastos"


def create_firestore_client(settings: "Settings") -> firestore.Client:
    """Build a Firestore client from inline service-account JSON or ADC."""

    project = settings.firestore_project
    if settings.google_credentials_json is not None:
        try:
            info = json.loads(settings.google_credentials_json.get_secret_value())
        except ValueError as exc:
            raise ExpenseStorageError(
                "GOOGLE_APPLICATION_CREDENTIALS_JSON is not valid JSON."
            ) from exc
        credentials = service_account.Credentials.from_service_account_info(info)
        return firestore.Client(
            project=project or info.get("project_id"), credentials=credentials
        )
    # Application-default credentials (GOOGLE_APPLICATION_CREDENTIALS or metadata server).
    return firestore.Client(project=project)


def _server_time_key(document: dict[str, Any]) -> tuple[bool, Any]:
    # Documents without a server time sort first.
    moment = document.get("fechaServidor")
    return (moment is not None, moment)


class FirestoreExpenseRepository:
    """Adds one document per expense to a top-level collection."""

    def __init__(self, client: Any, *, collection: str = DEFAULT_COLLECTION) -> None:
        self._client = client
        self._collection_name = collection

    @classmethod
    def from_settings(
        cls, settings: "Settings", *, client: Any | None = None
    ) -> "FirestoreExpenseRepository":
        return cls(
            client or create_firestore_client(settings),
            collection=settings.firestore_collection,
        )

    def add(self, record: ExpenseRecord) -> str:
        """Add the record, letting Firestore stamp ``createdAt``."""

        document = record.to_document()
        document["createdAt"] = firestore.SERVER_TIMESTAMP
        try:
            _, reference = self._collection().add(document)
        except gcp_exceptions.GoogleAPIError as exc:
            raise ExpenseStorageError(f"Firestore write failed: {exc}") from exc
        LOGGER.debug(
            "Stored expense doc=%s/%s sender=%s",
            self._collection_name,
            reference.id,
            record.sender_id,
        )
        return reference.id

    def list_for_period(
        self,
        *,
        year: int,
        month: int,
        quincena: int,
        sender_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return the documents stored for one quincena, oldest first."""

        query = (
            self._collection()
            .where(filter=FieldFilter("year", "==", year))
            .where(filter=FieldFilter("mes", "==", month))
            .where(filter=FieldFilter("quincena", "==", quincena))
        )
        if sender_id is not None:
            query = query.where(filter=FieldFilter("userWaId", "==", sender_id))
        try:
            snapshots = list(query.stream())
        except gcp_exceptions.GoogleAPIError as exc:
            raise ExpenseStorageError(f"Firestore query failed: {exc}") from exc

        documents = []
        for snapshot in snapshots:
            data = snapshot.to_dict() or {}
            data["id"] = snapshot.id
            documents.append(data)
        # Sorted here: equality filters plus order_by would need a composite index.
        documents.sort(key=_server_time_key)
        return documents

    def _collection(self) -> Any:
        return self._client.collection(self._collection_name)


__all__ = ["FirestoreExpenseRepository", "create_firestore_client"]
