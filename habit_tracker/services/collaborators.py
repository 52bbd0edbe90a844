"""External collaborators: identity, document store and connectivity probe."""

from __future__ import annotations

import asyncio
import copy
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from sqlmodel import Session

from habit_tracker.core.errors import (
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    StoreUnavailableError,
)
from habit_tracker.models import UserDocumentRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    uid: str
    name: str = ""
    email: str = ""
    photo_url: Optional[str] = None


class IdentityProvider(Protocol):
    def current_user(self) -> Optional[AuthenticatedUser]: ...

    def subscribe(self, callback: Callable[[Optional[AuthenticatedUser]], None]) -> Callable[[], None]: ...


class DocumentStore(Protocol):
    async def get_document(self, user_id: str) -> Optional[Dict[str, Any]]: ...

    async def set_document(self, user_id: str, document: Dict[str, Any]) -> None: ...

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> None: ...


class ConnectivityProbe(Protocol):
    def is_online(self) -> bool: ...


class StaticIdentityProvider:
    """Identity holder whose signed-in user is set explicitly (tests, header auth)."""

    def __init__(self, user: Optional[AuthenticatedUser] = None):
        self._user = user
        self._listeners: List[Callable[[Optional[AuthenticatedUser]], None]] = []

    def current_user(self) -> Optional[AuthenticatedUser]:
        return self._user

    def subscribe(self, callback):
        self._listeners.append(callback)
        callback(self._user)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def sign_in(self, user: AuthenticatedUser) -> None:
        self._set(user)

    def sign_out(self) -> None:
        self._set(None)

    def _set(self, user: Optional[AuthenticatedUser]) -> None:
        self._user = user
        for listener in list(self._listeners):
            listener(user)


class StaticConnectivityProbe:
    def __init__(self, online: bool = True):
        self.online = online

    def is_online(self) -> bool:
        return self.online


def apply_field_paths(document: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Set each dotted ``a.b.c`` path of ``fields`` inside ``document`` (in place)."""
    for path, value in fields.items():
        target = document
        keys = path.split(".")
        for key in keys[:-1]:
            child = target.get(key)
            if not isinstance(child, dict):
                child = {}
                target[key] = child
            target = child
        target[keys[-1]] = value
    return document


class InMemoryDocumentStore:
    """Process-local document store. Documents are deep-copied in and out."""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self._documents: Dict[str, Dict[str, Any]] = copy.deepcopy(documents or {})
        self.write_count = 0

    async def get_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        document = self._documents.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    async def set_document(self, user_id: str, document: Dict[str, Any]) -> None:
        self._documents[user_id] = copy.deepcopy(document)
        self.write_count += 1

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> None:
        if user_id not in self._documents:
            raise NotFoundError(f"No document for user {user_id}")
        apply_field_paths(self._documents[user_id], copy.deepcopy(fields))
        self.write_count += 1


class SqlDocumentStore:
    """Document store persisted in the ``user_document`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    async def get_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get, user_id)

    async def set_document(self, user_id: str, document: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._set, user_id, document)

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._update, user_id, fields)

    def _get(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._session() as db:
            row = db.get(UserDocumentRow, user_id)
            return copy.deepcopy(row.payload) if row else None

    def _set(self, user_id: str, document: Dict[str, Any]) -> None:
        with self._session() as db:
            row = db.get(UserDocumentRow, user_id)
            if row is None:
                row = UserDocumentRow(user_id=user_id)
            # 日本語: JSON列は再代入しないと変更検知されない / English: JSON column must be reassigned to be flagged dirty
            row.payload = copy.deepcopy(document)
            row.updated_at = datetime.datetime.now()
            db.add(row)
            db.commit()

    def _update(self, user_id: str, fields: Dict[str, Any]) -> None:
        with self._session() as db:
            row = db.get(UserDocumentRow, user_id)
            if row is None:
                raise NotFoundError(f"No document for user {user_id}")
            row.payload = apply_field_paths(copy.deepcopy(row.payload), copy.deepcopy(fields))
            row.updated_at = datetime.datetime.now()
            db.add(row)
            db.commit()

    def _session(self) -> "_TranslatingSession":
        return _TranslatingSession(self.engine)


class _TranslatingSession:
    # 日本語: SQLAlchemy 例外をストア例外へ変換 / English: Translate SQLAlchemy failures into store error categories
    def __init__(self, engine: Engine):
        self._session = Session(engine)

    def __enter__(self) -> Session:
        return self._session

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc is not None:
                self._session.rollback()
        finally:
            self._session.close()

        if isinstance(exc, OperationalError):
            logger.warning("Document store unavailable: %s", exc)
            raise StoreUnavailableError() from exc
        if isinstance(exc, ProgrammingError) and "permission denied" in str(exc).lower():
            raise PermissionDeniedError() from exc
        if isinstance(exc, SQLAlchemyError):
            logger.error("Document store failure: %s", exc)
            raise StoreError("Failed to access stored data. Please try again.") from exc
        return False


__all__ = [
    "AuthenticatedUser",
    "IdentityProvider",
    "DocumentStore",
    "ConnectivityProbe",
    "StaticIdentityProvider",
    "StaticConnectivityProbe",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "apply_field_paths",
]
