"""
In-process change feed for tenant collections.

Services publish one ChangeEvent per written document after a successful commit.
Callers own their subscriptions and tear them down explicitly (unsubscribe() / close()
or a `with` block); nothing is tied to a request or UI lifecycle.
"""

from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.logging import get_logger

logger = get_logger("change_feed")


class ChangeOperation(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"


class Collection(str, Enum):
    STUDENTS = "students"
    CLASS_SECTIONS = "classSections"
    DEPARTMENTS = "departments"
    STAFF = "staff"
    TIMELINE = "timeline"
    PERFORMANCE_RECORDS = "performanceRecords"


class ChangeEvent(BaseModel):
    tenant_id: UUID
    collection: str
    document_id: str
    operation: ChangeOperation
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("collection", mode="before")
    @classmethod
    def plain_collection_name(cls, value: Any) -> Any:
        return value.value if isinstance(value, Enum) else value


ChangeCallback = Callable[[ChangeEvent], None]
WherePredicate = Tuple[str, Any]


def _comparable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _collection_name(collection: Any) -> str:
    return collection.value if isinstance(collection, Enum) else str(collection)


def document_matches(data: Dict[str, Any], where: Optional[WherePredicate]) -> bool:
    """Equality predicate on a single field; None matches everything."""
    if where is None:
        return True
    field, expected = where
    return _comparable(data.get(field)) == _comparable(expected)


class Subscription:
    def __init__(
        self,
        feed: "ChangeFeed",
        tenant_id: UUID,
        collection: str,
        callback: ChangeCallback,
        where: Optional[WherePredicate] = None,
    ) -> None:
        self._feed = feed
        self.tenant_id = tenant_id
        self.collection = _collection_name(collection)
        self.callback = callback
        self.where = where
        self.active = True

    def matches(self, event: ChangeEvent) -> bool:
        if event.tenant_id != self.tenant_id or event.collection != self.collection:
            return False
        return document_matches(event.data, self.where)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._feed._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


class ChangeFeed:
    """Fan-out of ChangeEvents to subscribers of (tenant, collection)."""

    def __init__(self) -> None:
        self._subscriptions: Dict[Tuple[UUID, str], List[Subscription]] = {}
        self._lock = Lock()

    def subscribe(
        self,
        tenant_id: UUID,
        collection: str,
        callback: ChangeCallback,
        where: Optional[WherePredicate] = None,
    ) -> Subscription:
        sub = Subscription(self, tenant_id, collection, callback, where)
        with self._lock:
            self._subscriptions.setdefault((tenant_id, sub.collection), []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        key = (sub.tenant_id, sub.collection)
        with self._lock:
            subs = self._subscriptions.get(key, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscriptions.pop(key, None)

    def subscriber_count(self, tenant_id: UUID, collection: str) -> int:
        with self._lock:
            return len(self._subscriptions.get((tenant_id, _collection_name(collection)), []))

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            subs = list(self._subscriptions.get((event.tenant_id, event.collection), []))
        for sub in subs:
            if not sub.active or not sub.matches(event):
                continue
            try:
                sub.callback(event)
            except Exception:
                # One broken listener must not stop delivery to the rest.
                logger.exception(
                    "Change listener failed for %s/%s", event.collection, event.document_id
                )

    def publish_document(
        self,
        tenant_id: UUID,
        collection: str,
        data: Dict[str, Any],
        operation: ChangeOperation = ChangeOperation.SET,
        key: str = "id",
    ) -> None:
        self.publish(
            ChangeEvent(
                tenant_id=tenant_id,
                collection=_collection_name(collection),
                document_id=str(data[key]),
                operation=operation,
                data=data,
            )
        )


class LiveQuery:
    """
    Live result set for `collection WHERE field == value` within one tenant.

    Seeded from a snapshot (a list of document dicts, usually the result of the matching
    query), then kept current from the feed: documents that start matching are added,
    documents that stop matching or are deleted are dropped. `on_change` receives the
    full result list after every change that touched it.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        tenant_id: UUID,
        collection: str,
        where: Optional[WherePredicate],
        snapshot: Iterable[Dict[str, Any]] = (),
        on_change: Optional[Callable[[List[Dict[str, Any]]], None]] = None,
        key: str = "id",
    ) -> None:
        self.where = where
        self.key = key
        self.on_change = on_change
        self._docs: Dict[str, Dict[str, Any]] = {}
        for doc in snapshot:
            if document_matches(doc, where):
                self._docs[str(doc[key])] = dict(doc)
        self._subscription = feed.subscribe(tenant_id, collection, self._apply)

    @property
    def results(self) -> List[Dict[str, Any]]:
        return list(self._docs.values())

    @property
    def closed(self) -> bool:
        return not self._subscription.active

    def _apply(self, event: ChangeEvent) -> None:
        doc_id = event.document_id
        if event.operation == ChangeOperation.DELETE or not document_matches(event.data, self.where):
            if self._docs.pop(doc_id, None) is None:
                return
        else:
            merged = dict(self._docs.get(doc_id, {}))
            merged.update(event.data)
            self._docs[doc_id] = merged
        if self.on_change is not None:
            self.on_change(self.results)

    def close(self) -> None:
        self._subscription.unsubscribe()

    def __enter__(self) -> "LiveQuery":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """FastAPI dependency for the process-wide feed."""
    return _feed
