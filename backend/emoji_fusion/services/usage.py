"""Usage Gate: advisory per-client daily fusion limit."""
import threading
from datetime import date
from typing import Any, Callable, Optional, Protocol

from google.cloud import firestore

from emoji_fusion.core.errors import UsageStoreUnavailable
from emoji_fusion.core.logging import setup_logging
from emoji_fusion.models.usage import UsageRecord, UsageStatus

logger = setup_logging("usage")

DAILY_LIMIT = 3


class UsageStore(Protocol):
    """Key/value persistence for per-client usage records."""

    def load(self, client_id: str) -> UsageRecord: ...

    def save(self, client_id: str, record: UsageRecord) -> None: ...


class InMemoryUsageStore:
    """Process-local store. Stored values use the persisted string layout."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    def load(self, client_id: str) -> UsageRecord:
        with self._lock:
            return UsageRecord.from_storage(self._entries.get(client_id))

    def save(self, client_id: str, record: UsageRecord) -> None:
        with self._lock:
            self._entries[client_id] = record.to_storage()


class FirestoreUsageStore:
    """Server-held store: one Firestore document per client id."""

    def __init__(self, collection: str = "fusion_usage", db: Optional[Any] = None) -> None:
        self._db = db if db is not None else firestore.Client()
        self.collection = collection

    def load(self, client_id: str) -> UsageRecord:
        snapshot = self._db.collection(self.collection).document(client_id).get()
        return UsageRecord.from_storage(snapshot.to_dict() if snapshot.exists else None)

    def save(self, client_id: str, record: UsageRecord) -> None:
        self._db.collection(self.collection).document(client_id).set(
            record.to_storage(), merge=True
        )


class UsageGate:
    """Daily fusion counter per client.

    The gate is a UX nudge rather than a security boundary: callers identify
    themselves and nothing stops them from presenting a fresh id.
    """

    def __init__(
        self,
        store: UsageStore,
        daily_limit: int = DAILY_LIMIT,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.daily_limit = daily_limit
        self._today = today

    def _load(self, client_id: str) -> UsageRecord:
        try:
            return self.store.load(client_id)
        except Exception as exc:
            self._log_store_error("load", exc)
            raise UsageStoreUnavailable("Usage store unavailable") from exc

    def _save(self, client_id: str, record: UsageRecord) -> None:
        try:
            self.store.save(client_id, record)
        except Exception as exc:
            self._log_store_error("save", exc)
            raise UsageStoreUnavailable("Usage store unavailable") from exc

    def _log_store_error(self, operation: str, exc: Exception) -> None:
        logger.error(
            "Failed to %s usage record: %s",
            operation,
            exc,
            extra={"component": "UsageGate", "error_type": type(exc).__name__},
        )

    def _current(self, client_id: str) -> UsageRecord:
        """Load the record, resetting and persisting it when the day rolled over."""
        today = self._today().isoformat()
        record = self._load(client_id)
        if record.last_usage_date != today:
            if record.usage_count:
                logger.debug("Daily usage reset for client=%s", client_id)
            record = UsageRecord(last_usage_date=today, usage_count=0)
            self._save(client_id, record)
        return record

    def _status(self, record: UsageRecord) -> UsageStatus:
        return UsageStatus(
            date=record.last_usage_date or self._today().isoformat(),
            count=record.usage_count,
            limit=self.daily_limit,
            remaining=max(self.daily_limit - record.usage_count, 0),
            allowed=record.usage_count < self.daily_limit,
        )

    def check_and_maybe_reject(self, client_id: str) -> UsageStatus:
        """Return today's usage; `allowed` is False once the limit is reached.

        Never changes the count, so repeated checks are idempotent.
        """
        status = self._status(self._current(client_id))
        if not status.allowed:
            logger.info("Usage limit reached for client=%s (%d/%d)", client_id, status.count, status.limit)
        return status

    def record_success(self, client_id: str) -> UsageStatus:
        """Count one successful fusion.

        Never raises, so a finished image is never lost to a store failure.
        In that case the fusion goes uncounted and the returned status is a
        best guess.
        """
        record = UsageRecord(last_usage_date=self._today().isoformat(), usage_count=1)
        try:
            current = self._current(client_id)
            record = current.model_copy(update={"usage_count": current.usage_count + 1})
            self._save(client_id, record)
        except UsageStoreUnavailable:
            logger.warning("Fusion not counted for client=%s", client_id)
        return self._status(record)

    def grant_bonus(self, client_id: str) -> UsageStatus:
        """Give back one fusion for today, e.g. after the user watched an ad."""
        record = self._current(client_id)
        if record.usage_count > 0:
            record = record.model_copy(update={"usage_count": record.usage_count - 1})
            self._save(client_id, record)
        return self._status(record)


def build_usage_store(kind: str, collection: str = "fusion_usage") -> UsageStore:
    """Create the usage store named by the `usage_store` setting."""
    if kind == "firestore":
        return FirestoreUsageStore(collection=collection)
    return InMemoryUsageStore()
