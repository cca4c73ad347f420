from fulfillment_api.config import settings
from fulfillment_api.db.session import SessionLocal
from fulfillment_api.services.sql_timeline_store import SqlTimelineStore
from fulfillment_api.services.timeline_store import InMemoryTimelineStore, TimelineStore

memory_store = InMemoryTimelineStore(lock_timeout_s=settings.store_timeout_s)

_sql_store: SqlTimelineStore | None = None


def get_timeline_store() -> TimelineStore:
    global _sql_store

    if settings.timeline_store == "memory":
        return memory_store

    if _sql_store is None:
        _sql_store = SqlTimelineStore(SessionLocal, lock_timeout_s=settings.store_timeout_s)
    return _sql_store


def reset_store() -> None:
    memory_store.reset()
