import json
import logging
from typing import Any, Dict, Optional
from sqlalchemy.orm import sessionmaker
from .models import KVEntry

logger = logging.getLogger(__name__)


class MemoryKeyValueStore:
    """In-process key-value cache, used when no database is configured."""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get_json(self, key: str) -> Optional[Any]:
        raw = self._items.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed value for %s", key)
            return None

    def set_json(self, key: str, value: Optional[Any]) -> None:
        if value is None:
            self._items.pop(key, None)
            return
        self._items[key] = json.dumps(value)


class SqlKeyValueStore:
    """Key-value cache stored in the kv_entries table.

    Reads and writes are best-effort: any failure is logged and treated as
    absence (for reads) or dropped (for writes). Callers never see an error.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        if session_factory is None:
            from .db import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory

    def get_json(self, key: str) -> Optional[Any]:
        db = self.session_factory()
        try:
            entry = db.get(KVEntry, key)
            if entry is None or not entry.value:
                return None
            return json.loads(entry.value)
        except Exception as e:
            logger.warning("Could not read %s from key-value store: %s", key, e)
            return None
        finally:
            db.close()

    def set_json(self, key: str, value: Optional[Any]) -> None:
        db = self.session_factory()
        try:
            entry = db.get(KVEntry, key)
            if value is None:
                if entry is not None:
                    db.delete(entry)
            elif entry is None:
                db.add(KVEntry(key=key, value=json.dumps(value)))
            else:
                entry.value = json.dumps(value)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning("Could not write %s to key-value store: %s", key, e)
        finally:
            db.close()
