import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from securestop.db import init_db
from securestop.models import KVEntry
from securestop.persistence import MemoryKeyValueStore, SqlKeyValueStore


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'kv.db'}", future=True)
    init_db(bind=engine)
    return sessionmaker(bind=engine)


class TestSqlKeyValueStore:
    """Key-value cache backed by the kv_entries table."""

    def test_missing_key(self, session_factory):
        assert SqlKeyValueStore(session_factory).get_json("nothing") is None

    def test_set_get_overwrite_delete(self, session_factory):
        kv = SqlKeyValueStore(session_factory)
        kv.set_json("k", {"incidents": [1, 2]})
        assert kv.get_json("k") == {"incidents": [1, 2]}

        kv.set_json("k", {"incidents": []})
        assert kv.get_json("k") == {"incidents": []}

        kv.set_json("k", None)
        assert kv.get_json("k") is None
        kv.set_json("k", None)

    def test_malformed_value_reads_as_absent(self, session_factory):
        db = session_factory()
        db.add(KVEntry(key="bad", value="{not json"))
        db.commit()
        db.close()
        assert SqlKeyValueStore(session_factory).get_json("bad") is None

    def test_missing_table_is_not_fatal(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}", future=True)
        kv = SqlKeyValueStore(sessionmaker(bind=engine))
        kv.set_json("k", {"a": 1})
        assert kv.get_json("k") is None


class TestMemoryKeyValueStore:
    """In-process fallback store."""

    def test_set_get_delete(self):
        kv = MemoryKeyValueStore()
        kv.set_json("k", [1, 2, 3])
        assert kv.get_json("k") == [1, 2, 3]
        kv.set_json("k", None)
        assert kv.get_json("k") is None
