"""
Tests for the SQLite fingerprint store.
"""

import pytest

from safetrack.analysis.types import Classification, NetworkFingerprint
from safetrack.exceptions import InvalidInputError, PersistenceError
from safetrack.storage.dao import FingerprintDAO
from conftest import T0


def _fp(identifier, last_seen=T0, **kw):
    return NetworkFingerprint(identifier=identifier, name=identifier, last_seen=last_seen,
                              created_at=T0, **kw)


class TestFingerprintDAO:

    def test_round_trip(self, dao):
        fp = _fp("HomeNet", classification=Classification.STATIC, learned_lat=48.1,
                 learned_lon=11.5, confidence=0.9, sample_count=5)
        dao.upsert(fp)
        assert dao.get("HomeNet") == fp

    def test_bluetooth_flag(self, dao):
        dao.upsert(_fp("AA:BB:CC:DD:EE:FF", is_bluetooth=True))
        assert dao.get("AA:BB:CC:DD:EE:FF").is_bluetooth is True

    def test_missing(self, dao):
        assert dao.get("nope") is None

    def test_upsert_replaces_but_keeps_created_at(self, dao):
        dao.upsert(_fp("HomeNet"))
        updated = _fp("HomeNet", last_seen=T0 + 1, confidence=0.3, sample_count=2)
        updated.created_at = T0 + 999
        dao.upsert(updated)
        fp = dao.get("HomeNet")
        assert fp.confidence == 0.3 and fp.sample_count == 2
        assert fp.created_at == T0
        assert len(dao.get_all()) == 1

    def test_get_many(self, dao):
        for name in ("c", "a", "b"):
            dao.upsert(_fp(name))
        found = dao.get_many(["c", "a", "missing", "a"])
        assert [fp.identifier for fp in found] == ["a", "c"]
        assert dao.get_many([]) == []

    def test_get_all_most_recent_first(self, dao):
        dao.upsert(_fp("old", last_seen=T0))
        dao.upsert(_fp("new", last_seen=T0 + 10))
        assert [fp.identifier for fp in dao.get_all()] == ["new", "old"]

    def test_get_by_classification(self, dao):
        dao.upsert(_fp("car", classification=Classification.DYNAMIC))
        dao.upsert(_fp("home", classification=Classification.STATIC, learned_lat=1.0, learned_lon=2.0))
        assert [fp.identifier for fp in dao.get_by_classification(Classification.DYNAMIC)] == ["car"]

    def test_delete(self, dao):
        dao.upsert(_fp("HomeNet"))
        assert dao.delete("HomeNet") is True
        assert dao.delete("HomeNet") is False
        assert dao.get("HomeNet") is None

    @pytest.mark.parametrize("kw", [
        {"identifier": "  "},
        {"identifier": "<unknown ssid>"},
        {"learned_lat": 48.1},
        {"learned_lat": 91.0, "learned_lon": 0.0},
        {"learned_lat": 0.0, "learned_lon": float("nan")},
        {"confidence": 1.5},
        {"sample_count": -1},
    ])
    def test_rejects_invalid(self, dao, kw):
        identifier = kw.pop("identifier", "HomeNet")
        with pytest.raises(InvalidInputError):
            dao.upsert(_fp(identifier, **kw))
        assert dao.get_all() == []

    def test_closed_connection_raises(self):
        store = FingerprintDAO(":memory:")
        store.close()
        with pytest.raises(PersistenceError):
            store.get_all()
        with pytest.raises(PersistenceError):
            store.upsert(_fp("HomeNet"))

    def test_file_backed(self, tmp_path):
        path = str(tmp_path / "safetrack_test.sqlite")
        store = FingerprintDAO(path)
        store.upsert(_fp("HomeNet", classification=Classification.DYNAMIC))
        store.close()
        reopened = FingerprintDAO(path)
        assert reopened.get("HomeNet").classification is Classification.DYNAMIC
        reopened.close()
