import math
import sqlite3
from sqlite3 import Connection
from typing import Iterable, Optional, Protocol

from safetrack.analysis.types import Classification, NetworkFingerprint
from safetrack.exceptions import InvalidInputError, PersistenceError
from safetrack.storage.db import init_db
from safetrack.utils.log import get_logger
from safetrack.utils.validate import is_valid_identifier

logger = get_logger(__name__)

_COLUMNS = (
    "identifier, name, is_bluetooth, classification, learned_lat, learned_lon, "
    "confidence, sample_count, last_seen, created_at"
)


class FingerprintStore(Protocol):
    """
    Key-value persistence for learned fingerprints, keyed by identifier.
    """

    def upsert(self, fp: NetworkFingerprint) -> None: ...

    def get(self, identifier: str) -> Optional[NetworkFingerprint]: ...

    def get_many(self, identifiers: Iterable[str]) -> list[NetworkFingerprint]: ...

    def get_all(self) -> list[NetworkFingerprint]: ...

    def delete(self, identifier: str) -> bool: ...


def _check_fingerprint(fp: NetworkFingerprint) -> None:
    """
    Reject records that must never reach the database.
    """
    if not is_valid_identifier(fp.identifier):
        raise InvalidInputError(
            "Fingerprint identifier must be non-empty", details={"identifier": fp.identifier}
        )
    if (fp.learned_lat is None) != (fp.learned_lon is None):
        raise InvalidInputError(
            "Learned coordinate must have both latitude and longitude",
            details={"identifier": fp.identifier},
        )
    if fp.learned_lat is not None:
        if not (math.isfinite(fp.learned_lat) and -90.0 <= fp.learned_lat <= 90.0):
            raise InvalidInputError(
                "Learned latitude out of range", details={"lat": fp.learned_lat}
            )
        if not (math.isfinite(fp.learned_lon) and -180.0 <= fp.learned_lon <= 180.0):
            raise InvalidInputError(
                "Learned longitude out of range", details={"lon": fp.learned_lon}
            )
    if not 0.0 <= fp.confidence <= 1.0:
        raise InvalidInputError("Confidence must be in [0, 1]", details={"confidence": fp.confidence})
    if fp.sample_count < 0:
        raise InvalidInputError("Sample count must be >= 0", details={"sample_count": fp.sample_count})


def _row_to_fingerprint(row: sqlite3.Row) -> NetworkFingerprint:
    return NetworkFingerprint(
        identifier=row["identifier"],
        name=row["name"],
        is_bluetooth=bool(row["is_bluetooth"]),
        classification=Classification(row["classification"]),
        learned_lat=row["learned_lat"],
        learned_lon=row["learned_lon"],
        confidence=row["confidence"],
        sample_count=row["sample_count"],
        last_seen=row["last_seen"],
        created_at=row["created_at"],
    )


class FingerprintDAO:
    """
    Encapsulates all inserts/queries against the fingerprint DB.

    Every sqlite3 failure is re-raised as PersistenceError so that a lost
    write is never mistaken for "no data".
    """

    def __init__(self, db_path: str):
        """
        Create/connect and apply schema if needed.
        """
        try:
            self.conn: Connection = init_db(db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open fingerprint store {db_path}", cause=e) from e

    def close(self) -> None:
        self.conn.close()

    def upsert(self, fp: NetworkFingerprint) -> None:
        """
        Insert a new fingerprint or replace the stored one.
        """
        _check_fingerprint(fp)
        try:
            with self.conn:
                self.conn.execute(
                    f"""
                    INSERT INTO fingerprints ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(identifier) DO UPDATE SET
                      name           = excluded.name,
                      is_bluetooth   = excluded.is_bluetooth,
                      classification = excluded.classification,
                      learned_lat    = excluded.learned_lat,
                      learned_lon    = excluded.learned_lon,
                      confidence     = excluded.confidence,
                      sample_count   = excluded.sample_count,
                      last_seen      = excluded.last_seen
                    """,
                    (
                        fp.identifier,
                        fp.name,
                        int(fp.is_bluetooth),
                        fp.classification.value,
                        fp.learned_lat,
                        fp.learned_lon,
                        fp.confidence,
                        fp.sample_count,
                        fp.last_seen,
                        fp.created_at,
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to store fingerprint {fp.identifier}",
                details={"identifier": fp.identifier},
                cause=e,
            ) from e

    def get(self, identifier: str) -> Optional[NetworkFingerprint]:
        """
        Return the fingerprint for one identifier, or None when unknown.
        """
        row = self._fetch(
            f"SELECT {_COLUMNS} FROM fingerprints WHERE identifier = ?",
            (identifier,),
        )
        return _row_to_fingerprint(row[0]) if row else None

    def get_many(self, identifiers: Iterable[str]) -> list[NetworkFingerprint]:
        """
        Return the stored fingerprints among the given identifiers.
        """
        ids = list(dict.fromkeys(identifiers))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM fingerprints WHERE identifier IN ({placeholders}) "
            "ORDER BY identifier",
            tuple(ids),
        )
        return [_row_to_fingerprint(r) for r in rows]

    def get_all(self) -> list[NetworkFingerprint]:
        """
        Return every fingerprint, most recently seen first.
        """
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM fingerprints ORDER BY last_seen DESC, identifier"
        )
        return [_row_to_fingerprint(r) for r in rows]

    def get_by_classification(self, classification: Classification) -> list[NetworkFingerprint]:
        """
        Return every fingerprint with the given classification.
        """
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM fingerprints WHERE classification = ? ORDER BY identifier",
            (classification.value,),
        )
        return [_row_to_fingerprint(r) for r in rows]

    def delete(self, identifier: str) -> bool:
        """
        Remove a fingerprint; return True when a row was deleted.
        """
        try:
            with self.conn:
                cur = self.conn.execute(
                    "DELETE FROM fingerprints WHERE identifier = ?", (identifier,)
                )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to delete fingerprint {identifier}",
                details={"identifier": identifier},
                cause=e,
            ) from e
        return cur.rowcount > 0

    def _fetch(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError("Fingerprint query failed", details={"sql": sql}, cause=e) from e
