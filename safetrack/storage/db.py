import os
import sqlite3
from safetrack.utils.log import get_logger

logger = get_logger(__name__)

MEMORY = ":memory:"

def get_connection(db_path: str) -> sqlite3.Connection:
    """
    Open the fingerprint store with rows returned as sqlite3.Row.

    The connection may be handed between threads; callers serialize writes.
    File databases use WAL so `safetrack serve` and the CLI can share one.
    """
    conn = sqlite3.connect(db_path, timeout=5.0, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if db_path != MEMORY:
        conn.execute("PRAGMA journal_mode = WAL;")
    return conn

def init_db(db_path: str) -> sqlite3.Connection:
    """
    Create the fingerprint tables from schema.sql if they are missing,
    then return a live connection.
    """
    conn = get_connection(db_path)
    schema_path = os.path.join(os.path.dirname(__file__), "schema.sql")
    logger.debug("Applying fingerprint schema to %s", db_path)
    with open(schema_path, "r") as f:
        conn.executescript(f.read())
    conn.commit()
    return conn
