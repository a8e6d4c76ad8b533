import sqlite3
import threading
from pathlib import Path

from .config import DB_PATH

_conn: sqlite3.Connection | None = None

# Serializes every write on the writer connection
write_lock = threading.Lock()

# Per-thread read connections, closed together by close_conn()
_local = threading.local()
_readers: list[sqlite3.Connection] = []
_readers_lock = threading.Lock()
_generation = 0

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    project      TEXT NOT NULL,
    date         TEXT NOT NULL,
    start        TEXT NOT NULL,
    "end"        TEXT NOT NULL,
    start_epoch  REAL NOT NULL,
    end_epoch    REAL NOT NULL,
    type         TEXT NOT NULL,
    file         TEXT,
    host         TEXT,
    url          TEXT
);

CREATE INDEX IF NOT EXISTS idx_sessions_date ON sessions(date);
CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project);
CREATE INDEX IF NOT EXISTS idx_sessions_start ON sessions(start_epoch);

CREATE TABLE IF NOT EXISTS url_routes (
    id       INTEGER PRIMARY KEY AUTOINCREMENT,
    project  TEXT NOT NULL,
    url      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_url_routes_project ON url_routes(project);

CREATE TABLE IF NOT EXISTS ignored_projects (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    project_name  TEXT NOT NULL UNIQUE,
    ignored_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_display (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    project_name  TEXT NOT NULL UNIQUE,
    custom_name   TEXT,
    logo_url      TEXT
);

CREATE TABLE IF NOT EXISTS commits (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    project         TEXT NOT NULL,
    commit_hash     TEXT NOT NULL,
    commit_message  TEXT NOT NULL,
    branch          TEXT,
    author_name     TEXT,
    author_email    TEXT,
    commit_time     TEXT NOT NULL,
    date            TEXT NOT NULL,
    files_changed   INTEGER NOT NULL DEFAULT 0,
    lines_added     INTEGER NOT NULL DEFAULT 0,
    lines_deleted   INTEGER NOT NULL DEFAULT 0,
    UNIQUE(project, commit_hash)
);

CREATE INDEX IF NOT EXISTS idx_commits_date ON commits(date);
"""


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.execute("PRAGMA busy_timeout=5000")
    conn.row_factory = sqlite3.Row
    return conn


def get_conn() -> sqlite3.Connection:
    """The single writer connection. Use only under ``write_lock``."""
    global _conn
    if _conn is None:
        Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
        _conn = _connect()
        _conn.execute("PRAGMA journal_mode=WAL")
        # Appends must be on disk before they are acknowledged
        _conn.execute("PRAGMA synchronous=FULL")
        _conn.executescript(SCHEMA)
    return _conn


def get_read_conn() -> sqlite3.Connection:
    """A read-only connection owned by the calling thread.

    Each statement on it sees the last committed state of the WAL, never a
    write transaction still open on the writer connection.
    """
    get_conn()
    conn = getattr(_local, "conn", None)
    if conn is None or getattr(_local, "generation", None) != _generation:
        conn = _connect()
        conn.execute("PRAGMA query_only=ON")
        _local.conn = conn
        _local.generation = _generation
        with _readers_lock:
            _readers.append(conn)
    return conn


def close_conn():
    global _conn, _generation
    with _readers_lock:
        for conn in _readers:
            conn.close()
        _readers.clear()
        _generation += 1
    if _conn is not None:
        _conn.close()
        _conn = None
