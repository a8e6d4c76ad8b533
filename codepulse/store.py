"""Session log and lookup tables on top of the SQLite connection.

Sessions are append-only: there is no update or delete path here. Lookup
tables (URL routes, ignored projects, display names) are small CRUD tables.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime

from .db import get_conn, get_read_conn, write_lock
from .sessions import Session, StorageError, TZ

logger = logging.getLogger(__name__)

SESSION_COLS = [
    "project", "date", "start", "end", "start_epoch", "end_epoch",
    "type", "file", "host", "url",
]

_SESSION_SQL = (
    "INSERT INTO sessions(" + ",".join('"%s"' % c for c in SESSION_COLS) + ") "
    f"VALUES({','.join('?' for _ in SESSION_COLS)})"
)

# Bumped after every committed append so pollers can tell when stats changed
_version = 0
_version_lock = threading.Lock()


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except sqlite3.Error as e:
        logger.error("Storage failure while %s: %s", action, e)
        raise StorageError(f"{action} failed: {e}") from e


@contextmanager
def _write(action: str):
    """Run one write transaction under the process-wide write lock."""
    with _storage_errors(action), write_lock:
        conn = get_conn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def get_version() -> int:
    return _version


# ── Sessions ──

def append_session(session: Session) -> Session:
    """Validate and durably append one session. Returns it with its row id."""
    global _version
    session.validate()
    row = (
        session.project,
        session.date,
        session.start.isoformat(),
        session.end.isoformat(),
        session.start.timestamp(),
        session.end.timestamp(),
        session.type.value,
        session.file,
        session.host,
        session.url,
    )
    with _write("appending session") as conn:
        cur = conn.execute(_SESSION_SQL, row)
        new_id = cur.lastrowid
    with _version_lock:
        _version += 1
    logger.debug("Appended %s session #%s for %s (%ss)",
                 session.type.value, new_id, session.project, session.duration)
    return replace(session, id=new_id)


def _to_sessions(rows) -> list[Session]:
    out = []
    for r in rows:
        try:
            out.append(Session.from_row(r))
        except ValueError as e:
            logger.warning("Skipping unreadable session row #%s: %s", r["id"], e)
    return out


def query_by_date_range(from_date: date, to_date: date) -> list[Session]:
    """Sessions whose start date lies in ``[from_date, to_date]``, oldest first."""
    with _storage_errors("querying sessions"):
        rows = get_read_conn().execute(
            "SELECT * FROM sessions WHERE date BETWEEN ? AND ? ORDER BY start_epoch, id",
            (from_date.isoformat(), to_date.isoformat()),
        ).fetchall()
    return _to_sessions(rows)


def query_all() -> list[Session]:
    with _storage_errors("querying sessions"):
        rows = get_read_conn().execute(
            "SELECT * FROM sessions ORDER BY start_epoch, id"
        ).fetchall()
    return _to_sessions(rows)


def active_projects() -> list[dict]:
    """Every project with sessions, most recently worked on first."""
    with _storage_errors("listing projects"):
        rows = get_read_conn().execute(
            'SELECT project, MAX(end_epoch) AS last_epoch, MAX("end") AS last_end '
            "FROM sessions GROUP BY project ORDER BY last_epoch DESC, project"
        ).fetchall()
    return [{"name": r["project"], "last_worked_on": r["last_end"]} for r in rows]


# ── URL routes ──

def upsert_url_route(project: str, url: str, route_id: int | None = None) -> int:
    """Insert a route, or rewrite route ``route_id``. Returns the route id.

    Inserting a (project, url) pair that already exists returns the existing id.
    """
    project = (project or "").strip()
    url = (url or "").strip().lower()
    if not project or not url:
        raise ValueError("a URL route needs both a project and a pattern")
    with _write("saving URL route") as conn:
        if route_id is not None:
            cur = conn.execute(
                "UPDATE url_routes SET project = ?, url = ? WHERE id = ?",
                (project, url, route_id),
            )
            if cur.rowcount == 0:
                raise KeyError(route_id)
            return route_id
        existing = conn.execute(
            "SELECT id FROM url_routes WHERE project = ? AND url = ?", (project, url)
        ).fetchone()
        if existing:
            return existing["id"]
        cur = conn.execute(
            "INSERT INTO url_routes(project, url) VALUES(?, ?)", (project, url)
        )
        return cur.lastrowid


def remove_url_route(route_id: int) -> bool:
    with _write("removing URL route") as conn:
        cur = conn.execute("DELETE FROM url_routes WHERE id = ?", (route_id,))
        return cur.rowcount > 0


def remove_url_routes(project: str) -> int:
    with _write("removing URL routes") as conn:
        cur = conn.execute("DELETE FROM url_routes WHERE project = ?", (project,))
        return cur.rowcount


def list_url_routes(project: str | None = None) -> list[dict]:
    sql = "SELECT id, project, url FROM url_routes"
    params: tuple = ()
    if project is not None:
        sql += " WHERE project = ?"
        params = (project,)
    sql += " ORDER BY project, url DESC"
    with _storage_errors("listing URL routes"):
        rows = get_read_conn().execute(sql, params).fetchall()
    return [dict(r) for r in rows]


def resolve_project(host: str) -> str | None:
    """Project routed to ``host``, or None.

    A pattern matches when it occurs in the host. The longest pattern wins,
    then the lexicographically greatest, then the most recently added.
    """
    if not host:
        return None
    with _storage_errors("resolving URL route"):
        row = get_read_conn().execute(
            "SELECT project FROM url_routes "
            "WHERE instr(lower(?), url) > 0 "
            "ORDER BY length(url) DESC, url DESC, id DESC LIMIT 1",
            (host,),
        ).fetchone()
    return row["project"] if row else None


# ── Ignored projects ──

def ignore_project(project_name: str, ignored_at: datetime | None = None) -> int:
    project_name = (project_name or "").strip()
    if not project_name:
        raise ValueError("project name is required")
    ts = (ignored_at or datetime.now(TZ)).isoformat()
    with _write("ignoring project") as conn:
        conn.execute(
            "INSERT OR IGNORE INTO ignored_projects(project_name, ignored_at) VALUES(?, ?)",
            (project_name, ts),
        )
        row = conn.execute(
            "SELECT id FROM ignored_projects WHERE project_name = ?", (project_name,)
        ).fetchone()
        return row["id"]


def unignore_project(ignored_id: int) -> bool:
    with _write("restoring project") as conn:
        cur = conn.execute("DELETE FROM ignored_projects WHERE id = ?", (ignored_id,))
        return cur.rowcount > 0


def list_ignored_projects() -> list[dict]:
    with _storage_errors("listing ignored projects"):
        rows = get_read_conn().execute(
            "SELECT id, project_name, ignored_at FROM ignored_projects ORDER BY project_name"
        ).fetchall()
    return [dict(r) for r in rows]


def ignored_project_names() -> set[str]:
    return {r["project_name"] for r in list_ignored_projects()}


# ── Display names ──

def upsert_project_display(project_name: str, custom_name: str | None,
                           logo_url: str | None = None) -> int:
    project_name = (project_name or "").strip()
    if not project_name:
        raise ValueError("project name is required")
    with _write("saving project display name") as conn:
        conn.execute(
            "INSERT INTO project_display(project_name, custom_name, logo_url) VALUES(?, ?, ?) "
            "ON CONFLICT(project_name) DO UPDATE SET "
            "custom_name = excluded.custom_name, logo_url = excluded.logo_url",
            (project_name, custom_name, logo_url),
        )
        row = conn.execute(
            "SELECT id FROM project_display WHERE project_name = ?", (project_name,)
        ).fetchone()
        return row["id"]


def remove_project_display(display_id: int) -> bool:
    with _write("removing project display name") as conn:
        cur = conn.execute("DELETE FROM project_display WHERE id = ?", (display_id,))
        return cur.rowcount > 0


def list_project_displays() -> list[dict]:
    with _storage_errors("listing project display names"):
        rows = get_read_conn().execute(
            "SELECT id, project_name, custom_name, logo_url FROM project_display "
            "ORDER BY project_name"
        ).fetchall()
    return [dict(r) for r in rows]


# ── Commits ──

COMMIT_COLS = [
    "project", "commit_hash", "commit_message", "branch", "author_name",
    "author_email", "commit_time", "date", "files_changed", "lines_added",
    "lines_deleted",
]


def record_commit(project: str, commit_hash: str, commit_message: str,
                  commit_time: datetime, branch: str | None = None,
                  author_name: str | None = None, author_email: str | None = None,
                  files_changed: int = 0, lines_added: int = 0,
                  lines_deleted: int = 0) -> int:
    """Log one commit. A hash already logged for the project keeps its row."""
    project = (project or "").strip()
    commit_hash = (commit_hash or "").strip()
    if not project or not commit_hash or not commit_message:
        raise ValueError("a commit needs a project, a hash and a message")
    if commit_time.tzinfo is None:
        commit_time = commit_time.replace(tzinfo=TZ)
    local = commit_time.astimezone(TZ)
    row = (
        project, commit_hash, commit_message, branch or None,
        author_name or None, author_email or None, local.isoformat(),
        local.date().isoformat(), files_changed, lines_added, lines_deleted,
    )
    with _write("logging commit") as conn:
        conn.execute(
            f"INSERT OR IGNORE INTO commits({','.join(COMMIT_COLS)}) "
            f"VALUES({','.join('?' for _ in COMMIT_COLS)})",
            row,
        )
        found = conn.execute(
            "SELECT id FROM commits WHERE project = ? AND commit_hash = ?",
            (project, commit_hash),
        ).fetchone()
    logger.info("Logged commit %s for %r", commit_hash[:12], project)
    return found["id"]


def list_commits(project: str | None = None, from_date: date | None = None,
                 to_date: date | None = None) -> list[dict]:
    """Logged commits, newest first, optionally narrowed by project and date."""
    clauses, params = [], []
    if project is not None:
        clauses.append("project = ?")
        params.append(project)
    if from_date is not None:
        clauses.append("date >= ?")
        params.append(from_date.isoformat())
    if to_date is not None:
        clauses.append("date <= ?")
        params.append(to_date.isoformat())
    sql = "SELECT id, " + ", ".join(COMMIT_COLS) + " FROM commits"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY commit_time DESC, id DESC"
    with _storage_errors("listing commits"):
        rows = get_read_conn().execute(sql, params).fetchall()
    return [dict(r) for r in rows]
