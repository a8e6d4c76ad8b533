import sqlite3
import threading
from datetime import date, datetime, timedelta

import pytest

from codepulse import store
from codepulse.sessions import MalformedSessionError, Session, SessionType, StorageError, TZ


def sess(project, day, hour, minutes=5, **kw):
    start = datetime(2025, 1, day, hour, 0, tzinfo=TZ)
    return Session(project=project, start=start, end=start + timedelta(minutes=minutes), **kw)


def test_append_assigns_id_and_persists(conn):
    stored = store.append_session(sess("alpha", 15, 9, file="a.py"))
    assert stored.id is not None

    row = conn.execute("SELECT * FROM sessions WHERE id = ?", (stored.id,)).fetchone()
    assert row["project"] == "alpha"
    assert row["date"] == "2025-01-15"
    assert row["file"] == "a.py"
    assert row["type"] == "coding"
    assert row["host"] is None


def test_query_by_date_range_is_inclusive_and_ordered(conn):
    store.append_session(sess("alpha", 16, 9))
    store.append_session(sess("alpha", 14, 9))
    store.append_session(sess("beta", 15, 11))
    store.append_session(sess("alpha", 15, 8))
    store.append_session(sess("alpha", 17, 8))

    got = store.query_by_date_range(date(2025, 1, 14), date(2025, 1, 16))
    assert [(s.date, s.start.hour) for s in got] == [
        ("2025-01-14", 9), ("2025-01-15", 8), ("2025-01-15", 11), ("2025-01-16", 9),
    ]
    assert len(store.query_all()) == 5


def test_round_trip_keeps_browsing_fields(conn):
    store.append_session(sess("alpha", 15, 9, type=SessionType.BROWSING,
                              host="ihr.local", url="https://ihr.local/page"))
    (s,) = store.query_all()
    assert s.type is SessionType.BROWSING
    assert s.host == "ihr.local"
    assert s.url == "https://ihr.local/page"
    assert s.file is None
    assert s.duration == 300


@pytest.mark.parametrize("bad", [
    Session(project="", start=datetime(2025, 1, 15, 9, tzinfo=TZ), end=datetime(2025, 1, 15, 10, tzinfo=TZ)),
    Session(project="p", start=datetime(2025, 1, 15, 9, tzinfo=TZ), end=datetime(2025, 1, 15, 9, tzinfo=TZ)),
    Session(project="p", start=datetime(2025, 1, 15, 9), end=datetime(2025, 1, 15, 10)),
])
def test_malformed_session_is_rejected(conn, bad):
    with pytest.raises(MalformedSessionError):
        store.append_session(bad)
    assert store.query_all() == []


def test_storage_errors_are_wrapped(conn, monkeypatch):
    broken = sqlite3.connect(":memory:")
    broken.close()
    monkeypatch.setattr(store, "get_conn", lambda: broken)
    monkeypatch.setattr(store, "get_read_conn", lambda: broken)
    with pytest.raises(StorageError):
        store.append_session(sess("alpha", 15, 9))
    with pytest.raises(StorageError):
        store.query_all()


def test_version_moves_on_append(conn):
    before = store.get_version()
    store.append_session(sess("alpha", 15, 9))
    assert store.get_version() == before + 1


class CommitFails:
    """Writer connection whose commit lets another thread read, then fails."""

    def __init__(self, real):
        self._real = real
        self.seen_by_reader = None

    def __getattr__(self, name):
        return getattr(self._real, name)

    def commit(self):
        def read():
            self.seen_by_reader = [s.project for s in store.query_all()]

        t = threading.Thread(target=read)
        t.start()
        t.join(5)
        raise sqlite3.OperationalError("disk I/O error")


def test_open_write_is_invisible_to_other_threads(conn, monkeypatch):
    store.append_session(sess("alpha", 14, 9))
    failing = CommitFails(conn)
    monkeypatch.setattr(store, "get_conn", lambda: failing)
    before = store.get_version()

    with pytest.raises(StorageError):
        store.append_session(sess("beta", 15, 9))

    assert failing.seen_by_reader == ["alpha"]
    assert store.get_version() == before
    assert [s.project for s in store.query_all()] == ["alpha"]


def test_unreadable_rows_are_skipped(conn):
    store.append_session(sess("alpha", 15, 9))
    conn.execute(
        'INSERT INTO sessions(project, date, start, "end", start_epoch, end_epoch, type) '
        "VALUES('alpha', '2025-01-15', 'garbage', 'garbage', 0, 0, 'coding')"
    )
    conn.commit()
    assert len(store.query_all()) == 1


def test_active_projects_most_recent_first(conn):
    store.append_session(sess("alpha", 15, 9))
    store.append_session(sess("beta", 16, 9))
    store.append_session(sess("gamma", 14, 9))
    assert [p["name"] for p in store.active_projects()] == ["beta", "alpha", "gamma"]


# ── URL routes ──

def test_url_route_crud(conn):
    rid = store.upsert_url_route("ihr", "IHR.local")
    assert store.upsert_url_route("ihr", "ihr.local") == rid
    other = store.upsert_url_route("docs", "readthedocs.io")

    assert store.list_url_routes("ihr") == [{"id": rid, "project": "ihr", "url": "ihr.local"}]
    assert len(store.list_url_routes()) == 2

    store.upsert_url_route("ihr", "ihr.dev", route_id=rid)
    assert store.list_url_routes("ihr")[0]["url"] == "ihr.dev"
    with pytest.raises(KeyError):
        store.upsert_url_route("ihr", "x", route_id=9999)
    with pytest.raises(ValueError):
        store.upsert_url_route("ihr", "  ")

    assert store.remove_url_route(other) is True
    assert store.remove_url_route(other) is False
    store.upsert_url_route("ihr", "ihr.local")
    assert store.remove_url_routes("ihr") == 2
    assert store.list_url_routes() == []


def test_resolve_prefers_longest_pattern(conn):
    store.upsert_url_route("company", "example.com")
    store.upsert_url_route("wiki", "wiki.example.com")
    assert store.resolve_project("wiki.example.com") == "wiki"
    assert store.resolve_project("www.example.com") == "company"
    assert store.resolve_project("WIKI.Example.com") == "wiki"


def test_resolve_ties_break_lexicographically_then_newest(conn):
    store.upsert_url_route("first", "abc")
    store.upsert_url_route("second", "bcd")
    assert store.resolve_project("abcd.io") == "second"

    store.upsert_url_route("newer", "abc")
    store.remove_url_routes("second")
    assert store.resolve_project("abcd.io") == "newer"


def test_resolve_unmatched(conn):
    store.upsert_url_route("ihr", "ihr.local")
    assert store.resolve_project("news.ycombinator.com") is None
    assert store.resolve_project("") is None


# ── Ignored projects and display names ──

def test_ignored_projects(conn):
    iid = store.ignore_project("legacy")
    assert store.ignore_project("legacy") == iid
    assert store.ignored_project_names() == {"legacy"}
    (row,) = store.list_ignored_projects()
    assert row["project_name"] == "legacy"
    assert row["ignored_at"]

    assert store.unignore_project(iid) is True
    assert store.ignored_project_names() == set()
    with pytest.raises(ValueError):
        store.ignore_project("")


def test_ignoring_keeps_sessions(conn):
    store.append_session(sess("legacy", 15, 9))
    store.ignore_project("legacy")
    assert len(store.query_all()) == 1


def test_project_display_upsert(conn):
    did = store.upsert_project_display("alpha", "Alpha App", "https://x/logo.png")
    assert store.upsert_project_display("alpha", "Alpha") == did
    (row,) = store.list_project_displays()
    assert row["custom_name"] == "Alpha"
    assert row["logo_url"] is None
    assert store.remove_project_display(did) is True
    assert store.list_project_displays() == []


def test_commit_log(conn):
    t1 = datetime(2025, 1, 15, 10, 30, tzinfo=TZ)
    t2 = datetime(2025, 1, 16, 9, 0, tzinfo=TZ)
    first = store.record_commit("alpha", "abc123", "Fix parser", t1, branch="main", lines_added=4)
    store.record_commit("beta", "def456", "Add docs", t2)
    assert store.record_commit("alpha", "abc123", "Fix parser", t1) == first

    all_commits = store.list_commits()
    assert [c["commit_hash"] for c in all_commits] == ["def456", "abc123"]
    assert all_commits[1]["date"] == "2025-01-15"
    assert all_commits[1]["branch"] == "main"
    assert all_commits[1]["lines_added"] == 4

    assert [c["project"] for c in store.list_commits(project="alpha")] == ["alpha"]
    jan15 = store.list_commits(from_date=date(2025, 1, 15), to_date=date(2025, 1, 15))
    assert [c["commit_hash"] for c in jan15] == ["abc123"]

    with pytest.raises(ValueError):
        store.record_commit("alpha", " ", "msg", t1)
