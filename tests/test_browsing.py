from datetime import datetime

import pytest

from codepulse import store
from codepulse.browsing import normalize_host, report_browsing
from codepulse.sessions import MalformedSessionError, SessionType, TZ

NOW = datetime(2025, 1, 15, 14, 30, tzinfo=TZ)


def test_routed_visit_records_one_browsing_session(conn):
    store.upsert_url_route("ihr", "ihr.local")

    outcome = report_browsing("https://ihr.local/page", 90, now=NOW)

    assert outcome.matched
    assert outcome.project == "ihr"
    (s,) = store.query_all()
    assert s.project == "ihr"
    assert s.type is SessionType.BROWSING
    assert s.duration == 90
    assert s.end == NOW
    assert s.host == "ihr.local"
    assert s.url == "https://ihr.local/page"
    assert outcome.to_dict()["status"] == "recorded"


def test_unrouted_visit_is_dropped(conn):
    store.upsert_url_route("ihr", "ihr.local")
    outcome = report_browsing("https://news.ycombinator.com/", 120, now=NOW)
    assert not outcome.matched
    assert outcome.to_dict() == {"status": "unmatched", "host": "news.ycombinator.com"}
    assert store.query_all() == []


def test_explicit_project_used_only_without_route(conn):
    store.upsert_url_route("ihr", "ihr.local")

    pinned = report_browsing("https://meet.example.com/abc", 60, project="standup", now=NOW)
    assert pinned.project == "standup"

    routed = report_browsing("https://ihr.local/", 60, project="standup", now=NOW)
    assert routed.project == "ihr"


@pytest.mark.parametrize("url,duration", [
    ("https://ihr.local/", 0),
    ("https://ihr.local/", -5),
    ("", 30),
    ("https://", 30),
])
def test_malformed_reports_raise(conn, url, duration):
    store.upsert_url_route("ihr", "ihr.local")
    with pytest.raises(MalformedSessionError):
        report_browsing(url, duration, now=NOW)
    assert store.query_all() == []


def test_normalize_host():
    assert normalize_host("https://IHR.local:8080/x?y=1") == "ihr.local"
    assert normalize_host("ihr.local/page") == "ihr.local"
    assert normalize_host("http://user:pw@docs.python.org/3/") == "docs.python.org"


def test_custom_append_is_used(conn):
    store.upsert_url_route("ihr", "ihr.local")
    seen = []
    report_browsing("https://ihr.local/", 30, now=NOW, append=lambda s: seen.append(s) or s)
    assert len(seen) == 1
    assert store.query_all() == []
