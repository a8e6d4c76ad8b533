import json

from codepulse import store
from migrate.import_json import import_legacy, main


LEGACY = {
    "config": {"idleThreshold": 120},
    "2025-01-15": {
        "alpha": {
            "duration": 660,
            "history": [
                {"start": "2025-01-15T09:00:00", "end": "2025-01-15T09:10:00",
                 "type": "coding", "file": "src/app.py"},
                {"start": "2025-01-15T09:20:00", "end": "2025-01-15T09:21:00",
                 "type": "browsing", "host": "docs.python.org", "url": "https://docs.python.org/3/"},
                {"start": "2025-01-15T10:00:00", "end": "2025-01-15T09:00:00", "type": "coding"},
                {"start": "2025-01-15T10:00:00", "end": "2025-01-15T10:05:00", "type": "meeting"},
                {"start": "", "end": "2025-01-15T10:05:00"},
                "garbage",
            ],
        },
        "beta": {"duration": 0},
    },
}


def test_import_legacy_counts(conn):
    counts = import_legacy(LEGACY)
    assert counts == {"imported": 2, "skipped": 4, "failed": 0}

    sessions = store.query_all()
    assert [s.duration for s in sessions] == [600, 60]
    assert sessions[0].file == "src/app.py"
    assert sessions[1].host == "docs.python.org"
    assert {s.project for s in sessions} == {"alpha"}


def test_main_reads_file(conn, tmp_path, capsys):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(LEGACY))

    assert main([str(path)]) == 0
    assert "Sessions imported: 2" in capsys.readouterr().out
    assert len(store.query_all()) == 2


def test_main_missing_file(conn, tmp_path):
    assert main([str(tmp_path / "nope.json")]) == 1
