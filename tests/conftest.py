import pytest

from codepulse import db


@pytest.fixture
def conn(tmp_path, monkeypatch):
    """A fresh session log in a temp directory."""
    db.close_conn()
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "codepulse.db"))
    c = db.get_conn()
    yield c
    db.close_conn()
