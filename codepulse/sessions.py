"""Session records: the unit of tracked time.

A session is an immutable ``[start, end)`` interval of active work on one
project, tagged with the resource that was active (a file for coding, a
host/url for browsing).
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from .config import TZ_NAME

TZ = ZoneInfo(TZ_NAME)


class MalformedSessionError(ValueError):
    """A record that can never become a valid session."""


class StorageError(RuntimeError):
    """Reading or writing the session store failed. Safe to retry."""


class SessionType(str, Enum):
    CODING = "coding"
    BROWSING = "browsing"


def parse_ts(ts_str: str) -> datetime:
    """Parse an ISO timestamp, attaching the local timezone when it has none."""
    if not ts_str:
        raise MalformedSessionError("empty timestamp")
    try:
        ts = datetime.fromisoformat(ts_str.replace("Z", "+00:00"))
    except (ValueError, TypeError) as e:
        raise MalformedSessionError(f"unparseable timestamp {ts_str!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=TZ)
    return ts


def now_local() -> datetime:
    return datetime.now(TZ).replace(microsecond=0)


@dataclass(frozen=True)
class Session:
    project: str
    start: datetime
    end: datetime
    type: SessionType = SessionType.CODING
    file: str | None = None
    host: str | None = None
    url: str | None = None
    id: int | None = None

    @property
    def duration(self) -> int:
        return int((self.end - self.start).total_seconds())

    @property
    def date(self) -> str:
        return self.start.astimezone(TZ).strftime("%Y-%m-%d")

    @property
    def identity(self) -> tuple:
        return (self.type, self.file, self.host, self.url)

    def validate(self) -> "Session":
        if not self.project or not self.project.strip():
            raise MalformedSessionError("session has no project")
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise MalformedSessionError("session timestamps must be timezone-aware")
        if self.end <= self.start:
            raise MalformedSessionError(
                f"session for {self.project!r} ends at or before its start "
                f"({self.start.isoformat()} -> {self.end.isoformat()})"
            )
        return self

    def with_end(self, end: datetime) -> "Session":
        return replace(self, end=end)

    def to_dict(self) -> dict:
        """JSON form used by the stats API. Unset resource fields are left out."""
        d = {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "type": self.type.value,
        }
        for key in ("file", "host", "url"):
            val = getattr(self, key)
            if val is not None:
                d[key] = val
        return d

    @classmethod
    def from_row(cls, row) -> "Session":
        return cls(
            id=row["id"],
            project=row["project"],
            start=parse_ts(row["start"]),
            end=parse_ts(row["end"]),
            type=SessionType(row["type"]),
            file=row["file"],
            host=row["host"],
            url=row["url"],
        )
