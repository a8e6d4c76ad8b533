"""Browsing reports: a visited URL plus seconds spent, routed to a project."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import urlsplit

from . import store
from .sessions import MalformedSessionError, Session, SessionType, now_local

logger = logging.getLogger(__name__)


@dataclass
class BrowsingOutcome:
    host: str
    project: str | None = None
    session: Session | None = None

    @property
    def matched(self) -> bool:
        return self.session is not None

    def to_dict(self) -> dict:
        if not self.matched:
            return {"status": "unmatched", "host": self.host}
        return {
            "status": "recorded",
            "host": self.host,
            "project": self.project,
            "session": self.session.to_dict(),
            "duration": self.session.duration,
        }


def normalize_host(url: str) -> str:
    """Lowercase host of ``url``. Bare ``host/path`` strings are accepted."""
    url = (url or "").strip()
    if not url:
        raise MalformedSessionError("empty URL")
    parts = urlsplit(url if "://" in url else "//" + url)
    try:
        host = parts.hostname
    except ValueError as e:
        raise MalformedSessionError(f"bad URL {url!r}") from e
    if not host:
        raise MalformedSessionError(f"URL {url!r} has no host")
    return host


def report_browsing(
    url: str,
    duration: int,
    project: str | None = None,
    now: datetime | None = None,
    append: Callable[[Session], Session] | None = None,
) -> BrowsingOutcome:
    """Record ``duration`` seconds of browsing ``url`` ending now.

    The project comes from the URL routes; an explicit ``project`` is only
    used when no route matches. Unrouted URLs are dropped.
    """
    if duration is None or int(duration) <= 0:
        raise MalformedSessionError(f"non-positive browsing duration {duration!r}")
    host = normalize_host(url)
    target = store.resolve_project(host) or (project or "").strip() or None
    if target is None:
        logger.info("URL %s did not match any project", url)
        return BrowsingOutcome(host=host)

    end = now or now_local()
    session = Session(
        project=target,
        start=end - timedelta(seconds=int(duration)),
        end=end,
        type=SessionType.BROWSING,
        host=host,
        url=url,
    )
    stored = (append or store.append_session)(session)
    logger.info("Added %ss browsing time to project %r from %s", duration, target, host)
    return BrowsingOutcome(host=host, project=target, session=stored)
