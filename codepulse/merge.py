"""Collapse raw sessions into continuous blocks.

Raw sessions are written one flush at a time, so an hour of work is stored as
sixty one-minute rows. Merging happens at read time only; the stored rows are
never rewritten.
"""

import logging
from collections import defaultdict
from typing import Iterable

from .config import MERGE_GAP_TOLERANCE_S
from .sessions import Session

logger = logging.getLogger(__name__)


def _order_key(s: Session) -> tuple:
    return (s.start, s.end, s.type.value, s.file or "", s.host or "", s.url or "",
            s.id if s.id is not None else -1)


def merge_sessions(sessions: Iterable[Session],
                   gap_tolerance: int = MERGE_GAP_TOLERANCE_S) -> list[Session]:
    """Merge sessions of the same identity whose gap is at most ``gap_tolerance`` seconds.

    Identity is ``(type, file, host, url)``; sessions with different
    identities are never combined, however close in time. Sessions with a
    non-positive duration are skipped. The result is sorted by start and does
    not depend on input order, and merging it again returns it unchanged.
    All sessions are expected to belong to the same project.
    """
    groups: dict[tuple, list[Session]] = defaultdict(list)
    for s in sessions:
        if s.end <= s.start:
            logger.warning("Skipping malformed session #%s for %s: %s -> %s",
                           s.id, s.project, s.start.isoformat(), s.end.isoformat())
            continue
        groups[s.identity].append(s)

    merged: list[Session] = []
    for group in groups.values():
        group.sort(key=_order_key)
        current = group[0]
        for r in group[1:]:
            gap = (r.start - current.end).total_seconds()
            if gap <= gap_tolerance:
                if r.end > current.end:
                    current = current.with_end(r.end)
            else:
                merged.append(current)
                current = r
        merged.append(current)

    merged.sort(key=_order_key)
    return merged


def total_duration(sessions: Iterable[Session]) -> int:
    return sum(s.duration for s in sessions)
