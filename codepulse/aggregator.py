"""Rebuild per-day, per-project and per-week totals from the session log.

Nothing here is stored or cached: every call reads the log, merges raw
sessions per day and project, and sums the merged blocks. The same store
always yields the same output.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

from . import store
from .config import DAILY_GOAL_HOURS, MERGE_GAP_TOLERANCE_S
from .merge import merge_sessions, total_duration
from .sessions import Session, TZ

logger = logging.getLogger(__name__)


def get_cache_version() -> int:
    """Changes whenever a session is appended."""
    return store.get_version()


def _visible(sessions: Iterable[Session], include_hidden: bool) -> list[Session]:
    if include_hidden:
        return list(sessions)
    hidden = store.ignored_project_names()
    return [s for s in sessions if s.project not in hidden]


def build_day_aggregate(sessions: Iterable[Session],
                        gap_tolerance: int = MERGE_GAP_TOLERANCE_S) -> dict:
    """``{date: {project: {"duration": secs, "sessions": [...]}}}`` from raw sessions.

    Sessions are bucketed by the date of their start, so one that crosses
    midnight counts toward the day it began.
    """
    buckets: dict[tuple[str, str], list[Session]] = defaultdict(list)
    for s in sessions:
        if s.end <= s.start:
            logger.warning("Excluding session #%s for %s: ends before it starts", s.id, s.project)
            continue
        buckets[(s.date, s.project)].append(s)

    out: dict[str, dict] = {}
    for (day, project) in sorted(buckets):
        merged = merge_sessions(buckets[(day, project)], gap_tolerance)
        out.setdefault(day, {})[project] = {
            "duration": total_duration(merged),
            "sessions": [m.to_dict() for m in merged],
        }
    return out


def rollup(from_date: date, to_date: date, include_hidden: bool = False,
           gap_tolerance: int = MERGE_GAP_TOLERANCE_S) -> dict:
    sessions = store.query_by_date_range(from_date, to_date)
    return build_day_aggregate(_visible(sessions, include_hidden), gap_tolerance)


def all_time_stats(include_hidden: bool = False,
                   gap_tolerance: int = MERGE_GAP_TOLERANCE_S) -> dict:
    return build_day_aggregate(_visible(store.query_all(), include_hidden), gap_tolerance)


def week_bounds(week_of: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing ``week_of``.

    Raises ValueError for a week that runs past either end of the calendar.
    """
    try:
        monday = week_of - timedelta(days=week_of.weekday())
        return monday, monday + timedelta(days=6)
    except OverflowError:
        raise ValueError(f"the week of {week_of} is outside the supported date range") from None


def weekly_total(week_of: date, include_hidden: bool = False,
                 gap_tolerance: int = MERGE_GAP_TOLERANCE_S) -> dict[str, int]:
    start, end = week_bounds(week_of)
    totals: dict[str, int] = defaultdict(int)
    for projects in rollup(start, end, include_hidden, gap_tolerance).values():
        for project, node in projects.items():
            totals[project] += node["duration"]
    return dict(sorted(totals.items()))


def weekly_summary(week_of: date, include_hidden: bool = False,
                   gap_tolerance: int = MERGE_GAP_TOLERANCE_S) -> dict:
    start, end = week_bounds(week_of)
    days = rollup(start, end, include_hidden, gap_tolerance)

    daily = []
    projects: dict[str, int] = defaultdict(int)
    for i in range(7):
        d = (start + timedelta(days=i)).isoformat()
        per_project = {p: node["duration"] for p, node in days.get(d, {}).items()}
        for p, secs in per_project.items():
            projects[p] += secs
        daily.append({
            "date": d,
            "projects": per_project,
            "total": sum(per_project.values()),
        })

    return {
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "days": daily,
        "projects": dict(sorted(projects.items(), key=lambda kv: (-kv[1], kv[0]))),
        "total": sum(projects.values()),
        "daily_goal_s": int(DAILY_GOAL_HOURS * 3600),
    }


def display_names() -> dict[str, str]:
    """Project name -> custom display name, for projects that have one."""
    return {
        r["project_name"]: r["custom_name"]
        for r in store.list_project_displays()
        if r["custom_name"]
    }


def today() -> date:
    return datetime.now(TZ).date()
