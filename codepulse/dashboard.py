"""GET / - server-rendered weekly summary."""

from datetime import date, timedelta
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from .aggregator import display_names, today, week_bounds, weekly_summary

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def _fmt_time(s):
    s = int(s)
    h, rem = divmod(s, 3600)
    m = rem // 60
    if h > 0:
        return f"{h}h {m}m"
    return f"{m}m"


def _neighbour_week(monday, days):
    try:
        return week_bounds(monday + timedelta(days=days))[0].isoformat()
    except (OverflowError, ValueError):
        return None


def _goal_pct(secs, goal_s):
    if goal_s <= 0:
        return 0
    return min(100, round(secs * 100 / goal_s))


@router.get("/", response_class=HTMLResponse)
async def dashboard(request: Request, week_of: str | None = None, show_hidden: bool = False):
    try:
        day = date.fromisoformat(week_of) if week_of else today()
        data = weekly_summary(day, include_hidden=show_hidden)
    except ValueError:
        data = weekly_summary(today(), include_hidden=show_hidden)
    names = display_names()
    goal_s = data["daily_goal_s"]

    rows = []
    for project, total in data["projects"].items():
        rows.append({
            "name": names.get(project, project),
            "cells": [_fmt_time(d["projects"].get(project, 0)) for d in data["days"]],
            "total": _fmt_time(total),
        })

    day_totals = [{
        "date": d["date"],
        "total": _fmt_time(d["total"]),
        "pct": _goal_pct(d["total"], goal_s),
    } for d in data["days"]]

    monday = date.fromisoformat(data["week_start"])
    return templates.TemplateResponse(request, "dashboard.html", {
        "week_start": data["week_start"],
        "week_end": data["week_end"],
        "prev_week": _neighbour_week(monday, -7),
        "next_week": _neighbour_week(monday, 7),
        "rows": rows,
        "day_totals": day_totals,
        "week_total": _fmt_time(data["total"]),
        "goal": _fmt_time(goal_s),
        "show_hidden": show_hidden,
    })
