"""Read endpoints for the dashboard, CRUD for the lookup tables and the commit log."""

from datetime import date

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from . import store
from .aggregator import all_time_stats, get_cache_version, rollup, today, weekly_summary
from .config import (
    DAILY_GOAL_HOURS, FLUSH_GRANULARITY_S, IDLE_THRESHOLD_S, MERGE_GAP_TOLERANCE_S,
    SAVE_SESSION_S, TZ_NAME,
)
from .models import CommitIn, IgnoredProjectIn, ProjectDisplayIn, UrlRouteIn
from .sessions import StorageError, now_local, parse_ts

router = APIRouter()


def _parse_day(value: str | None, name: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} date {value!r}")


# ── Stats ──

@router.get("/api/stats/version")
async def stats_version():
    return {"version": get_cache_version()}


@router.get("/api/stats")
async def stats(
    from_: str | None = Query(default=None, alias="from"),
    to: str | None = None,
    show_hidden: bool = False,
):
    start = _parse_day(from_, "from")
    end = _parse_day(to, "to")
    try:
        if start is None and end is None:
            data = all_time_stats(include_hidden=show_hidden)
        else:
            data = rollup(start or date.min, end or date.max, include_hidden=show_hidden)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return JSONResponse(content=data)


@router.get("/api/stats/week")
async def stats_week(week_of: str | None = None, show_hidden: bool = False):
    day = _parse_day(week_of, "week_of") or today()
    try:
        return weekly_summary(day, include_hidden=show_hidden)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/api/projects")
async def projects():
    return store.active_projects()


@router.get("/api/settings")
async def settings():
    return {
        "idleThresholdSeconds": IDLE_THRESHOLD_S,
        "flushGranularitySeconds": FLUSH_GRANULARITY_S,
        "mergeGapToleranceSeconds": MERGE_GAP_TOLERANCE_S,
        "saveSessionSeconds": SAVE_SESSION_S,
        "dailyGoalHours": DAILY_GOAL_HOURS,
        "timezone": TZ_NAME,
    }


# ── URL routes ──

@router.get("/api/urls")
async def list_urls(project: str | None = None):
    return store.list_url_routes(project)


@router.post("/api/urls", status_code=201)
async def add_url(req: UrlRouteIn):
    try:
        route_id = store.upsert_url_route(req.project, req.url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": route_id}


@router.put("/api/urls/{route_id}")
async def update_url(route_id: int, req: UrlRouteIn):
    try:
        store.upsert_url_route(req.project, req.url, route_id=route_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No URL route {route_id}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": route_id}


@router.delete("/api/urls/{route_id}", status_code=204)
async def delete_url(route_id: int):
    if not store.remove_url_route(route_id):
        raise HTTPException(status_code=404, detail=f"No URL route {route_id}")


# ── Ignored projects ──

@router.get("/api/ignored-projects")
async def list_ignored():
    return store.list_ignored_projects()


@router.post("/api/ignored-projects", status_code=201)
async def add_ignored(req: IgnoredProjectIn):
    try:
        return {"id": store.ignore_project(req.project_name)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/ignored-projects/{ignored_id}", status_code=204)
async def delete_ignored(ignored_id: int):
    if not store.unignore_project(ignored_id):
        raise HTTPException(status_code=404, detail=f"No ignored project {ignored_id}")


# ── Display names ──

@router.get("/api/project-names")
async def list_project_names():
    return store.list_project_displays()


@router.post("/api/project-names", status_code=201)
async def save_project_name(req: ProjectDisplayIn):
    try:
        return {"id": store.upsert_project_display(req.project_name, req.custom_name, req.logo_url)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/project-names/{display_id}", status_code=204)
async def delete_project_name(display_id: int):
    if not store.remove_project_display(display_id):
        raise HTTPException(status_code=404, detail=f"No project name {display_id}")


# ── Commits ──

@router.get("/api/commits")
async def list_commits(
    project: str | None = None,
    from_: str | None = Query(default=None, alias="from"),
    to: str | None = None,
):
    return store.list_commits(project, _parse_day(from_, "from"), _parse_day(to, "to"))


@router.post("/api/commits", status_code=201)
async def add_commit(req: CommitIn):
    try:
        when = parse_ts(req.commit_time) if req.commit_time else now_local()
        commit_id = store.record_commit(
            req.project, req.commit_hash, req.commit_message, when,
            branch=req.branch, author_name=req.author_name, author_email=req.author_email,
            files_changed=req.files_changed, lines_added=req.lines_added,
            lines_deleted=req.lines_deleted,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"id": commit_id}
