"""Ingestion endpoints called by the editor host and the browser extension.

POST /url-track              - browsing time for a URL
POST /api/activity/input     - the user touched keyboard or mouse
POST /api/activity/focus     - an editor window gained focus / switched file
POST /api/activity/save      - a project file was saved
POST /api/projects/{name}/open|close - start or stop tracking a project
"""

import logging

from fastapi import APIRouter, HTTPException

from .activity import monitor
from .browsing import report_browsing
from .models import BrowsingReport, FocusReport, SaveReport
from .recorder import registry, relative_resource
from .sessions import MalformedSessionError, StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/url-track")
async def url_track(req: BrowsingReport):
    try:
        outcome = report_browsing(req.url, req.duration, project=req.project)
    except MalformedSessionError as e:
        logger.warning("Rejected browsing report for %s: %s", req.url, e)
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return outcome.to_dict()


@router.post("/api/activity/input")
async def input_event():
    monitor.record_input()
    return {"status": "ok"}


@router.post("/api/activity/focus")
async def editor_focus(req: FocusReport):
    resource = relative_resource(req.resource, req.base_path)
    try:
        registry.report_focus(req.project, resource)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Project {req.project!r} is not open")
    return {"status": "ok", "project": req.project, "resource": resource}


@router.post("/api/activity/save")
async def file_saved(req: SaveReport):
    resource = relative_resource(req.resource, req.base_path)
    try:
        session = registry.report_save(req.project, resource)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Project {req.project!r} is not open")
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if session is None:
        return {"status": "skipped"}
    return {"status": "recorded", "session": session.to_dict()}


@router.post("/api/projects/{name}/open")
async def open_project(name: str, resource: str | None = None):
    try:
        rec = registry.register(name, resource)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return rec.to_dict()


@router.post("/api/projects/{name}/close")
async def close_project(name: str):
    if not registry.deregister(name):
        raise HTTPException(status_code=404, detail=f"Project {name!r} is not open")
    return {"status": "closed", "project": name}


@router.get("/api/recorders")
async def recorders():
    out = []
    for name in registry.projects():
        try:
            out.append(registry.get(name).to_dict())
        except KeyError:
            continue  # closed while listing
    return {"focused": monitor.focused_project, "recorders": out}
