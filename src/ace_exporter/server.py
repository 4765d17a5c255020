"""FastAPI web server for ace-exporter."""

import logging
from dataclasses import asdict
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from .export import ExportRequest, slugify
from .index import SessionNotIndexedError
from .service import SessionService

logger = logging.getLogger(__name__)

app = FastAPI(title="ace-exporter", version="0.1.0")

Mode = Literal["clean", "develop"]
Detail = Literal["preview", "full"]
Strategy = Literal["single_file", "one_file_per_session"]

# Service (created on first request)
_service: SessionService | None = None


def _get_service() -> SessionService:
    """Lazily create and cache the session service."""
    global _service
    if _service is None:
        _service = SessionService()
        logger.info("Session service ready (settings: %s)", _service.settings_store.path)
    return _service


class SettingsPatch(BaseModel):
    data_roots: Optional[list[str]] = None
    include_archived: Optional[bool] = None
    default_export_mode: Optional[str] = None
    default_export_directory: Optional[str] = None


class ExportBody(BaseModel):
    session_ids: list[str]
    mode: Mode = "clean"
    strategy: Strategy = "single_file"
    destination_path: Optional[str] = None
    copy_to_clipboard: bool = False


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/settings")
async def get_settings():
    return _get_service().settings_store.get().to_dict()


@app.put("/api/settings")
async def update_settings(patch: SettingsPatch):
    changes = patch.model_dump(exclude_none=True)
    return _get_service().settings_store.update(changes).to_dict()


@app.post("/api/sessions/scan")
async def scan_sessions():
    """Rescan every data root and return the refreshed session list."""
    result = await _get_service().scan_sessions()
    return {
        "sessions": [s.to_dict() for s in result.sessions],
        "stats": asdict(result.stats),
    }


@app.get("/api/sessions")
async def get_sessions(
    search: str | None = Query(None, description="Search in titles and projects"),
    project: str | None = Query(None, description="Filter by project name"),
    archived: bool | None = Query(None, description="Filter by archived state"),
    workspace_only: bool = Query(False, description="Only sessions under a workspace root"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """Return sessions from the last scan, newest first."""
    service = _get_service()
    if not service.sessions:
        await service.scan_sessions()

    sessions = service.sessions

    if search:
        search_lower = search.lower()
        sessions = [
            s for s in sessions
            if search_lower in (s.title or "").lower()
            or search_lower in s.project_name.lower()
            or search_lower in s.session_id.lower()
        ]

    if project:
        sessions = [s for s in sessions if s.project_name == project]

    if archived is not None:
        sessions = [s for s in sessions if s.archived == archived]

    if workspace_only:
        sessions = [s for s in sessions if s.in_workspace]

    total = len(sessions)
    sessions = sessions[offset: offset + limit]

    return {
        "total": total,
        "sessions": [s.to_dict() for s in sessions],
    }


@app.get("/api/session/{session_id:path}")
async def load_session(
    session_id: str,
    mode: Mode = Query("clean"),
    detail: Detail = Query("preview"),
):
    """Return the rendered Markdown preview of a session."""
    try:
        return await _get_service().load_session(session_id, mode, detail)
    except SessionNotIndexedError:
        raise HTTPException(status_code=404, detail=f"Session not indexed: {session_id}")


@app.get("/api/export/{session_id:path}")
async def export_session(session_id: str, mode: Mode = Query("clean")):
    """Download the full Markdown export of one session."""
    try:
        bundle = await _get_service().get_markdown_bundle(session_id, mode, "full")
    except SessionNotIndexedError:
        raise HTTPException(status_code=404, detail=f"Session not indexed: {session_id}")

    filename = f"{slugify(bundle.title) or 'session'}_{session_id[:8]}.md"
    return Response(
        content=bundle.markdown,
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/export")
async def export_markdown(body: ExportBody):
    """Export sessions to disk and/or the clipboard."""
    request = ExportRequest(**body.model_dump())
    try:
        result = await _get_service().export_markdown(request)
    except SessionNotIndexedError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OSError as e:
        logger.error("Export failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Export failed: {e}")
    return asdict(result)


@app.post("/api/export/latest")
async def quick_export_latest(mode: Mode = Query("clean")):
    """Export the most recently updated session to the default directory."""
    try:
        result = await _get_service().quick_export_latest(mode)
    except OSError as e:
        logger.error("Quick export failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Export failed: {e}")
    return asdict(result)
