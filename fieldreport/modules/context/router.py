from __future__ import annotations

from fastapi import APIRouter, Request, Depends, Form
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from fieldreport.auth.deps import CONTEXT_COOKIE, RequestContext, get_context
from fieldreport.core.config import settings
from fieldreport.core.rbac import require
from fieldreport.core.security import sign_context
from fieldreport.db.models.project import Project
from fieldreport.db.session import get_db

router = APIRouter(prefix="/context", tags=["context"])


@router.get("")
def current(db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)):
    projects = db.query(Project).order_by(Project.name.asc()).all()
    return JSONResponse(
        {
            "user_id": ctx.user.id,
            "project_id": ctx.project_id,
            "projects": [{"id": p.id, "name": p.name} for p in projects],
        }
    )


@router.post("/project")
def select_project(
    request: Request,
    project_id: str = Form(""),
    next_url: str = Form("/submissions"),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    """Persist the selected project (blank clears it)."""
    pid: int | None = None
    if project_id.strip():
        require(project_id.strip().isdigit(), "Invalid project.", 400)
        pid = int(project_id)
        require(db.get(Project, pid) is not None, "Project not found.", 404)

    # Prevent open redirect: only allow local paths
    if not (next_url or "").startswith("/") or next_url.startswith("//"):
        next_url = "/submissions"
    resp = RedirectResponse(next_url, status_code=303)
    resp.set_cookie(
        CONTEXT_COOKIE,
        sign_context({"user_id": ctx.user.id, "project_id": pid}),
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
    )
    return resp
