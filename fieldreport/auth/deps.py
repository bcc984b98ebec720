from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request, Depends, HTTPException
from sqlalchemy.orm import Session

from fieldreport.db.session import get_db
from fieldreport.core.security import verify_session, verify_context
from fieldreport.db.models.project import Project
from fieldreport.db.models.user import User

SESSION_COOKIE = "sid"
CONTEXT_COOKIE = "ctx"


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload = verify_session(token)
    if not payload or "user_id" not in payload:
        raise HTTPException(status_code=401, detail="Invalid session")
    user = db.get(User, payload["user_id"])
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user


@dataclass(slots=True)
class RequestContext:
    """Who is asking and which project they are working in.

    The selected project survives page loads in a signed cookie; it is loaded
    here for every request and written only by the context router.
    """

    user: User
    project_id: int | None = None


def get_context(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> RequestContext:
    ctx = RequestContext(user=user)
    token = request.cookies.get(CONTEXT_COOKIE)
    payload = verify_context(token) if token else None
    if not payload or payload.get("user_id") != user.id:
        return ctx
    project_id = payload.get("project_id")
    if project_id is not None and db.get(Project, project_id) is not None:
        ctx.project_id = int(project_id)
    return ctx
