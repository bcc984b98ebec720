from __future__ import annotations

import logging
from urllib.parse import urlparse

from fastapi import APIRouter, Request, Depends, Form
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from fieldreport.auth.deps import SESSION_COOKIE, CONTEXT_COOKIE
from fieldreport.core.config import settings
from fieldreport.core.security import verify_password, sign_session
from fieldreport.db.models.user import User
from fieldreport.db.session import get_db

router = APIRouter()

logger = logging.getLogger("fieldreport.auth")


def _safe_next_url(next_url: str | None) -> str:
    if not next_url:
        return "/"

    parsed = urlparse(next_url)
    if parsed.scheme or parsed.netloc:
        return "/"

    path = parsed.path or "/"
    if not path.startswith("/"):
        path = "/" + path.lstrip("/")
    if path.startswith("//"):
        return "/"
    if path in ("/login", "/logout"):
        return "/"

    if parsed.query:
        path = f"{path}?{parsed.query}"
    return path


@router.get("/login")
def login_page(request: Request, next: str = "", redirect_url: str = ""):
    target = _safe_next_url(redirect_url or next)
    return request.app.state.templates.TemplateResponse(
        request,
        "auth/login.html",
        {"badge_count": 0, "next_url": target},
    )


@router.post("/login")
def login(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    next_url: str = Form(""),
    redirect_url: str = Form(""),
    db: Session = Depends(get_db),
):
    target_url = _safe_next_url(redirect_url or next_url)
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login for %r", username)
        return request.app.state.templates.TemplateResponse(
            request,
            "auth/login.html",
            {"error": "Invalid username or password.", "badge_count": 0, "next_url": target_url},
            status_code=400,
        )

    if not user.is_active:
        return request.app.state.templates.TemplateResponse(
            request,
            "auth/login.html",
            {"error": "This account is disabled.", "badge_count": 0, "next_url": target_url},
            status_code=403,
        )

    sid = sign_session({"user_id": user.id})
    resp = RedirectResponse(target_url or "/", status_code=303)
    resp.set_cookie(
        SESSION_COOKIE,
        sid,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
    )
    return resp


@router.post("/logout")
def logout():
    resp = RedirectResponse("/login", status_code=303)
    resp.delete_cookie(SESSION_COOKIE)
    resp.delete_cookie(CONTEXT_COOKIE)
    return resp
