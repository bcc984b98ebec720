from __future__ import annotations

import os
import time
import logging
from pathlib import Path
from urllib.parse import quote

from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from markupsafe import escape
from starlette.responses import JSONResponse
from starlette.templating import Jinja2Templates
from sqlalchemy import func

from fieldreport.core.config import settings
from fieldreport.core.rbac import is_reviewer, can_create_submission
from fieldreport.db.session import get_db
from fieldreport.auth.deps import SESSION_COOKIE, RequestContext, get_context
from fieldreport.utils.badges import get_badge_count
from fieldreport.utils.http import is_hx, is_fetch_request, wants_html, request_path_with_query

# Import models to populate SQLAlchemy metadata (needed for create_all)
import fieldreport.db.models  # noqa: F401

from fieldreport.db.models.submission import Submission, SubmissionStatus, STATUS_LABELS

from fieldreport.auth.router import router as auth_router
from fieldreport.modules.context.router import router as context_router
from fieldreport.modules.submissions.router import router as submissions_router
from fieldreport.modules.participants.router import router as participants_router
from fieldreport.modules.review.router import router as review_router
from fieldreport.modules.notifications.router import router as notifications_router


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fieldreport")


def _login_redirect_url(request: Request) -> str:
    next_url = quote(request_path_with_query(request), safe="")
    return f"/login?redirect_url={next_url}"


templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

# Make RBAC helpers available in templates
templates.env.globals["is_reviewer"] = is_reviewer
templates.env.globals["can_create_submission"] = can_create_submission
templates.env.globals["STATUS_LABELS"] = STATUS_LABELS

app = FastAPI(title=settings.APP_NAME)
app.state.templates = templates

# CORS (Access-Control-Allow-*) - configurable
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
)

app.add_middleware(GZipMiddleware, minimum_size=800)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start = time.perf_counter()
    resp = await call_next(request)
    resp.headers["X-Process-Time-ms"] = f"{(time.perf_counter() - start) * 1000:.2f}"
    return resp


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    resp = await call_next(request)
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["X-Frame-Options"] = "SAMEORIGIN"
    resp.headers["Referrer-Policy"] = "same-origin"
    resp.headers["Permissions-Policy"] = "geolocation=(self), camera=(self), microphone=()"
    return resp


@app.exception_handler(HTTPException)
async def http_exc_handler(request: Request, exc: HTTPException):
    hx = is_hx(request)

    # 401: redirect to login (works for both normal and HTMX)
    if exc.status_code == 401:
        login_url = _login_redirect_url(request)
        if hx:
            resp = HTMLResponse("", status_code=401)
            resp.headers["X-Session-Expired"] = "1"
            resp.headers["X-Login-Url"] = login_url
            resp.delete_cookie(SESSION_COOKIE)
            return resp

        if is_fetch_request(request):
            resp = JSONResponse(
                status_code=401,
                content={"detail": "Session expired", "login_url": login_url},
            )
            resp.headers["X-Session-Expired"] = "1"
            resp.headers["X-Login-Url"] = login_url
            resp.delete_cookie(SESSION_COOKIE)
            return resp

        resp = RedirectResponse(login_url, status_code=303)
        resp.delete_cookie(SESSION_COOKIE)
        return resp

    # HTMX: return small inline alert to avoid swapping a full page into a component
    if hx:
        return HTMLResponse(
            f'<div class="alert alert-danger mb-0">Error ({exc.status_code}): {escape(str(exc.detail))}</div>',
            status_code=exc.status_code,
        )

    if wants_html(request) and not is_fetch_request(request):
        return templates.TemplateResponse(
            request,
            "error.html",
            {"status_code": exc.status_code, "detail": exc.detail, "badge_count": 0},
            status_code=exc.status_code,
        )

    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception", exc_info=exc)

    if is_hx(request):
        return HTMLResponse(
            '<div class="alert alert-danger mb-0">An unexpected error occurred.</div>',
            status_code=500,
        )

    if wants_html(request) and not is_fetch_request(request):
        return templates.TemplateResponse(
            request,
            "error.html",
            {"status_code": 500, "detail": "An unexpected error occurred.", "badge_count": 0},
            status_code=500,
        )

    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


# Uploaded photos (served as static). Make sure directory exists.
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

# Routers
app.include_router(auth_router)
app.include_router(context_router)
app.include_router(submissions_router)
app.include_router(participants_router)
app.include_router(review_router)
app.include_router(notifications_router)


@app.get("/health", response_class=JSONResponse)
def health():
    return {"status": "ok", "app": settings.APP_NAME}


@app.get("/", response_class=HTMLResponse)
def home(request: Request, db=Depends(get_db), ctx: RequestContext = Depends(get_context)):
    user = ctx.user
    q = db.query(Submission.status, func.count(Submission.id))
    if not is_reviewer(user):
        q = q.filter(Submission.submitted_by == user.id)
    if ctx.project_id is not None:
        q = q.filter(Submission.project_id == ctx.project_id)
    counts = dict(q.group_by(Submission.status).all())

    kpi = {
        "unread_notifications": get_badge_count(db, user),
        "by_status": {st.value: int(counts.get(st, 0)) for st in SubmissionStatus},
        "total_submissions": int(sum(counts.values())),
    }
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"user": user, "badge_count": kpi["unread_notifications"], "kpi": kpi, "project_id": ctx.project_id},
    )
