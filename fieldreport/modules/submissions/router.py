from __future__ import annotations

from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from fieldreport.auth.deps import RequestContext, get_context, get_current_user
from fieldreport.core.config import settings
from fieldreport.core.deadline import Deadline
from fieldreport.core.outcome import OutcomeKind
from fieldreport.core.rbac import require, can_create_submission, can_view_submission, can_modify_submission
from fieldreport.core.workflow import allowed_actions, can_edit, is_editable
from fieldreport.db.models.project import Project
from fieldreport.db.models.submission import Submission, SubmissionStatus
from fieldreport.db.models.user import User
from fieldreport.db.session import get_db
from fieldreport.modules.participants import store as participants
from fieldreport.modules.participants.router import page_payload
from fieldreport.modules.submissions import service
from fieldreport.utils.badges import get_badge_count
from fieldreport.utils.http import wants_json
from fieldreport.utils.uploads import discard, is_upload, save_photo

router = APIRouter(prefix="/submissions", tags=["submissions"])

FORM_FIELDS = (
    "activity_stream",
    "specific_location",
    "community_group_type",
    "participant_count",
    "key_issues",
    "project_id",
)


def _load(db: Session, user: User, submission_id: int) -> Submission:
    s = db.get(Submission, submission_id)
    require(s is not None, "Submission not found", 404)
    require(can_view_submission(user, s))
    return s


def _form_values(formdata) -> dict:
    return {k: (formdata.get(k) or "") for k in FORM_FIELDS}


def _form_page(request: Request, db: Session, user: User, template: str, ctx: dict, status_code: int = 200):
    base = {
        "user": user,
        "badge_count": get_badge_count(db, user),
        "projects": db.query(Project).order_by(Project.name.asc()).all(),
    }
    return request.app.state.templates.TemplateResponse(request, template, {**base, **ctx}, status_code=status_code)


@router.get("", response_class=HTMLResponse)
def page(
    request: Request,
    page: int = 1,
    status: SubmissionStatus | None = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    """Submission listing, scoped to the selected project when one is set."""
    user = ctx.user
    subs, pagination = service.list_submissions(
        db,
        user,
        page=page,
        page_size=settings.SUBMISSIONS_PAGE_SIZE,
        project_id=ctx.project_id,
        status=status,
    )

    if wants_json(request):
        return JSONResponse(
            {
                "items": [service.snapshot(s) for s in subs],
                **pagination.as_dict(),
                "project_id": ctx.project_id,
            }
        )

    return request.app.state.templates.TemplateResponse(
        request,
        "submissions/index.html",
        {
            "subs": subs,
            "pagination": pagination,
            "selected_status": status.value if status else "",
            "statuses": list(SubmissionStatus),
            "project_id": ctx.project_id,
            "projects": db.query(Project).order_by(Project.name.asc()).all(),
            "user": user,
            "badge_count": get_badge_count(db, user),
        },
    )


@router.get("/new", response_class=HTMLResponse)
def new_page(request: Request, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)):
    require(can_create_submission(ctx.user))
    return _form_page(
        request,
        db,
        ctx.user,
        "submissions/new.html",
        {"values": {"project_id": ctx.project_id or ""}, "errors": []},
    )


@router.post("")
async def create(request: Request, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)):
    user = ctx.user
    require(can_create_submission(user))
    deadline = Deadline(settings.SUBMISSION_CREATE_TIMEOUT_SECONDS)

    formdata = await request.form()
    values = _form_values(formdata)
    if not values["project_id"] and ctx.project_id is not None:
        values["project_id"] = str(ctx.project_id)
    as_draft = (formdata.get("save_as") or "").strip().lower() == "draft"

    stored = []
    try:
        for up in formdata.getlist("photos"):
            if is_upload(up):
                stored.append(await save_photo(up, prefix="submission"))
    except HTTPException:
        discard(stored)
        raise

    outcome = service.create_submission(db, values, user, deadline=deadline, photos=stored, as_draft=as_draft)
    if not outcome.ok:
        discard(stored)
        if wants_json(request):
            return JSONResponse(outcome.as_dict(), status_code=outcome.status_code)
        return _form_page(
            request,
            db,
            user,
            "submissions/new.html",
            {"values": values, "errors": outcome.errors or [outcome.message]},
            status_code=400 if outcome.kind == OutcomeKind.VALIDATION_ERROR else outcome.status_code,
        )

    s = outcome.value
    if wants_json(request):
        return JSONResponse({**outcome.as_dict(), "submission": service.snapshot(s)}, status_code=201)
    return RedirectResponse(f"/submissions/{s.id}", status_code=303)


@router.get("/{submission_id}", response_class=HTMLResponse)
def view(
    request: Request,
    submission_id: int,
    page: int = 1,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    s = _load(db, user, submission_id)
    pg = participants.list_page(db, s.id, page, settings.PARTICIPANTS_PAGE_SIZE)

    if wants_json(request):
        return JSONResponse(
            {
                "submission": service.snapshot(s),
                "participants": page_payload(s, user, pg),
                "photos": [{"id": p.id, "filename": p.filename, "url": p.url} for p in service.photos_of(db, s.id)],
                "allowed_actions": allowed_actions(user, s),
                "is_editable": is_editable(s.status),
            }
        )

    return request.app.state.templates.TemplateResponse(
        request,
        "submissions/view.html",
        {
            "sub": s,
            "pg": pg,
            "pagination": pg.pagination,
            "cap": participants.capacity(db, s),
            "photos": service.photos_of(db, s.id),
            "actions": allowed_actions(user, s),
            "can_edit": can_edit(user, s),
            "flash": None,
            "user": user,
            "badge_count": get_badge_count(db, user),
        },
    )


@router.get("/{submission_id}/edit", response_class=HTMLResponse)
def edit_page(request: Request, submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    s = _load(db, user, submission_id)
    require(can_modify_submission(user, s), "You cannot edit this submission.")
    if not is_editable(s.status):
        return _form_page(request, db, user, "submissions/approved_notice.html", {"sub": s})

    values = {k: getattr(s, k) if getattr(s, k) is not None else "" for k in FORM_FIELDS}
    return _form_page(request, db, user, "submissions/edit.html", {"sub": s, "values": values, "errors": []})


@router.post("/{submission_id}/edit")
async def edit(request: Request, submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    s = _load(db, user, submission_id)
    require(can_modify_submission(user, s), "You cannot edit this submission.")

    values = _form_values(await request.form())
    outcome = service.update_submission(db, s.id, values, user)

    if wants_json(request):
        body = outcome.as_dict()
        if outcome.ok:
            body["submission"] = service.snapshot(outcome.value)
        return JSONResponse(body, status_code=outcome.status_code)

    if outcome.ok:
        return RedirectResponse(f"/submissions/{s.id}", status_code=303)
    if outcome.kind == OutcomeKind.CONFLICT:
        return _form_page(request, db, user, "submissions/approved_notice.html", {"sub": s}, status_code=409)
    return _form_page(
        request,
        db,
        user,
        "submissions/edit.html",
        {"sub": s, "values": values, "errors": outcome.errors or [outcome.message]},
        status_code=400 if outcome.kind == OutcomeKind.VALIDATION_ERROR else outcome.status_code,
    )


@router.post("/{submission_id}/photos")
async def upload_photos(request: Request, submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    s = _load(db, user, submission_id)
    require(can_modify_submission(user, s), "You cannot add photos to this submission.")
    require(is_editable(s.status), "This submission has been approved and cannot be edited.", 409)

    form = await request.form()
    uploads = [up for up in form.getlist("photos") if is_upload(up)]
    require(len(uploads) > 0, "No photo was sent.", 400)

    stored = []
    try:
        for up in uploads:
            stored.append(await save_photo(up, prefix=f"submission_{s.id}"))
    except HTTPException:
        discard(stored)
        raise
    outcome = service.add_photos(db, s.id, stored, user)
    if not outcome.ok:
        discard(stored)
        require(False, outcome.message, outcome.status_code)

    if wants_json(request):
        return JSONResponse({"photos": [{"filename": f.filename, "url": f.url} for f in stored]}, status_code=201)
    return RedirectResponse(f"/submissions/{s.id}", status_code=303)
