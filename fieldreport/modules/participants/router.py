from __future__ import annotations

from fastapi import APIRouter, Request, Depends, Form
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.orm import Session

from fieldreport.auth.deps import get_current_user
from fieldreport.core.capacity import CapacityState
from fieldreport.core.config import settings
from fieldreport.core.outcome import Outcome
from fieldreport.core.rbac import require, can_view_submission, can_modify_submission
from fieldreport.core.workflow import can_edit
from fieldreport.db.models.submission import Submission
from fieldreport.db.models.user import User
from fieldreport.db.session import get_db
from fieldreport.modules.participants import store
from fieldreport.modules.participants.store import ParticipantPage
from fieldreport.utils.http import is_hx

router = APIRouter(prefix="/submissions", tags=["participants"])


def _load(db: Session, user: User, submission_id: int) -> Submission:
    s = db.get(Submission, submission_id)
    require(s is not None, "Submission not found", 404)
    require(can_view_submission(user, s))
    return s


def page_payload(s: Submission, user: User, pg: ParticipantPage) -> dict:
    cap = CapacityState(total_count=pg.total_count, capacity=s.participant_count)
    return {
        "submission_id": s.id,
        "items": [store.snapshot(p) for p in pg.items],
        **pg.pagination.as_dict(),
        "capacity": s.participant_count,
        "remaining": cap.remaining,
        "can_add_more": cap.can_add_more,
        "can_edit": can_edit(user, s),
    }


def render_list(request: Request, s: Submission, user: User, pg: ParticipantPage, flash: dict | None = None, status_code: int = 200):
    return request.app.state.templates.TemplateResponse(
        request,
        "participants/_list.html",
        {
            "sub": s,
            "user": user,
            "pg": pg,
            "pagination": pg.pagination,
            "cap": CapacityState(total_count=pg.total_count, capacity=s.participant_count),
            "can_edit": can_edit(user, s),
            "flash": flash,
        },
        status_code=status_code,
    )


def _respond(request: Request, s: Submission, user: User, outcome: Outcome, pg: ParticipantPage, error_title: str, extra: dict | None = None):
    if outcome.ok:
        flash = {"kind": "success", "title": "", "message": outcome.message}
    else:
        flash = {"kind": "danger", "title": error_title, "message": outcome.message, "errors": outcome.errors}

    if is_hx(request):
        # HTMX swaps the list in place; keep 200 so the swap happens.
        return render_list(request, s, user, pg, flash=flash)

    body = {**outcome.as_dict(), **page_payload(s, user, pg), **(extra or {})}
    if not outcome.ok:
        body["title"] = error_title
    return JSONResponse(body, status_code=outcome.status_code)


@router.get("/{submission_id}/participants")
def fetch_participants_page(
    submission_id: int,
    page: int = 1,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    s = _load(db, user, submission_id)
    outcome = store.fetch_page(db, s.id, page, settings.PARTICIPANTS_PAGE_SIZE)
    if not outcome.ok:
        return JSONResponse(outcome.as_dict(), status_code=outcome.status_code)
    return JSONResponse(page_payload(s, user, outcome.value))


@router.get("/{submission_id}/participants/partial", response_class=HTMLResponse)
def participants_partial(
    request: Request,
    submission_id: int,
    page: int = 1,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    s = _load(db, user, submission_id)
    pg = store.list_page(db, s.id, page, settings.PARTICIPANTS_PAGE_SIZE)
    return render_list(request, s, user, pg)


@router.post("/{submission_id}/participants")
def add_participant(
    request: Request,
    submission_id: int,
    name: str = Form(""),
    age: str = Form(""),
    phone_number: str = Form(""),
    gender: str = Form(""),
    page: int = Form(1),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    s = _load(db, user, submission_id)
    require(can_modify_submission(user, s), "You cannot change participants of this submission.")
    outcome = store.add(
        db,
        s.id,
        {"name": name, "age": age, "phone_number": phone_number, "gender": gender},
        user.id,
    )
    # New rows land after the end of the list; stay on the current page.
    pg = store.list_page(db, s.id, page, settings.PARTICIPANTS_PAGE_SIZE)
    extra = {"participant": store.snapshot(outcome.value)} if outcome.ok else None
    return _respond(request, s, user, outcome, pg, "Error Adding Participant", extra)


@router.post("/{submission_id}/participants/{participant_id}/delete")
def remove_participant(
    request: Request,
    submission_id: int,
    participant_id: int,
    page: int = Form(1),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    s = _load(db, user, submission_id)
    require(can_modify_submission(user, s), "You cannot change participants of this submission.")
    outcome = store.remove(db, s.id, participant_id, user.id)
    if outcome.ok:
        pg = store.page_after_removal(
            db, s.id, page, settings.PARTICIPANTS_PAGE_SIZE, outcome.value["total_before"]
        )
        extra = {"participant": outcome.value["participant"]}
    else:
        pg = store.list_page(db, s.id, page, settings.PARTICIPANTS_PAGE_SIZE)
        extra = None
    return _respond(request, s, user, outcome, pg, "Error Removing Participant", extra)


@router.post("/{submission_id}/participants/remove-matching")
def remove_matching_participants(
    request: Request,
    submission_id: int,
    name: str = Form(""),
    age: str = Form(""),
    phone_number: str = Form(""),
    gender: str = Form(""),
    page: int = Form(1),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Delete by field values (for clients without row ids)."""
    s = _load(db, user, submission_id)
    require(can_modify_submission(user, s), "You cannot change participants of this submission.")
    outcome = store.remove_matching(
        db,
        s.id,
        {"name": name, "age": age, "phone_number": phone_number, "gender": gender},
        user.id,
    )
    if outcome.ok:
        pg = store.page_after_removal(
            db,
            s.id,
            page,
            settings.PARTICIPANTS_PAGE_SIZE,
            outcome.value["total_before"],
            removed=outcome.value["removed"],
        )
        extra = {"removed": outcome.value["removed"]}
    else:
        pg = store.list_page(db, s.id, page, settings.PARTICIPANTS_PAGE_SIZE)
        extra = None
    return _respond(request, s, user, outcome, pg, "Error Removing Participant", extra)
