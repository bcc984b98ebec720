from __future__ import annotations

from fastapi import APIRouter, Request, Depends, Form, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from fieldreport.auth.deps import get_current_user
from fieldreport.core.outcome import Outcome
from fieldreport.core.rbac import require, can_view_submission
from fieldreport.core.workflow import (
    ACTION_LABELS,
    allowed_actions,
    allowed_actions_for_status,
    can_edit,
    get_transition,
    is_editable,
)
from fieldreport.db.models.submission import Submission
from fieldreport.db.models.user import User
from fieldreport.db.session import get_db
from fieldreport.modules.participants import store as participants
from fieldreport.modules.review import workflow
from fieldreport.modules.submissions.service import snapshot
from fieldreport.utils.badges import get_badge_count
from fieldreport.utils.http import is_hx, wants_json

# Fired on the page after a status change so dependent blocks refetch themselves.
STATUS_CHANGED_EVENT = "submission-status-changed"

router = APIRouter(prefix="/submissions", tags=["review"])


def _load(db: Session, user: User, submission_id: int) -> Submission:
    s = db.get(Submission, submission_id)
    require(s is not None, "Submission not found", 404)
    require(can_view_submission(user, s))
    return s


def permissions_payload(db: Session, user: User, s: Submission) -> dict:
    state_actions = list(allowed_actions_for_status(s.status))
    user_allowed = set(allowed_actions(user, s))
    cap = participants.capacity(db, s)
    return {
        "submission": {"id": s.id, "status": s.status.value, "submitted_by": s.submitted_by},
        "permissions": {
            "is_owner": s.submitted_by == user.id,
            "is_editable": is_editable(s.status),
            "can_edit": can_edit(user, s),
            "can_add_participants": can_edit(user, s) and cap.can_add_more,
            "allowed_actions": sorted(user_allowed),
        },
        "actions": [
            {
                "action": a,
                "label": ACTION_LABELS.get(a, a),
                "allowed": a in user_allowed,
                "to_status": get_transition(s.status, a).to_status.value,
                "requires_note": get_transition(s.status, a).requires_note,
            }
            for a in state_actions
        ],
        "capacity": cap.as_dict(),
    }


def _respond(request: Request, db: Session, user: User, submission_id: int, outcome: Outcome, error_title: str):
    s = outcome.value if outcome.ok else db.get(Submission, submission_id)

    if is_hx(request):
        flash = None
        if not outcome.ok:
            flash = {"kind": "danger", "title": error_title, "message": outcome.message}
        headers = {"HX-Trigger": STATUS_CHANGED_EVENT} if outcome.ok else None
        return request.app.state.templates.TemplateResponse(
            request,
            "submissions/_status.html",
            {
                "sub": s,
                "user": user,
                "actions": allowed_actions(user, s) if s else [],
                "can_edit": can_edit(user, s) if s else False,
                "flash": flash,
                "badge_count": get_badge_count(db, user),
            },
            headers=headers,
        )

    if wants_json(request):
        body = outcome.as_dict()
        if s is not None:
            body["submission"] = snapshot(s)
        if not outcome.ok:
            body["title"] = error_title
        return JSONResponse(body, status_code=outcome.status_code)

    if not outcome.ok:
        raise HTTPException(status_code=outcome.status_code, detail=outcome.message)
    return RedirectResponse(f"/submissions/{submission_id}", status_code=303)


@router.get("/{submission_id}/permissions")
def permissions(submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    """JSON permissions endpoint: what the client needs to render buttons and the add form."""
    s = _load(db, user, submission_id)
    return JSONResponse(permissions_payload(db, user, s))


@router.post("/{submission_id}/approve")
def approve(request: Request, submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    _load(db, user, submission_id)
    outcome = workflow.approve(db, submission_id, user)
    return _respond(request, db, user, submission_id, outcome, "Error Approving Submission")


@router.post("/{submission_id}/reject")
def reject(
    request: Request,
    submission_id: int,
    note: str = Form(""),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    _load(db, user, submission_id)
    outcome = workflow.reject(db, submission_id, user, note)
    return _respond(request, db, user, submission_id, outcome, "Error Rejecting Submission")


@router.post("/{submission_id}/submit")
def submit(request: Request, submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    _load(db, user, submission_id)
    outcome = workflow.submit(db, submission_id, user)
    return _respond(request, db, user, submission_id, outcome, "Error Submitting")


@router.post("/{submission_id}/resubmit")
def resubmit(request: Request, submission_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    _load(db, user, submission_id)
    outcome = workflow.resubmit(db, submission_id, user)
    return _respond(request, db, user, submission_id, outcome, "Error Resubmitting")
