from __future__ import annotations

from fastapi import APIRouter, Request, Depends, Form
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from fieldreport.db.session import get_db
from fieldreport.auth.deps import get_current_user
from fieldreport.utils.badges import get_badge_count, invalidate_badge
from fieldreport.utils.http import wants_json
from fieldreport.db.models.notification import Notification

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_class=HTMLResponse)
def page(request: Request, db: Session = Depends(get_db), user=Depends(get_current_user)):
    # Everyone sees only their own notifications.
    notes = (
        db.query(Notification)
        .filter(Notification.user_id == user.id)
        .order_by(Notification.id.desc())
        .limit(300)
        .all()
    )
    unread = get_badge_count(db, user)

    if wants_json(request):
        return JSONResponse(
            {
                "unread": unread,
                "items": [
                    {
                        "id": n.id,
                        "submission_id": n.submission_id,
                        "type": n.type,
                        "message": n.message,
                        "is_read": n.is_read,
                        "created_at": n.created_at.isoformat() if n.created_at else None,
                    }
                    for n in notes
                ],
            }
        )

    return request.app.state.templates.TemplateResponse(
        request,
        "notifications/index.html",
        {"notes": notes, "unread": unread, "user": user, "badge_count": unread},
    )


@router.post("/mark_read")
def mark_read(
    request: Request,
    notification_id: int = Form(...),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    # Only the recipient can mark a notification as read
    n = db.get(Notification, notification_id)
    if n and n.user_id == user.id:
        n.is_read = True
        db.commit()
        invalidate_badge(user.id)
    return RedirectResponse("/notifications", status_code=303)


@router.post("/mark_all_read")
def mark_all_read(request: Request, db: Session = Depends(get_db), user=Depends(get_current_user)):
    db.query(Notification).filter(Notification.user_id == user.id, Notification.is_read.is_(False)).update(
        {"is_read": True}, synchronize_session=False
    )
    db.commit()
    invalidate_badge(user.id)
    return RedirectResponse("/notifications", status_code=303)
