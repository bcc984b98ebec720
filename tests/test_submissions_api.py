import os

from conftest import FETCH, HX, login

from fieldreport.core.config import settings
from fieldreport.db.models.audit_log import AuditLog
from fieldreport.db.models.submission import Submission, SubmissionStatus
from fieldreport.db.models.submission_photo import SubmissionPhoto


def _form(**overrides):
    data = {
        "activity_stream": "Nutrition",
        "specific_location": "Kisumu ward 4",
        "community_group_type": "Youth group",
        "participant_count": "12",
        "key_issues": "Food prices",
        "project_id": "",
    }
    data.update(overrides)
    return data


def _reload(db, submission_id):
    db.expire_all()
    return db.get(Submission, submission_id)


def test_create_submission(client, db, promoter, project):
    login(client, promoter)

    r = client.post("/submissions", data=_form(project_id=str(project.id)), headers=FETCH)

    assert r.status_code == 201
    body = r.json()["submission"]
    assert body["status"] == "submitted"
    assert body["submitted_by"] == promoter.id
    assert body["submitted_at"] is not None
    assert body["project_id"] == project.id
    assert body["sync_status"] == "synced"


def test_create_uses_selected_project(client, promoter, project):
    login(client, promoter)
    r = client.post("/context/project", data={"project_id": str(project.id)}, follow_redirects=False)
    assert r.status_code == 303

    r = client.post("/submissions", data=_form(), headers=FETCH)
    assert r.json()["submission"]["project_id"] == project.id


def test_create_with_photos(client, db, promoter, upload_dir):
    login(client, promoter)

    r = client.post(
        "/submissions",
        data=_form(),
        files=[("photos", ("meeting.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg"))],
        headers=FETCH,
    )

    assert r.status_code == 201
    photo = db.query(SubmissionPhoto).one()
    assert photo.filename == "meeting.jpg"
    assert photo.url.startswith("/uploads/submission_")
    assert len(os.listdir(upload_dir)) == 1


def test_create_rejects_unsupported_photo(client, db, promoter, upload_dir):
    login(client, promoter)

    r = client.post(
        "/submissions",
        data=_form(),
        files=[("photos", ("notes.exe", b"MZ", "application/octet-stream"))],
        headers=FETCH,
    )

    assert r.status_code == 400
    assert db.query(Submission).count() == 0
    assert os.listdir(upload_dir) == []


def test_create_validation_errors(client, db, promoter):
    login(client, promoter)

    r = client.post("/submissions", data=_form(community_group_type="", participant_count="0"), headers=FETCH)

    assert r.status_code == 422
    assert r.json()["errors"] == [
        "Community group type is required.",
        "Participant count must be at least 1.",
    ]
    assert db.query(Submission).count() == 0


def test_create_times_out_without_writing(client, db, promoter, upload_dir, monkeypatch):
    monkeypatch.setattr(settings, "SUBMISSION_CREATE_TIMEOUT_SECONDS", 0.0)
    login(client, promoter)

    r = client.post(
        "/submissions",
        data=_form(),
        files=[("photos", ("meeting.jpg", b"\xff\xd8\xff", "image/jpeg"))],
        headers=FETCH,
    )

    assert r.status_code == 504
    assert r.json()["message"] == "Submission timed out. Please try again."
    assert db.query(Submission).count() == 0
    assert db.query(AuditLog).count() == 0
    assert os.listdir(upload_dir) == []


def test_create_form_page_redirects(client, promoter):
    login(client, promoter)

    r = client.post("/submissions", data=_form(), follow_redirects=False)

    assert r.status_code == 303
    assert r.headers["location"].startswith("/submissions/")


def test_list_is_scoped_to_author(client, promoter, other_promoter, project_admin, make_submission):
    mine = make_submission(promoter)
    make_submission(other_promoter)

    login(client, promoter)
    body = client.get("/submissions", headers=FETCH).json()
    assert [s["id"] for s in body["items"]] == [mine.id]

    login(client, project_admin)
    body = client.get("/submissions", headers=FETCH).json()
    assert body["total_count"] == 2


def test_list_filters_by_status(client, project_admin, promoter, make_submission):
    make_submission(promoter)
    rejected = make_submission(promoter, status=SubmissionStatus.REJECTED)
    login(client, project_admin)

    body = client.get("/submissions?status=rejected", headers=FETCH).json()
    assert [s["id"] for s in body["items"]] == [rejected.id]


def test_edit_keeps_status(client, db, promoter, make_submission):
    s = make_submission(promoter, status=SubmissionStatus.REJECTED)
    login(client, promoter)

    r = client.post(f"/submissions/{s.id}/edit", data=_form(key_issues="Updated"), headers=FETCH)

    assert r.status_code == 200
    s = _reload(db, s.id)
    assert s.key_issues == "Updated"
    assert s.status == SubmissionStatus.REJECTED


def test_edit_cannot_drop_below_added_participants(client, promoter, make_submission, add_participants):
    s = make_submission(promoter, participant_count=3)
    add_participants(s, 3)
    login(client, promoter)

    r = client.post(f"/submissions/{s.id}/edit", data=_form(participant_count="2"), headers=FETCH)

    assert r.status_code == 422
    assert r.json()["errors"] == ["Participant count cannot be lower than the 3 participants already added."]


def test_approved_submission_cannot_be_edited(client, db, promoter, make_submission):
    s = make_submission(promoter, status=SubmissionStatus.APPROVED)
    login(client, promoter)

    page = client.get(f"/submissions/{s.id}/edit")
    assert page.status_code == 200
    assert "This submission has been approved and cannot be edited." in page.text
    assert f'action="/submissions/{s.id}/edit"' not in page.text

    r = client.post(f"/submissions/{s.id}/edit", data=_form(key_issues="Sneaky"), headers=FETCH)
    assert r.status_code == 409
    assert _reload(db, s.id).key_issues == "Clean water"


def test_edit_page_for_editable_submission(client, promoter, make_submission):
    s = make_submission(promoter)
    login(client, promoter)

    page = client.get(f"/submissions/{s.id}/edit")
    assert page.status_code == 200
    assert f'action="/submissions/{s.id}/edit"' in page.text


def test_view_page(client, promoter, make_submission, add_participants):
    s = make_submission(promoter, participant_count=6)
    add_participants(s, 6)
    login(client, promoter)

    r = client.get(f"/submissions/{s.id}")
    assert r.status_code == 200
    assert "Person 5" in r.text
    assert "Person 6" not in r.text
    assert "6 of 6 participants added." in r.text

    r = client.get(f"/submissions/{s.id}?page=2", headers=FETCH)
    assert [p["name"] for p in r.json()["participants"]["items"]] == ["Person 6"]


def test_permissions(client, promoter, project_admin, make_submission, add_participants):
    s = make_submission(promoter, participant_count=2)
    add_participants(s, 1)

    login(client, project_admin)
    body = client.get(f"/submissions/{s.id}/permissions").json()
    assert body["permissions"]["allowed_actions"] == ["approve", "reject"]
    assert body["permissions"]["can_add_participants"] is True
    assert body["capacity"] == {"total_count": 1, "capacity": 2, "remaining": 1, "can_add_more": True}
    reject = next(a for a in body["actions"] if a["action"] == "reject")
    assert reject["requires_note"] is True

    login(client, promoter)
    body = client.get(f"/submissions/{s.id}/permissions").json()
    assert body["permissions"]["is_owner"] is True
    assert body["permissions"]["allowed_actions"] == []
    assert all(not a["allowed"] for a in body["actions"])


def test_review_round_trip(client, db, promoter, project_admin, make_submission):
    s = make_submission(promoter)

    login(client, project_admin)
    r = client.post(f"/submissions/{s.id}/reject", data={"note": ""}, headers=FETCH)
    assert r.status_code == 422

    r = client.post(f"/submissions/{s.id}/reject", data={"note": "Photos missing"}, headers=FETCH)
    assert r.status_code == 200
    assert r.json()["submission"]["status"] == "rejected"

    login(client, promoter)
    r = client.post(f"/submissions/{s.id}/resubmit", headers=FETCH)
    assert r.json()["submission"]["status"] == "submitted"

    login(client, project_admin)
    r = client.post(f"/submissions/{s.id}/approve", headers=HX)
    assert r.status_code == 200
    assert "Approved" in r.text

    s = _reload(db, s.id)
    assert s.status == SubmissionStatus.APPROVED
    assert s.reviewed_by == project_admin.id
    assert s.review_notes is None


def test_htmx_status_change_refreshes_participants(client, promoter, project_admin, make_submission, add_participants):
    s = make_submission(promoter, participant_count=3)
    add_participants(s, 1)

    login(client, promoter)
    r = client.post(f"/submissions/{s.id}/approve", headers=HX)
    assert "HX-Trigger" not in r.headers
    page = client.get(f"/submissions/{s.id}")
    assert 'hx-trigger="submission-status-changed from:body"' in page.text
    assert f'hx-post="/submissions/{s.id}/participants"' in page.text

    login(client, project_admin)
    assert 'placeholder="Reason for rejection" required' in client.get(f"/submissions/{s.id}").text
    r = client.post(f"/submissions/{s.id}/approve", headers=HX)
    assert r.headers["HX-Trigger"] == "submission-status-changed"

    login(client, promoter)
    partial = client.get(f"/submissions/{s.id}/participants/partial", headers=HX)
    assert partial.status_code == 200
    assert f'hx-post="/submissions/{s.id}/participants"' not in partial.text
    assert "/delete" not in partial.text


def test_promoter_cannot_approve(client, promoter, make_submission):
    s = make_submission(promoter)
    login(client, promoter)

    r = client.post(f"/submissions/{s.id}/approve", headers=FETCH)
    assert r.status_code == 403
    assert r.json()["submission"]["status"] == "submitted"


def test_photo_upload_on_existing_submission(client, db, promoter, make_submission, upload_dir):
    s = make_submission(promoter)
    login(client, promoter)

    r = client.post(
        f"/submissions/{s.id}/photos",
        files=[("photos", ("site.png", b"\x89PNG", "image/png"))],
        headers=FETCH,
    )

    assert r.status_code == 201
    assert db.query(SubmissionPhoto).filter_by(submission_id=s.id).count() == 1
