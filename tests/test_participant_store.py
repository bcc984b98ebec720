from sqlalchemy import func
from sqlalchemy.exc import OperationalError

from fieldreport.core.capacity import CapacityState
from fieldreport.core.outcome import OutcomeKind
from fieldreport.db.models.audit_log import AuditLog
from fieldreport.db.models.participant import Participant
from fieldreport.db.models.submission import Gender, SubmissionStatus
from fieldreport.modules.participants import store

PAGE_SIZE = 5


def _data(name="Amina", age="34", phone="0712000111", gender="Female"):
    return {"name": name, "age": age, "phone_number": phone, "gender": gender}


def _count(db, submission_id):
    db.expire_all()
    return db.query(func.count(Participant.id)).filter(Participant.submission_id == submission_id).scalar()


def test_add_participant(db, promoter, make_submission):
    s = make_submission(promoter, participant_count=2)
    outcome = store.add(db, s.id, _data(), promoter.id)

    assert outcome.ok
    assert outcome.message == "Amina has been added to the submission."
    assert outcome.value.gender == Gender.FEMALE
    assert _count(db, s.id) == 1
    assert db.query(AuditLog).filter_by(entity="participant", action="create").count() == 1


def test_add_validates_before_touching_the_database(db, promoter, make_submission):
    s = make_submission(promoter, participant_count=2)
    outcome = store.add(db, s.id, _data(name=" ", age="-1", gender="unknown"), promoter.id)

    assert outcome.kind == OutcomeKind.VALIDATION_ERROR
    assert "Name is required." in outcome.errors
    assert "Age must be a positive whole number." in outcome.errors
    assert "Gender must be one of: male, female, other." in outcome.errors
    assert _count(db, s.id) == 0


def test_any_positive_age_is_accepted(db, promoter, make_submission):
    s = make_submission(promoter, participant_count=2)

    outcome = store.add(db, s.id, _data(age="150"), promoter.id)
    assert outcome.ok
    assert outcome.value.age == 150

    refused = store.add(db, s.id, _data(age="0"), promoter.id)
    assert refused.errors == ["Age must be a positive whole number."]


def test_capacity_is_never_exceeded(db, promoter, make_submission):
    s = make_submission(promoter, participant_count=3)
    results = [store.add(db, s.id, _data(name=f"P{i}"), promoter.id) for i in range(5)]

    assert [r.ok for r in results] == [True, True, True, False, False]
    refused = results[3]
    assert refused.kind == OutcomeKind.CAPACITY_ERROR
    assert refused.value == CapacityState(total_count=3, capacity=3)
    assert refused.message == "Participant limit reached (3/3)."
    assert _count(db, s.id) == 3


def test_capacity_uses_a_fresh_count(db, session_factory, promoter, make_submission, add_participants):
    # The page shows 2 of 3; another device adds the third before this one submits.
    s = make_submission(promoter, participant_count=3)
    add_participants(s, 2)
    shown = store.capacity(db, s)
    assert shown.can_add_more

    other = session_factory()
    try:
        other.add(Participant(submission_id=s.id, name="Remote", age=40, phone_number="1", gender=Gender.MALE))
        other.commit()
    finally:
        other.close()

    outcome = store.add(db, s.id, _data(), promoter.id)
    assert outcome.kind == OutcomeKind.CAPACITY_ERROR
    assert _count(db, s.id) == 3


def test_approved_submission_is_closed(db, promoter, make_submission, add_participants):
    s = make_submission(promoter, participant_count=3, status=SubmissionStatus.APPROVED)
    (p,) = add_participants(s, 1)

    assert store.add(db, s.id, _data(), promoter.id).kind == OutcomeKind.CONFLICT
    assert store.remove(db, s.id, p.id, promoter.id).kind == OutcomeKind.CONFLICT
    assert _count(db, s.id) == 1


def test_remove_and_recover_page(db, promoter, make_submission, add_participants):
    s = make_submission(promoter, participant_count=11)
    rows = add_participants(s, 11)
    last_id, last_name = rows[-1].id, rows[-1].name
    assert [p.id for p in store.list_page(db, s.id, 3, PAGE_SIZE).items] == [last_id]

    outcome = store.remove(db, s.id, last_id, promoter.id)
    assert outcome.ok
    assert outcome.value["total_before"] == 11
    assert outcome.value["participant"]["name"] == last_name

    pg = store.page_after_removal(db, s.id, 3, PAGE_SIZE, outcome.value["total_before"])
    assert pg.page == 2
    assert pg.total_count == 10
    assert pg.pagination.total_pages == 2
    assert len(pg.items) == 5


def test_remove_last_participant_goes_to_empty_first_page(db, promoter, make_submission, add_participants):
    s = make_submission(promoter, participant_count=1)
    (p,) = add_participants(s, 1)

    outcome = store.remove(db, s.id, p.id, promoter.id)
    pg = store.page_after_removal(db, s.id, 1, PAGE_SIZE, outcome.value["total_before"])

    assert (pg.page, pg.total_count, pg.pagination.total_pages) == (1, 0, 1)
    assert pg.items == []


def test_recovery_follows_concurrent_deletes(db, session_factory, promoter, make_submission, add_participants):
    s = make_submission(promoter, participant_count=11)
    ids = [p.id for p in add_participants(s, 11)]

    outcome = store.remove(db, s.id, ids[-1], promoter.id)
    # Someone else empties page 2 before the refetch.
    other = session_factory()
    try:
        other.query(Participant).filter(Participant.id.in_(ids[5:10])).delete(
            synchronize_session=False
        )
        other.commit()
    finally:
        other.close()

    pg = store.page_after_removal(db, s.id, 3, PAGE_SIZE, outcome.value["total_before"])
    assert pg.page == 1
    assert pg.total_count == 5


def test_remove_unknown_participant(db, promoter, make_submission):
    s = make_submission(promoter)
    assert store.remove(db, s.id, 999, promoter.id).kind == OutcomeKind.NOT_FOUND


def test_remove_matching_removes_every_identical_row(db, promoter, make_submission):
    s = make_submission(promoter, participant_count=5)
    for _ in range(2):
        assert store.add(db, s.id, _data(), promoter.id).ok
    assert store.add(db, s.id, _data(name="Baraka", gender="male"), promoter.id).ok

    outcome = store.remove_matching(db, s.id, _data(gender="FEMALE"), promoter.id)

    assert outcome.ok
    assert outcome.value == {"removed": 2, "total_before": 3}
    assert _count(db, s.id) == 1


def test_remove_matching_without_match(db, promoter, make_submission):
    s = make_submission(promoter)
    assert store.remove_matching(db, s.id, _data(), promoter.id).kind == OutcomeKind.NOT_FOUND


def test_failed_commit_leaves_nothing_behind(db, promoter, make_submission, monkeypatch):
    s = make_submission(promoter, participant_count=3)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    with monkeypatch.context() as m:
        m.setattr(db, "commit", broken_commit)
        outcome = store.add(db, s.id, _data(), promoter.id)

    assert outcome.kind == OutcomeKind.ERROR
    assert outcome.message == "Error adding participant."
    assert _count(db, s.id) == 0
