"""Tests for resume record persistence: listing, filters, pagination and counters"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from jobtracker.app.core.errors import ConflictError
from jobtracker.app.db.base import Base
from jobtracker.app.models.resume import Resume, ResumeSource
from jobtracker.app.models.user import User
from jobtracker.app.services import resume_store

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _resume(db, user, name, **fields):
    resume = Resume(
        user_id=user.id,
        version_name=name,
        file_name=f"{name}.pdf",
        storage_path=f"{user.id}/{name}.pdf",
        mime_type="application/pdf",
        **fields,
    )
    db.add(resume)
    db.commit()
    db.refresh(resume)
    return resume


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("50%_off", "50\\%\\_off"),
        ("a\\b", "a\\\\b"),
        ("  <Senior>; 'Dev' ", "Senior Dev"),
        (None, ""),
    ],
)
def test_escape_like(raw, expected):
    assert resume_store.escape_like(raw) == expected


@pytest.mark.parametrize(
    "page,limit,expected",
    [
        (None, None, (1, 10)),
        (0, 0, (1, 10)),
        (-3, -5, (1, 1)),
        ("2", "25", (2, 25)),
        ("abc", "xyz", (1, 10)),
        (5000, 500, (1000, 100)),
    ],
)
def test_sanitize_pagination(page, limit, expected):
    assert resume_store.sanitize_pagination(page, limit) == expected


def test_create_resume_starts_unstored(db_session, test_user):
    resume = resume_store.create_resume(
        db_session, user_id=test_user.id, version_name="Base", file_name="base.pdf"
    )
    assert resume.id is not None
    assert resume.storage_path == ""
    assert resume.application_count == 0
    assert resume.is_default is False
    assert resume.source == ResumeSource.UPLOAD
    assert resume.upload_date is not None


def test_create_resume_duplicate_name_conflicts(db_session, test_user):
    resume_store.create_resume(db_session, user_id=test_user.id, version_name="Base", file_name="a.pdf")
    with pytest.raises(ConflictError):
        resume_store.create_resume(db_session, user_id=test_user.id, version_name="Base", file_name="b.pdf")
    assert resume_store.count_resumes(db_session, test_user.id) == 1


def test_same_name_allowed_for_different_owners(db_session, test_user, other_user):
    resume_store.create_resume(db_session, user_id=test_user.id, version_name="Base", file_name="a.pdf")
    resume_store.create_resume(db_session, user_id=other_user.id, version_name="Base", file_name="a.pdf")
    assert resume_store.count_resumes(db_session) == 2


def test_lookups_are_owner_scoped(db_session, test_user, other_user):
    mine = _resume(db_session, test_user, "Mine")
    assert resume_store.get_resume_for_user(db_session, mine.id, test_user.id).id == mine.id
    assert resume_store.get_resume_for_user(db_session, mine.id, other_user.id) is None
    assert resume_store.find_by_version_name(db_session, "Mine", test_user.id).id == mine.id
    assert resume_store.find_by_version_name(db_session, "Mine", other_user.id) is None


def test_list_orders_by_last_used_then_upload(db_session, test_user):
    never_old = _resume(db_session, test_user, "never-old", upload_date=NOW - timedelta(days=20))
    never_new = _resume(db_session, test_user, "never-new", upload_date=NOW - timedelta(days=1))
    used_old = _resume(db_session, test_user, "used-old", last_used_date=NOW - timedelta(days=10))
    used_new = _resume(db_session, test_user, "used-new", last_used_date=NOW - timedelta(days=2))

    page = resume_store.list_resumes(db_session, test_user.id, now=NOW)
    assert [r.id for r in page.resumes] == [used_new.id, used_old.id, never_new.id, never_old.id]
    assert page.total == 4
    assert page.total_pages == 1
    assert page.current_page == 1


def test_list_filters(db_session, test_user, other_user):
    _resume(db_session, test_user, "Backend 50%", source=ResumeSource.UPLOAD, last_used_date=NOW - timedelta(days=5))
    _resume(db_session, test_user, "Backend plain", source=ResumeSource.GOOGLE_DRIVE)
    _resume(db_session, test_user, "Frontend", source=ResumeSource.GENERATED, last_used_date=NOW - timedelta(days=200))
    _resume(db_session, other_user, "Backend other")

    by_name = resume_store.list_resumes(db_session, test_user.id, version_name="backend", now=NOW)
    assert {r.version_name for r in by_name.resumes} == {"Backend 50%", "Backend plain"}

    literal_percent = resume_store.list_resumes(db_session, test_user.id, version_name="50%", now=NOW)
    assert [r.version_name for r in literal_percent.resumes] == ["Backend 50%"]

    by_source = resume_store.list_resumes(db_session, test_user.id, source=ResumeSource.GOOGLE_DRIVE, now=NOW)
    assert [r.version_name for r in by_source.resumes] == ["Backend plain"]

    recent = resume_store.list_resumes(db_session, test_user.id, has_recent_activity=True, now=NOW)
    assert [r.version_name for r in recent.resumes] == ["Backend 50%"]

    never_used = resume_store.list_resumes(db_session, test_user.id, has_recent_activity=False, now=NOW)
    assert [r.version_name for r in never_used.resumes] == ["Backend plain"]


def test_list_pagination(db_session, test_user):
    for i in range(5):
        _resume(db_session, test_user, f"v{i}", upload_date=NOW - timedelta(days=i))

    first = resume_store.list_resumes(db_session, test_user.id, page=1, limit=2, now=NOW)
    third = resume_store.list_resumes(db_session, test_user.id, page=3, limit=2, now=NOW)
    assert [r.version_name for r in first.resumes] == ["v0", "v1"]
    assert [r.version_name for r in third.resumes] == ["v4"]
    assert first.total == 5
    assert first.total_pages == 3


def test_list_empty(db_session, test_user):
    page = resume_store.list_resumes(db_session, test_user.id)
    assert page.resumes == []
    assert page.total == 0
    assert page.total_pages == 0


def test_usage_counters_increment_and_floor_at_zero(db_session, test_user):
    resume = _resume(db_session, test_user, "Counted")
    used_at = NOW

    assert resume_store.increment_usage(db_session, resume.id, used_at)
    assert resume_store.increment_usage(db_session, resume.id, used_at + timedelta(hours=1))
    db_session.commit()
    db_session.refresh(resume)
    assert resume.application_count == 2
    assert resume.last_used_date == used_at + timedelta(hours=1)

    for _ in range(3):
        resume_store.decrement_usage(db_session, resume.id)
    db_session.commit()
    db_session.refresh(resume)
    assert resume.application_count == 0
    assert resume.last_used_date == used_at + timedelta(hours=1)


def test_counter_updates_on_missing_row(db_session, test_user):
    assert not resume_store.increment_usage(db_session, 999, NOW)
    assert not resume_store.decrement_usage(db_session, 999)
    assert not resume_store.update_storage_path(db_session, 999, "x")
    assert not resume_store.mark_used(db_session, 999, NOW)


def test_default_swap_keeps_one_default(db_session, test_user, other_user):
    first = _resume(db_session, test_user, "First", is_default=True)
    second = _resume(db_session, test_user, "Second")
    theirs = _resume(db_session, other_user, "Theirs", is_default=True)

    assert resume_store.apply_default_swap(db_session, second.id, test_user.id)
    db_session.commit()

    for r in (first, second, theirs):
        db_session.refresh(r)
    assert first.is_default is False
    assert second.is_default is True
    assert theirs.is_default is True


def test_delete_resume_detaches_applications(db_session, test_user, make_application):
    resume = _resume(db_session, test_user, "Gone")
    application = make_application(test_user, resume_id=resume.id)

    assert resume_store.delete_resume(db_session, resume.id)
    assert resume_store.get_resume(db_session, resume.id) is None
    db_session.refresh(application)
    assert application.resume_id is None
    assert not resume_store.delete_resume(db_session, resume.id)


def test_counters_do_not_lose_updates_from_stale_sessions(tmp_path):
    """A session holding an old copy of the row must not overwrite another session's update."""
    file_engine = create_engine(f"sqlite:///{tmp_path / 'counters.db'}")
    Base.metadata.create_all(bind=file_engine)
    Sessions = sessionmaker(bind=file_engine, autoflush=False)

    setup = Sessions()
    setup.add(User(id=1, email="counter@example.com"))
    shared = Resume(user_id=1, version_name="Shared", file_name="shared.pdf", storage_path="1/shared.pdf")
    setup.add(shared)
    setup.commit()
    resume_id = shared.id
    setup.close()

    session_a, session_b = Sessions(), Sessions()
    try:
        stale = session_b.get(Resume, resume_id)
        assert stale.application_count == 0

        resume_store.increment_usage(session_a, resume_id, NOW)
        session_a.commit()
        resume_store.increment_usage(session_b, resume_id, NOW)
        session_b.commit()

        check = Sessions()
        assert check.get(Resume, resume_id).application_count == 2
        check.close()

        session_b.refresh(stale)
        assert stale.application_count == 2
        resume_store.decrement_usage(session_a, resume_id)
        session_a.commit()
        resume_store.decrement_usage(session_b, resume_id)
        session_b.commit()

        check = Sessions()
        assert check.get(Resume, resume_id).application_count == 0
        check.close()
    finally:
        session_a.close()
        session_b.close()
        file_engine.dispose()
