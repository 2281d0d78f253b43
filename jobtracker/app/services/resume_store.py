"""
Resume record store - relational persistence of resume metadata.

Queries are always scoped by owner where a user is involved. Counter updates
are SQL expressions executed inside the caller's transaction; the functions
that take part in a larger transaction do not commit.
"""
import math
import re
from datetime import datetime, timedelta
from typing import NamedTuple

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobtracker.app.core.config import SEARCH_QUERY_MAX_LENGTH, settings
from jobtracker.app.core.errors import ConflictError
from jobtracker.app.core.logging_config import get_logger
from jobtracker.app.models.job_application import JobApplication
from jobtracker.app.models.resume import Resume, ResumeSource

logger = get_logger("services.resume_store")


class ResumePage(NamedTuple):
    resumes: list[Resume]
    total: int
    total_pages: int
    current_page: int


def escape_like(query: str) -> str:
    """Escape LIKE wildcards and strip characters never valid in a search."""
    if not isinstance(query, str):
        return ""
    cleaned = re.sub(r"[<>;\"'\x00]", "", query.strip())[:SEARCH_QUERY_MAX_LENGTH]
    return re.sub(r"([\\%_])", r"\\\1", cleaned)


def sanitize_pagination(page=None, limit=None) -> tuple[int, int]:
    """Clamp page/limit to safe bounds; non-numeric values fall back to defaults."""
    try:
        page_val = int(page) if page is not None else 1
    except (TypeError, ValueError):
        page_val = 1
    try:
        limit_val = int(limit) if limit is not None else settings.default_page_limit
    except (TypeError, ValueError):
        limit_val = settings.default_page_limit
    page_val = max(1, min(settings.max_page, page_val or 1))
    limit_val = max(1, min(settings.max_page_limit, limit_val or settings.default_page_limit))
    return page_val, limit_val


def create_resume(
    db: Session,
    *,
    user_id: int,
    version_name: str,
    file_name: str,
    mime_type: str | None = None,
    source: ResumeSource = ResumeSource.UPLOAD,
    notes: str | None = None,
) -> Resume:
    """Insert a resume with an empty storage path and commit it."""
    resume = Resume(
        user_id=user_id,
        version_name=version_name,
        file_name=file_name,
        storage_path="",
        mime_type=mime_type,
        source=source,
        notes=notes,
        application_count=0,
        is_default=False,
    )
    db.add(resume)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info("Resume create conflict user_id=%s version_name=%s", user_id, version_name)
        raise ConflictError() from e
    db.refresh(resume)
    return resume


def get_resume(db: Session, resume_id: int) -> Resume | None:
    return db.query(Resume).filter(Resume.id == resume_id).first()


def get_resume_for_user(db: Session, resume_id: int, user_id: int) -> Resume | None:
    return db.query(Resume).filter(Resume.id == resume_id, Resume.user_id == user_id).first()


def find_by_version_name(db: Session, version_name: str, user_id: int) -> Resume | None:
    return (
        db.query(Resume)
        .filter(Resume.user_id == user_id, Resume.version_name == version_name)
        .first()
    )


def count_resumes(db: Session, user_id: int | None = None) -> int:
    q = db.query(func.count(Resume.id))
    if user_id is not None:
        q = q.filter(Resume.user_id == user_id)
    return q.scalar() or 0


def list_all_for_user(db: Session, user_id: int) -> list[Resume]:
    return db.query(Resume).filter(Resume.user_id == user_id).order_by(Resume.id).all()


def list_resumes(
    db: Session,
    user_id: int,
    version_name: str | None = None,
    source: ResumeSource | None = None,
    has_recent_activity: bool | None = None,
    page=1,
    limit=None,
    now: datetime | None = None,
) -> ResumePage:
    """
    Filtered, paginated resumes for one owner.
    Ordered by most recently used (never-used last), then newest upload.
    """
    page_val, limit_val = sanitize_pagination(page, limit)

    q = db.query(Resume).filter(Resume.user_id == user_id)
    if version_name:
        pattern = escape_like(version_name)
        if pattern:
            q = q.filter(Resume.version_name.like(f"%{pattern}%", escape="\\"))
    if source is not None:
        q = q.filter(Resume.source == source)
    if has_recent_activity is True:
        cutoff = (now or datetime.utcnow()) - timedelta(days=settings.recent_activity_days)
        q = q.filter(Resume.last_used_date > cutoff)
    elif has_recent_activity is False:
        q = q.filter(Resume.last_used_date.is_(None))

    total = q.count()
    resumes = (
        q.order_by(
            Resume.last_used_date.desc().nulls_last(),
            Resume.upload_date.desc(),
            Resume.id.desc(),
        )
        .offset((page_val - 1) * limit_val)
        .limit(limit_val)
        .all()
    )
    return ResumePage(
        resumes=resumes,
        total=total,
        total_pages=math.ceil(total / limit_val) if total else 0,
        current_page=page_val,
    )


def update_storage_path(db: Session, resume_id: int, storage_path: str, file_size: int | None = None) -> bool:
    """Point a record at its stored file (upload commit or file migration). Caller commits."""
    values = {"storage_path": storage_path, "updated_at": datetime.utcnow()}
    if file_size is not None:
        values["file_size"] = file_size
    result = db.execute(
        update(Resume)
        .where(Resume.id == resume_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def apply_default_swap(db: Session, resume_id: int, user_id: int) -> bool:
    """Clear is_default on the owner's other resumes and set it on this one. Caller commits."""
    db.execute(
        update(Resume)
        .where(Resume.user_id == user_id, Resume.id != resume_id, Resume.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(
        update(Resume)
        .where(Resume.id == resume_id, Resume.user_id == user_id)
        .values(is_default=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def increment_usage(db: Session, resume_id: int, used_at: datetime) -> bool:
    """application_count + 1 and last_used_date, as one UPDATE. Caller commits."""
    result = db.execute(
        update(Resume)
        .where(Resume.id == resume_id)
        .values(application_count=Resume.application_count + 1, last_used_date=used_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def mark_used(db: Session, resume_id: int, used_at: datetime) -> bool:
    """Set last_used_date without touching the counter. Caller commits."""
    result = db.execute(
        update(Resume)
        .where(Resume.id == resume_id)
        .values(last_used_date=used_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def decrement_usage(db: Session, resume_id: int) -> bool:
    """application_count - 1 floored at zero, as one UPDATE. Caller commits."""
    result = db.execute(
        update(Resume)
        .where(Resume.id == resume_id)
        .values(
            application_count=case(
                (Resume.application_count > 0, Resume.application_count - 1),
                else_=0,
            )
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def get_job_application(db: Session, application_id: int) -> JobApplication | None:
    return db.query(JobApplication).filter(JobApplication.id == application_id).first()


def attach_application(db: Session, application_id: int, resume_id: int, now: datetime) -> bool:
    """Point a job application at a resume. Caller commits."""
    result = db.execute(
        update(JobApplication)
        .where(JobApplication.id == application_id)
        .values(resume_id=resume_id, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def detach_application(db: Session, application_id: int, resume_id: int, now: datetime) -> bool:
    """Clear a job application's resume if it points at resume_id. Caller commits."""
    result = db.execute(
        update(JobApplication)
        .where(JobApplication.id == application_id, JobApplication.resume_id == resume_id)
        .values(resume_id=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def delete_resume(db: Session, resume_id: int) -> bool:
    """Delete a record by id and commit. Linked job applications stay, with no resume."""
    db.execute(
        update(JobApplication)
        .where(JobApplication.resume_id == resume_id)
        .values(resume_id=None)
        .execution_options(synchronize_session=False)
    )
    deleted = (
        db.query(Resume)
        .filter(Resume.id == resume_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0
