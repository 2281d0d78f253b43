"""
Resume usage analytics - computed in memory over one user's resumes.
"""
from datetime import datetime, timedelta
from typing import Iterable, NamedTuple

from sqlalchemy.orm import Session

from jobtracker.app.core.config import settings
from jobtracker.app.models.resume import Resume, ResumeSource
from jobtracker.app.services import resume_store


class ResumeAnalytics(NamedTuple):
    total_resumes: int
    most_used_resume: Resume | None
    recently_used_resumes: list[Resume]
    resumes_by_source: dict[str, int]
    average_application_count: float


def _most_used_key(r: Resume):
    # Highest count wins; ties go to the earliest upload, then the lowest id
    return (-(r.application_count or 0), r.upload_date or datetime.max, r.id or 0)


def build_resume_analytics(
    resumes: Iterable[Resume],
    now: datetime | None = None,
    recent_days: int | None = None,
    recent_limit: int | None = None,
) -> ResumeAnalytics:
    items = list(resumes)
    now_val = now or datetime.utcnow()
    days = settings.recent_analytics_days if recent_days is None else recent_days
    limit = settings.recent_resumes_limit if recent_limit is None else recent_limit

    most_used = min(items, key=_most_used_key) if items else None

    cutoff = now_val - timedelta(days=days)
    recent = sorted(
        (r for r in items if r.last_used_date and r.last_used_date > cutoff),
        key=lambda r: (r.last_used_date, -(r.id or 0)),
        reverse=True,
    )[: max(limit, 0)]

    by_source = {s.value: 0 for s in ResumeSource}
    for r in items:
        key = r.source.value if isinstance(r.source, ResumeSource) else str(r.source)
        by_source[key] = by_source.get(key, 0) + 1

    total = len(items)
    average = sum(r.application_count or 0 for r in items) / total if total else 0.0

    return ResumeAnalytics(
        total_resumes=total,
        most_used_resume=most_used,
        recently_used_resumes=recent,
        resumes_by_source=by_source,
        average_application_count=average,
    )


def get_resume_analytics(db: Session, user_id: int, now: datetime | None = None) -> ResumeAnalytics:
    """Load the user's resumes once and aggregate."""
    return build_resume_analytics(resume_store.list_all_for_user(db, user_id), now=now)
