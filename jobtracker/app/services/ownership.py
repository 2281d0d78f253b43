"""
Ownership checks used by controllers before touching a resume or job application.
Missing and foreign rows raise the same NotFoundError so other users' ids never leak.
"""
from sqlalchemy.orm import Session

from jobtracker.app.core.errors import NotFoundError
from jobtracker.app.models.job_application import JobApplication
from jobtracker.app.models.resume import Resume
from jobtracker.app.services import resume_store


def get_owned_resume(db: Session, resume_id: int, user_id: int) -> Resume:
    resume = resume_store.get_resume_for_user(db, resume_id, user_id)
    if resume is None:
        raise NotFoundError("Resume")
    return resume


def get_owned_job_application(db: Session, application_id: int, user_id: int) -> JobApplication:
    application = (
        db.query(JobApplication)
        .filter(JobApplication.id == application_id, JobApplication.user_id == user_id)
        .first()
    )
    if application is None:
        raise NotFoundError("Job application")
    return application
