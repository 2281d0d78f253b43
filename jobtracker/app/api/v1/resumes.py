"""
Resume endpoints - upload, list, analytics, metadata edits, download, delete,
and linking resumes to job applications.

Thin adapter over ResumeService: ownership checks happen here, service errors
are turned into responses by the app-level exception handler.
"""
from email.utils import format_datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from jobtracker.app.core.config import settings
from jobtracker.app.core.dependencies import get_current_user, get_db, get_resume_service
from jobtracker.app.core.logging_config import get_logger
from jobtracker.app.models.resume import ResumeSource
from jobtracker.app.models.user import User
from jobtracker.app.schemas.resume import (
    ResumeAnalyticsOut,
    ResumeListOut,
    ResumeOut,
    ResumeUpdateIn,
    ResumeUploadOut,
    resume_to_out,
)
from jobtracker.app.services.ownership import get_owned_job_application, get_owned_resume
from jobtracker.app.services.resume_analytics import get_resume_analytics
from jobtracker.app.services.resume_service import ResumeService
from jobtracker.app.utils import cache

logger = get_logger("api.resumes")
router = APIRouter(prefix="/resumes", tags=["resumes"])


async def _invalidate_analytics(user_id: int) -> None:
    await cache.delete(cache.analytics_key(user_id))


@router.post("/upload", response_model=ResumeUploadOut, status_code=status.HTTP_201_CREATED)
async def upload_resume(
    file: UploadFile = File(...),
    version_name: str | None = Form(None),
    notes: str | None = Form(None),
    source: ResumeSource = Form(ResumeSource.UPLOAD),
    is_default: bool = Form(False),
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
):
    """
    Upload a resume file (PDF, DOC, DOCX) with its metadata.

    - **version_name**: unique per user; generated when omitted
    - **notes**, **source**, **is_default**: optional metadata

    Returns the created resume with its file URL and any validation warnings.
    """
    logger.info("Resume upload started user_id=%s filename=%s", current_user.id, file.filename)
    # One byte past the limit is enough for the size check to reject it
    contents = await file.read(settings.max_resume_file_size_bytes + 1)

    outcome = service.upload(
        user_id=current_user.id,
        file_bytes=contents,
        declared_mime_type=file.content_type,
        original_file_name=file.filename,
        version_name=version_name,
        notes=notes,
        source=source,
        is_default=is_default,
    )
    await _invalidate_analytics(current_user.id)

    out = resume_to_out(outcome.resume, service.public_url(outcome.resume))
    return ResumeUploadOut(**out.model_dump(), warnings=outcome.warnings)


@router.get("", response_model=ResumeListOut)
def list_resumes(
    page: int = 1,
    limit: int | None = None,
    version_name: str | None = None,
    source: ResumeSource | None = None,
    has_recent_activity: bool | None = None,
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
):
    """Paginated list of the user's resumes, filtered by name, source or recent use."""
    result = service.list_resumes(
        current_user.id,
        version_name=version_name,
        source=source,
        has_recent_activity=has_recent_activity,
        page=page,
        limit=limit,
    )
    return ResumeListOut(
        resumes=[resume_to_out(r, service.public_url(r)) for r in result.resumes],
        total_pages=result.total_pages,
        current_page=result.current_page,
        total_resumes=result.total,
    )


@router.get("/analytics", response_model=ResumeAnalyticsOut)
async def get_analytics(
    db: Session = Depends(get_db),
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Usage analytics over the user's resumes. Cached per user (ttl from config)."""
    cache_key = cache.analytics_key(current_user.id)
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    analytics = get_resume_analytics(db, current_user.id)
    most_used = analytics.most_used_resume
    result = ResumeAnalyticsOut(
        total_resumes=analytics.total_resumes,
        most_used_resume=resume_to_out(most_used, service.public_url(most_used)) if most_used else None,
        recently_used_resumes=[resume_to_out(r, service.public_url(r)) for r in analytics.recently_used_resumes],
        resumes_by_source=analytics.resumes_by_source,
        average_application_count=analytics.average_application_count,
    ).model_dump(mode="json")

    await cache.set(cache_key, result, ttl=settings.analytics_cache_ttl)
    return result


@router.get("/{resume_id}", response_model=ResumeOut)
def get_resume(
    resume_id: int,
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
):
    resume = service.get(resume_id, current_user.id)
    return resume_to_out(resume, service.public_url(resume))


@router.patch("/{resume_id}", response_model=ResumeOut)
async def update_resume(
    resume_id: int,
    payload: ResumeUpdateIn,
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
):
    """Update resume metadata. File content is replaced by uploading a new version."""
    resume = service.update_metadata(
        resume_id,
        current_user.id,
        version_name=payload.version_name,
        notes=payload.notes,
        source=payload.source,
        is_default=payload.is_default,
    )
    await _invalidate_analytics(current_user.id)
    return resume_to_out(resume, service.public_url(resume))


@router.delete("/{resume_id}")
async def delete_resume(
    resume_id: int,
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Delete a resume. The record goes even if its file cannot be removed."""
    file_deleted = service.delete(resume_id, current_user.id)
    await _invalidate_analytics(current_user.id)
    return {"deleted": resume_id, "file_deleted": file_deleted}


@router.get("/{resume_id}/download")
def download_resume(
    resume_id: int,
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
):
    """Stream the stored resume file as an attachment."""
    stored = service.read_file(resume_id, current_user.id)
    headers = {"Content-Disposition": f'attachment; filename="{stored.resume.file_name}"'}
    if stored.modified_time:
        headers["Last-Modified"] = format_datetime(stored.modified_time, usegmt=True)
    logger.info("Resume downloaded user_id=%s resume_id=%s bytes=%d", current_user.id, resume_id, stored.size)
    return Response(
        content=stored.content,
        media_type=stored.resume.mime_type or "application/octet-stream",
        headers=headers,
    )


@router.post("/{resume_id}/applications/{application_id}", response_model=ResumeOut)
async def link_resume_to_application(
    resume_id: int,
    application_id: int,
    db: Session = Depends(get_db),
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
):
    """Attach a resume to one of the user's job applications and count the usage."""
    get_owned_resume(db, resume_id, current_user.id)
    get_owned_job_application(db, application_id, current_user.id)
    resume = service.link(resume_id, application_id)
    await _invalidate_analytics(current_user.id)
    return resume_to_out(resume, service.public_url(resume))


@router.delete("/{resume_id}/applications/{application_id}", response_model=ResumeOut)
async def unlink_resume_from_application(
    resume_id: int,
    application_id: int,
    db: Session = Depends(get_db),
    service: ResumeService = Depends(get_resume_service),
    current_user: User = Depends(get_current_user),
):
    """Detach a resume from one of the user's job applications."""
    get_owned_resume(db, resume_id, current_user.id)
    get_owned_job_application(db, application_id, current_user.id)
    resume = service.unlink(resume_id, application_id)
    await _invalidate_analytics(current_user.id)
    return resume_to_out(resume, service.public_url(resume))
