"""
Resume Pydantic schemas for request/response validation
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from jobtracker.app.core.config import NOTES_MAX_LENGTH, VERSION_NAME_MAX_LENGTH
from jobtracker.app.models.resume import Resume, ResumeSource


class ResumeOut(BaseModel):
    """Resume metadata as returned to clients; file_url is resolved by the storage backend"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    version_name: str
    file_name: str
    file_url: str = ""
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    source: ResumeSource
    upload_date: datetime
    last_used_date: Optional[datetime] = None
    application_count: int = 0
    is_default: bool = False
    notes: Optional[str] = None


class ResumeUploadOut(ResumeOut):
    warnings: List[str] = Field(default_factory=list)


class ResumeUpdateIn(BaseModel):
    version_name: Optional[str] = Field(default=None, max_length=VERSION_NAME_MAX_LENGTH)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    source: Optional[ResumeSource] = None
    is_default: Optional[bool] = None


class ResumeListOut(BaseModel):
    resumes: List[ResumeOut]
    total_pages: int
    current_page: int
    total_resumes: int


class ResumeAnalyticsOut(BaseModel):
    total_resumes: int
    most_used_resume: Optional[ResumeOut] = None
    recently_used_resumes: List[ResumeOut] = Field(default_factory=list)
    resumes_by_source: Dict[str, int]
    average_application_count: float


def resume_to_out(resume: Resume, file_url: str = "") -> ResumeOut:
    out = ResumeOut.model_validate(resume)
    out.file_url = file_url
    return out
