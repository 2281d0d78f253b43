"""
Resume - metadata record for one stored resume file version.
The file bytes live in the file storage backend; storage_path is the opaque handle.
"""
import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from jobtracker.app.db.base import Base


class ResumeSource(str, enum.Enum):
    UPLOAD = "Upload"
    GOOGLE_DRIVE = "Google Drive"
    GENERATED = "Generated"


class Resume(Base):
    __tablename__ = "resumes"
    __table_args__ = (
        UniqueConstraint("user_id", "version_name", name="uq_resumes_user_version_name"),
        CheckConstraint("application_count >= 0", name="ck_resumes_application_count_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    version_name = Column(String(100), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    storage_path = Column(String(1024), nullable=False, default="")  # "" until the file is stored
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    source = Column(
        Enum(ResumeSource, values_callable=lambda e: [m.value for m in e], name="resume_source"),
        nullable=False,
        default=ResumeSource.UPLOAD,
    )
    upload_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_used_date = Column(DateTime, nullable=True)
    application_count = Column(Integer, nullable=False, default=0)
    is_default = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job_applications = relationship("JobApplication", back_populates="resume", passive_deletes=True)
