"""
Resume lifecycle service - single entry point for resume mutations.

Keeps the metadata record and the stored file in sync:
- upload is a two-phase create (record first, then file) with compensating
  deletes when a later step fails, since no transaction spans the database
  and the blob store;
- link/unlink change the job application association and the usage counter
  in one database transaction, using in-database counter expressions;
- delete always removes the record, even when the file cannot be removed.
"""
import time
from datetime import datetime
from typing import NamedTuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from jobtracker.app.core.config import NOTES_MAX_LENGTH, VERSION_NAME_MAX_LENGTH
from jobtracker.app.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from jobtracker.app.core.logging_config import get_logger
from jobtracker.app.models.resume import Resume, ResumeSource
from jobtracker.app.services import resume_store
from jobtracker.app.services.file_storage import FileStorage, StorageResult, get_file_storage
from jobtracker.app.services.file_validator import FileValidationOptions, validate_file
from jobtracker.app.services.ownership import get_owned_resume

logger = get_logger("services.resume")


class UploadOutcome(NamedTuple):
    resume: Resume
    warnings: list[str]


class ResumeFile(NamedTuple):
    resume: Resume
    content: bytes
    size: int
    modified_time: datetime | None


def _parse_source(source) -> ResumeSource:
    if isinstance(source, ResumeSource):
        return source
    try:
        return ResumeSource(source)
    except ValueError:
        allowed = ", ".join(s.value for s in ResumeSource)
        raise ValidationError(f"Invalid resume source '{source}'. Allowed: {allowed}")


def _check_notes(notes: str | None) -> None:
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes must be at most {NOTES_MAX_LENGTH} characters")


def _check_version_name(name: str) -> None:
    if len(name) > VERSION_NAME_MAX_LENGTH:
        raise ValidationError(f"Version name must be at most {VERSION_NAME_MAX_LENGTH} characters")


class ResumeService:
    """Resume lifecycle operations for one request-scoped DB session."""

    def __init__(self, db: Session, storage: FileStorage | None = None):
        self.db = db
        self.storage = storage or get_file_storage()

    # --- queries ---

    def get(self, resume_id: int, user_id: int) -> Resume:
        return get_owned_resume(self.db, resume_id, user_id)

    def list_resumes(self, user_id: int, **filters) -> resume_store.ResumePage:
        source = filters.pop("source", None)
        if source is not None:
            filters["source"] = _parse_source(source)
        return resume_store.list_resumes(self.db, user_id, **filters)

    def public_url(self, resume: Resume) -> str:
        return self.storage.get_public_url(resume.storage_path) if resume.storage_path else ""

    def read_file(self, resume_id: int, user_id: int) -> ResumeFile:
        """Load the stored bytes of an owned resume for download."""
        resume = get_owned_resume(self.db, resume_id, user_id)
        if not resume.storage_path or not self.storage.file_exists(resume.storage_path):
            logger.error(
                "Resume file not found in storage user_id=%s resume_id=%s storage_path=%s",
                user_id,
                resume_id,
                resume.storage_path,
            )
            raise NotFoundError("Resume file")
        content = self.storage.read(resume.storage_path)
        if content is None:
            raise NotFoundError("Resume file")
        stats = self.storage.get_file_stats(resume.storage_path)
        return ResumeFile(
            resume=resume,
            content=content,
            size=stats.size if stats else len(content),
            modified_time=stats.modified_time if stats else None,
        )

    # --- upload ---

    def upload(
        self,
        user_id: int,
        file_bytes: bytes | None,
        declared_mime_type: str | None,
        original_file_name: str | None,
        version_name: str | None = None,
        notes: str | None = None,
        source=ResumeSource.UPLOAD,
        is_default: bool = False,
        options: FileValidationOptions | None = None,
    ) -> UploadOutcome:
        """
        Validate, create the record, store the file, then commit the storage path.

        Raises:
            ValidationError: file or metadata rejected, nothing persisted
            ConflictError: version name already used by this owner
            StorageError: file store failed, record removed again
            InternalError: path commit failed, stored file and record removed again
        """
        validation = validate_file(file_bytes, declared_mime_type, original_file_name, options)
        if not validation.is_valid:
            logger.info(
                "Resume upload rejected - validation failed user_id=%s file_name=%s errors=%s",
                user_id,
                validation.sanitized_file_name,
                validation.errors,
            )
            raise ValidationError("File validation failed", errors=validation.errors)

        name = (version_name or "").strip()
        _check_version_name(name)
        _check_notes(notes)
        resume_source = _parse_source(source)

        try:
            if name:
                if resume_store.find_by_version_name(self.db, name, user_id):
                    logger.info(
                        "Resume upload rejected - version name exists user_id=%s version_name=%s", user_id, name
                    )
                    raise ConflictError()
            else:
                name = f"Resume_{int(time.time() * 1000)}"

            # Phase 1: record with placeholder path
            resume = resume_store.create_resume(
                self.db,
                user_id=user_id,
                version_name=name,
                file_name=validation.sanitized_file_name,
                mime_type=declared_mime_type,
                source=resume_source,
                notes=notes,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Resume upload failed - record create error user_id=%s version_name=%s error=%s",
                user_id,
                name,
                e,
            )
            raise InternalError("Failed to create resume record") from e
        resume_id = resume.id

        # Phase 2: store the bytes
        try:
            result = self.storage.upload(
                file_bytes,
                user_id,
                resume_id,
                validation.sanitized_file_name,
                declared_mime_type,
            )
        except Exception as e:
            logger.exception("Resume upload failed - storage raised user_id=%s resume_id=%s", user_id, resume_id)
            result = StorageResult(success=False, errors=[str(e) or type(e).__name__])

        if not result.success or not result.storage_path:
            self._remove_record(resume_id, user_id, "upload")
            first_error = result.errors[0] if result.errors else "unknown storage error"
            raise StorageError(f"File upload failed: {first_error}")

        # Phase 3: commit the path
        try:
            if not resume_store.update_storage_path(self.db, resume_id, result.storage_path, result.file_size):
                raise InternalError("Resume record disappeared before path commit")
            if is_default:
                resume_store.apply_default_swap(self.db, resume_id, user_id)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Resume upload failed - path commit error user_id=%s resume_id=%s storage_path=%s error=%s",
                user_id,
                resume_id,
                result.storage_path,
                e,
            )
            self._remove_file(result.storage_path, user_id, resume_id)
            self._remove_record(resume_id, user_id, "upload")
            raise InternalError("Failed to update resume record after file upload") from e

        committed = resume_store.get_resume(self.db, resume_id)
        logger.info(
            "Resume uploaded successfully user_id=%s resume_id=%s file_name=%s size_bytes=%s version_name=%s",
            user_id,
            resume_id,
            validation.sanitized_file_name,
            result.file_size,
            name,
        )
        return UploadOutcome(resume=committed, warnings=validation.warnings)

    def _remove_record(self, resume_id: int, user_id: int, operation: str) -> None:
        """Compensation: drop a record whose file never made it to storage."""
        try:
            resume_store.delete_resume(self.db, resume_id)
            logger.warning(
                "Rolled back resume record operation=%s user_id=%s resume_id=%s",
                operation,
                user_id,
                resume_id,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Compensation failed - orphan resume record operation=%s user_id=%s resume_id=%s error=%s",
                operation,
                user_id,
                resume_id,
                e,
            )

    def _remove_file(self, storage_path: str, user_id: int, resume_id: int) -> None:
        """Compensation: drop a stored file whose record could not be committed."""
        try:
            deleted = self.storage.delete(storage_path)
        except Exception as e:
            logger.error(
                "Compensation failed - orphan file user_id=%s resume_id=%s storage_path=%s error=%s",
                user_id,
                resume_id,
                storage_path,
                e,
            )
            return
        if deleted:
            logger.warning(
                "Rolled back stored file user_id=%s resume_id=%s storage_path=%s",
                user_id,
                resume_id,
                storage_path,
            )
        else:
            logger.error(
                "Compensation failed - orphan file user_id=%s resume_id=%s storage_path=%s",
                user_id,
                resume_id,
                storage_path,
            )

    # --- metadata ---

    def update_metadata(
        self,
        resume_id: int,
        user_id: int,
        version_name: str | None = None,
        notes: str | None = None,
        source=None,
        is_default: bool | None = None,
    ) -> Resume:
        """Edit non-file fields. Setting is_default swaps the owner's default."""
        resume = get_owned_resume(self.db, resume_id, user_id)

        if version_name is not None:
            name = version_name.strip()
            if not name:
                raise ValidationError("Version name cannot be empty")
            _check_version_name(name)
            if name != resume.version_name:
                existing = resume_store.find_by_version_name(self.db, name, user_id)
                if existing and existing.id != resume.id:
                    raise ConflictError()
                resume.version_name = name
        if notes is not None:
            _check_notes(notes)
            resume.notes = notes
        if source is not None:
            resume.source = _parse_source(source)

        try:
            if is_default is True:
                self.db.flush()
                resume_store.apply_default_swap(self.db, resume_id, user_id)
            elif is_default is False:
                resume.is_default = False
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError() from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Resume update failed user_id=%s resume_id=%s error=%s", user_id, resume_id, e)
            raise InternalError("Failed to update resume") from e

        self.db.refresh(resume)
        logger.info("Resume updated user_id=%s resume_id=%s", user_id, resume_id)
        return resume

    def set_default(self, resume_id: int, user_id: int) -> Resume:
        return self.update_metadata(resume_id, user_id, is_default=True)

    # --- delete ---

    def delete(self, resume_id: int, user_id: int) -> bool:
        """
        Delete an owned resume. The file is removed first on a best-effort basis;
        the record is removed regardless. Returns whether the file was deleted.
        """
        resume = get_owned_resume(self.db, resume_id, user_id)
        storage_path = resume.storage_path
        version_name = resume.version_name

        file_deleted = False
        if storage_path:
            try:
                file_deleted = self.storage.delete(storage_path)
            except Exception as e:
                logger.warning(
                    "Resume file delete raised user_id=%s resume_id=%s storage_path=%s error=%s",
                    user_id,
                    resume_id,
                    storage_path,
                    e,
                )
            if not file_deleted:
                logger.warning(
                    "Failed to delete resume file, proceeding with record deletion user_id=%s resume_id=%s storage_path=%s",
                    user_id,
                    resume_id,
                    storage_path,
                )

        try:
            resume_store.delete_resume(self.db, resume_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Resume record delete failed user_id=%s resume_id=%s error=%s", user_id, resume_id, e)
            raise InternalError("Failed to delete resume") from e

        logger.info(
            "Resume deleted user_id=%s resume_id=%s version_name=%s file_deleted=%s",
            user_id,
            resume_id,
            version_name,
            file_deleted,
        )
        return file_deleted

    # --- link / unlink ---

    def link(self, resume_id: int, application_id: int) -> Resume:
        """
        Attach a resume to a job application and count the usage, in one transaction.
        Ownership of both ids must be verified by the caller.
        """
        now = datetime.utcnow()
        try:
            application = resume_store.get_job_application(self.db, application_id)
            if application is None:
                raise NotFoundError("Job application")
            previous_id = application.resume_id
            if previous_id == resume_id:
                # Already attached: refresh last use, the count stays
                updated = resume_store.mark_used(self.db, resume_id, now)
            else:
                updated = resume_store.increment_usage(self.db, resume_id, now)
            if not updated:
                raise NotFoundError("Resume")
            if previous_id is not None and previous_id != resume_id:
                resume_store.decrement_usage(self.db, previous_id)
            resume_store.attach_application(self.db, application_id, resume_id, now)
            self.db.commit()
        except NotFoundError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Error linking resume to job application operation=link resume_id=%s job_application_id=%s error=%s",
                resume_id,
                application_id,
                e,
            )
            raise InternalError("Failed to link resume to job application") from e

        logger.info("Resume linked to job application resume_id=%s job_application_id=%s", resume_id, application_id)
        return resume_store.get_resume(self.db, resume_id)

    def unlink(self, resume_id: int, application_id: int) -> Resume:
        """
        Detach a resume from a job application and decrement usage (floored at 0),
        in one transaction. last_used_date is left as is.
        """
        now = datetime.utcnow()
        try:
            resume_store.detach_application(self.db, application_id, resume_id, now)
            if not resume_store.decrement_usage(self.db, resume_id):
                raise NotFoundError("Resume")
            self.db.commit()
        except NotFoundError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Error unlinking resume from job application operation=unlink resume_id=%s job_application_id=%s error=%s",
                resume_id,
                application_id,
                e,
            )
            raise InternalError("Failed to unlink resume from job application") from e

        logger.info("Resume unlinked from job application resume_id=%s job_application_id=%s", resume_id, application_id)
        return resume_store.get_resume(self.db, resume_id)
