"""
Application configuration settings.
Loads from .env file first (overrides shell env for local dev), then pydantic reads from environment.
Production: set env vars in the platform (Docker, K8s, etc.); .env is optional.

All resume-subsystem configs and constants are centralized here.
"""
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env path: jobtracker/.env (absolute path, works regardless of cwd)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = (_BASE_DIR / ".env").resolve()

# Load .env into environment BEFORE pydantic reads. override=True ensures .env
# values override any shell env. When .env doesn't exist (prod), this is a no-op.
if _ENV_FILE.exists():
    load_dotenv(_ENV_FILE, override=True)

class Settings(BaseSettings):
    """Application settings. Source: env vars (after dotenv load)."""

    # App
    app_name: str = "JobTracker"
    app_version: str = "1.0.0"
    environment: str = "development"  # "production" hides internal error text
    port: int = 8001

    # Database
    database_url: str = "sqlite:///./jobtracker.db"

    # Auth
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # File storage
    file_storage_type: str = "local"  # local | s3
    upload_dir: str = "uploads/resumes"
    file_base_url: str = "/files/resumes"
    max_resume_file_size_bytes: int = 10 * 1024 * 1024

    # Resume listing / analytics windows
    recent_activity_days: int = 90
    recent_analytics_days: int = 30
    recent_resumes_limit: int = 5
    default_page_limit: int = 10
    max_page_limit: int = 100
    max_page: int = 1000

    # Redis
    redis_url: str = ""
    analytics_cache_ttl: int = 300

    # AWS S3
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-1"
    aws_bucket_name: str = "jobtracker-resumes"
    s3_presigned_url_expiration: int = 3600
    s3_key_prefix: str = "resumes"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

settings = Settings()

# --- Constants (non-env, business config) ---

MIME_PDF: str = "application/pdf"
MIME_DOC: str = "application/msword"
MIME_DOCX: str = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

RESUME_ALLOWED_MIME_TYPES: tuple[str, ...] = (MIME_PDF, MIME_DOC, MIME_DOCX)
RESUME_ALLOWED_EXTENSIONS: tuple[str, ...] = (".pdf", ".doc", ".docx")

# Leading bytes per declared MIME type. DOCX is a ZIP container.
FILE_SIGNATURES: dict[str, bytes] = {
    MIME_PDF: b"\x25\x50\x44\x46",   # %PDF
    MIME_DOC: b"\xD0\xCF\x11\xE0",   # OLE compound document
    MIME_DOCX: b"\x50\x4B\x03\x04",  # PK\x03\x04
}

# Bytes scanned by the malicious-content heuristic
CONTENT_SCAN_BYTES: int = 1024

# Field limits
VERSION_NAME_MAX_LENGTH: int = 100
FILE_NAME_STEM_MAX_LENGTH: int = 100
NOTES_MAX_LENGTH: int = 1000
SEARCH_QUERY_MAX_LENGTH: int = 100
