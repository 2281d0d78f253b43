"""
Resume file validation - size, declared type, extension, magic-number signature,
filename safety and a lightweight malicious-content scan.

Pure functions: nothing here touches the database or the file storage backend.
Every check runs so the caller gets the full list of problems at once.
"""
import re
from pathlib import PurePath

from pydantic import BaseModel, Field

from jobtracker.app.core.config import (
    CONTENT_SCAN_BYTES,
    FILE_NAME_STEM_MAX_LENGTH,
    FILE_SIGNATURES,
    RESUME_ALLOWED_EXTENSIONS,
    RESUME_ALLOWED_MIME_TYPES,
    settings,
)
from jobtracker.app.core.logging_config import get_logger

logger = get_logger("services.file_validator")

UNKNOWN_FILE_NAME = "unknown_file"

_RESERVED_DEVICE_NAME = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])$", re.IGNORECASE)
_EXECUTABLE_EXTENSION = re.compile(r"\.(exe|bat|cmd|scr|pif|com)$", re.IGNORECASE)
_MALICIOUS_MARKERS = (
    re.compile(rb"MZ"),            # PE executable header
    re.compile(rb"\x7fELF"),       # ELF executable header
    re.compile(rb"<script", re.IGNORECASE),
    re.compile(rb"javascript:", re.IGNORECASE),
)


class FileValidationOptions(BaseModel):
    max_size_bytes: int = Field(default_factory=lambda: settings.max_resume_file_size_bytes)
    allowed_mime_types: tuple[str, ...] = RESUME_ALLOWED_MIME_TYPES
    allowed_extensions: tuple[str, ...] = RESUME_ALLOWED_EXTENSIONS
    require_content_validation: bool = True
    sanitize_file_name: bool = True


class FileValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sanitized_file_name: str = ""
    detected_mime_type: str | None = None
    file_size: int = 0


def sanitize_file_name(file_name) -> str:
    """
    Make an uploaded file name safe for storage.

    Characters outside [A-Za-z0-9_-] in the stem become underscores, underscore
    runs collapse, leading/trailing underscores are dropped and the extension
    is lower-cased. Never raises.
    """
    if not isinstance(file_name, str) or not file_name.strip():
        return UNKNOWN_FILE_NAME

    # Drop any directory components a client may have sent
    base = re.split(r"[\\/]", file_name.strip())[-1].replace("\x00", "")
    if not base:
        return UNKNOWN_FILE_NAME

    path = PurePath(base)
    stem, ext = path.stem, path.suffix
    if not re.fullmatch(r"\.[A-Za-z0-9]+", ext or ""):
        stem, ext = base, ""

    stem = stem[:FILE_NAME_STEM_MAX_LENGTH]
    stem = re.sub(r"[^A-Za-z0-9\-_\s]", "_", stem)
    stem = re.sub(r"\s+", "_", stem)
    stem = re.sub(r"_+", "_", stem)
    stem = stem.strip("_")

    return f"{stem or 'file'}{ext.lower()}"


def detect_mime_type(file_bytes: bytes | None) -> str | None:
    """Return the allow-listed MIME type whose signature matches the leading bytes."""
    if not file_bytes:
        return None
    for mime_type, signature in FILE_SIGNATURES.items():
        if file_bytes.startswith(signature):
            return mime_type
    return None


def validate_file_content(file_bytes: bytes | None, declared_mime_type: str | None) -> bool:
    """True when the buffer starts with the signature registered for the declared type."""
    if not file_bytes:
        return False
    signature = FILE_SIGNATURES.get(declared_mime_type or "")
    if signature is None:
        logger.warning("Unknown MIME type for content validation mime_type=%s", declared_mime_type)
        return False
    return file_bytes[: len(signature)] == signature


def _has_suspicious_name(original_file_name: str) -> bool:
    base = re.split(r"[\\/]", original_file_name)[-1]
    stem = base.split(".", 1)[0] if not base.startswith(".") else base
    return bool(
        _RESERVED_DEVICE_NAME.match(stem)
        or base.startswith(".")
        or _EXECUTABLE_EXTENSION.search(base)
    )


def _has_malicious_content(file_bytes: bytes) -> bool:
    head = file_bytes[:CONTENT_SCAN_BYTES]
    return any(p.search(head) for p in _MALICIOUS_MARKERS)


def validate_file(
    file_bytes: bytes | None,
    declared_mime_type: str | None,
    original_file_name: str | None,
    options: FileValidationOptions | None = None,
) -> FileValidationResult:
    """
    Validate an uploaded resume buffer.

    Args:
        file_bytes: Full file content (already buffered in memory)
        declared_mime_type: Content type claimed by the client
        original_file_name: File name as sent by the client
        options: Limits and allow-lists (defaults from settings)

    Returns:
        FileValidationResult with every error and warning found
    """
    opts = options or FileValidationOptions()
    errors: list[str] = []
    warnings: list[str] = []

    if file_bytes is None:
        return FileValidationResult(
            is_valid=False,
            errors=["No file provided"],
            sanitized_file_name="",
            file_size=0,
        )

    name = original_file_name if isinstance(original_file_name, str) else ""
    sanitized = sanitize_file_name(name) if opts.sanitize_file_name else (name or UNKNOWN_FILE_NAME)
    file_size = len(file_bytes)

    # 1. presence
    if file_size == 0:
        errors.append("File is empty")

    # 2. size
    if file_size > opts.max_size_bytes:
        size_mb = round(opts.max_size_bytes / (1024 * 1024))
        errors.append(
            f"File size {round(file_size / (1024 * 1024))}MB exceeds maximum allowed size of {size_mb}MB"
        )

    # 3. declared type
    if declared_mime_type not in opts.allowed_mime_types:
        errors.append(
            f"File type '{declared_mime_type}' is not allowed. "
            f"Allowed types: {', '.join(opts.allowed_mime_types)}"
        )

    # 4. extension
    extension = PurePath(name).suffix.lower() if name else ""
    allowed_ext = {e.lower() for e in opts.allowed_extensions}
    if extension not in allowed_ext:
        errors.append(
            f"File extension '{extension}' is not allowed. "
            f"Allowed extensions: {', '.join(opts.allowed_extensions)}"
        )

    # 5. signature
    if opts.require_content_validation and file_size > 0:
        if not validate_file_content(file_bytes, declared_mime_type):
            errors.append(
                "File content does not match the declared file type. "
                "This may indicate file corruption or type spoofing."
            )

    # 6. name safety
    if name and sanitized != name:
        warnings.append(f"File name was sanitized to '{sanitized}'")
    if name and _has_suspicious_name(name):
        errors.append(f"File name '{name}' contains suspicious patterns")

    # 7. content heuristic
    if file_size > 0 and _has_malicious_content(file_bytes):
        errors.append("File contains potentially malicious content")
        logger.warning(
            "Potentially malicious file upload attempt file_name=%s mime_type=%s size_bytes=%d",
            sanitized,
            declared_mime_type,
            file_size,
        )

    return FileValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        sanitized_file_name=sanitized,
        detected_mime_type=detect_mime_type(file_bytes),
        file_size=file_size,
    )
