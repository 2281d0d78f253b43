"""Tests for /api/resumes endpoints"""
import pytest

from jobtracker.app.core.config import MIME_PDF, settings
from jobtracker.app.core.errors import InternalError, StorageError, ValidationError, error_detail
from jobtracker.app.models.resume import Resume
from jobtracker.app.utils import cache


def _upload(client, headers, content, version_name=None, file_name="resume.pdf", mime_type=MIME_PDF, **data):
    if version_name is not None:
        data["version_name"] = version_name
    return client.post(
        "/api/resumes/upload",
        files={"file": (file_name, content, mime_type)},
        data=data,
        headers=headers,
    )


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/resumes"),
        ("get", "/api/resumes/analytics"),
        ("get", "/api/resumes/1"),
        ("delete", "/api/resumes/1"),
        ("post", "/api/resumes/1/applications/1"),
    ],
)
def test_resume_endpoints_require_auth(client, method, path):
    """Auth required: assert 401 without token."""
    r = getattr(client, method)(path)
    assert r.status_code == 401


def test_invalid_token_is_rejected(client):
    r = client.get("/api/resumes", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_upload_returns_201(client, auth_headers, make_pdf):
    r = _upload(client, auth_headers, make_pdf(4096), version_name="Primary", notes="first", source="Generated")
    assert r.status_code == 201
    data = r.json()
    assert data["version_name"] == "Primary"
    assert data["file_name"] == "resume.pdf"
    assert data["file_size"] == 4096
    assert data["source"] == "Generated"
    assert data["notes"] == "first"
    assert data["application_count"] == 0
    assert data["file_url"].startswith("/files/resumes/1/")
    assert data["warnings"] == []
    cache.delete.assert_awaited_with("resume_analytics:1")


def test_upload_duplicate_returns_409(client, auth_headers, db_session, make_pdf):
    assert _upload(client, auth_headers, make_pdf(), version_name="Primary").status_code == 201
    r = _upload(client, auth_headers, make_pdf(), version_name="Primary")
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "RESOURCE_CONFLICT"
    assert db_session.query(Resume).count() == 1


def test_upload_spoofed_file_returns_400(client, auth_headers, db_session):
    r = _upload(client, auth_headers, b"PK\x03\x04" + b"\x00" * 128, version_name="Spoofed")
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert any("does not match the declared file type" in e for e in detail["errors"])
    assert db_session.query(Resume).count() == 0


def test_upload_oversized_returns_400(client, auth_headers, make_pdf, monkeypatch):
    monkeypatch.setattr(settings, "max_resume_file_size_bytes", 1024)
    r = _upload(client, auth_headers, make_pdf(4096), version_name="Big")
    assert r.status_code == 400
    assert any("exceeds maximum allowed size" in e for e in r.json()["detail"]["errors"])


def test_list_and_get(client, auth_headers, make_pdf):
    created = _upload(client, auth_headers, make_pdf(), version_name="Backend").json()
    _upload(client, auth_headers, make_pdf(), version_name="Frontend")

    r = client.get("/api/resumes", params={"version_name": "back"}, headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["total_resumes"] == 1
    assert data["total_pages"] == 1
    assert data["current_page"] == 1
    assert data["resumes"][0]["id"] == created["id"]

    r = client.get(f"/api/resumes/{created['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["version_name"] == "Backend"


def test_get_missing_returns_404(client, auth_headers):
    r = client.get("/api/resumes/999", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["detail"] == {"code": "RESOURCE_NOT_FOUND", "message": "Resume not found"}


def test_patch_updates_metadata(client, auth_headers, make_pdf):
    created = _upload(client, auth_headers, make_pdf(), version_name="Draft").json()
    r = client.patch(
        f"/api/resumes/{created['id']}",
        json={"version_name": "Final", "is_default": True},
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert r.json()["version_name"] == "Final"
    assert r.json()["is_default"] is True


def test_download_returns_file(client, auth_headers, make_pdf):
    content = make_pdf(3000)
    created = _upload(client, auth_headers, content, version_name="Primary").json()
    r = client.get(f"/api/resumes/{created['id']}/download", headers=auth_headers)
    assert r.status_code == 200
    assert r.content == content
    assert r.headers["content-type"] == MIME_PDF
    assert r.headers["content-disposition"] == 'attachment; filename="resume.pdf"'
    assert "last-modified" in r.headers


def test_link_and_unlink(client, auth_headers, make_pdf, make_application, test_user):
    created = _upload(client, auth_headers, make_pdf(), version_name="Primary").json()
    application = make_application(test_user)
    path = f"/api/resumes/{created['id']}/applications/{application.id}"

    r = client.post(path, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["application_count"] == 1
    last_used = r.json()["last_used_date"]
    assert last_used is not None

    r = client.delete(path, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["application_count"] == 0
    assert r.json()["last_used_date"] == last_used


def test_link_foreign_application_returns_404(client, auth_headers, make_pdf, make_application, other_user):
    created = _upload(client, auth_headers, make_pdf(), version_name="Primary").json()
    foreign = make_application(other_user)
    r = client.post(f"/api/resumes/{created['id']}/applications/{foreign.id}", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["detail"]["message"] == "Job application not found"


def test_analytics(client, auth_headers, make_pdf, make_application, test_user):
    created = _upload(client, auth_headers, make_pdf(), version_name="Primary").json()
    _upload(client, auth_headers, make_pdf(), version_name="Drive", source="Google Drive")
    application = make_application(test_user)
    client.post(f"/api/resumes/{created['id']}/applications/{application.id}", headers=auth_headers)

    r = client.get("/api/resumes/analytics", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["total_resumes"] == 2
    assert data["most_used_resume"]["id"] == created["id"]
    assert [x["id"] for x in data["recently_used_resumes"]] == [created["id"]]
    assert data["resumes_by_source"] == {"Upload": 1, "Google Drive": 1, "Generated": 0}
    assert data["average_application_count"] == 0.5
    cache.set.assert_awaited_once()


def test_analytics_served_from_cache(client, auth_headers):
    cached = {
        "total_resumes": 7,
        "most_used_resume": None,
        "recently_used_resumes": [],
        "resumes_by_source": {"Upload": 7, "Google Drive": 0, "Generated": 0},
        "average_application_count": 1.0,
    }
    cache.get.return_value = cached
    r = client.get("/api/resumes/analytics", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["total_resumes"] == 7
    cache.set.assert_not_awaited()


def test_delete(client, auth_headers, make_pdf, db_session):
    created = _upload(client, auth_headers, make_pdf(), version_name="Primary").json()
    r = client.delete(f"/api/resumes/{created['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"deleted": created["id"], "file_deleted": True}
    assert db_session.query(Resume).count() == 0

    r = client.delete(f"/api/resumes/{created['id']}", headers=auth_headers)
    assert r.status_code == 404


def test_error_detail_hides_internal_messages_in_production(monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    assert error_detail(StorageError("bucket tmp-123 refused")) == {
        "code": "STORAGE_ERROR",
        "message": "File storage is unavailable",
    }
    assert error_detail(InternalError("row lock timeout"))["message"] == "An unexpected error occurred"
    assert error_detail(ValidationError("bad", errors=["File is empty"])) == {
        "code": "VALIDATION_ERROR",
        "message": "bad",
        "errors": ["File is empty"],
    }

    monkeypatch.setattr(settings, "environment", "development")
    assert error_detail(StorageError("bucket tmp-123 refused"))["message"] == "bucket tmp-123 refused"
