import os
from io import BytesIO
from unittest.mock import patch

import pytest

from filevault.core.errors import StorageError


def _upload(client, name, data=b"0123456789"):
    return client.post("/upload", files={"file": (name, BytesIO(data), "application/octet-stream")})


class TestAuth:
    def test_health_is_open(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    @pytest.mark.parametrize(
        "method, path",
        [("get", "/list"), ("get", "/download?file=a.txt"), ("post", "/share"),
         ("post", "/unshare"), ("post", "/delete"), ("post", "/upload")],
    )
    def test_file_routes_require_session(self, client, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Unauthorized"

    def test_bad_credentials(self, client):
        resp = client.post("/login", data={"username": "admin", "password": "wrong"})
        assert resp.status_code == 401

    def test_login_then_logout(self, auth_client):
        assert auth_client.get("/list").status_code == 200

        resp = auth_client.post("/logout")
        assert resp.status_code == 200
        assert auth_client.get("/list").status_code == 401


class TestFiles:
    def test_upload_twice_then_list_and_download(self, auth_client):
        first = _upload(auth_client, "report.pdf", b"first-file")
        second = _upload(auth_client, "report.pdf", b"secondfile")

        assert first.json() == {"status": "success", "filename": "report.pdf", "size": 10}
        renamed = second.json()["filename"]
        assert renamed.startswith("report_") and renamed.endswith(".pdf")
        assert renamed != "report.pdf"

        listing = auth_client.get("/list").json()
        assert [f["name"] for f in listing] == sorted(["report.pdf", renamed])
        for f in listing:
            assert f["size"] == 10
            assert f["isPublic"] is False
            assert "publicId" not in f
            assert "createdAt" in f
            assert "storage_path" not in f

        one = auth_client.get("/download", params={"file": "report.pdf"})
        two = auth_client.get("/download", params={"file": renamed})
        assert one.content == b"first-file"
        assert two.content == b"secondfile"
        assert one.headers["content-disposition"] == 'attachment; filename="report.pdf"'
        assert one.headers["content-length"] == "10"

    def test_download_unknown(self, auth_client):
        assert auth_client.get("/download", params={"file": "nope.txt"}).status_code == 404

    def test_download_requires_name(self, auth_client):
        resp = auth_client.get("/download")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "File parameter is required"

    def test_non_ascii_name_is_encoded(self, auth_client):
        _upload(auth_client, "résumé.txt")
        resp = auth_client.get("/download", params={"file": "résumé.txt"})
        assert resp.headers["content-disposition"] == "attachment; filename*=utf-8''r%C3%A9sum%C3%A9.txt"

    def test_upload_too_large(self, auth_client, upload_root):
        resp = _upload(auth_client, "big.bin", b"x" * 2048)
        assert resp.status_code == 413
        assert not (upload_root / "big.bin").exists()
        assert auth_client.get("/list").json() == []

    def test_upload_reserved_name_rejected(self, auth_client):
        resp = _upload(auth_client, ".incoming")
        assert resp.status_code == 400
        assert auth_client.get("/list").json() == []

    def test_delete(self, auth_client, upload_root):
        _upload(auth_client, "a.txt")

        resp = auth_client.post("/delete", data={"file": "a.txt"})

        assert resp.json() == {"status": "success", "filename": "a.txt"}
        assert not (upload_root / "a.txt").exists()
        assert auth_client.get("/download", params={"file": "a.txt"}).status_code == 404

    def test_delete_unknown(self, auth_client):
        assert auth_client.post("/delete", data={"file": "nope"}).status_code == 404

    def test_delete_storage_failure_keeps_file(self, client, auth_client, upload_root):
        _upload(auth_client, "a.txt")
        store = client.app.state.store
        with patch.object(store, "remove", side_effect=StorageError("Error deleting file: denied")):
            resp = auth_client.post("/delete", data={"file": "a.txt"})

        assert resp.status_code == 500
        assert (upload_root / "a.txt").exists()
        assert [f["name"] for f in auth_client.get("/list").json()] == ["a.txt"]


class TestSharing:
    def test_share_fetch_unshare(self, auth_client):
        _upload(auth_client, "report.pdf", b"shared-bytes")

        body = auth_client.post("/share", data={"file": "report.pdf"}).json()
        token = body["publicId"]
        assert body["url"] == f"/public/{token}"
        assert auth_client.post("/share", data={"file": "report.pdf"}).json()["publicId"] == token

        listing = auth_client.get("/list").json()
        assert listing[0]["isPublic"] is True
        assert listing[0]["publicId"] == token

        auth_client.post("/logout")
        public = auth_client.get(f"/public/{token}")
        assert public.status_code == 200
        assert public.content == b"shared-bytes"

        auth_client.post("/login", data={"username": "admin", "password": "secret"})
        assert auth_client.post("/unshare", data={"file": "report.pdf"}).json() == {
            "status": "success", "filename": "report.pdf",
        }
        assert auth_client.get(f"/public/{token}").status_code == 404
        assert auth_client.get("/list").json()[0]["isPublic"] is False

    def test_share_unknown(self, auth_client):
        assert auth_client.post("/share", data={"file": "nope"}).status_code == 404

    def test_unknown_token(self, client):
        resp = client.get("/public/bogus")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "File not found or not public"


def test_startup_scan_picks_up_existing_files(app_settings, upload_root):
    from fastapi.testclient import TestClient
    from filevault.main import create_app

    (upload_root / "old.txt").write_bytes(b"from before")

    with TestClient(create_app(app_settings)) as c:
        c.post("/login", data={"username": "admin", "password": "secret"})
        assert [f["name"] for f in c.get("/list").json()] == ["old.txt"]
        assert c.get("/download", params={"file": "old.txt"}).content == b"from before"


def test_listing_survives_file_with_undecodable_name(app_settings, upload_root):
    from fastapi.testclient import TestClient
    from filevault.main import create_app

    (upload_root / "ok.txt").write_bytes(b"fine")
    with open(os.path.join(os.fsencode(upload_root), b"bad\xff.txt"), "wb") as f:
        f.write(b"x")

    with TestClient(create_app(app_settings)) as c:
        c.post("/login", data={"username": "admin", "password": "secret"})
        resp = c.get("/list")
        assert resp.status_code == 200
        assert [f["name"] for f in resp.json()] == ["ok.txt"]


def test_startup_clears_unfinished_uploads(app_settings, upload_root):
    from fastapi.testclient import TestClient
    from filevault.main import create_app

    (upload_root / ".incoming").mkdir()
    (upload_root / ".incoming" / "crashed.part").write_bytes(b"half")

    with TestClient(create_app(app_settings)):
        assert list((upload_root / ".incoming").iterdir()) == []
