"""
inventory/test_upload.py

Photo uploads through LocalFileStorage and the /uploads static mount.

Run:
    pytest inventory/test_upload.py -v
"""

import os

import pytest

from inventory.config import Settings
from inventory.errors import BadRequest
from inventory.storage import LocalFileStorage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestLocalFileStorage:
    def test_writes_file_and_returns_public_url(self, tmp_path):
        storage = LocalFileStorage(Settings(upload_dir=str(tmp_path), base_url="http://files.local/"))
        url = storage.upload(PNG_BYTES, "cat.PNG", "image/png")

        assert url.startswith("http://files.local/uploads/")
        name = url.rsplit("/", 1)[1]
        assert name.endswith(".png")
        assert (tmp_path / name).read_bytes() == PNG_BYTES

    def test_suspicious_extension_replaced(self, tmp_path):
        storage = LocalFileStorage(Settings(upload_dir=str(tmp_path)))
        assert storage.upload(PNG_BYTES, "evil.html", "image/jpeg").endswith(".jpg")

    def test_rejects_non_images(self, tmp_path):
        storage = LocalFileStorage(Settings(upload_dir=str(tmp_path)))
        with pytest.raises(BadRequest):
            storage.upload(b"hello", "notes.txt", "text/plain")
        assert os.listdir(tmp_path) == []


class TestUploadEndpoints:
    def test_upload_and_serve(self, client, seed):
        response = client.post(
            "/api/upload",
            files={"file": ("photo.png", PNG_BYTES, "image/png")},
            headers=seed.headers(seed.users.staff),
        )

        assert response.status_code == 200
        url = response.json()["url"]
        assert url.startswith("http://testserver/uploads/")

        served = client.get(url.replace("http://testserver", ""))
        assert served.status_code == 200
        assert served.content == PNG_BYTES

    def test_upload_requires_authentication(self, client, seed):
        response = client.post("/api/upload", files={"file": ("photo.png", PNG_BYTES, "image/png")})
        assert response.status_code == 401

    def test_non_image_rejected(self, client, seed):
        response = client.post(
            "/api/upload",
            files={"file": ("doc.pdf", b"%PDF-1.4", "application/pdf")},
            headers=seed.headers(seed.users.staff),
        )
        assert response.status_code == 400

    def test_item_photo_update_is_audited(self, client, seed):
        item_id = seed.make_item()
        headers = seed.headers(seed.users.admin)

        response = client.patch(
            f"/api/upload/{item_id}/upload-image",
            files={"file": ("photo.png", PNG_BYTES, "image/png")},
            headers=headers,
        )

        assert response.status_code == 200
        photo_url = response.json()["photo_url"]
        assert photo_url.startswith("http://testserver/uploads/")

        latest = client.get(f"/api/items/item_logs/{item_id}", headers=headers).json()[0]
        assert latest["action"] == "update"
        assert latest["before"]["photo_url"] is None
        assert latest["after"]["photo_url"] == photo_url

    def test_item_photo_for_missing_item(self, client, settings, seed):
        response = client.patch(
            "/api/upload/missing/upload-image",
            files={"file": ("photo.png", PNG_BYTES, "image/png")},
            headers=seed.headers(seed.users.admin),
        )
        assert response.status_code == 404
        assert os.listdir(settings.upload_dir) == []

    def test_item_photo_requires_admin(self, client, seed):
        item_id = seed.make_item()
        response = client.patch(
            f"/api/upload/{item_id}/upload-image",
            files={"file": ("photo.png", PNG_BYTES, "image/png")},
            headers=seed.headers(seed.users.staff),
        )
        assert response.status_code == 403


class TestUploadSizeLimit:
    @pytest.fixture
    def settings(self, tmp_path):
        return Settings(
            database_path=str(tmp_path / "test.db"),
            upload_dir=str(tmp_path / "uploads"),
            base_url="http://testserver",
            max_upload_bytes=len(PNG_BYTES),
        )

    def test_file_at_limit_accepted(self, client, seed):
        response = client.post(
            "/api/upload",
            files={"file": ("photo.png", PNG_BYTES, "image/png")},
            headers=seed.headers(seed.users.staff),
        )
        assert response.status_code == 200

    def test_oversized_file_rejected(self, client, settings, seed):
        response = client.post(
            "/api/upload",
            files={"file": ("photo.png", PNG_BYTES + b"\x00", "image/png")},
            headers=seed.headers(seed.users.staff),
        )

        assert response.status_code == 400
        assert response.json() == {"error": f"File too large (max {len(PNG_BYTES)} bytes)"}
        assert not os.path.exists(settings.upload_dir) or os.listdir(settings.upload_dir) == []
