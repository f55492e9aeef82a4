import io
import re

import pytest

from conftest import PDF_BYTES, PNG_BYTES
from errors import UploadError
from uploads import MB, PROJECT_IMAGES, UploadPolicy, build_filename, resolve_public_path, store


def test_single_upload_is_served_with_cors(client, admin_headers):
    res = client.post("/api/upload/single", files={"file": ("cv.pdf", PDF_BYTES, "application/pdf")}, headers=admin_headers)
    assert res.status_code == 200
    stored = res.json()["file"]
    assert stored["originalName"] == "cv.pdf"
    assert stored["size"] == len(PDF_BYTES)
    assert stored["mimetype"] == "application/pdf"
    assert re.fullmatch(r"/uploads/file-\d+-\d+\.pdf", stored["path"])

    served = client.get(stored["path"])
    assert served.status_code == 200
    assert served.content == PDF_BYTES
    assert served.headers["access-control-allow-origin"] == "*"
    assert served.headers["cross-origin-resource-policy"] == "cross-origin"


def test_missing_upload_serves_placeholder(client):
    res = client.get("/uploads/does-not-exist.png")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("image/svg+xml")
    assert b"Image not available" in res.content


def test_single_upload_requires_file(client, admin_headers):
    res = client.post("/api/upload/single", data={"note": "nothing"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "No file uploaded"


def test_single_upload_requires_admin(client):
    res = client.post("/api/upload/single", files={"file": ("a.png", PNG_BYTES, "image/png")})
    assert res.status_code == 401


def test_multiple_upload(client, admin_headers):
    files = [("files", (f"{i}.png", PNG_BYTES, "image/png")) for i in range(3)]
    res = client.post("/api/upload/multiple", files=files, headers=admin_headers)
    assert res.status_code == 200
    assert len(res.json()["files"]) == 3


def test_multiple_upload_limit(client, admin_headers, uploads_dir):
    before = set(uploads_dir.iterdir())
    files = [("files", (f"{i}.png", PNG_BYTES, "image/png")) for i in range(6)]
    res = client.post("/api/upload/multiple", files=files, headers=admin_headers)
    assert res.status_code == 400
    assert set(uploads_dir.iterdir()) == before


def test_multiple_upload_rejects_whole_batch(client, admin_headers, uploads_dir):
    before = set(uploads_dir.iterdir())
    files = [
        ("files", ("a.png", PNG_BYTES, "image/png")),
        ("files", ("b.zip", b"PK\x03\x04", "application/zip")),
    ]
    res = client.post("/api/upload/multiple", files=files, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Only image and PDF files are allowed!"
    assert set(uploads_dir.iterdir()) == before


def test_profile_picture_must_be_image(client, admin_headers):
    res = client.post(
        "/api/upload/profile",
        files={"profilePicture": ("cv.pdf", PDF_BYTES, "application/pdf")},
        headers=admin_headers,
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Profile picture must be an image file"


def test_profile_picture_upload(client, admin_headers):
    res = client.post(
        "/api/upload/profile",
        files={"profilePicture": ("me.png", PNG_BYTES, "image/png")},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["profilePicture"]["path"].startswith("/uploads/profilepicture-")


class TestStore:
    def test_writes_file(self, uploads_dir):
        stored = store(io.BytesIO(PNG_BYTES), "image/png", "image", "shot.PNG", PROJECT_IMAGES)
        assert stored.filename.endswith(".png")
        assert (uploads_dir / stored.filename).read_bytes() == PNG_BYTES
        assert stored.size == len(PNG_BYTES)

    def test_oversize_stream_leaves_no_file(self, uploads_dir):
        before = set(uploads_dir.iterdir())
        policy = UploadPolicy(["image/*"], MB, "images only")
        stream = io.BytesIO(b"\x00" * (MB + 1))
        with pytest.raises(UploadError) as exc:
            store(stream, "image/png", "image", "big.png", policy)
        assert exc.value.detail == "File too large, maximum size is 1MB"
        assert set(uploads_dir.iterdir()) == before

    def test_declared_size_is_checked_before_writing(self, uploads_dir):
        before = set(uploads_dir.iterdir())
        with pytest.raises(UploadError):
            store(io.BytesIO(b""), "image/png", "image", "big.png", PROJECT_IMAGES, size=6 * MB)
        assert set(uploads_dir.iterdir()) == before

    @pytest.mark.parametrize("mime", [None, "", "text/html", "application/x-msdownload"])
    def test_rejects_type(self, mime):
        with pytest.raises(UploadError):
            store(io.BytesIO(PNG_BYTES), mime, "image", "x.png", PROJECT_IMAGES)


def test_build_filename_sanitises_input():
    name = build_filename("../Profile Picture", "evil.p/h\\p", "image/png")
    assert "/" not in name and "\\" not in name and ".." not in name
    assert name.startswith("profilepicture-")


def test_build_filename_guesses_extension():
    assert build_filename("file", "noext", "application/pdf").endswith(".pdf")


def test_resolve_public_path_ignores_directories(uploads_dir):
    target = uploads_dir / "report.pdf"
    target.write_bytes(PDF_BYTES)
    assert resolve_public_path("/uploads/report.pdf") == target
    assert resolve_public_path("uploads/../../report.pdf") == target
    assert resolve_public_path("/uploads/missing.pdf") is None
    assert resolve_public_path("") is None
