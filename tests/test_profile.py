from bson import ObjectId

import repositories
from conftest import PDF_BYTES, PNG_BYTES


def test_get_or_create_is_idempotent(mongo):
    first = repositories.profile.get_or_create()
    second = repositories.profile.get_or_create()
    assert first["_id"] == second["_id"]
    assert mongo["profile"].count_documents({}) == 1
    assert first["name"] == "Your Name"


def test_oldest_profile_is_canonical(mongo):
    first = repositories.profile.get_or_create()
    mongo["profile"].insert_one({"name": "Duplicate", "createdAt": first["createdAt"].replace(year=2999)})
    assert repositories.profile.get_or_create()["_id"] == first["_id"]


def test_public_profile_creates_default(client, mongo):
    res = client.get("/api/profile")
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["profile"]["title"] == "Full Stack Developer"
    assert mongo["profile"].count_documents({}) == 1


def test_update_requires_admin(client):
    res = client.put("/api/profile", data={"name": "Intruder"})
    assert res.status_code == 401


def test_update_text_fields(client, admin_headers):
    res = client.put(
        "/api/profile",
        data={"name": "Ada Lovelace", "email": "Ada@Portfolio.dev", "title": ""},
        headers=admin_headers,
    )
    assert res.status_code == 200
    profile = res.json()["profile"]
    assert profile["name"] == "Ada Lovelace"
    assert profile["email"] == "ada@portfolio.dev"
    # empty values are ignored
    assert profile["title"] == "Full Stack Developer"


def test_dotted_social_links_keep_siblings(client, admin_headers):
    client.put(
        "/api/profile",
        data={"socialLinks.github": "https://github.com/ada", "socialLinks.linkedin": "https://linkedin.com/in/ada"},
        headers=admin_headers,
    )
    res = client.put("/api/profile", data={"socialLinks.github": "https://github.com/lovelace"}, headers=admin_headers)
    links = res.json()["profile"]["socialLinks"]
    assert links == {"github": "https://github.com/lovelace", "linkedin": "https://linkedin.com/in/ada"}


def test_unknown_fields_are_ignored(client, admin_headers, mongo):
    client.put("/api/profile", json={"name": "Ada", "isAdmin": True, "$where": "x"}, headers=admin_headers)
    doc = mongo["profile"].find_one({})
    assert doc["name"] == "Ada"
    assert "isAdmin" not in doc
    assert "$where" not in doc


def test_update_rejects_overlong_fields(client, admin_headers):
    res = client.put("/api/profile", json={"welcomeMessage": "x" * 501}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "welcomeMessage"


def test_update_with_files(client, admin_headers, uploads_dir):
    res = client.put(
        "/api/profile",
        data={"name": "Ada"},
        files={
            "profilePicture": ("me.png", PNG_BYTES, "image/png"),
            "resume": ("cv.pdf", PDF_BYTES, "application/pdf"),
        },
        headers=admin_headers,
    )
    assert res.status_code == 200
    profile = res.json()["profile"]
    assert profile["profilePicture"].startswith("/uploads/profilepicture-")
    assert profile["resumeUrl"].startswith("/uploads/resume-")
    assert profile["resumeUrl"].endswith(".pdf")
    assert (uploads_dir / profile["resumeUrl"].rsplit("/", 1)[1]).read_bytes() == PDF_BYTES

    download = client.get("/api/profile/resume")
    assert download.status_code == 200
    assert download.content == PDF_BYTES


def test_update_rejects_disallowed_file_type(client, admin_headers, uploads_dir):
    before = set(uploads_dir.iterdir())
    res = client.put(
        "/api/profile",
        files={
            "homeImage": ("home.png", PNG_BYTES, "image/png"),
            "aboutImage": ("notes.txt", b"plain text", "text/plain"),
        },
        headers=admin_headers,
    )
    assert res.status_code == 400
    assert res.json()["success"] is False
    assert set(uploads_dir.iterdir()) == before


def test_resume_missing_returns_404(client):
    res = client.get("/api/profile/resume")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Resume not found"}


def test_resume_file_gone_returns_404(client, admin_headers):
    client.put("/api/profile", data={"resumeUrl": "uploads/deleted.pdf"}, headers=admin_headers)
    res = client.get("/api/profile/resume")
    assert res.status_code == 404
    assert res.json()["message"] == "Resume file not found"


def test_default_profile_follows_profile_schema(mongo):
    profile = repositories.profile.get_or_create()
    assert profile["email"] == repositories.PROFILE_TEMPLATE["email"]
    assert profile["socialLinks"] == {}
    assert "createdAt" in profile and "updatedAt" in profile


def test_empty_social_link_clears_only_that_link(client, admin_headers):
    client.put(
        "/api/profile",
        data={"socialLinks.github": "https://github.com/ada", "socialLinks.twitter": "https://twitter.com/ada"},
        headers=admin_headers,
    )
    res = client.put("/api/profile", data={"socialLinks.github": "", "name": "Ada"}, headers=admin_headers)
    profile = res.json()["profile"]
    assert profile["socialLinks"]["github"] is None
    assert profile["socialLinks"]["twitter"] == "https://twitter.com/ada"
    assert profile["name"] == "Ada"


def test_null_social_link_in_json_clears_it(client, admin_headers):
    client.put("/api/profile", json={"socialLinks": {"linkedin": "https://linkedin.com/in/ada"}}, headers=admin_headers)
    res = client.put("/api/profile", json={"socialLinks": {"linkedin": None}}, headers=admin_headers)
    assert res.json()["profile"]["socialLinks"]["linkedin"] is None


def test_profile_removed_during_update_is_a_server_error(client, admin_headers, monkeypatch):
    monkeypatch.setattr(repositories.profile, "get_or_create", lambda: {"_id": str(ObjectId())})
    res = client.put("/api/profile", json={"name": "Ada"}, headers=admin_headers)
    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "Profile could not be saved"}
