import os
import tempfile
from pathlib import Path

# configure the app before anything imports config
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="portfolio-uploads-")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_SETUP_TOKEN"] = "setup-token"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
for name in ("DATABASE_URL", "SMTP_USER", "SMTP_PASS", "ADMIN_EMAIL", "FRONTEND_ORIGINS", "APP_ENV", "RATE_LIMIT"):
    os.environ.pop(name, None)

import mongomock  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import database  # noqa: E402
import main  # noqa: E402
from config import settings  # noqa: E402
from security import create_access_token, hash_password  # noqa: E402

ADMIN_EMAIL = "admin@portfolio.dev"
ADMIN_PASSWORD = "secret123"


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient().portfolio_test
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def client(mongo):
    main.limiter.reset()
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def offline_client(monkeypatch):
    monkeypatch.setattr(database, "db", None)
    main.limiter.reset()
    return TestClient(main.app)


def make_user(email, role):
    return database.create_document(
        "user",
        {"email": email, "passwordHash": hash_password(ADMIN_PASSWORD), "role": role},
    )


def bearer(user):
    return {"Authorization": f"Bearer {create_access_token(str(user['_id']))}"}


@pytest.fixture
def admin(mongo):
    return make_user(ADMIN_EMAIL, "admin")


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def viewer_headers(mongo):
    return bearer(make_user("viewer@portfolio.dev", "viewer"))


@pytest.fixture
def uploads_dir():
    return Path(settings.upload_dir)


PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"
    b"\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00"
    b"\x00\x00\x00IEND\xaeB`\x82"
)
PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"
