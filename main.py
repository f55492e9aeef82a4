import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pymongo.errors import DuplicateKeyError
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.middleware.base import BaseHTTPMiddleware

import database
import repositories as repo
from config import DEFAULT_JWT_SECRET, configure_logging, settings
from errors import AuthorizationError, NotFoundError, UploadError, ValidationError, register_error_handlers
from fallback import DEFAULT_EDUCATION, DEFAULT_PROFILE, DEFAULT_PROJECTS, DEFAULT_SKILLS, public_read
from notifications import notify_new_message
from repositories import ACTIVE
from schemas import (
    ContactIn,
    Credentials,
    Education,
    EducationUpdate,
    Message,
    MessageStatus,
    MessageStatusUpdate,
    ProfileUpdate,
    Project,
    ProjectUpdate,
    Skill,
    SkillUpdate,
    User,
)
from security import (
    ADMIN_ROLE,
    authenticate,
    create_access_token,
    get_current_user,
    hash_password,
    public_user,
    require_admin,
)
from uploads import (
    IMAGES,
    PROFILE_ASSETS,
    PROJECT_IMAGES,
    UploadFiles,
    discard,
    is_upload_file,
    resolve_public_path,
    store_all,
    store_upload,
    upload_dir,
)

configure_logging()
logger = logging.getLogger("portfolio")

# fields of a profile submission that carry files, and where their paths are stored
PROFILE_FILE_FIELDS = {
    "profilePicture": "profilePicture",
    "resume": "resumeUrl",
    "homeImage": "homeImage",
    "aboutImage": "aboutImage",
}
MAX_MULTIPLE_FILES = 5

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


# ==================
# FastAPI app config
# ==================
@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is None:
        logger.warning("DATABASE_URL not set, public pages will serve default content")
    else:
        await run_in_threadpool(database.ensure_indexes)
    if settings.is_production and settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is using the built-in default")
    logger.info("Serving uploads from %s", upload_dir().resolve())
    yield


limiter = Limiter(
    key_func=get_remote_address,
    application_limits=[settings.rate_limit],
    enabled=settings.rate_limit_enabled,
)

app = FastAPI(title="Portfolio API", lifespan=lifespan)
app.state.limiter = limiter
register_error_handlers(app)


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    # setdefault keeps the cross-origin policy set on /uploads responses
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if settings.is_production:
        response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
    return response


# CORS is added last so it wraps the limiter and answers preflights first
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(BaseHTTPMiddleware, dispatch=security_headers)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/uploads", UploadFiles(directory=str(upload_dir())), name="uploads")


# =========
# Utilities
# =========

def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def read_submission(
    request: Request, nullable: Iterable[str] = ()
) -> Tuple[Dict[str, Any], List[Tuple[str, UploadFile]]]:
    """Split a JSON or multipart body into (fields, files).

    Empty form values are dropped, except for nullable fields where they mean null.
    """
    content_type = request.headers.get("content-type", "")
    fields: Dict[str, Any] = {}
    files: List[Tuple[str, UploadFile]] = []
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        for key, value in form.multi_items():
            if is_upload_file(value):
                if value.filename:
                    files.append((key, value))
            elif value != "":
                fields[key] = value
            elif key in nullable:
                fields[key] = None
        return fields, files

    body = await request.body()
    if not body:
        return fields, files
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Malformed JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload, files


def nest_dotted(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Turn form keys like `socialLinks.github` into nested dicts."""
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if "." in key:
            parent, child = key.split(".", 1)
            nested = out.setdefault(parent, {})
            if isinstance(nested, dict):
                nested[child] = value
        else:
            out[key] = value
    return out


def first_file(files: List[Tuple[str, UploadFile]], field_name: str) -> Optional[UploadFile]:
    for name, upload in files:
        if name == field_name:
            return upload
    return None


def group_by_category(skills: List[dict]) -> Dict[str, List[dict]]:
    grouped: Dict[str, List[dict]] = {}
    for skill in skills:
        grouped.setdefault(skill.get("category", "Other"), []).append(skill)
    return grouped


# ======
# Routes
# ======
@app.get("/")
@limiter.exempt
def root():
    return {"status": "ok", "service": "portfolio-api"}


@app.get("/test")
@limiter.exempt
def test_database():
    return {"backend": "running", **database.status()}


def health_report() -> Dict[str, str]:
    return {
        "status": "OK",
        "message": "Portfolio backend is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
@limiter.exempt
def health():
    return health_report()


# counted like every other /api route
@app.get("/api/health")
def api_health():
    return health_report()


# Auth
@app.post("/api/auth/login")
def login(data: Credentials):
    user = authenticate(data.email, data.password)
    token = create_access_token(str(user["_id"]))
    return {"success": True, "message": "Login successful", "token": token, "user": public_user(user)}


@app.post("/api/auth/register", status_code=201)
def register(data: Credentials, x_setup_token: Optional[str] = Header(None)):
    if not settings.admin_setup_token:
        raise AuthorizationError("Admin registration is disabled")
    if not x_setup_token or not secrets.compare_digest(x_setup_token, settings.admin_setup_token):
        raise AuthorizationError("Invalid setup token")
    if repo.users.admin_exists():
        raise ValidationError("Admin user already exists")
    try:
        user = repo.users.create(
            User(email=data.email, passwordHash=hash_password(data.password), role=ADMIN_ROLE)
        )
    except DuplicateKeyError:
        raise ValidationError("Admin user already exists")
    logger.info("Created admin user %s", user["_id"])
    token = create_access_token(str(user["_id"]))
    return {
        "success": True,
        "message": "Admin user created successfully",
        "token": token,
        "user": public_user(user),
    }


@app.get("/api/auth/me")
def me(user: dict = Depends(get_current_user)):
    return {"success": True, "user": public_user(user)}


@app.get("/api/auth/verify")
def verify(user: dict = Depends(get_current_user)):
    return {"success": True, "message": "Token is valid", "user": public_user(user)}


# Profile
@app.get("/api/profile")
def get_profile():
    profile = public_read(repo.profile.get_or_create, DEFAULT_PROFILE, "profile")
    return {"success": True, "profile": profile}


@app.get("/api/profile/resume")
def download_resume():
    profile = public_read(repo.profile.get_or_create, DEFAULT_PROFILE, "profile")
    if not profile.get("resumeUrl"):
        raise NotFoundError("Resume not found")
    path = resolve_public_path(profile["resumeUrl"])
    if path is None:
        raise NotFoundError("Resume file not found")
    return FileResponse(path, filename=path.name)


@app.put("/api/profile")
async def update_profile(request: Request, _: dict = Depends(require_admin)):
    fields, files = await read_submission(request, nullable=ProfileUpdate.nullable)
    changes = ProfileUpdate.model_validate(nest_dotted(fields)).changes()

    uploads = [(name, f) for name, f in files if name in PROFILE_FILE_FIELDS]
    stored = await run_in_threadpool(store_all, uploads, PROFILE_ASSETS)
    for (name, _upload), item in zip(uploads, stored):
        changes[PROFILE_FILE_FIELDS[name]] = item.path

    try:
        profile = await run_in_threadpool(repo.profile.update, changes)
    except Exception:
        discard(stored)
        raise
    return {"success": True, "message": "Profile updated successfully", "profile": profile}


# Education
@app.get("/api/education")
def list_education():
    items = public_read(lambda: repo.education.list(ACTIVE), DEFAULT_EDUCATION, "education")
    return {"success": True, "education": items}


@app.post("/api/education", status_code=201)
def create_education(payload: Education, _: dict = Depends(require_admin)):
    item = repo.education.create(payload)
    return {"success": True, "message": "Education entry created successfully", "education": item}


@app.put("/api/education/{education_id}")
def update_education(education_id: str, payload: EducationUpdate, _: dict = Depends(require_admin)):
    item = repo.education.update(education_id, payload.changes())
    return {"success": True, "message": "Education entry updated successfully", "education": item}


@app.delete("/api/education/{education_id}")
def delete_education(education_id: str, _: dict = Depends(require_admin)):
    if not repo.education.delete(education_id):
        raise NotFoundError("Education entry not found")
    return {"success": True, "message": "Education entry deleted successfully"}


# Skills
@app.get("/api/skills")
def list_skills():
    items = public_read(lambda: repo.skills.list(ACTIVE), DEFAULT_SKILLS, "skills")
    return {"success": True, "skills": items, "skillsByCategory": group_by_category(items)}


@app.post("/api/skills", status_code=201)
def create_skill(payload: Skill, _: dict = Depends(require_admin)):
    item = repo.skills.create(payload)
    return {"success": True, "message": "Skill created successfully", "skill": item}


@app.put("/api/skills/{skill_id}")
def update_skill(skill_id: str, payload: SkillUpdate, _: dict = Depends(require_admin)):
    item = repo.skills.update(skill_id, payload.changes())
    return {"success": True, "message": "Skill updated successfully", "skill": item}


@app.delete("/api/skills/{skill_id}")
def delete_skill(skill_id: str, _: dict = Depends(require_admin)):
    if not repo.skills.delete(skill_id):
        raise NotFoundError("Skill not found")
    return {"success": True, "message": "Skill deleted successfully"}


# Projects
@app.get("/api/projects")
def list_projects(featured: bool = False):
    query = dict(ACTIVE, featured=True) if featured else ACTIVE
    items = public_read(lambda: repo.projects.list(query), DEFAULT_PROJECTS, "projects")
    if featured:
        items = [p for p in items if p.get("featured")]
    return {"success": True, "projects": items}


@app.get("/api/projects/{project_id}")
def get_project(project_id: str):
    project = public_read(lambda: repo.projects.get(project_id, ACTIVE), None, "project")
    if project is None:
        project = next((p for p in DEFAULT_PROJECTS if p["_id"] == project_id), None)
        if project is None:
            raise NotFoundError("Project not found")
    return {"success": True, "project": project}


@app.post("/api/projects", status_code=201)
async def create_project(request: Request, _: dict = Depends(require_admin)):
    fields, files = await read_submission(request, nullable=ProjectUpdate.nullable)
    image = first_file(files, "image")
    stored = []
    if image is not None:
        stored.append(await run_in_threadpool(store_upload, image, PROJECT_IMAGES, "project"))
        fields["image"] = stored[0].path
    try:
        payload = Project.model_validate(fields)
        project = await run_in_threadpool(repo.projects.create, payload)
    except Exception:
        discard(stored)
        raise
    return {"success": True, "message": "Project created successfully", "project": project}


@app.put("/api/projects/{project_id}")
async def update_project(project_id: str, request: Request, _: dict = Depends(require_admin)):
    fields, files = await read_submission(request, nullable=ProjectUpdate.nullable)
    image = first_file(files, "image")
    stored = []
    if image is not None:
        stored.append(await run_in_threadpool(store_upload, image, PROJECT_IMAGES, "project"))
        fields["image"] = stored[0].path
    try:
        changes = ProjectUpdate.model_validate(fields).changes()
        project = await run_in_threadpool(repo.projects.update, project_id, changes)
    except Exception:
        discard(stored)
        raise
    return {"success": True, "message": "Project updated successfully", "project": project}


@app.delete("/api/projects/{project_id}")
def delete_project(project_id: str, _: dict = Depends(require_admin)):
    if not repo.projects.delete(project_id):
        raise NotFoundError("Project not found")
    return {"success": True, "message": "Project deleted successfully"}


@app.patch("/api/projects/{project_id}/featured")
def toggle_featured(project_id: str, _: dict = Depends(require_admin)):
    project = repo.projects.toggle_featured(project_id)
    state = "featured" if project.get("featured") else "unfeatured"
    return {"success": True, "message": f"Project {state} successfully", "project": project}


# Contact
@app.post("/api/contact", status_code=201)
def send_message(data: ContactIn, request: Request, background_tasks: BackgroundTasks):
    record = Message(
        **data.model_dump(),
        ipAddress=client_ip(request),
        userAgent=request.headers.get("user-agent"),
    )
    saved = repo.messages.create(record)
    # stored first; email runs after the response and cannot fail the request
    background_tasks.add_task(notify_new_message, saved)
    return {
        "success": True,
        "message": "Thank you for your message! I'll get back to you soon.",
        "messageId": saved["_id"],
    }


@app.get("/api/contact")
def list_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[MessageStatus] = Query(None),
    _: dict = Depends(require_admin),
):
    items, total, pages = repo.messages.paginate(status, page, limit)
    return {
        "success": True,
        "messages": items,
        "pagination": {"current": page, "pages": pages, "total": total, "limit": limit},
    }


@app.get("/api/contact/{message_id}")
def get_message(message_id: str, _: dict = Depends(require_admin)):
    return {"success": True, "contactMessage": repo.messages.mark_read(message_id)}


@app.patch("/api/contact/{message_id}")
@app.patch("/api/contact/{message_id}/status")
def update_message_status(message_id: str, payload: MessageStatusUpdate, _: dict = Depends(require_admin)):
    item = repo.messages.update(message_id, {"status": payload.status})
    return {"success": True, "message": "Message status updated successfully", "contactMessage": item}


@app.delete("/api/contact/{message_id}")
def delete_message(message_id: str, _: dict = Depends(require_admin)):
    if not repo.messages.delete(message_id):
        raise NotFoundError("Message not found")
    return {"success": True, "message": "Message deleted successfully"}


# Uploads
@app.post("/api/upload/single")
async def upload_single(request: Request, _: dict = Depends(require_admin)):
    _fields, files = await read_submission(request)
    upload = first_file(files, "file")
    if upload is None:
        raise UploadError("No file uploaded")
    stored = await run_in_threadpool(store_upload, upload, PROFILE_ASSETS, "file")
    return {"success": True, "message": "File uploaded successfully", "file": stored.model_dump()}


@app.post("/api/upload/multiple")
async def upload_multiple(request: Request, _: dict = Depends(require_admin)):
    _fields, files = await read_submission(request)
    uploads = [(name, f) for name, f in files if name == "files"]
    if not uploads:
        raise UploadError("No files uploaded")
    if len(uploads) > MAX_MULTIPLE_FILES:
        raise UploadError(f"Too many files, at most {MAX_MULTIPLE_FILES} are allowed")
    stored = await run_in_threadpool(store_all, uploads, PROFILE_ASSETS)
    return {
        "success": True,
        "message": "Files uploaded successfully",
        "files": [item.model_dump() for item in stored],
    }


@app.post("/api/upload/profile")
async def upload_profile_picture(request: Request, _: dict = Depends(require_admin)):
    _fields, files = await read_submission(request)
    upload = first_file(files, "profilePicture")
    if upload is None:
        raise UploadError("No profile picture uploaded")
    stored = await run_in_threadpool(store_upload, upload, IMAGES, "profilePicture")
    return {
        "success": True,
        "message": "Profile picture uploaded successfully",
        "profilePicture": stored.model_dump(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
