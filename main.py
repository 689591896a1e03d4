import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Header, HTTPException, Request, Response, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from auth_service import SessionService, UserService, hash_password, public_user, verify_password
from config import Settings
from errors import ServiceError, ValidationFailed
from media import MediaHost
from post_service import PostService
from profile_service import ProfileService
from project_service import ProjectService
from schemas import (
    CertificationsUpdate,
    DeleteAccountRequest,
    EducationUpdate,
    ExperienceUpdate,
    LoginRequest,
    PostCreate,
    PostUpdate,
    ProfileUpdate,
    ProjectCreate,
    ProjectUpdate,
    PublishRequest,
    SignupRequest,
    SkillsUpdate,
    SocialLinksUpdate,
    TechnologiesUpdate,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("portfolio")

COOKIE_NAME = "auth-token"
COOKIE_MAX_AGE = 60 * 60 * 24 * 7  # 1 week

# ==================
# Service wiring
# ==================
def attach_services(app: FastAPI, db: Database, media: MediaHost, cookie_secure: bool = False) -> None:
    app.state.db = db
    app.state.users = UserService(db)
    app.state.sessions = SessionService(db)
    app.state.posts = PostService(db)
    app.state.projects = ProjectService(db, media)
    app.state.profile = ProfileService(db, media)
    app.state.cookie_secure = cookie_secure


def get_users(request: Request) -> UserService:
    return request.app.state.users


def get_sessions(request: Request) -> SessionService:
    return request.app.state.sessions


def get_posts(request: Request) -> PostService:
    return request.app.state.posts


def get_projects(request: Request) -> ProjectService:
    return request.app.state.projects


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile


# =========
# Auth deps
# =========
def session_token(request: Request, authorization: Optional[str] = Header(None)) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1]
    return request.cookies.get(COOKIE_NAME)


def get_current_user(
    token: Optional[str] = Depends(session_token),
    users: UserService = Depends(get_users),
    sessions: SessionService = Depends(get_sessions),
) -> Dict[str, Any]:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    session = sessions.get_session(token)
    if not session:
        raise HTTPException(status_code=401, detail="Invalid session")
    user = users.find_user_by_id(session["user_id"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_current_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


def read_upload(upload: UploadFile, what: str) -> bytes:
    data = upload.file.read()
    if not data:
        raise ValidationFailed(f"{what} file required")
    return data


def set_session_cookie(request: Request, response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=request.app.state.cookie_secure,
        samesite="strict",
    )


# ======
# Routes
# ======
router = APIRouter()
admin = APIRouter(prefix="/api/admin", dependencies=[Depends(get_current_admin)])


@router.get("/")
def root():
    return {"status": "ok", "service": "portfolio-cms"}


@router.get("/test")
def test_database(request: Request):
    db: Database = request.app.state.db
    try:
        collections = db.list_collection_names()
    except PyMongoError as e:
        return {"backend": "running", "database": f"error: {str(e)[:80]}", "collections": []}
    return {"backend": "running", "database": "connected", "collections": collections[:10]}


# Auth
@router.post("/api/auth/signup", status_code=201)
def signup(payload: SignupRequest, users: UserService = Depends(get_users)):
    user = users.create_user(
        username=payload.username,
        email=payload.email,
        phone_number=payload.phone_number,
        gender=payload.gender,
        password_hash=hash_password(payload.password),
    )
    return {
        "success": True,
        "message": "User created successfully",
        "user": {"id": user["id"], "username": user["username"], "email": user["email"]},
    }


@router.post("/api/auth/login")
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    users: UserService = Depends(get_users),
    sessions: SessionService = Depends(get_sessions),
):
    user = users.find_user_by_login(payload.email_or_username)
    if not user or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    session = sessions.create_session(user["id"])
    set_session_cookie(request, response, session["token"])
    logger.info("User %s logged in", user["username"])
    return {"success": True, "message": "Login successful", "user": public_user(user), "token": session["token"]}


@router.post("/api/auth/logout")
def logout(
    response: Response,
    token: Optional[str] = Depends(session_token),
    sessions: SessionService = Depends(get_sessions),
):
    if token:
        sessions.delete_session(token)
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/api/auth/me")
def me(
    response: Response,
    token: Optional[str] = Depends(session_token),
    users: UserService = Depends(get_users),
    sessions: SessionService = Depends(get_sessions),
):
    if not token:
        return {"user": None}
    session = sessions.get_session(token)
    user = users.find_user_by_id(session["user_id"]) if session else None
    if not user:
        response.delete_cookie(COOKIE_NAME, path="/")
        return {"user": None}
    return {"user": public_user(user)}


@router.get("/api/auth/verify")
def verify(user: Dict[str, Any] = Depends(get_current_user)):
    return public_user(user)


@router.delete("/api/auth/delete-account")
def delete_account(
    payload: DeleteAccountRequest,
    response: Response,
    user: Dict[str, Any] = Depends(get_current_user),
    users: UserService = Depends(get_users),
    sessions: SessionService = Depends(get_sessions),
):
    if not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Incorrect password")
    sessions.delete_user_sessions(user["id"])
    users.delete_user(user["id"])
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"success": True, "message": "Account deleted successfully"}


# Public posts
@router.get("/api/posts")
def list_posts(
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    posts: PostService = Depends(get_posts),
):
    return {"success": True, **posts.list_published(category, tag, search, page, limit)}


@router.get("/api/posts/{post_id}")
def get_post(post_id: str, posts: PostService = Depends(get_posts)):
    post = posts.get_post_by_id(post_id)
    if not post.get("is_published"):
        raise HTTPException(status_code=404, detail="Post not found")
    posts.increment_views(post_id)
    post["views"] = post.get("views", 0) + 1
    return {"success": True, "post": post, "related_posts": posts.get_related_posts(post)}


# Public projects
@router.get("/api/projects")
def list_projects(
    status: Optional[str] = None,
    featured: bool = False,
    projects: ProjectService = Depends(get_projects),
):
    # the public site shows finished work unless asked otherwise
    status = status or "completed"
    items = projects.get_all_projects(None if status == "all" else status)
    if featured:
        items = [p for p in items if p.get("is_featured")]
    return {"success": True, "projects": items}


@router.get("/api/projects/{project_id}")
def get_project(project_id: str, projects: ProjectService = Depends(get_projects)):
    return {"success": True, "project": projects.get_project_by_id(project_id)}


# Public profile
@router.get("/api/profile")
def public_profile(profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.get_published_profile()}


@router.get("/api/profile/cv")
def public_cv(download: bool = False, profile: ProfileService = Depends(get_profile_service)):
    content = profile.get_cv()
    disposition = "attachment" if download else "inline"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'{disposition}; filename="CV_Resume.pdf"',
            "Cache-Control": "public, max-age=31536000, immutable",
            "X-Content-Type-Options": "nosniff",
        },
    )


# Admin: posts
@admin.get("/posts")
def admin_list_posts(status: Optional[str] = None, posts: PostService = Depends(get_posts)):
    if status in (None, "all"):
        items = posts.get_all_posts()
    elif status == "featured":
        items = posts.get_featured_posts()
    else:
        items = posts.get_posts_by_status(status)
    return {"success": True, "posts": items}


@admin.get("/posts/stats")
def admin_post_stats(posts: PostService = Depends(get_posts)):
    return {"success": True, "stats": posts.get_stats()}


@admin.post("/posts", status_code=201)
def admin_create_post(
    payload: PostCreate,
    user: Dict[str, Any] = Depends(get_current_admin),
    posts: PostService = Depends(get_posts),
):
    if not payload.author_id:
        payload.author_id = user["id"]
        payload.author_name = payload.author_name or user["username"]
    return {"success": True, "post": posts.create_post(payload)}


@admin.get("/posts/{post_id}")
def admin_get_post(post_id: str, posts: PostService = Depends(get_posts)):
    return {"success": True, "post": posts.get_post_by_id(post_id)}


@admin.put("/posts/{post_id}")
def admin_update_post(post_id: str, payload: PostUpdate, posts: PostService = Depends(get_posts)):
    post = posts.update_post(post_id, payload.model_dump(exclude_unset=True, exclude_none=True))
    return {"success": True, "post": post}


@admin.delete("/posts/{post_id}")
def admin_delete_post(post_id: str, posts: PostService = Depends(get_posts)):
    posts.delete_post(post_id)
    return {"success": True, "message": "Post deleted successfully"}


# Admin: projects
@admin.get("/projects")
def admin_list_projects(
    status: Optional[str] = None,
    featured: bool = False,
    projects: ProjectService = Depends(get_projects),
):
    items = projects.get_featured_projects() if featured else projects.get_all_projects(status)
    return {"success": True, "projects": items}


@admin.get("/projects/stats")
def admin_project_stats(projects: ProjectService = Depends(get_projects)):
    return {"success": True, "stats": projects.get_projects_stats()}


@admin.post("/projects", status_code=201)
def admin_create_project(payload: ProjectCreate, projects: ProjectService = Depends(get_projects)):
    return {"success": True, "project": projects.create_project(payload), "message": "Project created successfully"}


@admin.get("/projects/{project_id}")
def admin_get_project(project_id: str, projects: ProjectService = Depends(get_projects)):
    return {"success": True, "project": projects.get_project_by_id(project_id)}


@admin.put("/projects/{project_id}")
def admin_update_project(project_id: str, payload: ProjectUpdate, projects: ProjectService = Depends(get_projects)):
    project = projects.update_project(project_id, payload.model_dump(exclude_unset=True, exclude_none=True))
    return {"success": True, "project": project, "message": "Project updated successfully"}


@admin.delete("/projects/{project_id}")
def admin_delete_project(project_id: str, projects: ProjectService = Depends(get_projects)):
    projects.delete_project(project_id)
    return {"success": True, "message": "Project deleted successfully"}


@admin.post("/projects/{project_id}/cover-image")
def admin_upload_project_cover(
    project_id: str,
    image: UploadFile = File(...),
    projects: ProjectService = Depends(get_projects),
):
    project = projects.upload_cover_image(project_id, read_upload(image, "Image"))
    return {"success": True, "project": project, "message": "Cover image uploaded successfully"}


@admin.delete("/projects/{project_id}/cover-image")
def admin_delete_project_cover(project_id: str, projects: ProjectService = Depends(get_projects)):
    project = projects.delete_cover_image(project_id)
    return {"success": True, "project": project, "message": "Cover image deleted successfully"}


@admin.post("/projects/{project_id}/screenshots")
def admin_upload_screenshot(
    project_id: str,
    image: UploadFile = File(...),
    projects: ProjectService = Depends(get_projects),
):
    project = projects.upload_screenshot(project_id, read_upload(image, "Image"))
    return {"success": True, "project": project, "message": "Screenshot uploaded successfully"}


@admin.delete("/projects/{project_id}/screenshots")
def admin_delete_screenshot(project_id: str, url: str, projects: ProjectService = Depends(get_projects)):
    project = projects.delete_screenshot(project_id, url)
    return {"success": True, "project": project, "message": "Screenshot deleted successfully"}


# Admin: profile
@admin.get("/profile")
def admin_get_profile(profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.create_or_get_profile()}


@admin.put("/profile")
def admin_update_profile(payload: ProfileUpdate, profile: ProfileService = Depends(get_profile_service)):
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    return {"success": True, "profile": profile.update_profile(updates)}


@admin.put("/profile/social-links")
def admin_update_social(payload: SocialLinksUpdate, profile: ProfileService = Depends(get_profile_service)):
    links = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not links:
        raise ValidationFailed("Social links data required")
    return {"success": True, "profile": profile.update_social_links(links)}


@admin.put("/profile/skills")
def admin_update_skills(payload: SkillsUpdate, profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.update_skills(payload.skills)}


@admin.put("/profile/technologies")
def admin_update_technologies(payload: TechnologiesUpdate, profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.update_technologies(payload.technologies)}


@admin.put("/profile/experience")
def admin_update_experience(payload: ExperienceUpdate, profile: ProfileService = Depends(get_profile_service)):
    experience = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not experience:
        raise ValidationFailed("Experience data required")
    return {"success": True, "profile": profile.update_experience(experience)}


@admin.put("/profile/education")
def admin_update_education(payload: EducationUpdate, profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.update_education(payload.education)}


@admin.put("/profile/certifications")
def admin_update_certifications(payload: CertificationsUpdate, profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.update_certifications(payload.certifications)}


@admin.put("/profile/publish")
def admin_publish_profile(payload: PublishRequest, profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.toggle_publish_status(payload.is_published)}


@admin.post("/profile/profile-image")
def admin_upload_profile_image(image: UploadFile = File(...), profile: ProfileService = Depends(get_profile_service)):
    updated = profile.upload_profile_image(read_upload(image, "Image"))
    return {"success": True, "profile": updated, "message": "Profile image uploaded successfully"}


@admin.post("/profile/cover-image")
def admin_upload_profile_cover(image: UploadFile = File(...), profile: ProfileService = Depends(get_profile_service)):
    updated = profile.upload_cover_image(read_upload(image, "Image"))
    return {"success": True, "profile": updated, "message": "Cover image uploaded successfully"}


@admin.post("/profile/cv")
def admin_upload_cv(cv: UploadFile = File(...), profile: ProfileService = Depends(get_profile_service)):
    updated = profile.upload_cv(read_upload(cv, "CV"))
    return {"success": True, "profile": updated, "message": "CV uploaded successfully"}


@admin.delete("/profile/profile-image")
def admin_delete_profile_image(profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.delete_profile_image(), "message": "Profile image deleted successfully"}


@admin.delete("/profile/cover-image")
def admin_delete_profile_cover(profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.delete_cover_image(), "message": "Cover image deleted successfully"}


@admin.delete("/profile/cv")
def admin_delete_cv(profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "profile": profile.delete_cv(), "message": "CV deleted successfully"}


# ===============
# Error envelopes
# ===============
def error_response(status_code: int, content: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


async def service_error_handler(request: Request, exc: ServiceError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return error_response(exc.status_code, exc.to_dict())


async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return error_response(503, {"success": False, "error": "Database unavailable"})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0]
    field = ".".join(str(p) for p in first["loc"] if p != "body")
    message = f"{field}: {first['msg']}" if field else first["msg"]
    return error_response(400, {"success": False, "error": message})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, {"success": False, "error": exc.detail})


# ==================
# FastAPI app config
# ==================
def create_app(
    db: Optional[Database] = None,
    media: Optional[MediaHost] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the API.

    With ``db`` given the caller owns the connection (tests, scripts);
    otherwise the client is opened from the environment at startup and closed
    at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if db is None:
            cfg = settings or Settings.from_env()
            client, conn = database.connect(cfg)
            database.ensure_indexes(conn)
            attach_services(app, conn, media or MediaHost(cfg), cfg.cookie_secure)
            if cfg.seed_admin:
                app.state.users.ensure_admin(cfg.admin_username, cfg.admin_email, cfg.admin_password, cfg.admin_phone)
        try:
            yield
        finally:
            if client is not None:
                database.close(client)

    app = FastAPI(title="Portfolio CMS API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.include_router(router)
    app.include_router(admin)

    if db is not None:
        attach_services(app, db, media, settings.cookie_secure if settings else False)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
