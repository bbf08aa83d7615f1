import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import accounts, admin, industries, learning, pitches, teams, training
from .auth import CurrentUser, get_token_claims, require_roles, unauthorized
from .constants import ADMIN_ROLES, CHUNK_SIZE, MANAGER_ROLES, MAX_REQUEST_BYTES, MAX_UPLOAD_BYTES
from .models import (
    AnalyzePitchRequest,
    AssignTeamRequest,
    AuthResponse,
    ChangePasswordRequest,
    ChatRequest,
    ChatResponse,
    CompleteSessionRequest,
    CreateIndustryRequest,
    CreateTeamRequest,
    CreateTrainingSessionRequest,
    LoginRequest,
    MessageResponse,
    ModuleProgressRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UpdateRoleRequest,
)
from .rate_limit import build_rate_limiter
from .seed import seed_reference_data
from .storage import build_store


logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="PitchPerfect AI Backend")
store = build_store()
rate_limiter = build_rate_limiter()

if os.getenv("SEED_REFERENCE_DATA", "").strip().lower() in {"1", "true", "yes"}:
    seed_reference_data(store)

frontend_origins = os.getenv(
    "FRONTEND_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in frontend_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def enforce_upload_size(request, call_next):
    if request.method == "POST" and request.url.path.startswith("/pitches"):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > MAX_REQUEST_BYTES:
                    return JSONResponse(
                        status_code=413,
                        content={"detail": f"Request too large. Max size is {MAX_REQUEST_BYTES} bytes."},
                    )
            except ValueError:
                pass
    return await call_next(request)


def get_current_user(claims: CurrentUser = Depends(get_token_claims)) -> CurrentUser:
    """Load the caller's stored record; its role overrides the token claim, and a deleted account is 401."""
    user = store.get_user(claims.id)
    if user is None:
        logger.info("user_id=%s token_user_missing", claims.id)
        raise unauthorized("User not found")
    return CurrentUser(id=user.id, role=user.role)


require_manager = require_roles(*MANAGER_ROLES, current_user=get_current_user)
require_admin = require_roles(*ADMIN_ROLES, current_user=get_current_user)


def _client_key(request: Request) -> str:
    # request.client is the socket peer unless uvicorn trusts the proxy (FORWARDED_ALLOW_IPS).
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def auth_rate_limit(request: Request) -> None:
    rate_limiter.hit("auth", _client_key(request))


def pitch_rate_limit(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    rate_limiter.hit("pitch", f"user:{user.id}")
    return user


def chat_rate_limit(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    rate_limiter.hit("chat", f"user:{user.id}")
    return user


async def read_upload_bytes(upload: UploadFile, *, field_name: str, max_size_bytes: int = MAX_UPLOAD_BYTES) -> bytes:
    chunks = []
    total_bytes = 0
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        total_bytes += len(chunk)
        if total_bytes > max_size_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"{field_name} is too large. Max size is {max_size_bytes} bytes.",
            )
        chunks.append(chunk)

    await upload.close()
    if total_bytes == 0:
        raise HTTPException(status_code=400, detail=f"{field_name} file is empty.")
    return b"".join(chunks)


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "storage": store.storage_name}


# auth


@app.post("/auth/register", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
def register(payload: RegisterRequest) -> dict:
    return accounts.register(store, payload.email, payload.password, payload.name)


@app.post("/auth/login", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
def login(payload: LoginRequest) -> dict:
    return accounts.login(store, payload.email, payload.password)


# pitches


@app.post("/pitches")
async def create_pitch(
    audio: Optional[UploadFile] = File(None),
    transcript: Optional[str] = Form(None),
    training_session_id: Optional[str] = Form(None),
    user: CurrentUser = Depends(pitch_rate_limit),
) -> dict:
    audio_upload = None
    if audio is not None:
        data = await read_upload_bytes(audio, field_name="audio")
        audio_upload = (data, audio.filename or "pitch.webm", audio.content_type)

    return await run_in_threadpool(
        pitches.create_pitch,
        store,
        user.id,
        audio=audio_upload,
        transcript=transcript,
        training_session_id=training_session_id or None,
    )


@app.post("/pitches/analyze")
def analyze_pitch(payload: AnalyzePitchRequest, user: CurrentUser = Depends(pitch_rate_limit)) -> dict:
    return pitches.analyze_pitch_request(
        store,
        user.id,
        text=payload.text,
        audio_url=payload.audio_url,
        training_session_id=payload.training_session_id,
    )


@app.get("/pitches")
def list_pitches(user: CurrentUser = Depends(get_current_user)) -> list:
    return pitches.list_pitches(store, user.id)


@app.get("/pitches/{pitch_id}")
def get_pitch(pitch_id: str, user: CurrentUser = Depends(get_current_user)) -> dict:
    return pitches.get_pitch(store, user.id, pitch_id)


# training


@app.post("/training")
def create_training_session(
    payload: CreateTrainingSessionRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    return training.create_training_session(store, user.id, **payload.model_dump())


@app.get("/training")
def list_training_sessions(user: CurrentUser = Depends(get_current_user)) -> list:
    return training.list_training_sessions(store, user.id)


@app.post("/training/chat", response_model=ChatResponse)
def training_chat(payload: ChatRequest, user: CurrentUser = Depends(chat_rate_limit)) -> dict:
    return training.chat(
        store,
        user.id,
        session_id=payload.session_id,
        message=payload.message,
        history=payload.history,
    )


@app.get("/training/{session_id}")
def get_training_session(session_id: str, user: CurrentUser = Depends(get_current_user)) -> dict:
    return training.get_training_session(store, user.id, session_id)


@app.post("/training/{session_id}/complete")
def complete_training_session(
    session_id: str,
    payload: Optional[CompleteSessionRequest] = None,
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    messages = payload.messages if payload is not None else None
    return training.complete_training_session(store, user.id, session_id, messages)


# learning


@app.get("/learning/modules")
def list_learning_modules(user: CurrentUser = Depends(get_current_user)) -> list:
    return learning.list_modules(store, user.id)


@app.get("/learning/progress")
def get_learning_progress(user: CurrentUser = Depends(get_current_user)) -> list:
    return learning.get_user_progress(store, user.id)


@app.post("/learning/modules/{module_id}/start")
def start_learning_module(module_id: str, user: CurrentUser = Depends(get_current_user)) -> dict:
    return learning.start_module(store, user.id, module_id)


@app.post("/learning/modules/{module_id}/progress")
def update_learning_progress(
    module_id: str,
    payload: ModuleProgressRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    return learning.update_progress(store, user.id, module_id, payload.progress, payload.score)


# team


@app.get("/team")
def get_team(user: CurrentUser = Depends(require_manager)) -> dict:
    return teams.get_team(store, user.id)


@app.get("/team/analytics")
def get_team_analytics(user: CurrentUser = Depends(require_manager)) -> dict:
    return teams.get_team_analytics(store, user.id)


@app.post("/team", dependencies=[Depends(require_manager)])
def create_team(payload: CreateTeamRequest) -> dict:
    return teams.create_team(store, name=payload.name, description=payload.description, industry=payload.industry)


@app.post("/team/assign", dependencies=[Depends(require_manager)])
def assign_team_member(payload: AssignTeamRequest) -> dict:
    return teams.assign_user_to_team(store, payload.user_id, payload.team_id)


# industries


@app.get("/industries", dependencies=[Depends(get_current_user)])
def list_industries() -> list:
    return industries.list_industries(store)


@app.get("/industries/{industry_id}", dependencies=[Depends(get_current_user)])
def get_industry(industry_id: str) -> dict:
    return industries.get_industry(store, industry_id)


@app.post("/industries", dependencies=[Depends(require_admin)])
def create_industry(payload: CreateIndustryRequest) -> dict:
    return industries.create_industry(
        store,
        name=payload.name,
        description=payload.description,
        icon=payload.icon,
        scenario_templates=[template.model_dump() for template in payload.scenario_templates],
    )


# admin


@app.get("/admin/users", dependencies=[Depends(require_admin)])
def admin_list_users() -> list:
    return admin.list_users(store)


@app.patch("/admin/users/{user_id}/role", dependencies=[Depends(require_admin)])
def admin_update_user_role(user_id: str, payload: UpdateRoleRequest) -> dict:
    return admin.update_user_role(store, user_id, payload.role)


@app.delete("/admin/users/{user_id}", response_model=MessageResponse)
def admin_delete_user(user_id: str, user: CurrentUser = Depends(require_admin)) -> dict:
    return admin.delete_user(store, user.id, user_id)


@app.get("/admin/analytics", dependencies=[Depends(require_admin)])
def admin_platform_analytics() -> dict:
    return admin.get_platform_analytics(store)


@app.get("/admin/teams", dependencies=[Depends(require_manager)])
def admin_list_teams() -> list:
    return admin.get_all_teams(store)


@app.post("/admin/users/assign-team", dependencies=[Depends(require_manager)])
def admin_assign_team(payload: AssignTeamRequest) -> dict:
    return admin.assign_user_to_team(store, payload.user_id, payload.team_id)


# user


@app.get("/user/profile")
def get_profile(user: CurrentUser = Depends(get_current_user)) -> dict:
    return accounts.get_profile(store, user.id)


@app.patch("/user/profile")
def update_profile(payload: UpdateProfileRequest, user: CurrentUser = Depends(get_current_user)) -> dict:
    return accounts.update_profile(store, user.id, **payload.model_dump(exclude_unset=True))


@app.post("/user/change-password", response_model=MessageResponse)
def change_password(payload: ChangePasswordRequest, user: CurrentUser = Depends(get_current_user)) -> dict:
    return accounts.change_password(store, user.id, payload.current_password, payload.new_password)


@app.get("/user/stats")
def get_user_stats(user: CurrentUser = Depends(get_current_user)) -> dict:
    return accounts.get_user_stats(store, user.id)


@app.get("/user/simulate-role")
def get_simulated_role(
    simulate_role: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    return accounts.get_simulated_role(store, user.id, simulate_role)
