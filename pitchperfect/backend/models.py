import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserRecord:
    id: str
    email: str
    password_hash: str
    name: Optional[str]
    role: str = "user"
    industry: Optional[str] = None
    experience_level: str = "beginner"
    total_xp: int = 0
    team_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class TeamRecord:
    id: str
    name: str
    description: Optional[str] = None
    industry: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class IndustryRecord:
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    scenario_templates: List[dict] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class TrainingSessionRecord:
    id: str
    user_id: str
    scenario: str
    difficulty: str
    target_persona: Optional[str] = None
    pitch_goal: Optional[str] = None
    time_limit: Optional[int] = None
    language: str = "en"
    industry_id: Optional[str] = None
    completed: bool = False
    xp_earned: int = 0
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class PitchRecord:
    id: str
    user_id: str
    audio_url: str
    transcript: str
    analysis: Dict[str, Any]
    feedback: str
    score: int
    training_session_id: Optional[str] = None
    duration: int = 0
    sentiment_score: float = 0.0
    confidence_score: int = 0
    pace_score: int = 0
    clarity_score: int = 0
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class LearningModuleRecord:
    id: str
    title: str
    description: Optional[str] = None
    difficulty: str = "beginner"
    estimated_time: int = 0
    xp_reward: int = 0
    skills: List[str] = field(default_factory=list)
    prerequisites: List[str] = field(default_factory=list)
    scenario_type: Optional[str] = None
    order: int = 0
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class UserProgressRecord:
    user_id: str
    module_id: str
    status: str = "not_started"
    progress: int = 0
    score: Optional[int] = None
    completed_at: Optional[datetime] = None
    xp_awarded: bool = False
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class SkillRecord:
    id: str
    name: str
    category: Optional[str] = None


@dataclass
class UserSkillRecord:
    user_id: str
    skill_id: str
    level: int = 0


def public_user(user: UserRecord) -> Dict[str, Any]:
    payload = asdict(user)
    payload.pop("password_hash", None)
    return payload


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AuthUser(BaseModel):
    id: str
    email: str
    name: Optional[str]
    role: str


class AuthResponse(BaseModel):
    token: str
    user: AuthUser


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    industry: Optional[str] = None
    experience_level: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class ChatMessage(BaseModel):
    role: Literal["user", "ai"]
    text: str


class CreateTrainingSessionRequest(BaseModel):
    scenario: Optional[str] = None
    difficulty: Optional[str] = None
    target_persona: Optional[str] = None
    pitch_goal: Optional[str] = None
    time_limit: Optional[int] = None
    language: Optional[str] = None
    industry_id: Optional[str] = None


class CompleteSessionRequest(BaseModel):
    messages: Optional[List[ChatMessage]] = None


class ChatRequest(BaseModel):
    session_id: Optional[str] = None
    message: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    response: str


class AnalyzePitchRequest(BaseModel):
    text: Optional[str] = None
    audio_url: Optional[str] = None
    training_session_id: Optional[str] = None


class ModuleProgressRequest(BaseModel):
    progress: Optional[int] = None
    score: Optional[int] = None


class CreateTeamRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None


class AssignTeamRequest(BaseModel):
    user_id: Optional[str] = None
    team_id: Optional[str] = None


class ScenarioTemplate(BaseModel):
    id: str
    title: str
    description: str = ""
    difficulty: str = "intermediate"
    target_persona: Optional[str] = None


class CreateIndustryRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    scenario_templates: List[ScenarioTemplate] = Field(default_factory=list)


class UpdateRoleRequest(BaseModel):
    role: Optional[str] = None
