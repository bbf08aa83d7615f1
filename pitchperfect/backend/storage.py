import os
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from operator import attrgetter
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .constants import UNSET
from .models import (
    IndustryRecord,
    LearningModuleRecord,
    PitchRecord,
    SkillRecord,
    TeamRecord,
    TrainingSessionRecord,
    UserProgressRecord,
    UserRecord,
    UserSkillRecord,
    utc_now,
)

try:
    import psycopg
    from psycopg.rows import dict_row
    from psycopg.types.json import Jsonb
except Exception:  # pragma: no cover - only relevant when Postgres is enabled.
    psycopg = None
    dict_row = None
    Jsonb = None


def normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://") :]
    return database_url


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _newest_first(records: list, attr: str) -> list:
    # Equal timestamps keep insertion order, so later writes still come first.
    return sorted(records, key=attrgetter(attr))[::-1]


class Store(Protocol):
    storage_name: str

    # users
    def create_user(self, *, email: str, password_hash: str, name: Optional[str], role: str = "user") -> UserRecord:
        pass

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        pass

    def list_users(self) -> List[UserRecord]:
        pass

    def list_team_members(self, team_id: str) -> List[UserRecord]:
        pass

    def update_user(
        self,
        user_id: str,
        *,
        name: object = UNSET,
        industry: object = UNSET,
        experience_level: object = UNSET,
        role: object = UNSET,
        team_id: object = UNSET,
        password_hash: object = UNSET,
    ) -> UserRecord:
        pass

    def increment_user_xp(self, user_id: str, amount: int) -> int:
        pass

    def delete_user(self, user_id: str) -> bool:
        pass

    def count_users(self, since: Optional[datetime] = None) -> int:
        pass

    def count_users_by_role(self) -> Dict[str, int]:
        pass

    def sum_user_xp(self) -> int:
        pass

    # teams
    def create_team(self, *, name: str, description: Optional[str], industry: Optional[str]) -> TeamRecord:
        pass

    def get_team(self, team_id: str) -> Optional[TeamRecord]:
        pass

    def list_teams(self) -> List[TeamRecord]:
        pass

    # industries
    def create_industry(
        self,
        *,
        name: str,
        description: Optional[str],
        icon: Optional[str],
        scenario_templates: List[dict],
    ) -> IndustryRecord:
        pass

    def upsert_industry(
        self,
        *,
        name: str,
        description: Optional[str],
        icon: Optional[str],
        scenario_templates: List[dict],
    ) -> IndustryRecord:
        pass

    def get_industry(self, industry_id: str) -> Optional[IndustryRecord]:
        pass

    def list_industries(self) -> List[IndustryRecord]:
        pass

    # skills
    def upsert_skill(self, *, name: str, category: Optional[str]) -> SkillRecord:
        pass

    def set_user_skill(self, user_id: str, skill_id: str, level: int) -> None:
        pass

    def list_user_skills(self, user_id: str) -> List[Tuple[UserSkillRecord, SkillRecord]]:
        pass

    # training sessions
    def create_training_session(
        self,
        *,
        user_id: str,
        scenario: str,
        difficulty: str,
        target_persona: Optional[str],
        pitch_goal: Optional[str],
        time_limit: Optional[int],
        language: str,
        industry_id: Optional[str],
    ) -> TrainingSessionRecord:
        pass

    def get_training_session(self, session_id: str) -> Optional[TrainingSessionRecord]:
        pass

    def list_training_sessions(self, user_id: str) -> List[TrainingSessionRecord]:
        pass

    def count_training_sessions(self, user_id: str, *, completed: Optional[bool] = None) -> int:
        pass

    def claim_session_completion(self, session_id: str, xp_earned: int) -> Optional[TrainingSessionRecord]:
        pass

    # pitches
    def create_pitch(
        self,
        *,
        user_id: str,
        audio_url: str,
        transcript: str,
        analysis: Dict[str, Any],
        feedback: str,
        score: int,
        training_session_id: Optional[str],
        duration: int,
        sentiment_score: float,
        confidence_score: int,
        pace_score: int,
        clarity_score: int,
    ) -> PitchRecord:
        pass

    def get_pitch(self, pitch_id: str) -> Optional[PitchRecord]:
        pass

    def list_pitches(
        self,
        *,
        user_ids: Optional[List[str]] = None,
        training_session_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[PitchRecord]:
        pass

    def count_pitches(self, *, user_id: Optional[str] = None, since: Optional[datetime] = None) -> int:
        pass

    def average_pitch_score(self, *, user_id: Optional[str] = None) -> Optional[float]:
        pass

    # learning
    def upsert_learning_module(self, **fields: Any) -> LearningModuleRecord:
        pass

    def get_learning_module(self, module_id: str) -> Optional[LearningModuleRecord]:
        pass

    def list_learning_modules(self, *, active_only: bool = True) -> List[LearningModuleRecord]:
        pass

    def get_progress(self, user_id: str, module_id: str) -> Optional[UserProgressRecord]:
        pass

    def save_progress(
        self,
        user_id: str,
        module_id: str,
        *,
        status: str,
        progress: object = UNSET,
        score: object = UNSET,
        completed_at: object = UNSET,
    ) -> UserProgressRecord:
        pass

    def list_progress(self, user_id: str) -> List[UserProgressRecord]:
        pass

    def claim_module_xp(self, user_id: str, module_id: str) -> bool:
        pass


class InMemoryStore:
    storage_name = "memory"

    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._teams: Dict[str, TeamRecord] = {}
        self._industries: Dict[str, IndustryRecord] = {}
        self._skills: Dict[str, SkillRecord] = {}
        self._user_skills: Dict[Tuple[str, str], UserSkillRecord] = {}
        self._sessions: Dict[str, TrainingSessionRecord] = {}
        self._pitches: Dict[str, PitchRecord] = {}
        self._modules: Dict[str, LearningModuleRecord] = {}
        self._progress: Dict[Tuple[str, str], UserProgressRecord] = {}
        self._lock = threading.Lock()

    # users

    def create_user(self, *, email: str, password_hash: str, name: Optional[str], role: str = "user") -> UserRecord:
        email = normalize_email(email)
        with self._lock:
            if any(user.email == email for user in self._users.values()):
                raise ValueError(f"User already exists: {email}")
            user = UserRecord(id=new_id(), email=email, password_hash=password_hash, name=name, role=role)
            self._users[user.id] = user
            return replace(user)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        email = normalize_email(email)
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return replace(user)
            return None

    def list_users(self) -> List[UserRecord]:
        with self._lock:
            users = [replace(user) for user in self._users.values()]
        return _newest_first(users, "created_at")

    def list_team_members(self, team_id: str) -> List[UserRecord]:
        with self._lock:
            members = [replace(user) for user in self._users.values() if user.team_id == team_id]
        return sorted(members, key=lambda user: user.created_at)

    def update_user(
        self,
        user_id: str,
        *,
        name: object = UNSET,
        industry: object = UNSET,
        experience_level: object = UNSET,
        role: object = UNSET,
        team_id: object = UNSET,
        password_hash: object = UNSET,
    ) -> UserRecord:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise KeyError(f"User {user_id} not found.")
            if name is not UNSET:
                user.name = name
            if industry is not UNSET:
                user.industry = industry
            if experience_level is not UNSET:
                user.experience_level = experience_level
            if role is not UNSET:
                user.role = role
            if team_id is not UNSET:
                user.team_id = team_id
            if password_hash is not UNSET:
                user.password_hash = password_hash
            return replace(user)

    def increment_user_xp(self, user_id: str, amount: int) -> int:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise KeyError(f"User {user_id} not found.")
            user.total_xp += int(amount)
            return user.total_xp

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                return False
            for key in [key for key in self._user_skills if key[0] == user_id]:
                del self._user_skills[key]
            for key in [key for key in self._progress if key[0] == user_id]:
                del self._progress[key]
            for pitch_id in [pid for pid, pitch in self._pitches.items() if pitch.user_id == user_id]:
                del self._pitches[pitch_id]
            for session_id in [sid for sid, session in self._sessions.items() if session.user_id == user_id]:
                del self._sessions[session_id]
            return True

    def count_users(self, since: Optional[datetime] = None) -> int:
        with self._lock:
            return sum(1 for user in self._users.values() if since is None or user.created_at >= since)

    def count_users_by_role(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for user in self._users.values():
                counts[user.role] = counts.get(user.role, 0) + 1
        return counts

    def sum_user_xp(self) -> int:
        with self._lock:
            return sum(user.total_xp for user in self._users.values())

    # teams

    def create_team(self, *, name: str, description: Optional[str], industry: Optional[str]) -> TeamRecord:
        team = TeamRecord(id=new_id(), name=name, description=description, industry=industry)
        with self._lock:
            self._teams[team.id] = team
            return replace(team)

    def get_team(self, team_id: str) -> Optional[TeamRecord]:
        with self._lock:
            team = self._teams.get(team_id)
            return replace(team) if team else None

    def list_teams(self) -> List[TeamRecord]:
        with self._lock:
            teams = [replace(team) for team in self._teams.values()]
        return _newest_first(teams, "created_at")

    # industries

    def create_industry(
        self,
        *,
        name: str,
        description: Optional[str],
        icon: Optional[str],
        scenario_templates: List[dict],
    ) -> IndustryRecord:
        with self._lock:
            if any(industry.name == name for industry in self._industries.values()):
                raise ValueError(f"Industry already exists: {name}")
            industry = IndustryRecord(
                id=new_id(),
                name=name,
                description=description,
                icon=icon,
                scenario_templates=list(scenario_templates or []),
            )
            self._industries[industry.id] = industry
            return replace(industry)

    def upsert_industry(
        self,
        *,
        name: str,
        description: Optional[str],
        icon: Optional[str],
        scenario_templates: List[dict],
    ) -> IndustryRecord:
        with self._lock:
            for industry in self._industries.values():
                if industry.name == name:
                    industry.description = description
                    industry.icon = icon
                    industry.scenario_templates = list(scenario_templates or [])
                    return replace(industry)
        return self.create_industry(
            name=name,
            description=description,
            icon=icon,
            scenario_templates=scenario_templates,
        )

    def get_industry(self, industry_id: str) -> Optional[IndustryRecord]:
        with self._lock:
            industry = self._industries.get(industry_id)
            return replace(industry) if industry else None

    def list_industries(self) -> List[IndustryRecord]:
        with self._lock:
            industries = [replace(industry) for industry in self._industries.values()]
        return sorted(industries, key=lambda industry: industry.name)

    # skills

    def upsert_skill(self, *, name: str, category: Optional[str]) -> SkillRecord:
        with self._lock:
            for skill in self._skills.values():
                if skill.name == name:
                    skill.category = category
                    return replace(skill)
            skill = SkillRecord(id=new_id(), name=name, category=category)
            self._skills[skill.id] = skill
            return replace(skill)

    def set_user_skill(self, user_id: str, skill_id: str, level: int) -> None:
        with self._lock:
            if user_id not in self._users:
                raise KeyError(f"User {user_id} not found.")
            if skill_id not in self._skills:
                raise KeyError(f"Skill {skill_id} not found.")
            self._user_skills[(user_id, skill_id)] = UserSkillRecord(user_id=user_id, skill_id=skill_id, level=level)

    def list_user_skills(self, user_id: str) -> List[Tuple[UserSkillRecord, SkillRecord]]:
        with self._lock:
            rows = [
                (replace(user_skill), replace(self._skills[user_skill.skill_id]))
                for (owner_id, _), user_skill in self._user_skills.items()
                if owner_id == user_id and user_skill.skill_id in self._skills
            ]
        return sorted(rows, key=lambda row: row[0].level, reverse=True)

    # training sessions

    def create_training_session(
        self,
        *,
        user_id: str,
        scenario: str,
        difficulty: str,
        target_persona: Optional[str],
        pitch_goal: Optional[str],
        time_limit: Optional[int],
        language: str,
        industry_id: Optional[str],
    ) -> TrainingSessionRecord:
        session = TrainingSessionRecord(
            id=new_id(),
            user_id=user_id,
            scenario=scenario,
            difficulty=difficulty,
            target_persona=target_persona,
            pitch_goal=pitch_goal,
            time_limit=time_limit,
            language=language,
            industry_id=industry_id,
        )
        with self._lock:
            self._sessions[session.id] = session
            return replace(session)

    def get_training_session(self, session_id: str) -> Optional[TrainingSessionRecord]:
        with self._lock:
            session = self._sessions.get(session_id)
            return replace(session) if session else None

    def list_training_sessions(self, user_id: str) -> List[TrainingSessionRecord]:
        with self._lock:
            sessions = [replace(session) for session in self._sessions.values() if session.user_id == user_id]
        return _newest_first(sessions, "created_at")

    def count_training_sessions(self, user_id: str, *, completed: Optional[bool] = None) -> int:
        with self._lock:
            return sum(
                1
                for session in self._sessions.values()
                if session.user_id == user_id and (completed is None or session.completed == completed)
            )

    def claim_session_completion(self, session_id: str, xp_earned: int) -> Optional[TrainingSessionRecord]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Training session {session_id} not found.")
            if session.completed:
                return None
            session.completed = True
            session.xp_earned = xp_earned
            return replace(session)

    # pitches

    def create_pitch(
        self,
        *,
        user_id: str,
        audio_url: str,
        transcript: str,
        analysis: Dict[str, Any],
        feedback: str,
        score: int,
        training_session_id: Optional[str],
        duration: int,
        sentiment_score: float,
        confidence_score: int,
        pace_score: int,
        clarity_score: int,
    ) -> PitchRecord:
        pitch = PitchRecord(
            id=new_id(),
            user_id=user_id,
            audio_url=audio_url,
            transcript=transcript,
            analysis=analysis,
            feedback=feedback,
            score=score,
            training_session_id=training_session_id,
            duration=duration,
            sentiment_score=sentiment_score,
            confidence_score=confidence_score,
            pace_score=pace_score,
            clarity_score=clarity_score,
        )
        with self._lock:
            self._pitches[pitch.id] = pitch
            return replace(pitch)

    def get_pitch(self, pitch_id: str) -> Optional[PitchRecord]:
        with self._lock:
            pitch = self._pitches.get(pitch_id)
            return replace(pitch) if pitch else None

    def list_pitches(
        self,
        *,
        user_ids: Optional[List[str]] = None,
        training_session_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[PitchRecord]:
        with self._lock:
            pitches = [
                replace(pitch)
                for pitch in self._pitches.values()
                if (user_ids is None or pitch.user_id in user_ids)
                and (training_session_id is None or pitch.training_session_id == training_session_id)
                and (since is None or pitch.created_at >= since)
            ]
        pitches = _newest_first(pitches, "created_at")
        if limit is not None:
            pitches = pitches[:limit]
        return pitches

    def count_pitches(self, *, user_id: Optional[str] = None, since: Optional[datetime] = None) -> int:
        user_ids = [user_id] if user_id is not None else None
        return len(self.list_pitches(user_ids=user_ids, since=since))

    def average_pitch_score(self, *, user_id: Optional[str] = None) -> Optional[float]:
        user_ids = [user_id] if user_id is not None else None
        pitches = self.list_pitches(user_ids=user_ids)
        if not pitches:
            return None
        return sum(pitch.score or 0 for pitch in pitches) / len(pitches)

    # learning

    def upsert_learning_module(self, **fields: Any) -> LearningModuleRecord:
        title = fields["title"]
        with self._lock:
            for module in self._modules.values():
                if module.title == title:
                    for key, value in fields.items():
                        setattr(module, key, value)
                    return replace(module)
            module = LearningModuleRecord(id=new_id(), **fields)
            self._modules[module.id] = module
            return replace(module)

    def get_learning_module(self, module_id: str) -> Optional[LearningModuleRecord]:
        with self._lock:
            module = self._modules.get(module_id)
            return replace(module) if module else None

    def list_learning_modules(self, *, active_only: bool = True) -> List[LearningModuleRecord]:
        with self._lock:
            modules = [
                replace(module)
                for module in self._modules.values()
                if module.is_active or not active_only
            ]
        return sorted(modules, key=lambda module: module.order)

    def get_progress(self, user_id: str, module_id: str) -> Optional[UserProgressRecord]:
        with self._lock:
            progress = self._progress.get((user_id, module_id))
            return replace(progress) if progress else None

    def save_progress(
        self,
        user_id: str,
        module_id: str,
        *,
        status: str,
        progress: object = UNSET,
        score: object = UNSET,
        completed_at: object = UNSET,
    ) -> UserProgressRecord:
        with self._lock:
            if module_id not in self._modules:
                raise KeyError(f"Learning module {module_id} not found.")
            record = self._progress.get((user_id, module_id))
            if record is None:
                record = UserProgressRecord(user_id=user_id, module_id=module_id)
                self._progress[(user_id, module_id)] = record
            record.status = status
            if progress is not UNSET:
                record.progress = progress
            if score is not UNSET:
                record.score = score
            if completed_at is not UNSET:
                record.completed_at = completed_at
            record.updated_at = utc_now()
            return replace(record)

    def list_progress(self, user_id: str) -> List[UserProgressRecord]:
        with self._lock:
            rows = [replace(record) for (owner_id, _), record in self._progress.items() if owner_id == user_id]
        return _newest_first(rows, "updated_at")

    def claim_module_xp(self, user_id: str, module_id: str) -> bool:
        with self._lock:
            record = self._progress.get((user_id, module_id))
            if record is None or record.xp_awarded:
                return False
            record.xp_awarded = True
            return True


USER_COLUMNS = "id, email, password_hash, name, role, industry, experience_level, total_xp, team_id, created_at"
SESSION_COLUMNS = (
    "id, user_id, scenario, difficulty, target_persona, pitch_goal, time_limit, "
    "language, industry_id, completed, xp_earned, created_at"
)
PITCH_COLUMNS = (
    "id, user_id, training_session_id, audio_url, transcript, analysis, feedback, score, "
    "duration, sentiment_score, confidence_score, pace_score, clarity_score, created_at"
)
MODULE_COLUMNS = (
    "id, title, description, difficulty, estimated_time, xp_reward, skills, prerequisites, "
    "scenario_type, sort_order, is_active, created_at"
)
PROGRESS_COLUMNS = "user_id, module_id, status, progress, score, completed_at, xp_awarded, updated_at"


def _user_from_row(row: dict) -> UserRecord:
    return UserRecord(**row)


def _module_from_row(row: dict) -> LearningModuleRecord:
    values = dict(row)
    values["order"] = values.pop("sort_order")
    values["skills"] = list(values.get("skills") or [])
    values["prerequisites"] = list(values.get("prerequisites") or [])
    return LearningModuleRecord(**values)


def _industry_from_row(row: dict) -> IndustryRecord:
    values = dict(row)
    values["scenario_templates"] = list(values.get("scenario_templates") or [])
    return IndustryRecord(**values)


class PostgresStore:
    storage_name = "postgres"

    def __init__(self, database_url: str) -> None:
        if psycopg is None or Jsonb is None:
            raise RuntimeError("psycopg is required when DATABASE_URL is set.")
        self._database_url = normalize_database_url(database_url)
        self._ensure_schema()

    def _connect(self):
        return psycopg.connect(self._database_url, autocommit=True, row_factory=dict_row)

    def _fetch_one(self, query: str, params: Tuple = ()) -> Optional[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchone()

    def _fetch_all(self, query: str, params: Tuple = ()) -> List[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return list(cur.fetchall())

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS teams (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        description TEXT NULL,
                        industry TEXT NULL,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        id TEXT PRIMARY KEY,
                        email TEXT NOT NULL UNIQUE,
                        password_hash TEXT NOT NULL,
                        name TEXT NULL,
                        role TEXT NOT NULL DEFAULT 'user'
                            CHECK (role IN ('user', 'team_lead', 'admin')),
                        industry TEXT NULL,
                        experience_level TEXT NOT NULL DEFAULT 'beginner',
                        total_xp INTEGER NOT NULL DEFAULT 0,
                        team_id TEXT NULL REFERENCES teams(id) ON DELETE SET NULL,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS industries (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL UNIQUE,
                        description TEXT NULL,
                        icon TEXT NULL,
                        scenario_templates JSONB NOT NULL DEFAULT '[]'::jsonb,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS skills (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL UNIQUE,
                        category TEXT NULL
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS user_skills (
                        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                        skill_id TEXT NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
                        level INTEGER NOT NULL DEFAULT 0,
                        PRIMARY KEY (user_id, skill_id)
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS training_sessions (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                        scenario TEXT NOT NULL,
                        difficulty TEXT NOT NULL,
                        target_persona TEXT NULL,
                        pitch_goal TEXT NULL,
                        time_limit INTEGER NULL,
                        language TEXT NOT NULL DEFAULT 'en',
                        industry_id TEXT NULL REFERENCES industries(id) ON DELETE SET NULL,
                        completed BOOLEAN NOT NULL DEFAULT FALSE,
                        xp_earned INTEGER NOT NULL DEFAULT 0,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS pitches (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                        training_session_id TEXT NULL
                            REFERENCES training_sessions(id) ON DELETE SET NULL,
                        audio_url TEXT NOT NULL,
                        transcript TEXT NOT NULL,
                        analysis JSONB NOT NULL,
                        feedback TEXT NULL,
                        score INTEGER NOT NULL DEFAULT 0,
                        duration INTEGER NOT NULL DEFAULT 0,
                        sentiment_score DOUBLE PRECISION NOT NULL DEFAULT 0,
                        confidence_score INTEGER NOT NULL DEFAULT 0,
                        pace_score INTEGER NOT NULL DEFAULT 0,
                        clarity_score INTEGER NOT NULL DEFAULT 0,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_pitches_user_created_at
                    ON pitches (user_id, created_at DESC)
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS learning_modules (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL UNIQUE,
                        description TEXT NULL,
                        difficulty TEXT NOT NULL DEFAULT 'beginner',
                        estimated_time INTEGER NOT NULL DEFAULT 0,
                        xp_reward INTEGER NOT NULL DEFAULT 0,
                        skills JSONB NOT NULL DEFAULT '[]'::jsonb,
                        prerequisites JSONB NOT NULL DEFAULT '[]'::jsonb,
                        scenario_type TEXT NULL,
                        sort_order INTEGER NOT NULL DEFAULT 0,
                        is_active BOOLEAN NOT NULL DEFAULT TRUE,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS user_progress (
                        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                        module_id TEXT NOT NULL REFERENCES learning_modules(id) ON DELETE CASCADE,
                        status TEXT NOT NULL DEFAULT 'not_started'
                            CHECK (status IN ('not_started', 'in_progress', 'completed')),
                        progress INTEGER NOT NULL DEFAULT 0 CHECK (progress BETWEEN 0 AND 100),
                        score INTEGER NULL,
                        completed_at TIMESTAMPTZ NULL,
                        xp_awarded BOOLEAN NOT NULL DEFAULT FALSE,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        PRIMARY KEY (user_id, module_id)
                    )
                    """
                )

    # users

    def create_user(self, *, email: str, password_hash: str, name: Optional[str], role: str = "user") -> UserRecord:
        try:
            row = self._fetch_one(
                f"""
                INSERT INTO users (id, email, password_hash, name, role)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {USER_COLUMNS}
                """,
                (new_id(), normalize_email(email), password_hash, name, role),
            )
        except psycopg.errors.UniqueViolation as exc:
            raise ValueError(f"User already exists: {email}") from exc
        return _user_from_row(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = self._fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
        return _user_from_row(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = self._fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE email = %s", (normalize_email(email),))
        return _user_from_row(row) if row else None

    def list_users(self) -> List[UserRecord]:
        rows = self._fetch_all(f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC")
        return [_user_from_row(row) for row in rows]

    def list_team_members(self, team_id: str) -> List[UserRecord]:
        rows = self._fetch_all(
            f"SELECT {USER_COLUMNS} FROM users WHERE team_id = %s ORDER BY created_at",
            (team_id,),
        )
        return [_user_from_row(row) for row in rows]

    def update_user(
        self,
        user_id: str,
        *,
        name: object = UNSET,
        industry: object = UNSET,
        experience_level: object = UNSET,
        role: object = UNSET,
        team_id: object = UNSET,
        password_hash: object = UNSET,
    ) -> UserRecord:
        assignments: List[str] = []
        values: List[Any] = []

        for column, value in (
            ("name", name),
            ("industry", industry),
            ("experience_level", experience_level),
            ("role", role),
            ("team_id", team_id),
            ("password_hash", password_hash),
        ):
            if value is not UNSET:
                assignments.append(f"{column} = %s")
                values.append(value)

        if not assignments:
            user = self.get_user(user_id)
            if user is None:
                raise KeyError(f"User {user_id} not found.")
            return user

        values.append(user_id)
        row = self._fetch_one(
            f"UPDATE users SET {', '.join(assignments)} WHERE id = %s RETURNING {USER_COLUMNS}",
            tuple(values),
        )
        if row is None:
            raise KeyError(f"User {user_id} not found.")
        return _user_from_row(row)

    def increment_user_xp(self, user_id: str, amount: int) -> int:
        row = self._fetch_one(
            "UPDATE users SET total_xp = total_xp + %s WHERE id = %s RETURNING total_xp",
            (int(amount), user_id),
        )
        if row is None:
            raise KeyError(f"User {user_id} not found.")
        return int(row["total_xp"])

    def delete_user(self, user_id: str) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM users WHERE id = %s", (user_id,))
                return cur.rowcount > 0

    def count_users(self, since: Optional[datetime] = None) -> int:
        if since is None:
            row = self._fetch_one("SELECT COUNT(*) AS n FROM users")
        else:
            row = self._fetch_one("SELECT COUNT(*) AS n FROM users WHERE created_at >= %s", (since,))
        return int(row["n"])

    def count_users_by_role(self) -> Dict[str, int]:
        rows = self._fetch_all("SELECT role, COUNT(*) AS n FROM users GROUP BY role")
        return {row["role"]: int(row["n"]) for row in rows}

    def sum_user_xp(self) -> int:
        row = self._fetch_one("SELECT COALESCE(SUM(total_xp), 0) AS total FROM users")
        return int(row["total"])

    # teams

    def create_team(self, *, name: str, description: Optional[str], industry: Optional[str]) -> TeamRecord:
        row = self._fetch_one(
            """
            INSERT INTO teams (id, name, description, industry)
            VALUES (%s, %s, %s, %s)
            RETURNING id, name, description, industry, created_at
            """,
            (new_id(), name, description, industry),
        )
        return TeamRecord(**row)

    def get_team(self, team_id: str) -> Optional[TeamRecord]:
        row = self._fetch_one(
            "SELECT id, name, description, industry, created_at FROM teams WHERE id = %s",
            (team_id,),
        )
        return TeamRecord(**row) if row else None

    def list_teams(self) -> List[TeamRecord]:
        rows = self._fetch_all(
            "SELECT id, name, description, industry, created_at FROM teams ORDER BY created_at DESC"
        )
        return [TeamRecord(**row) for row in rows]

    # industries

    def create_industry(
        self,
        *,
        name: str,
        description: Optional[str],
        icon: Optional[str],
        scenario_templates: List[dict],
    ) -> IndustryRecord:
        try:
            row = self._fetch_one(
                """
                INSERT INTO industries (id, name, description, icon, scenario_templates)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id, name, description, icon, scenario_templates, created_at
                """,
                (new_id(), name, description, icon, Jsonb(list(scenario_templates or []))),
            )
        except psycopg.errors.UniqueViolation as exc:
            raise ValueError(f"Industry already exists: {name}") from exc
        return _industry_from_row(row)

    def upsert_industry(
        self,
        *,
        name: str,
        description: Optional[str],
        icon: Optional[str],
        scenario_templates: List[dict],
    ) -> IndustryRecord:
        row = self._fetch_one(
            """
            INSERT INTO industries (id, name, description, icon, scenario_templates)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (name) DO UPDATE SET
                description = EXCLUDED.description,
                icon = EXCLUDED.icon,
                scenario_templates = EXCLUDED.scenario_templates
            RETURNING id, name, description, icon, scenario_templates, created_at
            """,
            (new_id(), name, description, icon, Jsonb(list(scenario_templates or []))),
        )
        return _industry_from_row(row)

    def get_industry(self, industry_id: str) -> Optional[IndustryRecord]:
        row = self._fetch_one(
            "SELECT id, name, description, icon, scenario_templates, created_at FROM industries WHERE id = %s",
            (industry_id,),
        )
        return _industry_from_row(row) if row else None

    def list_industries(self) -> List[IndustryRecord]:
        rows = self._fetch_all(
            "SELECT id, name, description, icon, scenario_templates, created_at FROM industries ORDER BY name"
        )
        return [_industry_from_row(row) for row in rows]

    # skills

    def upsert_skill(self, *, name: str, category: Optional[str]) -> SkillRecord:
        row = self._fetch_one(
            """
            INSERT INTO skills (id, name, category)
            VALUES (%s, %s, %s)
            ON CONFLICT (name) DO UPDATE SET category = EXCLUDED.category
            RETURNING id, name, category
            """,
            (new_id(), name, category),
        )
        return SkillRecord(**row)

    def set_user_skill(self, user_id: str, skill_id: str, level: int) -> None:
        try:
            self._fetch_one(
                """
                INSERT INTO user_skills (user_id, skill_id, level)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, skill_id) DO UPDATE SET level = EXCLUDED.level
                RETURNING user_id
                """,
                (user_id, skill_id, level),
            )
        except psycopg.errors.ForeignKeyViolation as exc:
            raise KeyError(f"User {user_id} or skill {skill_id} not found.") from exc

    def list_user_skills(self, user_id: str) -> List[Tuple[UserSkillRecord, SkillRecord]]:
        rows = self._fetch_all(
            """
            SELECT us.user_id, us.skill_id, us.level, s.name, s.category
            FROM user_skills us
            JOIN skills s ON s.id = us.skill_id
            WHERE us.user_id = %s
            ORDER BY us.level DESC
            """,
            (user_id,),
        )
        return [
            (
                UserSkillRecord(user_id=row["user_id"], skill_id=row["skill_id"], level=row["level"]),
                SkillRecord(id=row["skill_id"], name=row["name"], category=row["category"]),
            )
            for row in rows
        ]

    # training sessions

    def create_training_session(
        self,
        *,
        user_id: str,
        scenario: str,
        difficulty: str,
        target_persona: Optional[str],
        pitch_goal: Optional[str],
        time_limit: Optional[int],
        language: str,
        industry_id: Optional[str],
    ) -> TrainingSessionRecord:
        row = self._fetch_one(
            f"""
            INSERT INTO training_sessions (
                id, user_id, scenario, difficulty, target_persona, pitch_goal, time_limit, language, industry_id
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {SESSION_COLUMNS}
            """,
            (
                new_id(),
                user_id,
                scenario,
                difficulty,
                target_persona,
                pitch_goal,
                time_limit,
                language,
                industry_id,
            ),
        )
        return TrainingSessionRecord(**row)

    def get_training_session(self, session_id: str) -> Optional[TrainingSessionRecord]:
        row = self._fetch_one(f"SELECT {SESSION_COLUMNS} FROM training_sessions WHERE id = %s", (session_id,))
        return TrainingSessionRecord(**row) if row else None

    def list_training_sessions(self, user_id: str) -> List[TrainingSessionRecord]:
        rows = self._fetch_all(
            f"SELECT {SESSION_COLUMNS} FROM training_sessions WHERE user_id = %s ORDER BY created_at DESC",
            (user_id,),
        )
        return [TrainingSessionRecord(**row) for row in rows]

    def count_training_sessions(self, user_id: str, *, completed: Optional[bool] = None) -> int:
        if completed is None:
            row = self._fetch_one("SELECT COUNT(*) AS n FROM training_sessions WHERE user_id = %s", (user_id,))
        else:
            row = self._fetch_one(
                "SELECT COUNT(*) AS n FROM training_sessions WHERE user_id = %s AND completed = %s",
                (user_id, completed),
            )
        return int(row["n"])

    def claim_session_completion(self, session_id: str, xp_earned: int) -> Optional[TrainingSessionRecord]:
        row = self._fetch_one(
            f"""
            UPDATE training_sessions
            SET completed = TRUE, xp_earned = %s
            WHERE id = %s AND completed = FALSE
            RETURNING {SESSION_COLUMNS}
            """,
            (xp_earned, session_id),
        )
        if row is not None:
            return TrainingSessionRecord(**row)
        if self.get_training_session(session_id) is None:
            raise KeyError(f"Training session {session_id} not found.")
        return None

    # pitches

    def create_pitch(
        self,
        *,
        user_id: str,
        audio_url: str,
        transcript: str,
        analysis: Dict[str, Any],
        feedback: str,
        score: int,
        training_session_id: Optional[str],
        duration: int,
        sentiment_score: float,
        confidence_score: int,
        pace_score: int,
        clarity_score: int,
    ) -> PitchRecord:
        row = self._fetch_one(
            f"""
            INSERT INTO pitches (
                id, user_id, training_session_id, audio_url, transcript, analysis, feedback, score,
                duration, sentiment_score, confidence_score, pace_score, clarity_score
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {PITCH_COLUMNS}
            """,
            (
                new_id(),
                user_id,
                training_session_id,
                audio_url,
                transcript,
                Jsonb(analysis),
                feedback,
                score,
                duration,
                sentiment_score,
                confidence_score,
                pace_score,
                clarity_score,
            ),
        )
        return PitchRecord(**row)

    def get_pitch(self, pitch_id: str) -> Optional[PitchRecord]:
        row = self._fetch_one(f"SELECT {PITCH_COLUMNS} FROM pitches WHERE id = %s", (pitch_id,))
        return PitchRecord(**row) if row else None

    def list_pitches(
        self,
        *,
        user_ids: Optional[List[str]] = None,
        training_session_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[PitchRecord]:
        conditions: List[str] = []
        values: List[Any] = []

        if user_ids is not None:
            if not user_ids:
                return []
            conditions.append("user_id = ANY(%s)")
            values.append(list(user_ids))
        if training_session_id is not None:
            conditions.append("training_session_id = %s")
            values.append(training_session_id)
        if since is not None:
            conditions.append("created_at >= %s")
            values.append(since)

        query = f"SELECT {PITCH_COLUMNS} FROM pitches"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT %s"
            values.append(int(limit))

        return [PitchRecord(**row) for row in self._fetch_all(query, tuple(values))]

    def count_pitches(self, *, user_id: Optional[str] = None, since: Optional[datetime] = None) -> int:
        conditions: List[str] = []
        values: List[Any] = []
        if user_id is not None:
            conditions.append("user_id = %s")
            values.append(user_id)
        if since is not None:
            conditions.append("created_at >= %s")
            values.append(since)
        query = "SELECT COUNT(*) AS n FROM pitches"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        return int(self._fetch_one(query, tuple(values))["n"])

    def average_pitch_score(self, *, user_id: Optional[str] = None) -> Optional[float]:
        if user_id is None:
            row = self._fetch_one("SELECT AVG(score) AS avg_score FROM pitches")
        else:
            row = self._fetch_one("SELECT AVG(score) AS avg_score FROM pitches WHERE user_id = %s", (user_id,))
        value = row["avg_score"]
        return float(value) if value is not None else None

    # learning

    def upsert_learning_module(self, **fields: Any) -> LearningModuleRecord:
        row = self._fetch_one(
            f"""
            INSERT INTO learning_modules (
                id, title, description, difficulty, estimated_time, xp_reward,
                skills, prerequisites, scenario_type, sort_order, is_active
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (title) DO UPDATE SET
                description = EXCLUDED.description,
                difficulty = EXCLUDED.difficulty,
                estimated_time = EXCLUDED.estimated_time,
                xp_reward = EXCLUDED.xp_reward,
                skills = EXCLUDED.skills,
                prerequisites = EXCLUDED.prerequisites,
                scenario_type = EXCLUDED.scenario_type,
                sort_order = EXCLUDED.sort_order,
                is_active = EXCLUDED.is_active
            RETURNING {MODULE_COLUMNS}
            """,
            (
                new_id(),
                fields["title"],
                fields.get("description"),
                fields.get("difficulty", "beginner"),
                fields.get("estimated_time", 0),
                fields.get("xp_reward", 0),
                Jsonb(list(fields.get("skills") or [])),
                Jsonb(list(fields.get("prerequisites") or [])),
                fields.get("scenario_type"),
                fields.get("order", 0),
                fields.get("is_active", True),
            ),
        )
        return _module_from_row(row)

    def get_learning_module(self, module_id: str) -> Optional[LearningModuleRecord]:
        row = self._fetch_one(f"SELECT {MODULE_COLUMNS} FROM learning_modules WHERE id = %s", (module_id,))
        return _module_from_row(row) if row else None

    def list_learning_modules(self, *, active_only: bool = True) -> List[LearningModuleRecord]:
        query = f"SELECT {MODULE_COLUMNS} FROM learning_modules"
        if active_only:
            query += " WHERE is_active = TRUE"
        query += " ORDER BY sort_order"
        return [_module_from_row(row) for row in self._fetch_all(query)]

    def get_progress(self, user_id: str, module_id: str) -> Optional[UserProgressRecord]:
        row = self._fetch_one(
            f"SELECT {PROGRESS_COLUMNS} FROM user_progress WHERE user_id = %s AND module_id = %s",
            (user_id, module_id),
        )
        return UserProgressRecord(**row) if row else None

    def save_progress(
        self,
        user_id: str,
        module_id: str,
        *,
        status: str,
        progress: object = UNSET,
        score: object = UNSET,
        completed_at: object = UNSET,
    ) -> UserProgressRecord:
        columns = ["user_id", "module_id", "status"]
        values: List[Any] = [user_id, module_id, status]
        for column, value in (("progress", progress), ("score", score), ("completed_at", completed_at)):
            if value is not UNSET:
                columns.append(column)
                values.append(value)

        updates = [f"{column} = EXCLUDED.{column}" for column in columns[2:]]
        updates.append("updated_at = NOW()")
        placeholders = ", ".join(["%s"] * len(columns))

        try:
            row = self._fetch_one(
                f"""
                INSERT INTO user_progress ({', '.join(columns)})
                VALUES ({placeholders})
                ON CONFLICT (user_id, module_id) DO UPDATE SET {', '.join(updates)}
                RETURNING {PROGRESS_COLUMNS}
                """,
                tuple(values),
            )
        except psycopg.errors.ForeignKeyViolation as exc:
            raise KeyError(f"Learning module {module_id} not found.") from exc
        return UserProgressRecord(**row)

    def list_progress(self, user_id: str) -> List[UserProgressRecord]:
        rows = self._fetch_all(
            f"SELECT {PROGRESS_COLUMNS} FROM user_progress WHERE user_id = %s ORDER BY updated_at DESC",
            (user_id,),
        )
        return [UserProgressRecord(**row) for row in rows]

    def claim_module_xp(self, user_id: str, module_id: str) -> bool:
        row = self._fetch_one(
            """
            UPDATE user_progress
            SET xp_awarded = TRUE
            WHERE user_id = %s AND module_id = %s AND xp_awarded = FALSE
            RETURNING user_id
            """,
            (user_id, module_id),
        )
        return row is not None


def build_store() -> Store:
    database_url = os.getenv("DATABASE_URL", "").strip()
    if database_url:
        return PostgresStore(database_url=database_url)
    return InMemoryStore()
