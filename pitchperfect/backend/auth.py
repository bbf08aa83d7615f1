import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .constants import ROLES


logger = logging.getLogger("uvicorn.error")

DEFAULT_JWT_SECRET = "dev-secret-change-me"
JWT_ALGORITHM = "HS256"
DEFAULT_EXPIRES_HOURS = 24

security = HTTPBearer(auto_error=False)
_warned_default_secret = False


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str


def get_jwt_secret() -> str:
    global _warned_default_secret
    secret = os.getenv("JWT_SECRET", "").strip()
    if secret:
        return secret
    if not _warned_default_secret:
        logger.warning("JWT_SECRET is not set; using the development secret.")
        _warned_default_secret = True
    return DEFAULT_JWT_SECRET


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str, role: str, expires_in: Optional[timedelta] = None) -> str:
    if expires_in is None:
        hours = float(os.getenv("JWT_EXPIRES_HOURS", str(DEFAULT_EXPIRES_HOURS)))
        expires_in = timedelta(hours=hours)
    now = datetime.now(timezone.utc)
    payload = {"userId": user_id, "role": role, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> CurrentUser:
    try:
        payload = jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise unauthorized("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise unauthorized("Invalid token") from exc

    user_id = payload.get("userId")
    role = payload.get("role")
    if not isinstance(user_id, str) or not user_id or role not in ROLES:
        raise unauthorized("Invalid token")
    return CurrentUser(id=user_id, role=role)


def get_token_claims(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> CurrentUser:
    """Verify the bearer token and return its claims (role as of sign-in), or raise 401."""
    if credentials is None or not credentials.credentials:
        raise unauthorized("No token provided")
    return decode_access_token(credentials.credentials)


def require_roles(*roles: str, current_user: Callable[..., CurrentUser] = get_token_claims) -> Callable[..., CurrentUser]:
    allowed = tuple(roles)

    def dependency(user: CurrentUser = Depends(current_user)) -> CurrentUser:
        if user.role not in allowed:
            logger.info("user_id=%s role_denied role=%s allowed=%s", user.id, user.role, ",".join(allowed))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied: insufficient permissions")
        return user

    return dependency
