from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import jwt
from fastapi import Cookie, Depends, HTTPException, Response
from passlib.context import CryptContext
from pydantic import BaseModel

from settings import Settings, get_settings

ACCESS_COOKIE = "accessToken"
ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Principal(BaseModel):
    user_id: str
    roles: List[int]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _sign(payload: Dict[str, Any], secret: str, expires_delta: timedelta) -> str:
    to_encode = dict(payload)
    to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_session_token(user_id: str, roles: Iterable[int], settings: Settings) -> str:
    return _sign(
        {"UserInfo": {"id": user_id, "roles": list(roles)}},
        settings.access_token_secret,
        timedelta(hours=settings.access_token_expire_hours),
    )


def create_verification_token(user_id: str, settings: Settings) -> str:
    return _sign(
        {"id": user_id},
        settings.verify_account_secret,
        timedelta(minutes=settings.verify_token_expire_minutes),
    )


def decode_verification_token(token: str, settings: Settings) -> str:
    """Return the user id carried by a verification token.

    Raises jwt.InvalidTokenError (ExpiredSignatureError included) when the
    token is tampered with or stale.
    """
    payload = jwt.decode(token, settings.verify_account_secret, algorithms=[ALGORITHM])
    user_id = payload.get("id")
    if not user_id:
        raise jwt.InvalidTokenError("Token carries no user id")
    return user_id


def decode_session_token(token: str, settings: Settings) -> Principal:
    payload = jwt.decode(token, settings.access_token_secret, algorithms=[ALGORITHM])
    info = payload.get("UserInfo") or {}
    if not info.get("id"):
        raise jwt.InvalidTokenError("Token carries no user info")
    return Principal(user_id=info["id"], roles=info.get("roles") or [])


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        token,
        max_age=settings.cookie_max_age_seconds,
        httponly=True,
        secure=True,
        samesite="none",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE, httponly=True, secure=True, samesite="none")


# ---------- Dependencies ----------

def get_current_user(
    access_token: Optional[str] = Cookie(None, alias=ACCESS_COOKIE),
    settings: Settings = Depends(get_settings),
) -> Principal:
    if not access_token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return decode_session_token(access_token, settings)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=403, detail="Invalid Token")


def verify_roles(*allowed_roles: int):
    """Dependency factory: let through principals holding any of ``allowed_roles``."""
    allowed = set(allowed_roles)

    def role_checker(principal: Principal = Depends(get_current_user)) -> Principal:
        if not allowed.intersection(principal.roles):
            raise HTTPException(status_code=401, detail="Unauthorized")
        return principal

    return role_checker
