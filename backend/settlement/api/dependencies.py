from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from settlement.core.security import REVIEWER_ROLES, decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


@dataclass
class Reviewer:
    user_id: int | None
    username: str | None
    role: str


def get_current_reviewer(token: str = Depends(oauth2_scheme)) -> Reviewer:
    credentials_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_error
    role = str(payload.get("role") or "").strip().lower()
    if not role:
        raise credentials_error
    user_id = payload.get("user_id")
    try:
        user_id = int(user_id) if user_id is not None else None
    except (TypeError, ValueError):
        raise credentials_error
    return Reviewer(user_id=user_id, username=payload.get("sub"), role=role)


def require_reviewer(roles: set[str] | None = None):
    allowed = roles or REVIEWER_ROLES

    def dependency(reviewer: Reviewer = Depends(get_current_reviewer)) -> Reviewer:
        if reviewer.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Reviewer role required")
        return reviewer

    return dependency
