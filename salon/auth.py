# salon/auth.py

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from salon.config import Settings, get_settings
from salon.db import SalonStore, get_store
from salon.models import Client, Stylist
from salon.schemas import UserRole

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_MODELS = {
    UserRole.client.value: Client,
    UserRole.stylist.value: Stylist,
}


def create_access_token(
    data: dict,
    expires_minutes: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> str:
    settings = settings or get_settings()
    if expires_minutes is None:
        if data.get("role") == UserRole.stylist.value:
            expires_minutes = settings.stylist_token_minutes
        else:
            expires_minutes = settings.client_token_minutes

    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: SalonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    if credentials is None:
        raise _unauthorized("Missing token")

    try:
        payload = jwt.decode(
            credentials.credentials, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise _unauthorized("Invalid token")

    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role not in ROLE_MODELS:
        raise _unauthorized("Invalid token")

    try:
        user_id = int(user_id)
    except ValueError:
        raise _unauthorized("Invalid token")

    # Short-lived session: released before the endpoint opens its own
    with store.session() as session:
        user = session.get(ROLE_MODELS[role], user_id)
        if user is None:
            raise _unauthorized("User not found")

        return {
            "id": user.id,
            "username": user.username,
            "role": role,
        }
