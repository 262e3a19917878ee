from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core import schemas
from app.core.config import settings

ADMIN_ROLE = "admin"


def is_privileged(user_id: int, role: Optional[str] = None) -> bool:
    return role == ADMIN_ROLE or user_id in settings.PRIVILEGED_USER_IDS


def create_access_token(data: dict):
    to_encode = data.copy()

    expire_time = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire_time})

    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM
    )

    return encoded_jwt


# Tokens are issued elsewhere (or by `dynamico token`), we only read them
bearer_scheme = HTTPBearer(auto_error=False)


# Decode the token and see who is calling
async def get_current_caller(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)
    ],
) -> schemas.Caller:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    # Expired, tampered or just garbage
    except jwt.InvalidTokenError:
        raise credentials_exception

    user_id = payload.get("user_id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise credentials_exception

    role = payload.get("role")
    return schemas.Caller(user_id=user_id, is_privileged=is_privileged(user_id, role))
