"""FastAPI dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from unpackai.core.auth import AuthService, CallerIdentity
from unpackai.core.config import Config
from unpackai.core.jobs import JobRuntime

bearer_scheme = HTTPBearer(auto_error=False)


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_runtime(request: Request) -> JobRuntime:
    return request.app.state.runtime


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth: AuthService = Depends(get_auth_service),
) -> CallerIdentity:
    """Resolve the caller from the Authorization: Bearer header."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    identity = auth.verify_token(credentials.credentials)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
