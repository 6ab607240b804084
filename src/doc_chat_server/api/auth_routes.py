import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from .dependencies import get_storage
from .models import AuthResponse, CredentialsRequest
from ..auth.models import UserContext
from ..auth.security import (
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)
from ..storage import Storage, User

logger = logging.getLogger("chat.auth")

router = APIRouter(prefix="/api", tags=["auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    req: CredentialsRequest,
    storage: Annotated[Storage, Depends(get_storage)],
) -> AuthResponse:
    if await storage.get_user_by_username(req.username) is not None:
        logger.warning("Register failed: username %r taken", req.username)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists",
        )

    # pbkdf2 is CPU bound; keep it off the event loop
    password_hash = await asyncio.to_thread(hash_password, req.password)
    user = await storage.create_user(req.username, password_hash)
    logger.info("User %d registered", user.id)
    return AuthResponse(token=create_access_token(user), user=user)


@router.post("/login", response_model=AuthResponse)
async def login(
    req: CredentialsRequest,
    storage: Annotated[Storage, Depends(get_storage)],
) -> AuthResponse:
    user = await storage.get_user_by_username(req.username)
    if user is None or not await asyncio.to_thread(
        verify_password, req.password, user.password_hash
    ):
        logger.warning("Login failed for username %r", req.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return AuthResponse(token=create_access_token(user), user=user)


@router.get("/user", response_model=User)
async def current_user(
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> User:
    record = await storage.get_user(user.user_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user.")
    return record
