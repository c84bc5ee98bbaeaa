"""
Authentication Routes Module

This module handles account registration, login and logout, and provides the
dependencies other routes use to identify the caller and check their role.

Sessions are signed JWTs whose ``jti`` must also be present in Redis; logout
deletes the Redis entry, so a token stops working immediately even though its
signature is still valid.

Key Features:
- Salted PBKDF2 password hashing
- JWT session tokens backed by a Redis session store with TTL
- Current-user and role-guard dependencies
"""

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import crud, models, schemas
from ..db.session import get_db
from ..services.redis import redis_service
from ..utils.config import settings
from ..utils.logger import api_logger as logger

PBKDF2_ITERATIONS = 260000
SESSION_PREFIX = "session:"

bearer_scheme = HTTPBearer(auto_error=False)

router = APIRouter(tags=["Authentication"])


def hash_password(password: str) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


async def create_session_token(user: models.User) -> str:
    """
    Issue a signed token and register its id in the session store.

    Raises:
        HTTPException(503): if the session store is unavailable
    """
    jti = uuid.uuid4().hex
    ttl_seconds = settings.SESSION_TTL_MINUTES * 60
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "jti": jti,
        "exp": datetime.utcnow() + timedelta(seconds=ttl_seconds),
    }
    token = jwt.encode(payload, settings.API_SECRET_KEY, algorithm=settings.API_ALGORITHM)

    stored = await redis_service.set(f"{SESSION_PREFIX}{jti}", {"user_id": user.id}, expire=ttl_seconds)
    if not stored:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session store unavailable",
        )
    return token


def _decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.API_SECRET_KEY, algorithms=[settings.API_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected session token: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> models.User:
    """
    Resolve the authenticated user from the bearer token.

    Raises:
        HTTPException(401): missing, invalid, expired or logged-out token
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = _decode_token(credentials.credentials)
    session = await redis_service.get(f"{SESSION_PREFIX}{payload.get('jti')}")
    if not session or str(session.get("user_id")) != payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or logged out",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await crud.get_user(db, int(payload["sub"]))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_role(*roles: str):
    """Dependency factory rejecting callers whose role is not in ``roles``."""
    async def role_checker(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in roles:
            logger.warning(f"User {user.id} with role {user.role} denied; requires {roles}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user
    return role_checker


@router.post("/register", response_model=schemas.TokenResponse, status_code=201)
async def register(user_data: schemas.UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Create an account and log it in.

    Raises:
        HTTPException(400): if the email is already registered
    """
    if await crud.get_user_by_email(db, user_data.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    user = await crud.create_user(
        db,
        email=user_data.email,
        password_hash=hash_password(user_data.password),
        role=user_data.role,
        name=user_data.name,
    )
    token = await create_session_token(user)
    logger.info(f"Registered user {user.id} as {user.role}")
    return schemas.TokenResponse(access_token=token, user=schemas.UserResponse.model_validate(user))


@router.post("/login", response_model=schemas.TokenResponse)
async def login(credentials: schemas.UserLogin, db: AsyncSession = Depends(get_db)):
    user = await crud.get_user_by_email(db, credentials.email)
    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Failed login for {credentials.email}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = await create_session_token(user)
    logger.info(f"User {user.id} logged in")
    return schemas.TokenResponse(access_token=token, user=schemas.UserResponse.model_validate(user))


@router.post("/logout")
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    user: models.User = Depends(get_current_user)
):
    """Delete the caller's session so the token can no longer be used."""
    payload = _decode_token(credentials.credentials)
    await redis_service.delete(f"{SESSION_PREFIX}{payload['jti']}")
    logger.info(f"User {user.id} logged out")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=schemas.UserResponse)
async def me(user: models.User = Depends(get_current_user)):
    return user
