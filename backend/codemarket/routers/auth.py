"""Authentication router for registration, login, OAuth and user profiles."""
import logging
import re
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from codemarket.database import get_db
from codemarket.models.user import User
from codemarket.models.project import Project
from codemarket.rate_limit import limiter
from codemarket.schemas.auth import (
    UserRegister, UserLogin, Token, RefreshTokenRequest, UserResponse, UserUpdate,
    PublicUserResponse, PublicProfileResponse, UserProjectSummary,
    OAuthLoginResponse, OAuthCallbackRequest,
)
from codemarket.auth.security import hash_password, verify_password, decode_token, issue_tokens
from codemarket.auth.dependencies import get_current_active_user
from codemarket.services.oauth import (
    GitHubOAuthClient, GoogleOAuthClient, OAuthError, OAuthIdentity,
    get_github_oauth, get_google_oauth,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def register(request: Request, user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """
    Register a new user.

    - Validates input (username, password strength, email format)
    - Checks email and username uniqueness
    - Hashes password with bcrypt
    - Returns JWT tokens
    """
    email = user_data.email.lower()
    result = await db.execute(
        select(User).where(or_(User.email == email, User.username == user_data.username))
    )
    existing_user = result.scalars().first()

    if existing_user:
        detail = "Email already registered" if existing_user.email == email else "Username already taken"
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )

    new_user = User(
        username=user_data.username,
        email=email,
        password_hash=hash_password(user_data.password),
        status="active",
        user_role="user"
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    logger.info(f"Registered user {new_user.uuid}")
    return issue_tokens(new_user)


@router.post("/login", response_model=Token)
@limiter.limit("10/minute")
async def login(request: Request, credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    """
    Login with email and password.

    - Validates credentials
    - Returns JWT access + refresh tokens
    """
    result = await db.execute(select(User).where(User.email == credentials.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active"
        )

    return issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh(body: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair.
    """
    payload = decode_token(body.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    # Fetch user to verify they still exist
    result = await db.execute(select(User).where(User.uuid == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active"
        )

    return issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_active_user)):
    """Get the current user's profile."""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    user_data: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Update the current user's profile fields."""
    for field, value in user_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.get("/users/{user_id}", response_model=PublicProfileResponse)
async def get_public_profile(user_id: str, db: AsyncSession = Depends(get_db)):
    """Public profile of a user with their published projects."""
    result = await db.execute(select(User).where(User.uuid == user_id))
    user = result.scalar_one_or_none()

    if not user or user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    result = await db.execute(
        select(Project)
        .where(
            Project.author_id == user.uuid,
            Project.is_active == True,  # noqa: E712
            Project.status == "published",
        )
        .order_by(Project.created_at.desc())
    )
    projects = result.scalars().all()

    return PublicProfileResponse(
        user=PublicUserResponse.model_validate(user),
        projects=[UserProjectSummary.model_validate(p) for p in projects],
    )


# ── OAuth ─────────────────────────────────────────────────────────────────────

def _username_base(identity: OAuthIdentity) -> str:
    base = re.sub(r"[^A-Za-z0-9_-]", "", identity.username.replace(" ", "_"))
    if len(base) < 3:
        base = f"{identity.provider}_{identity.provider_id}"
    return base[:24]


async def _unique_username(db: AsyncSession, identity: OAuthIdentity) -> str:
    base = _username_base(identity)
    candidate = base
    while True:
        result = await db.execute(select(User.uuid).where(User.username == candidate))
        if result.scalar_one_or_none() is None:
            return candidate
        candidate = f"{base}-{secrets.token_hex(2)}"


async def _login_with_identity(db: AsyncSession, identity: OAuthIdentity) -> User:
    """
    Find the account behind an OAuth identity, linking or creating it.

    Lookup order: provider id, then email (the identity is attached to the
    existing account), otherwise a new verified account is created.
    """
    id_column = User.github_id if identity.provider == "github" else User.google_id

    result = await db.execute(select(User).where(id_column == identity.provider_id))
    user = result.scalar_one_or_none()

    if user is None:
        result = await db.execute(select(User).where(User.email == identity.email))
        user = result.scalar_one_or_none()

    if user is None:
        user = User(
            username=await _unique_username(db, identity),
            email=identity.email,
            password_hash=None,
            profile_image=identity.avatar_url,
            is_verified=True,
            status="active",
            user_role="user",
        )
        db.add(user)
        logger.info(f"Creating account from {identity.provider} identity {identity.provider_id}")

    if identity.provider == "github":
        user.github_id = identity.provider_id
        user.github_username = identity.username
        user.github_profile_url = identity.profile_url
    else:
        user.google_id = identity.provider_id
    if not user.profile_image and identity.avatar_url:
        user.profile_image = identity.avatar_url

    await db.commit()
    await db.refresh(user)
    return user


async def _oauth_callback(db: AsyncSession, client, code: str) -> dict:
    try:
        identity = await client.fetch_identity(code)
    except OAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{client.provider.title()} authentication failed: {e}"
        )

    user = await _login_with_identity(db, identity)
    if user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active"
        )
    return issue_tokens(user)


@router.get("/github/login", response_model=OAuthLoginResponse)
async def github_login(client: GitHubOAuthClient = Depends(get_github_oauth)):
    """Start a GitHub login."""
    state = secrets.token_urlsafe(16)
    return OAuthLoginResponse(authorization_url=client.authorization_url(state), state=state)


@router.post("/github/callback", response_model=Token)
async def github_callback(
    body: OAuthCallbackRequest,
    client: GitHubOAuthClient = Depends(get_github_oauth),
    db: AsyncSession = Depends(get_db)
):
    """Complete a GitHub login with the authorization code."""
    return await _oauth_callback(db, client, body.code)


@router.get("/google/login", response_model=OAuthLoginResponse)
async def google_login(client: GoogleOAuthClient = Depends(get_google_oauth)):
    """Start a Google login."""
    state = secrets.token_urlsafe(16)
    return OAuthLoginResponse(authorization_url=client.authorization_url(state), state=state)


@router.post("/google/callback", response_model=Token)
async def google_callback(
    body: OAuthCallbackRequest,
    client: GoogleOAuthClient = Depends(get_google_oauth),
    db: AsyncSession = Depends(get_db)
):
    """Complete a Google login with the authorization code."""
    return await _oauth_callback(db, client, body.code)
