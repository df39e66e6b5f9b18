"""Authentication routes: signup, login, logout and the current user."""
import logging

from fastapi import APIRouter, Depends, Response, status

from ..config import Settings
from ..credentials import CredentialStore
from ..dependencies import (
    get_credential_store,
    get_current_user_id,
    get_session_manager,
    get_session_token,
    get_settings_dep,
)
from ..errors import NotFoundOrForbidden, Unauthenticated
from ..sessions import SessionManager, encode_session_cookie
from ..schemas import (
    LoginResponse,
    MessageResponse,
    SignupResponse,
    UserCreate,
    UserLogin,
    UserRead,
    UserSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: UserCreate,
    credentials: CredentialStore = Depends(get_credential_store),
) -> SignupResponse:
    """Create a user account."""

    user = await credentials.create_user(
        payload.username,
        payload.email,
        payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return SignupResponse(message="User created successfully", user_id=user.id)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: UserLogin,
    response: Response,
    credentials: CredentialStore = Depends(get_credential_store),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings_dep),
) -> LoginResponse:
    """Check the password, open a session and hand back its cookie."""

    user = await credentials.verify_credentials(payload.username, payload.password)
    if user is None:
        raise Unauthenticated("Invalid credentials")

    token = sessions.create(user.id)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=encode_session_cookie(token, sessions.expires_at(token), settings.secret_key),
        max_age=int(sessions.ttl.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    logger.info("User id=%s logged in", user.id)
    return LoginResponse(message="Login successful", user=UserSummary.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    user_id: int = Depends(get_current_user_id),
    token: str | None = Depends(get_session_token),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings_dep),
) -> MessageResponse:
    """Destroy the caller's session and clear the cookie."""

    sessions.destroy(token)
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    logger.info("User id=%s logged out", user_id)
    return MessageResponse(message="Logout successful")


@router.get("/user", response_model=UserRead)
async def current_user(
    user_id: int = Depends(get_current_user_id),
    credentials: CredentialStore = Depends(get_credential_store),
) -> UserRead:
    """Return the logged-in user without the password hash."""

    user = await credentials.find_by_id(user_id)
    if user is None:
        raise NotFoundOrForbidden("User not found")
    return UserRead.model_validate(user)
