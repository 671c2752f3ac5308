"""HTTP route definitions for the auth service."""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ..domain.account import ProfileView
from ..domain.contracts import ErrorKind, Outcome
from ..domain.lifecycle import AccountLifecycleService
from ..domain.sessions import AuthSessionService, TokenPair
from ..security.rate_limiter import RateLimiter, rate_key
from ..security.tokens import TokenClaims
from ..validation import validate_new_password

router = APIRouter(prefix="/v1/auth", tags=["auth"])
bearer_scheme = HTTPBearer(auto_error=False)

T = TypeVar("T")

_STATUS_BY_KIND = {
    ErrorKind.unauthorized: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.account_inactive: status.HTTP_403_FORBIDDEN,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.conflict: status.HTTP_409_CONFLICT,
    ErrorKind.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    """Request body for exchanging a refresh token for a new pair."""

    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Token issuance response containing the bearer token and metadata."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_token: str
    refresh_expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            access_token=pair.access_token,
            expires_in=pair.access_expires_in,
            refresh_token=pair.refresh_token,
            refresh_expires_in=pair.refresh_expires_in,
        )


class ProfileResponse(BaseModel):
    """Serialised account profile; never carries the password hash or tokens."""

    account_id: str
    email: EmailStr
    is_active: bool
    role_id: str | None
    created_at: datetime

    @classmethod
    def from_view(cls, view: ProfileView) -> "ProfileResponse":
        return cls(
            account_id=view.account_id,
            email=view.email,
            is_active=view.is_active,
            role_id=view.role_id,
            created_at=view.created_at,
        )


class MessageResponse(BaseModel):
    message: str


class _NewPasswordModel(BaseModel):
    new_password: str
    new_password_confirm: str

    @field_validator("new_password")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        return validate_new_password(value)

    @model_validator(mode="after")
    def _check_confirmation(self) -> "_NewPasswordModel":
        if self.new_password != self.new_password_confirm:
            raise ValueError("Password confirmation does not match.")
        return self


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    password_confirm: str
    role_id: str | None = None

    @model_validator(mode="after")
    def _check_password(self) -> "RegisterRequest":
        validate_new_password(self.password, self.password_confirm)
        return self


class ActivationRequest(BaseModel):
    token: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class ConfirmResetRequest(_NewPasswordModel):
    token: str = Field(..., min_length=1)


class ChangePasswordRequest(_NewPasswordModel):
    current_password: str = Field(..., min_length=1)


def get_sessions(request: Request) -> AuthSessionService:
    """Resolve the `AuthSessionService` stored on the FastAPI application state."""
    return request.app.state.services.sessions


def get_lifecycle(request: Request) -> AccountLifecycleService:
    """Resolve the `AccountLifecycleService` stored on the FastAPI application state."""
    return request.app.state.services.lifecycle


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: AuthSessionService = Depends(get_sessions),
) -> TokenClaims:
    """Return the claims of a valid bearer access token or reject with 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _unwrap(sessions.authenticate(credentials.credentials))


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    sessions: AuthSessionService = Depends(get_sessions),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> TokenResponse:
    """Exchange email and password for an access/refresh token pair."""
    key = rate_key("login", payload.email)
    _throttle(limiter, key)
    pair = _unwrap(sessions.login(payload.email, payload.password))
    limiter.reset(key)
    return TokenResponse.from_pair(pair)


@router.post("/logout", response_model=MessageResponse)
def logout(
    claims: TokenClaims = Depends(current_account),
    sessions: AuthSessionService = Depends(get_sessions),
) -> MessageResponse:
    _unwrap(sessions.logout(claims.sub))
    return MessageResponse(message="Logout successful")


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    payload: RefreshTokenRequest,
    sessions: AuthSessionService = Depends(get_sessions),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> TokenResponse:
    """Rotate a refresh token into a new token pair."""
    _throttle(limiter, rate_key("refresh", payload.refresh_token))
    return TokenResponse.from_pair(_unwrap(sessions.refresh(payload.refresh_token)))


@router.get("/profile", response_model=ProfileResponse)
def profile(
    claims: TokenClaims = Depends(current_account),
    sessions: AuthSessionService = Depends(get_sessions),
) -> ProfileResponse:
    return ProfileResponse.from_view(_unwrap(sessions.get_profile(claims.sub)))


@router.post("/register", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    lifecycle: AccountLifecycleService = Depends(get_lifecycle),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> ProfileResponse:
    """Create an inactive account and email its activation link."""
    _throttle(limiter, rate_key("register", payload.email))
    account = _unwrap(lifecycle.register(payload.email, payload.password, payload.role_id))
    return ProfileResponse.from_view(ProfileView.from_account(account))


@router.post("/activate", response_model=ProfileResponse)
def activate(
    payload: ActivationRequest,
    lifecycle: AccountLifecycleService = Depends(get_lifecycle),
) -> ProfileResponse:
    account = _unwrap(lifecycle.consume_activation(payload.token))
    return ProfileResponse.from_view(ProfileView.from_account(account))


@router.post("/activation/resend", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def resend_activation(
    payload: EmailRequest,
    lifecycle: AccountLifecycleService = Depends(get_lifecycle),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> MessageResponse:
    _throttle(limiter, rate_key("activation", payload.email))
    _unwrap(lifecycle.resend_activation(payload.email))
    return MessageResponse(message="If the account is awaiting activation, an email has been sent.")


@router.post("/password/reset", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def request_reset(
    payload: EmailRequest,
    lifecycle: AccountLifecycleService = Depends(get_lifecycle),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> MessageResponse:
    """Start a password reset; the response does not reveal whether the email exists."""
    _throttle(limiter, rate_key("reset", payload.email))
    _unwrap(lifecycle.issue_reset(payload.email))
    return MessageResponse(message="If the email is registered, a reset link has been sent.")


@router.get("/password/reset/{token}", response_model=MessageResponse)
def check_reset_token(
    token: str,
    lifecycle: AccountLifecycleService = Depends(get_lifecycle),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> MessageResponse:
    """Tell the frontend whether a reset link is still usable; the token is not consumed."""
    _throttle(limiter, rate_key("reset-check", token))
    _unwrap(lifecycle.check_reset(token))
    return MessageResponse(message="Reset token is valid")


@router.post("/password/reset/confirm", response_model=MessageResponse)
def confirm_reset(
    payload: ConfirmResetRequest,
    lifecycle: AccountLifecycleService = Depends(get_lifecycle),
) -> MessageResponse:
    _unwrap(lifecycle.consume_reset(payload.token, payload.new_password))
    return MessageResponse(message="Password updated")


@router.post("/password/change", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    claims: TokenClaims = Depends(current_account),
    lifecycle: AccountLifecycleService = Depends(get_lifecycle),
) -> MessageResponse:
    _unwrap(lifecycle.change_password(claims.sub, payload.current_password, payload.new_password))
    return MessageResponse(message="Password changed")


def _throttle(limiter: RateLimiter, key: str) -> None:
    if not limiter.allow(key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


def _unwrap(outcome: Outcome[T]) -> T:
    """Return the outcome's value or raise the HTTP error matching its kind."""
    if outcome.ok:
        return outcome.value  # type: ignore[return-value]
    failure = outcome.error
    assert failure is not None
    detail: Any = failure.message
    if failure.kind is ErrorKind.account_inactive:
        detail = {
            "error": "Account Inactive",
            "message": failure.message,
            "resolution": "Check your email or request a new activation link.",
            **{key: _jsonable(value) for key, value in failure.detail.items()},
        }
    headers = {"WWW-Authenticate": "Bearer"} if failure.kind is ErrorKind.unauthorized else None
    raise HTTPException(status_code=_STATUS_BY_KIND[failure.kind], detail=detail, headers=headers)


def _jsonable(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value
