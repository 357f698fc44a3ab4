from typing import Optional

from fastapi import APIRouter, Depends, Request

from schemas import (
    AuthResponse,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    RegisterRequest,
)
from security.auth import Identity, require_user
from security.rate_limiter import AUTH_POLICY, RateLimit
from services.accounts import AccountService, to_profile, to_public_user

router = APIRouter(prefix="/auth", tags=["auth"])


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


@router.post(
    "/register",
    status_code=201,
    response_model=AuthResponse,
    dependencies=[Depends(RateLimit(AUTH_POLICY))],
)
def register(
    body: Optional[RegisterRequest] = None,
    accounts: AccountService = Depends(get_accounts),
):
    body = body or RegisterRequest()
    token, user = accounts.register(body.username, body.email, body.password)
    return AuthResponse(
        message="User registered successfully",
        token=token,
        user=to_public_user(user),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(RateLimit(AUTH_POLICY))],
)
def login(
    body: Optional[LoginRequest] = None,
    accounts: AccountService = Depends(get_accounts),
):
    body = body or LoginRequest()
    token, user = accounts.login(body.email, body.password)
    return LoginResponse(message="Login successful", token=token, user=to_profile(user))


@router.get("/me", response_model=ProfileResponse)
def me(
    identity: Identity = Depends(require_user),
    accounts: AccountService = Depends(get_accounts),
):
    return ProfileResponse(user=to_profile(accounts.get_user(identity)))


@router.put("/profile", response_model=ProfileUpdateResponse)
def update_profile(
    body: Optional[ProfileUpdateRequest] = None,
    identity: Identity = Depends(require_user),
    accounts: AccountService = Depends(get_accounts),
):
    body = body or ProfileUpdateRequest()
    user = accounts.update_profile(identity, body.username)
    return ProfileUpdateResponse(user=to_public_user(user))
