from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from authguard.adapters.accounts.base import AbstractAccountStore
from authguard.core.errors import AuthenticationAppError
from authguard.core.logging import hash_identifier
from authguard.core.rate_limit import enforce, get_account_store, get_guard_service
from authguard.schemas.auth import AuthResponse, CredentialsRequest
from authguard.schemas.rate_limit import AuthAction
from authguard.services.guard_service import AuthGuardService
from authguard.utils.client_ip import get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

GuardDep = Annotated[AuthGuardService, Depends(get_guard_service)]
AccountsDep = Annotated[AbstractAccountStore, Depends(get_account_store)]


@router.post("/login", response_model=AuthResponse)
def login(
    body: CredentialsRequest,
    request: Request,
    guard: GuardDep,
    accounts: AccountsDep,
) -> AuthResponse:
    """Verify a username/password pair behind the abuse guards.

    The IP budget is checked first, then the username lockout. Credentials are
    only verified when both allow it, and every evaluated attempt is counted
    against the IP whatever its outcome.

    Raises:
        RateLimitedAppError: 429 when the IP or the username is throttled.
        AuthenticationAppError: 401 on wrong credentials.
    """
    ip = get_client_ip(request)
    ip_result = guard.check_ip_rate_limit(ip, AuthAction.LOGIN)
    enforce(ip_result, scope="ip")
    enforce(guard.check_username_rate_limit(body.username), scope="username")

    authenticated = accounts.verify(body.username, body.password)
    guard.record_ip_attempt(ip, AuthAction.LOGIN)

    if not authenticated:
        guard.record_login_failure(body.username)
        logger.info(
            "auth.login_failed",
            extra={"username_hash": hash_identifier(body.username.lower()), "ip_hash": hash_identifier(ip)},
        )
        raise AuthenticationAppError(
            code="invalid_credentials",
            message="Invalid username or password",
        )

    guard.clear_login_failures(body.username)
    logger.info("auth.login_succeeded", extra={"username_hash": hash_identifier(body.username.lower())})
    return AuthResponse(
        username=body.username,
        status="authenticated",
        remaining_attempts=max(0, ip_result.remaining - 1),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: CredentialsRequest,
    request: Request,
    guard: GuardDep,
    accounts: AccountsDep,
) -> AuthResponse:
    """Create an account behind the IP and registration guards.

    Only a successful registration consumes the per-IP registration budget;
    every attempt counts against the IP abuse budget.

    Raises:
        RateLimitedAppError: 429 when the IP is throttled.
        ConflictAppError: 409 when the username is taken.
    """
    ip = get_client_ip(request)
    ip_result = guard.check_ip_rate_limit(ip, AuthAction.REGISTER)
    enforce(ip_result, scope="ip")
    enforce(guard.check_register_rate_limit(ip), scope="registration")

    guard.record_ip_attempt(ip, AuthAction.REGISTER)
    accounts.create(body.username, body.password)
    guard.record_register_success(ip)

    logger.info("auth.registered", extra={"username_hash": hash_identifier(body.username.lower())})
    return AuthResponse(
        username=body.username,
        status="registered",
        remaining_attempts=max(0, ip_result.remaining - 1),
    )
