"""Mobile authentication routes"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from mobile_auth.api.deps import (
    get_challenge_service,
    get_device_bound_auth,
    get_mobile_config,
    get_refresh_token_service,
    get_token_codec,
    rate_limit,
)
from mobile_auth.config import MobileAuthConfig, settings
from mobile_auth.core.cookies import clear_refresh_cookie, read_refresh_token, set_refresh_cookie
from mobile_auth.core.database import get_db
from mobile_auth.core.exceptions import (
    ChallengeRejectedError,
    DeviceNotRegisteredError,
    ValidationError,
)
from mobile_auth.core.guards import DeviceBoundAuth
from mobile_auth.core.security import MobileIdentity, TokenCodec
from mobile_auth.schemas.response import ErrorResponse
from mobile_auth.schemas.challenge import (
    ChallengeData,
    ChallengeResponse,
    ChallengeVerifyData,
    ChallengeVerifyRequest,
    ChallengeVerifyResponse,
)
from mobile_auth.schemas.user import (
    AccessTokenData,
    LoginData,
    LoginResponse,
    LogoutData,
    LogoutRequest,
    LogoutResponse,
    MobileLoginRequest,
    RefreshResponse,
    RefreshTokenRequest,
)
from mobile_auth.services.audit_service import (
    MOBILE_LOGIN,
    MOBILE_LOGOUT,
    MOBILE_LOGOUT_ALL,
    MOBILE_REFRESH,
    audit_service,
)
from mobile_auth.services.challenge_service import ChallengeService
from mobile_auth.services.device_service import device_service, extract_device_headers
from mobile_auth.services.rate_limiter import client_ip
from mobile_auth.services.token_service import RefreshTokenService
from mobile_auth.services.user_service import user_service

router = APIRouter(responses={
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
})

_window = settings.RATE_LIMIT_WINDOW_SECONDS


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(rate_limit(
        "mobile:auth:login", settings.MOBILE_LOGIN_RATE_LIMIT, settings.MOBILE_LOGIN_RATE_WINDOW_SECONDS
    ))],
)
def login(
    credentials: MobileLoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    refresh_tokens: RefreshTokenService = Depends(get_refresh_token_service),
    config: MobileAuthConfig = Depends(get_mobile_config),
):
    """
    Authenticate with email and password from a registered (or new) device

    Returns:
        Access token and profile; the refresh token is set as an HTTP-only cookie
    """
    device = extract_device_headers(request)
    user = user_service.authenticate_user(db, credentials.email, credentials.password)

    device_record = device_service.upsert_device(db, user.id, device)
    issued = refresh_tokens.issue(
        db,
        user.id,
        device_record.id,
        user_agent=device.user_agent,
        ip_address=client_ip(request),
    )

    audit_service.log_event(
        db,
        tenant_id=user.tenant_id,
        user_id=user.id,
        action=MOBILE_LOGIN,
        ip_address=client_ip(request),
        metadata={"device_record_id": device_record.id, "platform": device.platform},
    )

    access_token = codec.issue_access_token(MobileIdentity(
        user_id=user.id,
        role=user.role,
        tenant_id=user.tenant_id,
        employee_id=user.employee_id,
        device_id=device.device_id,
    ))
    set_refresh_cookie(response, config, issued.token, issued.expires_at)

    return LoginResponse(data=LoginData(
        access_token=access_token,
        expires_in=config.access_token_ttl_seconds,
        user=user.to_dict(),
    ))


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    dependencies=[Depends(rate_limit(
        "mobile:auth:refresh", settings.MOBILE_REFRESH_RATE_LIMIT, settings.MOBILE_REFRESH_RATE_WINDOW_SECONDS
    ))],
)
def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    refresh_tokens: RefreshTokenService = Depends(get_refresh_token_service),
    config: MobileAuthConfig = Depends(get_mobile_config),
):
    """
    Rotate the refresh token and mint a new access token for the same device
    """
    device = extract_device_headers(request)
    raw = read_refresh_token(request, config, body.refresh_token if body else None)

    rotated = refresh_tokens.rotate(
        db,
        raw,
        device.device_id,
        user_agent=device.user_agent,
        ip_address=client_ip(request),
    )

    user = user_service.get_active_user(db, rotated.user_id)

    audit_service.log_event(
        db,
        tenant_id=user.tenant_id,
        user_id=user.id,
        action=MOBILE_REFRESH,
        ip_address=client_ip(request),
    )

    access_token = codec.issue_access_token(MobileIdentity(
        user_id=user.id,
        role=user.role,
        tenant_id=user.tenant_id,
        employee_id=user.employee_id,
        device_id=device.device_id,
    ))
    set_refresh_cookie(response, config, rotated.token, rotated.expires_at)

    return RefreshResponse(data=AccessTokenData(
        access_token=access_token,
        expires_in=config.access_token_ttl_seconds,
    ))


@router.post("/logout", response_model=LogoutResponse, response_model_exclude_none=True)
def logout(
    request: Request,
    response: Response,
    body: Optional[LogoutRequest] = None,
    db: Session = Depends(get_db),
    refresh_tokens: RefreshTokenService = Depends(get_refresh_token_service),
    config: MobileAuthConfig = Depends(get_mobile_config),
):
    """
    Revoke this device's refresh token and clear the cookie
    """
    device = extract_device_headers(request)
    raw = read_refresh_token(request, config, body.refresh_token if body else None)
    if not raw:
        raise ValidationError(details={"refreshToken": "required"})

    if refresh_tokens.revoke(db, raw, device.device_id):
        owner_id = refresh_tokens.owner_of(db, raw)
        owner = user_service.get_user_by_id(db, owner_id) if owner_id else None
        if owner is not None:
            audit_service.log_event(
                db,
                tenant_id=owner.tenant_id,
                user_id=owner.id,
                action=MOBILE_LOGOUT,
                ip_address=client_ip(request),
            )

    clear_refresh_cookie(response, config)
    return LogoutResponse(data=LogoutData(ok=True))


@router.post(
    "/logout-all",
    response_model=LogoutResponse,
    dependencies=[Depends(rate_limit("mobile:auth:logout_all", settings.MOBILE_LOGOUT_ALL_RATE_LIMIT, _window))],
)
def logout_all(
    request: Request,
    response: Response,
    auth: DeviceBoundAuth = Depends(get_device_bound_auth),
    db: Session = Depends(get_db),
    refresh_tokens: RefreshTokenService = Depends(get_refresh_token_service),
    config: MobileAuthConfig = Depends(get_mobile_config),
):
    """
    Revoke every refresh token of the caller on every device
    """
    count = refresh_tokens.revoke_all_for_user(db, auth.user_id)

    audit_service.log_event(
        db,
        tenant_id=auth.tenant_id,
        user_id=auth.user_id,
        action=MOBILE_LOGOUT_ALL,
        ip_address=client_ip(request),
        metadata={"revoked": count},
    )

    clear_refresh_cookie(response, config)
    return LogoutResponse(data=LogoutData(ok=True, revoked=count))


@router.post(
    "/challenge",
    response_model=ChallengeResponse,
    dependencies=[Depends(rate_limit("mobile:auth:challenge", settings.MOBILE_CHALLENGE_RATE_LIMIT, _window))],
)
def create_challenge(
    auth: DeviceBoundAuth = Depends(get_device_bound_auth),
    db: Session = Depends(get_db),
    challenges: ChallengeService = Depends(get_challenge_service),
):
    """
    Issue a single-use nonce for the caller's registered device
    """
    device = device_service.get_device(db, auth.user_id, auth.device_id)
    if device is None:
        raise DeviceNotRegisteredError()

    issued = challenges.create_challenge(db, auth.user_id, device.id)
    return ChallengeResponse(data=ChallengeData(nonce=issued.nonce, expires_at=issued.expires_at))


@router.post(
    "/challenge/verify",
    response_model=ChallengeVerifyResponse,
    dependencies=[Depends(rate_limit("mobile:auth:challenge_verify", settings.MOBILE_CHALLENGE_RATE_LIMIT, _window))],
)
def verify_challenge(
    body: ChallengeVerifyRequest,
    auth: DeviceBoundAuth = Depends(get_device_bound_auth),
    db: Session = Depends(get_db),
    challenges: ChallengeService = Depends(get_challenge_service),
):
    """
    Consume a nonce to prove live possession of the device

    Unknown, expired, reused and foreign nonces all fail the same way.
    """
    device = device_service.get_device(db, auth.user_id, auth.device_id)
    if device is None or not challenges.consume_challenge(db, body.nonce, auth.user_id, device.id):
        raise ChallengeRejectedError()

    return ChallengeVerifyResponse(data=ChallengeVerifyData(verified=True))
