"""
OAuth2 / OpenID-Connect API endpoints.

Exposed endpoints:
- GET /public/oauth/client/{client_id} - Consent-screen data (session)
- GET /public/oauth/connection - Authorization code for the redirect (session)
- POST /public/oauth/authorization - Grant consent (session)
- POST /public/oauth/token - Token exchange (client credentials)
- GET /public/oauth/access_token_info - Access token introspection (bearer)
- GET /public/oauth/user/me - Agreed user attributes (bearer)
- POST /scheduler/cleanup-refresh-tokens - Sweep expired refresh tokens (admin)
- GET /scheduler/expired-tokens-count - Count expired refresh tokens (admin)
"""

import asyncio
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from loguru import logger
from sqlalchemy.orm import Session

from auth.rbac_dependencies import get_current_user_id, require_admin
from oauth2.cleanup import RefreshTokenCleanup
from oauth2.exceptions import BadRequestError
from oauth2.schemas import (
    AccessTokenInfoResponse,
    ApplicationInfoResponse,
    AuthorizationResponse,
    AuthorizeRequest,
    ConnectInfoResponse,
    TokenRequest,
    TokenResponse,
    UserInfoResponse
)
from oauth2.service import AuthorizationService
from oauth2.utils import split_authorization_header
from storage.relational.database import get_db

router = APIRouter(prefix="/public/oauth", tags=["oauth2"])
scheduler_router = APIRouter(prefix="/scheduler", tags=["scheduler"])


# ==================== DEPENDENCIES ====================

def get_oauth2_service(request: Request) -> AuthorizationService:
    return request.app.state.oauth2_service


def get_refresh_token_cleanup(request: Request) -> RefreshTokenCleanup:
    return request.app.state.refresh_token_cleanup


def parse_authorization(authorization: Optional[str] = Header(None)) -> Tuple[str, str]:
    """
    Split the Authorization header into (type, token).

    Expected format:
        Authorization: Bearer <ACCESS_TOKEN>
    """
    if not authorization:
        raise BadRequestError("Authorization header is required")

    parts = split_authorization_header(authorization)
    if not parts:
        raise BadRequestError("Invalid authorization header format")

    return parts


# ==================== CONSENT ====================

@router.get("/client/{client_id}", response_model=ApplicationInfoResponse)
async def get_application(
    client_id: str,
    user_id: int = Depends(get_current_user_id),
    service: AuthorizationService = Depends(get_oauth2_service),
    db: Session = Depends(get_db)
):
    """
    Consent-screen data for a client: title, profile and its scopes split
    into mustAgree (essential) and consentItems (optional).
    """
    try:
        return service.get_application_info(db, client_id, user_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[CONSENT] Error loading application {client_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/connection", response_model=ConnectInfoResponse)
async def get_connection(
    client: Optional[str] = Query(None, description="Client UUID"),
    redirect_to: Optional[str] = Query(None, description="Registered redirect URL"),
    user_id: int = Depends(get_current_user_id),
    service: AuthorizationService = Depends(get_oauth2_service),
    db: Session = Depends(get_db)
):
    """Authorization code (connection id) for an existing consent grant"""
    if not client:
        raise BadRequestError("Client ID is required")

    try:
        return service.get_connect_info(db, client, redirect_to, user_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[CONNECT] Error loading connection for {client}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/authorization", response_model=AuthorizationResponse)
async def authorize(
    request: AuthorizeRequest,
    user_id: int = Depends(get_current_user_id),
    service: AuthorizationService = Depends(get_oauth2_service),
    db: Session = Depends(get_db)
):
    """
    Grant consent.

    Example request:
        {
            "client_id": "3f1c2a9e-7b7d-4c3e-9a51-0d7d9d4a2b10",
            "agreed": ["1", "2"],
            "redirect_to": "https://app.example.com/callback"
        }
    """
    try:
        return service.authorize(db, request, user_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[AUTHORIZE] Unexpected error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


# ==================== TOKENS ====================

@router.post("/token", response_model=TokenResponse, response_model_exclude_none=True)
async def token(
    request: TokenRequest,
    service: AuthorizationService = Depends(get_oauth2_service),
    db: Session = Depends(get_db)
):
    """
    Token exchange for the authorization_code and refresh_token grants.

    expires_in and refresh_token_expires_in are absolute Unix timestamps.
    """
    try:
        return service.get_token(db, request)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[TOKEN] Unexpected error for client {request.client_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/access_token_info", response_model=AccessTokenInfoResponse)
async def access_token_info(
    authorization: Tuple[str, str] = Depends(parse_authorization),
    service: AuthorizationService = Depends(get_oauth2_service)
):
    auth_type, access_token = authorization
    return service.get_access_token_info(auth_type, access_token)


@router.get("/user/me", response_model=UserInfoResponse)
async def user_me(
    authorization: Tuple[str, str] = Depends(parse_authorization),
    service: AuthorizationService = Depends(get_oauth2_service),
    db: Session = Depends(get_db)
):
    """Attributes of the bearer's user released by the agreed scopes"""
    auth_type, access_token = authorization
    try:
        return service.get_user_info(db, auth_type, access_token)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[USERINFO] Unexpected error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


# ==================== SCHEDULER ====================

@scheduler_router.post("/cleanup-refresh-tokens")
async def cleanup_refresh_tokens(
    admin: dict = Depends(require_admin),
    cleanup: RefreshTokenCleanup = Depends(get_refresh_token_cleanup)
):
    """Run the expired refresh-token sweep now"""
    try:
        deleted = await asyncio.to_thread(cleanup.run_once)
    except Exception as e:
        logger.error(f"[CLEANUP] Manual sweep by admin {admin['id']} failed: {e}")
        raise HTTPException(status_code=500, detail="Refresh token cleanup failed")

    logger.info(f"[CLEANUP] Manual sweep by admin {admin['id']} deleted {deleted} tokens")
    return {"message": "Refresh token cleanup completed", "deleted": deleted}


@scheduler_router.get("/expired-tokens-count")
async def expired_tokens_count(
    admin: dict = Depends(require_admin),
    cleanup: RefreshTokenCleanup = Depends(get_refresh_token_cleanup)
):
    return {"expiredTokensCount": {"oauth2": cleanup.count_expired()}}
