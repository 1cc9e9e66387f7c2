"""
Business logic for the OAuth2 / OpenID-Connect provider.

The service layer sits between the API endpoints and the repositories.
It handles:
- Client validation (with a short-lived client cache)
- The consent screen and the consent grant (authorization)
- Token exchange for the authorization_code and refresh_token grants
- Bearer-token introspection and the user-info endpoint
"""

from typing import Any, Dict, Optional

import jwt
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.auth_manager import auth_manager
from oauth2.cache import ClientCache
from oauth2.claims import user_info_claims
from oauth2.config import CLIENT_ID_PATTERN, OAuth2Config
from oauth2.exceptions import (
    BadRequestError, ConflictError, ForbiddenError, NotFoundError, OAuth2Error, UnauthorizedError
)
from oauth2.repository import (
    ClientRepository, ConnectionRepository, RefreshTokenRepository, ScopeRepository, UserRepository
)
from oauth2.schemas import AuthorizeRequest, ClientSnapshot, TokenRequest
from oauth2.tokens import TokenIssuer
from oauth2.utils import normalize_scope_ids, unix_now, utcnow

SUPPORTED_AUTHORIZATION_TYPES = ("Bearer",)


class AuthorizationService:
    """
    OAuth2 provider operations.

    One instance lives on the application state; it owns the client cache
    and the token issuer. Database sessions are passed in per call.
    """

    def __init__(
        self,
        config: OAuth2Config,
        token_issuer: Optional[TokenIssuer] = None,
        client_cache: Optional[ClientCache] = None
    ):
        self.config = config
        self.tokens = token_issuer or TokenIssuer(config)
        self.client_cache = client_cache or ClientCache(ttl_seconds=config.client_cache_ttl)

    # ==================== CLIENTS ====================

    def validate_client(self, db: Session, client_id: str) -> ClientSnapshot:
        """
        Resolve an OAuth-enabled client.

        Ids that are not UUID-v4 shaped are rejected before any lookup.

        Raises:
            NotFoundError: Malformed id, unknown client, or OAuth disabled
        """
        if not client_id or not CLIENT_ID_PATTERN.match(client_id):
            logger.warning(f"[CLIENT] Rejected malformed client id: {client_id!r}")
            raise NotFoundError("Invalid client ID format")

        cached = self.client_cache.get(client_id)
        if cached is not None:
            logger.debug(f"[CLIENT] Cache hit for {client_id}")
            return cached

        client = ClientRepository.get_by_id(db, client_id)
        if not client or not client.use_oauth:
            logger.warning(f"[CLIENT] Client {client_id} not found or OAuth disabled")
            raise NotFoundError("OAuth2 client not found or disabled")

        snapshot = ClientSnapshot.model_validate(client)
        self.client_cache.set(client_id, snapshot)
        return snapshot

    def get_application_info(self, db: Session, client_id: str, user_id: int) -> Dict[str, Any]:
        """
        Consent-screen data for a client.

        Returns:
            {"title", "profile", "mustAgree": [{id, display}], "consentItems": [{id, display}]}
        """
        client = self.validate_client(db, client_id)

        if not UserRepository.get_by_id(db, user_id):
            logger.warning(f"[CONSENT] Unknown user {user_id}")
            raise ForbiddenError("Authentication required")

        if ConnectionRepository.get_by_user_and_client(db, user_id, client.id):
            logger.warning(f"[CONSENT] User {user_id} already connected to {client.id}")
            raise ConflictError("Already connected to this application")

        must_agree = []
        consent_items = []
        for entry in ClientRepository.list_to_agree(db, client.id):
            item = {"id": str(entry.scope.id), "display": entry.scope.title}
            if entry.is_essential:
                must_agree.append(item)
            else:
                consent_items.append(item)

        return {
            "title": client.title,
            "profile": client.profile,
            "mustAgree": must_agree,
            "consentItems": consent_items
        }

    # ==================== CONSENT ====================

    def authorize(self, db: Session, request: AuthorizeRequest, user_id: int) -> Dict[str, str]:
        """
        Record a user's consent grant to a client.

        Runs as one transaction: the connection and its scope links are
        committed together or not at all. A concurrent grant for the same
        (user, client) pair loses on the unique constraint and is reported
        as a conflict.

        Raises:
            NotFoundError: Unknown user/client, or scopes not declared by the client
            ForbiddenError: OAuth disabled, or essential scopes missing
            ConflictError: Unregistered redirect URL, or already connected
        """
        try:
            user = UserRepository.get_by_id(db, user_id)
            client = None
            if CLIENT_ID_PATTERN.match(request.client_id):
                client = ClientRepository.get_by_id(db, request.client_id)
            if not user or not client:
                logger.warning(f"[AUTHORIZE] User {user_id} or client {request.client_id} not found")
                raise NotFoundError("User or client not found")

            if not client.use_oauth:
                logger.warning(f"[AUTHORIZE] OAuth disabled for client {client.id}")
                raise ForbiddenError("OAuth is not enabled for this client")

            if not ClientRepository.get_redirect_url(db, client.id, request.redirect_to):
                logger.warning(f"[AUTHORIZE] Unregistered redirect URL for {client.id}: {request.redirect_to}")
                raise ConflictError("Invalid redirect URL")

            if ConnectionRepository.get_by_user_and_client(db, user.id, client.id):
                logger.warning(f"[AUTHORIZE] User {user.id} already connected to {client.id}")
                raise ConflictError("User is already connected to this client")

            declared = {entry.scope_id: entry for entry in ClientRepository.list_to_agree(db, client.id)}
            essential_ids = [scope_id for scope_id, entry in declared.items() if entry.is_essential]
            agreed_ids = normalize_scope_ids(request.agreed)

            missing = [scope_id for scope_id in essential_ids if scope_id not in agreed_ids]
            if missing:
                logger.warning(f"[AUTHORIZE] Missing essential scopes {missing} for {client.id}")
                raise ForbiddenError("Missing required scopes")

            # Only ids the client declares may reach the database
            final_ids = list(dict.fromkeys(essential_ids + agreed_ids))
            undeclared = [scope_id for scope_id in final_ids if scope_id not in declared]
            if undeclared:
                logger.warning(f"[AUTHORIZE] Undeclared scopes {undeclared} for {client.id}")
                raise NotFoundError("Some scopes do not exist")

            scopes = ScopeRepository.get_many(db, final_ids)
            if len(scopes) != len(final_ids):
                logger.warning(f"[AUTHORIZE] Unknown scopes in {final_ids} for {client.id}")
                raise NotFoundError("Some scopes do not exist")

            connection = ConnectionRepository.create(
                db,
                user=user,
                client=client,
                scopes=scopes,
                nonce=request.nonce,
                connected_at=utcnow()
            )
            db.commit()

        except IntegrityError as e:
            db.rollback()
            logger.warning(f"[AUTHORIZE] Concurrent grant for user {user_id} / client {request.client_id}: {e.orig}")
            raise ConflictError("User is already connected to this client")
        except OAuth2Error:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"[AUTHORIZE] Error authorizing user {user_id}: {e}")
            raise

        logger.info(f"[AUTHORIZE] User {user_id} connected to {request.client_id} (connection {connection.id})")
        return {"status": "success", "message": "Authorization successful"}

    def get_connect_info(
        self,
        db: Session,
        client_id: str,
        redirect_to: Optional[str],
        user_id: int
    ) -> Dict[str, Any]:
        """Authorization code and summary for the redirect back to the client"""
        user = UserRepository.get_by_id(db, user_id)
        client = ClientRepository.get_by_id(db, client_id) if CLIENT_ID_PATTERN.match(client_id) else None
        if not user or not client:
            logger.warning(f"[CONNECT] User {user_id} or client {client_id} not found")
            raise NotFoundError("User or client not found")

        if not redirect_to or not ClientRepository.get_redirect_url(db, client.id, redirect_to):
            logger.warning(f"[CONNECT] Invalid redirect URL for {client.id}: {redirect_to!r}")
            raise BadRequestError("Invalid redirect URL")

        connection = ConnectionRepository.get_by_user_and_client(db, user.id, client.id)
        if not connection:
            logger.warning(f"[CONNECT] No connection for user {user.id} / client {client.id}")
            raise NotFoundError("Connection not found")

        return {
            "code": connection.id,
            "username": user.username,
            "client": {"title": client.title, "profile": client.profile},
            "agreed": ",".join(scope.title for scope in connection.scopes)
        }

    # ==================== TOKEN EXCHANGE ====================

    def get_token(self, db: Session, request: TokenRequest) -> Dict[str, Any]:
        """Token endpoint; dispatches on grant_type"""
        if request.grant_type == "authorization_code":
            return self._handle_authorization_code(db, request)
        elif request.grant_type == "refresh_token":
            return self._handle_refresh_token(db, request)

        logger.warning(f"[TOKEN] Unsupported grant type: {request.grant_type!r}")
        raise BadRequestError("Unsupported grant type")

    def _handle_authorization_code(self, db: Session, request: TokenRequest) -> Dict[str, Any]:
        if not request.code:
            raise BadRequestError("Authorization code is required")

        client = self.validate_client(db, request.client_id)

        if not auth_manager.verify_secret(request.client_secret, client.secret):
            logger.warning(f"[TOKEN] Invalid client secret for {client.id}")
            raise ForbiddenError("Invalid client secret")

        connection = ConnectionRepository.get_by_id(db, request.code)
        if not connection or connection.client_id != client.id:
            logger.warning(f"[TOKEN] Authorization code not found for {client.id}")
            raise NotFoundError("Authorization code not found or expired")

        user = connection.user
        access = self.tokens.generate_access_token(user.id, client.id)
        refresh = self.tokens.generate_refresh_token(db, user.id, client.id)
        id_token = self.tokens.generate_id_token(user, client.id, connection.scopes, connection.nonce)
        db.commit()

        logger.info(f"[TOKEN] Issued tokens for user {user.id} / client {client.id}")
        return {
            "token_type": "bearer",
            "access_token": access["access_token"],
            "id_token": id_token,
            "expires_in": access["expires_in"],
            "refresh_token": refresh["refresh_token"],
            "refresh_token_expires_in": refresh["refresh_token_expires_in"],
            "scope": ",".join(scope.title for scope in connection.scopes)
        }

    def _handle_refresh_token(self, db: Session, request: TokenRequest) -> Dict[str, Any]:
        if not request.refresh_token:
            raise BadRequestError("Refresh token is required")

        try:
            client = self.validate_client(db, request.client_id)
            if not auth_manager.verify_secret(request.client_secret, client.secret):
                raise ValueError(f"client secret mismatch for {client.id}")

            payload = self.tokens.verify_refresh_token(request.refresh_token)
            if payload["client_id"] != client.id:
                raise ValueError("token issued to another client")

            stored = RefreshTokenRepository.get_by_user_and_client(db, payload["user_id"], client.id)
            if not stored or stored.value != request.refresh_token:
                raise ValueError("token is not the live refresh token of the pair")

            connection = ConnectionRepository.get_by_user_and_client(db, payload["user_id"], client.id)
            if not connection:
                raise ValueError("connection no longer exists")

        except (OAuth2Error, jwt.InvalidTokenError, ValueError) as e:
            detail = e.detail if isinstance(e, OAuth2Error) else str(e)
            logger.warning(f"[REFRESH] Refresh token verification failed: {detail}")
            raise ConflictError("Invalid refresh token")

        user = connection.user
        access = self.tokens.generate_access_token(user.id, client.id)
        response = {
            "token_type": "bearer",
            "access_token": access["access_token"],
            "id_token": self.tokens.generate_id_token(user, client.id, connection.scopes),
            "expires_in": access["expires_in"]
        }

        # Rotate only when the presented token is close to expiry
        if payload["exp"] - unix_now() < self.config.refresh_token_renewal_threshold:
            response.update(self.tokens.generate_refresh_token(db, user.id, client.id))
            db.commit()
            logger.info(f"[REFRESH] Rotated refresh token for user {user.id} / client {client.id}")

        logger.info(f"[REFRESH] Refreshed access token for user {user.id} / client {client.id}")
        return response

    # ==================== BEARER TOKENS ====================

    def _verify_authorization(self, auth_type: Optional[str], token: Optional[str]) -> Dict[str, Any]:
        if not auth_type or not token:
            raise BadRequestError("Authorization header is required")

        if auth_type not in SUPPORTED_AUTHORIZATION_TYPES:
            logger.warning(f"[BEARER] Unsupported authorization type: {auth_type}")
            raise BadRequestError(f"Unsupported authorization type: {auth_type}")

        try:
            return self.tokens.verify_access_token(token)
        except jwt.InvalidTokenError as e:
            logger.warning(f"[BEARER] Token verification failed: {e}")
            raise UnauthorizedError("Invalid or expired token")

    def get_access_token_info(self, auth_type: Optional[str], token: Optional[str]) -> Dict[str, Any]:
        payload = self._verify_authorization(auth_type, token)
        return {
            "id": payload["user_id"],
            "exp": payload["exp"],
            "app_id": payload["app_id"]
        }

    def get_user_info(self, db: Session, auth_type: Optional[str], token: Optional[str]) -> Dict[str, Any]:
        """
        Attributes the bearer's client may see, from the live consent record.

        Only attributes of currently agreed, supported scopes are returned.
        """
        payload = self._verify_authorization(auth_type, token)

        connection = ConnectionRepository.get_by_user_and_client(db, payload["user_id"], payload["app_id"])
        if not connection:
            logger.warning(f"[USERINFO] No connection for user {payload['user_id']} / client {payload['app_id']}")
            raise ConflictError("Connection not found")

        return {
            "id": connection.user.id,
            "connected_at": connection.connected_at.isoformat(),
            "debuggers_account": user_info_claims(connection.user, connection.scopes)
        }

    # ==================== MAINTENANCE ====================

    def cleanup(self) -> int:
        """Sweep expired client-cache entries"""
        removed = self.client_cache.cleanup()
        if removed:
            logger.debug(f"[CLEANUP] Evicted {removed} expired client cache entries")
        return removed
