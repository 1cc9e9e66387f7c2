"""
JWT minting and verification for the OAuth2 provider.

Access and ID tokens are stateless HS256 JWTs. Refresh tokens are JWTs as
well, but each live one is persisted so it can be rotated and swept.
"""

import uuid
from typing import Any, Dict, Iterable, Optional

import jwt
from loguru import logger
from sqlalchemy.orm import Session

from auth.models import User
from oauth2.claims import id_token_claims
from oauth2.config import OAuth2Config
from oauth2.repository import RefreshTokenRepository
from oauth2.utils import from_unix, unix_now


class TokenIssuer:
    """Mints and verifies access, refresh and ID tokens"""

    def __init__(self, config: OAuth2Config):
        self.config = config

    # ==================== ENCODING ====================

    def _encode(self, payload: Dict[str, Any]) -> str:
        return jwt.encode(payload, self.config.jwt_secret, algorithm=self.config.jwt_algorithm)

    def generate_access_token(self, user_id: int, client_id: str) -> Dict[str, Any]:
        """
        Mint an access token for a (user, client) pair.

        Returns:
            {"access_token": str, "expires_in": int}; expires_in is the
            absolute exp claim in Unix seconds
        """
        iat = unix_now()
        exp = iat + self.config.access_token_expiry
        token = self._encode({
            "user_id": user_id,
            "app_id": client_id,
            "iat": iat,
            "exp": exp
        })

        logger.debug(f"[TOKEN] Access token minted for user {user_id} / client {client_id}")
        return {"access_token": token, "expires_in": exp}

    def generate_refresh_token(self, db: Session, user_id: int, client_id: str) -> Dict[str, Any]:
        """
        Mint and persist a refresh token, replacing the pair's previous one.

        The old row is deleted with an immediate bulk DELETE before the new
        row is flushed, so the (user, client) unique constraint holds inside
        a single transaction. The caller commits.

        Returns:
            {"refresh_token": str, "refresh_token_expires_in": int}
        """
        iat = unix_now()
        exp = iat + self.config.refresh_token_expiry
        token = self._encode({
            "user_id": user_id,
            "client_id": client_id,
            "jti": str(uuid.uuid4()),
            "iat": iat,
            "exp": exp
        })

        removed = RefreshTokenRepository.delete_for_user_and_client(db, user_id, client_id)
        RefreshTokenRepository.create(
            db,
            user_id=user_id,
            client_id=client_id,
            value=token,
            expires_at=from_unix(exp)
        )

        logger.debug(
            f"[TOKEN] Refresh token minted for user {user_id} / client {client_id} "
            f"(replaced {removed})"
        )
        return {"refresh_token": token, "refresh_token_expires_in": exp}

    def generate_id_token(
        self,
        user: User,
        client_id: str,
        scopes: Iterable,
        nonce: Optional[str] = None
    ) -> str:
        """OpenID ID token carrying the claims released by the granted scopes"""
        iat = unix_now()
        payload = {
            "iss": self.config.issuer,
            "aud": client_id,
            "sub": str(user.id),
            "iat": iat,
            "exp": iat + self.config.id_token_expiry
        }
        if nonce:
            payload["nonce"] = nonce
        payload.update(id_token_claims(user, scopes))

        return self._encode(payload)

    # ==================== VERIFICATION ====================

    def _verify(self, token: str, required: tuple) -> Dict[str, Any]:
        payload = jwt.decode(
            token,
            self.config.jwt_secret,
            algorithms=[self.config.jwt_algorithm],
            options={"verify_aud": False}
        )
        missing = [claim for claim in required if payload.get(claim) is None]
        if missing:
            raise jwt.InvalidTokenError(f"Missing claims: {', '.join(missing)}")
        return payload

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """
        Verify signature and expiry of an access token.

        Raises:
            jwt.InvalidTokenError: Bad signature, expired, or user_id/app_id missing
        """
        return self._verify(token, ("user_id", "app_id"))

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        """
        Verify signature and expiry of a refresh token.

        Raises:
            jwt.InvalidTokenError: Bad signature, expired, or user_id/client_id missing
        """
        return self._verify(token, ("user_id", "client_id"))

    def decode_unverified(self, token: str) -> Dict[str, Any]:
        """Payload without any verification; for diagnostics only"""
        return jwt.decode(token, options={"verify_signature": False})
