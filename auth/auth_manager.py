"""
Credential helpers shared with the surrounding login system.

- bcrypt hashing for passwords and OAuth2 client secrets
- Session tokens carried in the "sid" cookie
"""

import os
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from loguru import logger

from auth.models import User
from storage.relational.database import utcnow


class AuthManager:
    """Authentication manager"""

    def __init__(self):
        self.jwt_secret = os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        self.jwt_algorithm = "HS256"
        self.session_expiry = int(os.getenv("JWT_ACCESS_EXPIRES_IN", str(24 * 3600)))
        self.bcrypt_rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
        logger.info("AuthManager initialized")

    # ==================== SECRET HASHING ====================

    def hash_secret(self, secret: str, rounds: Optional[int] = None) -> str:
        """Hash a password or client secret using bcrypt"""
        secret_bytes = secret.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=rounds or self.bcrypt_rounds)
        return bcrypt.hashpw(secret_bytes, salt).decode("utf-8")

    def verify_secret(self, secret: Optional[str], secret_hash: Optional[str]) -> bool:
        """Compare a plaintext secret against its bcrypt hash"""
        if not secret or not secret_hash:
            logger.debug("[VERIFY] Missing secret or hash")
            return False

        try:
            hash_bytes = secret_hash if isinstance(secret_hash, bytes) else secret_hash.encode("utf-8")
            return bcrypt.checkpw(secret.encode("utf-8")[:72], hash_bytes)
        except ValueError as e:
            # Malformed stored hash
            logger.error(f"[VERIFY] bcrypt rejected stored hash: {e}")
            return False

    # ==================== SESSION TOKENS ====================

    def create_session_token(self, user: User) -> str:
        """Session token as issued by the login system for the "sid" cookie"""
        return jwt.encode(
            {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "schoolNumber": user.school_number,
                "exp": utcnow() + timedelta(seconds=self.session_expiry)
            },
            self.jwt_secret,
            algorithm=self.jwt_algorithm
        )

    def verify_token(self, token: str) -> Optional[dict]:
        """Verify a session token and return its payload, or None"""
        logger.debug("[TOKEN_VERIFY] Verifying session token")

        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid session token: {e}")
            return None

        if not isinstance(payload.get("id"), int):
            logger.warning("[TOKEN_VERIFY] Session token without user id")
            return None

        return payload


# Global instance
auth_manager = AuthManager()
