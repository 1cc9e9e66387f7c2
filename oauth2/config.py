"""
OAuth2 provider configuration.

Values are read from the environment (a .env file is loaded through
python-dotenv). Token lifetimes accept "<n>s", "<n>m", "<n>h", "<n>d"
or a plain number of seconds.
"""

import os
import re

import dotenv
from loguru import logger

dotenv.load_dotenv()

CLIENT_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

ACCESS_TOKEN_EXPIRY = 7 * 24 * 3600  # 7 days
OPENID_TOKEN_EXPIRY = 7 * 24 * 3600  # 7 days
REFRESH_TOKEN_RENEWAL_THRESHOLD = 30 * 24 * 3600  # 30 days
DEFAULT_REFRESH_TOKEN_EXPIRY = "30d"
DEFAULT_ISSUER = "https://ckdebuggers.com"
ADMIN_PERMISSION_LEVEL = 3

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")


def parse_duration(value) -> int:
    """Convert "30d" / "12h" / "15m" / "90s" / "3600" into seconds"""
    if isinstance(value, int):
        return value

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")

    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit or "s"]


class OAuth2Config:
    """Settings for token signing, lifetimes, caching and the cleanup sweep"""

    def __init__(self):
        self.jwt_secret = os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize OAuth2 provider.")
        if len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")
        self.jwt_algorithm = "HS256"

        self.issuer = os.getenv("OAUTH2_ISSUER", DEFAULT_ISSUER)

        self.access_token_expiry = ACCESS_TOKEN_EXPIRY
        self.id_token_expiry = OPENID_TOKEN_EXPIRY
        self.refresh_token_expiry = parse_duration(
            os.getenv("JWT_REFRESH_EXPIRATION_TIME", DEFAULT_REFRESH_TOKEN_EXPIRY)
        )
        self.refresh_token_renewal_threshold = REFRESH_TOKEN_RENEWAL_THRESHOLD

        self.client_cache_ttl = int(os.getenv("OAUTH2_CLIENT_CACHE_TTL", "300"))

        self.cleanup_enabled = os.getenv("REFRESH_TOKEN_CLEANUP_ENABLED", "true").lower() == "true"
        self.cleanup_interval = parse_duration(os.getenv("REFRESH_TOKEN_CLEANUP_INTERVAL", "30m"))
        self.cleanup_batch_size = int(os.getenv("REFRESH_TOKEN_CLEANUP_BATCH_SIZE", "1000"))

        logger.info(
            f"OAuth2Config loaded: issuer={self.issuer}, "
            f"refresh_token_expiry={self.refresh_token_expiry}s, "
            f"client_cache_ttl={self.client_cache_ttl}s"
        )
