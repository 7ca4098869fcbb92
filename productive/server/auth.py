"""
Password hashing and bearer tokens for the Remote Store API.

Passwords are stored as salted PBKDF2-SHA256 strings:
    pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>

Tokens are HS256 JWTs carrying the user id in a "userId" claim.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt

logger = logging.getLogger(__name__)

HASH_SCHEME = "pbkdf2_sha256"
HASH_ITERATIONS = 260_000
JWT_ALGORITHM = "HS256"


class TokenError(Exception):
    """Token could not be verified (bad signature, expired, malformed)."""


def hash_password(password: str, iterations: int = HASH_ITERATIONS) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{HASH_SCHEME}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt_hex, hash_hex = stored.split("$")
        if scheme != HASH_SCHEME:
            return False
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations)
        )
    except ValueError:
        logger.warning("[AUTH] Malformed password hash")
        return False
    return hmac.compare_digest(digest.hex(), hash_hex)


class TokenSigner:
    """Issues and verifies user tokens."""

    def __init__(self, secret: str, ttl_days: int = 7):
        self.__secret = secret
        self.ttl = timedelta(days=ttl_days)

    def __repr__(self) -> str:
        return f"<TokenSigner algorithm={JWT_ALGORITHM} ttl={self.ttl.days}d>"

    def issue(self, user_id: str, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {"userId": user_id, "iat": now, "exp": now + self.ttl}
        return jwt.encode(payload, self.__secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str) -> str:
        """Return the userId claim.

        Raises:
            TokenError: token is expired, tampered with or lacks a userId
        """
        try:
            payload = jwt.decode(token, self.__secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.debug("[AUTH] Token expired")
            raise TokenError("Token expired") from None
        except jwt.InvalidTokenError as e:
            logger.debug(f"[AUTH] Invalid token: {e}")
            raise TokenError("Invalid token") from None

        user_id = payload.get("userId")
        if not user_id:
            raise TokenError("Token has no userId claim")
        return str(user_id)
