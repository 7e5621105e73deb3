"""Password hashing and bearer token issuance.

Passwords are hashed with scrypt and stored as ``hex(salt):hex(derived_key)``.
Tokens are HS256 JWTs signed with ``settings.jwt_secret``.
"""

import hashlib
import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from fittrack.config import settings

# scrypt parameters: N=16384, r=16, p=1, dkLen=64
_SCRYPT_N = 16384
_SCRYPT_R = 16
_SCRYPT_P = 1
_SCRYPT_DKLEN = 64
_SCRYPT_MAXMEM = 128 * _SCRYPT_N * _SCRYPT_R * 2


class InvalidTokenError(Exception):
    """Raised when a bearer token is malformed, tampered with, or expired."""


class PasswordHasher:
    """Hash and compare passwords using scrypt."""

    @staticmethod
    def _derive(password: str, salt_hex: str) -> bytes:
        # The hex salt string (not the raw bytes) is fed to scrypt
        return hashlib.scrypt(
            password.encode("utf-8"),
            salt=salt_hex.encode("utf-8"),
            n=_SCRYPT_N,
            r=_SCRYPT_R,
            p=_SCRYPT_P,
            dklen=_SCRYPT_DKLEN,
            maxmem=_SCRYPT_MAXMEM,
        )

    def hash(self, password: str) -> str:
        salt_hex = os.urandom(16).hex()
        return f"{salt_hex}:{self._derive(password, salt_hex).hex()}"

    def compare(self, password: str, stored: str) -> bool:
        """Return True if ``password`` matches the stored ``salt:key`` hash."""
        salt_hex, sep, key_hex = stored.partition(":")
        if not sep or not salt_hex or not key_hex:
            return False
        try:
            expected = bytes.fromhex(key_hex)
        except ValueError:
            return False
        return hmac.compare_digest(self._derive(password, salt_hex), expected)


class TokenIssuer:
    """Sign and verify JWT bearer tokens."""

    def __init__(
        self,
        secret: str | None = None,
        algorithm: str | None = None,
        default_ttl: timedelta | None = None,
    ):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm
        self._default_ttl = default_ttl or timedelta(days=settings.token_ttl_days)

    def sign(self, claims: dict[str, Any], ttl: timedelta | None = None) -> str:
        """Return a signed token carrying ``claims`` plus ``iat``/``exp``."""
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + (ttl or self._default_ttl)}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Decode ``token`` and return its claims.

        Raises:
            InvalidTokenError: If the signature is wrong or the token expired.
        """
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as e:
            raise InvalidTokenError(str(e)) from e


password_hasher = PasswordHasher()
