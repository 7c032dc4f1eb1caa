"""Token verification for the authMiddleware step."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol

from jose import ExpiredSignatureError, JWTError, jwt

from ..errors import AuthError


class AuthVerifier(Protocol):
    def verify(self, token: str) -> Dict[str, Any]: ...


class JWTAuthVerifier:
    """Verifies HMAC-signed JWTs and returns their claims"""

    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 360):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT token

        Raises:
            AuthError: If token is invalid or expired
        """
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthError("Auth failed: token expired")
        except JWTError as e:
            raise AuthError(f"Auth failed: invalid token ({e})")

    def create_access_token(
        self,
        claims: Dict[str, Any],
        expires_in: Optional[timedelta] = None,
    ) -> str:
        """Issue a token the verifier accepts. Used by dev tooling and tests."""
        to_encode = dict(claims)
        to_encode.setdefault("jti", secrets.token_hex(8))
        expires_in = expires_in if expires_in is not None else timedelta(minutes=self.expire_minutes)
        to_encode["exp"] = datetime.now(timezone.utc) + expires_in
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)
