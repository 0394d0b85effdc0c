import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import jwt

from ..config import AuthConfig
from ..errors import UnauthorizedError


@dataclass(frozen=True)
class Principal:
    user_id: str
    email: Optional[str] = None
    claims: Optional[Mapping[str, Any]] = None


class TokenValidator:
    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    def verify_token(self, token: str) -> Principal:
        """Validate an HS256 bearer token and return the user it names."""
        if not self.config.jwt_secret:
            raise UnauthorizedError("Authentication is not configured")
        try:
            decoded = jwt.decode(
                token,
                self.config.jwt_secret,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                leeway=self.config.leeway,
                options={"require": ["sub", "exp"], "verify_aud": bool(self.config.audience)},
            )
        except jwt.ExpiredSignatureError as e:
            raise UnauthorizedError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise UnauthorizedError(f"Invalid token: {e}") from e
        return Principal(user_id=str(decoded["sub"]), email=decoded.get("email"), claims=decoded)

    def authenticate(self, authorization: Optional[str]) -> Principal:
        if not authorization:
            raise UnauthorizedError("Missing Authorization header")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise UnauthorizedError("Authorization header must be 'Bearer <token>'")
        return self.verify_token(token.strip())


def issue_token(
    config: AuthConfig, user_id: str, email: Optional[str] = None, ttl: int = 3600
) -> str:
    """Sign a token for ``user_id``; used by the CLI and tests."""
    if not config.jwt_secret:
        raise ValueError("jwt_secret must be configured to issue tokens")
    now = int(time.time())
    claims = {"sub": user_id, "iat": now, "exp": now + ttl}
    if email:
        claims["email"] = email
    if config.audience:
        claims["aud"] = config.audience
    return jwt.encode(claims, config.jwt_secret, algorithm=config.algorithm)
