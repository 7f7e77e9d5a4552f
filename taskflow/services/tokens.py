from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from ..config import Settings


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


class TokenService:
    """Issues and verifies signed, time-limited identity tokens.

    Tokens are HS256 JWTs carrying the user id in ``sub`` (and ``id``), a
    fixed issuer and audience, ``iat`` and ``exp``.
    """

    def __init__(
        self,
        secret: str,
        lifetime: timedelta = timedelta(days=7),
        issuer: str = "taskflow-api",
        audience: str = "taskflow-users",
        algorithm: str = "HS256",
    ):
        if not secret:
            raise ValueError("Token signing secret is not configured")
        self.secret = secret
        self.lifetime = lifetime
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            lifetime=settings.jwt_expires_in,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            algorithm=settings.jwt_algorithm,
        )

    def issue(self, user_id: int, expires_delta: Optional[timedelta] = None) -> str:
        issued_at = datetime.now(timezone.utc)
        expire = issued_at + (expires_delta if expires_delta is not None else self.lifetime)
        claims = {
            "sub": str(user_id),
            "id": str(user_id),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued_at,
            "exp": expire,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        """Validate signature, expiry, issuer and audience.

        Returns:
            The user id embedded in the token

        Raises:
            TokenExpired: If the token is past its expiry
            TokenInvalid: If the token is malformed or fails any other check
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except ExpiredSignatureError as e:
            raise TokenExpired("Token expired") from e
        except JWTError as e:
            raise TokenInvalid(str(e)) from e

        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise TokenInvalid("Token subject is missing or malformed") from e
