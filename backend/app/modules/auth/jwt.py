"""JWT verification for request authentication.

A bearer token may be either an access token or an ID token. Rather than
trying one interpretation and falling back on exception, each interpretation
is a ``TokenVerifier`` and the verifiers are tried in order until one accepts
the token.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings


class TokenUse(str, Enum):
    """Kind of token, carried in the ``token_use`` claim."""
    ACCESS = "access"
    ID = "id"


class Identity(BaseModel):
    """The authenticated caller."""

    subject: str
    email: str
    username: Optional[str] = None
    token_use: TokenUse


@dataclass
class VerificationResult:
    """Outcome of verifying a token: an identity, or the reasons it failed."""
    identity: Optional[Identity] = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.identity is not None


class TokenVerifier:
    """Verifies tokens of one ``token_use``."""

    def __init__(
        self,
        token_use: TokenUse,
        secret: str,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
    ):
        self.token_use = token_use
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def verify(self, token: str) -> VerificationResult:
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            return VerificationResult(errors=[f"{self.token_use.value}: {e}"])

        if claims.get("token_use") != self.token_use.value:
            return VerificationResult(errors=[f"{self.token_use.value}: wrong token_use"])
        email = claims.get("email")
        if not email:
            return VerificationResult(errors=[f"{self.token_use.value}: no email claim"])

        return VerificationResult(
            identity=Identity(
                subject=str(claims.get("sub", "")),
                email=email,
                username=claims.get("username"),
                token_use=self.token_use,
            )
        )


def verify_token(token: str, verifiers: list[TokenVerifier]) -> VerificationResult:
    """Try each verifier in order; the first success wins.

    Returns:
        VerificationResult: the accepted identity, or every verifier's error
    """
    errors: list[str] = []
    for verifier in verifiers:
        result = verifier.verify(token)
        if result.ok:
            return result
        errors.extend(result.errors)
    return VerificationResult(errors=errors)


def default_verifiers() -> list[TokenVerifier]:
    """Access tokens first, then ID tokens."""
    return [
        TokenVerifier(TokenUse.ACCESS, settings.SECRET_KEY, settings.JWT_ALGORITHM, settings.JWT_AUDIENCE),
        TokenVerifier(TokenUse.ID, settings.SECRET_KEY, settings.JWT_ALGORITHM, settings.JWT_AUDIENCE),
    ]


def create_token(
    email: str,
    token_use: TokenUse = TokenUse.ACCESS,
    expires_delta: timedelta = timedelta(minutes=15),
    secret: Optional[str] = None,
    username: Optional[str] = None,
) -> str:
    """Create a signed token (local development and tests).

    Args:
        email: Owner email placed in the ``email`` claim
        token_use: access or id
        expires_delta: Token lifetime
        secret: Signing key, defaults to settings.SECRET_KEY
        username: Optional ``username`` claim

    Returns:
        str: The encoded token
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(uuid.uuid4()),
        "email": email,
        "token_use": token_use.value,
        "iat": now,
        "exp": now + expires_delta,
        "jti": str(uuid.uuid4()),
    }
    if username:
        payload["username"] = username
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE

    return jwt.encode(payload, secret or settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# FastAPI dependencies
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import AuthenticationError

security = HTTPBearer(auto_error=False)


async def get_current_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Email of the authenticated caller.

    Raises:
        AuthenticationError: No token, or no verifier accepted it
    """
    if credentials is None:
        raise AuthenticationError("No token provided")

    result = verify_token(credentials.credentials, default_verifiers())
    if not result.ok:
        raise AuthenticationError("Invalid token")
    return result.identity.email
