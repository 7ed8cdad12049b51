"""Authentication module."""

from app.modules.auth.jwt import (
    Identity,
    TokenUse,
    TokenVerifier,
    VerificationResult,
    create_token,
    default_verifiers,
    get_current_owner,
    verify_token,
)

__all__ = [
    "Identity",
    "TokenUse",
    "TokenVerifier",
    "VerificationResult",
    "create_token",
    "default_verifiers",
    "get_current_owner",
    "verify_token",
]
