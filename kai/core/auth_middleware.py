"""Authentication for FastAPI routes.

Bearer tokens are verified by the managed identity provider (Supabase Auth);
this module only extracts the token and maps the outcome to a user id.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from kai.core.errors import AuthenticationError
from kai.core.logging import get_logger

logger = get_logger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)


@dataclass
class VerifiedUser:
    uid: str
    email: str | None = None


class AuthContext:
    """Context object containing authenticated user info."""

    def __init__(self, user: VerifiedUser, token: str):
        self.user = user
        self.token = token
        self.user_id = user.uid

    @property
    def email(self) -> str | None:
        return self.user.email


class CredentialVerifier:
    """Validates bearer tokens against Supabase Auth."""

    def __init__(self, client: Client):
        self.client = client

    def verify(self, token: str) -> VerifiedUser:
        """
        Verify a token's signature and expiry with the identity provider.

        Args:
            token: Raw bearer token

        Returns:
            VerifiedUser for the token's subject

        Raises:
            AuthenticationError: If the token is invalid or expired
        """
        try:
            response = self.client.auth.get_user(token)
        except Exception as e:
            logger.debug(f"Token verification failed: {e}")
            raise AuthenticationError("Invalid or expired token") from e

        if not response or not response.user:
            raise AuthenticationError("Invalid or expired token")

        return VerifiedUser(uid=str(response.user.id), email=response.user.email)


def get_credential_verifier() -> CredentialVerifier:
    from kai.db.supabase_client import get_supabase

    return CredentialVerifier(get_supabase())


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
) -> AuthContext:
    """
    Resolve the authenticated user for a request.

    Raises:
        AuthenticationError: 401 when the header is missing or the token invalid
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("No authorization token provided")

    token = credentials.credentials
    user = verifier.verify(token)
    return AuthContext(user=user, token=token)
