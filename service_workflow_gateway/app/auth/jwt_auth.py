"""
Caller authentication for the gateway's console-facing endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
from fastapi import Request

from shared.errors import AuthenticationError
from shared.logging import get_logger


@dataclass(frozen=True)
class CallerIdentity:
    """Account resolved from a verified console token."""

    user_id: int
    username: Optional[str]
    claims: Dict[str, Any]


class CallerAuthenticator:
    """Verifies HS256 bearer tokens issued by the management console."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm
        self.logger = get_logger("workflow_gateway.auth")

    @staticmethod
    def _bearer_token(request: Request) -> Optional[str]:
        authorization = request.headers.get("Authorization")
        if not authorization or not authorization.startswith("Bearer "):
            return None
        token = authorization[7:].strip()
        return token or None

    def _verify(self, token: str) -> CallerIdentity:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as exc:
            raise AuthenticationError(
                "Access token invalid",
                details={"error": str(exc)},
                status_code=403,
            ) from exc

        user_id = claims.get("id", claims.get("sub"))
        if user_id is None:
            raise AuthenticationError("Access token missing user id", status_code=403)
        if isinstance(user_id, str) and user_id.isdigit():
            user_id = int(user_id)
        # Owner ids are integer keys; bool is an int subclass and not one of them
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise AuthenticationError("Access token user id is invalid", status_code=403)

        return CallerIdentity(user_id=user_id, username=claims.get("username"), claims=claims)

    def authenticate(self, request: Request) -> CallerIdentity:
        """Require a valid bearer token (401 when absent, 403 when invalid)."""
        token = self._bearer_token(request)
        if token is None:
            raise AuthenticationError("Access token missing")

        identity = self._verify(token)
        request.state.caller = identity
        return identity

    def identify(self, request: Request) -> Optional[CallerIdentity]:
        """Best-effort identification; anonymous or invalid callers yield None."""
        token = self._bearer_token(request)
        if token is None:
            return None
        try:
            return self._verify(token)
        except AuthenticationError as exc:
            self.logger.debug("Ignoring invalid caller token", error=exc.message)
            return None
