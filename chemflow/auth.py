"""Bearer-token authentication. Produces a Principal (id + role) or refuses."""
import time
from typing import Optional

import jwt

from chemflow.config import Settings
from chemflow.models.domain import Principal
from chemflow.models.enums import UserRole
from chemflow.services.errors import UnauthenticatedError


class TokenAuthenticator:
    """Issues and verifies signed tokens carrying a user id and role."""

    def __init__(self, settings: Settings):
        self.secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.ttl_minutes = settings.jwt_ttl_minutes
        self.issuer = settings.app_name

    def issue(self, user_id: str, role: UserRole) -> str:
        now = int(time.time())
        payload = {
            "iss": self.issuer,
            "iat": now,
            "exp": now + self.ttl_minutes * 60,
            "sub": str(user_id),
            "role": UserRole(role).value,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def authenticate(self, token: Optional[str]) -> Principal:
        if not token:
            raise UnauthenticatedError("Please authenticate.")
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
            )
        except jwt.PyJWTError as exc:
            raise UnauthenticatedError("Please authenticate.") from exc

        try:
            return Principal(id=str(claims["sub"]), role=UserRole(claims["role"]))
        except (KeyError, ValueError) as exc:
            raise UnauthenticatedError("Please authenticate.") from exc
