"""
Authentication Manager - bearer token verification for the registry.

Tokens are issued by an external identity provider. The registry only
verifies them and reads the caller's roles for its own client from the
resource_access claim:

    {"resource_access": {"digital-twin-registry": {"roles": ["view_digital_twin"]}}}
"""


import jwt
import os
from typing import List, Optional
from loguru import logger


class AuthManager:
    """Verifies HS256 bearer tokens"""

    def __init__(self):
        self.jwt_secret = os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        if len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")
        self.jwt_audience = os.getenv("JWT_AUDIENCE") or None
        self.algorithms = ["HS256"]
        logger.info("AuthManager initialized")

    def verify_token(self, token: str) -> Optional[dict]:
        """Verify JWT token and return payload, None if it is not acceptable"""
        logger.debug("[TOKEN_VERIFY] Verifying JWT token")

        options = {} if self.jwt_audience else {"verify_aud": False}
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=self.algorithms,
                audience=self.jwt_audience,
                options=options,
            )
            logger.debug(f"[TOKEN_VERIFY] Token verified successfully for subject: {payload.get('sub')}")
            return payload
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid token: {e}")
            return None

    @staticmethod
    def roles_from_payload(payload: dict, client_id: str) -> List[str]:
        """Roles granted to the caller for one client, [] if the claim is absent or malformed"""
        resource_access = payload.get("resource_access")
        if not isinstance(resource_access, dict):
            return []
        client = resource_access.get(client_id)
        if not isinstance(client, dict):
            return []
        roles = client.get("roles")
        if not isinstance(roles, list):
            return []
        return [role for role in roles if isinstance(role, str)]


# Global instance
auth_manager = AuthManager()
