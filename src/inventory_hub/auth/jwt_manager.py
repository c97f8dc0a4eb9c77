"""
JWT token management for authentication.
"""

import uuid
from datetime import timedelta
from typing import Optional, Dict, Any, List

from jose import JWTError, jwt

from inventory_hub.utils import utcnow
from inventory_hub.utils.config import get_config
from inventory_hub.utils.exceptions import ConfigurationError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


class JWTManager:
    """
    Manages JWT token creation and verification.

    Access tokens carry the tenant claim that the claim resolution strategy
    reads once the signature has been verified.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
        tenant_claim: Optional[str] = None,
    ):
        """
        Initialize JWT manager.

        Args:
            secret_key: Secret key for signing tokens (SECRET_KEY)
            algorithm: Signing algorithm (JWT_ALGORITHM)
            access_token_expire_minutes: Access token TTL in minutes
            tenant_claim: Name of the claim holding the tenant id
        """
        config = get_config()
        self.secret_key = secret_key or config.secret_key
        if not self.secret_key:
            raise ConfigurationError("SECRET_KEY environment variable is required for JWT")

        self.algorithm = algorithm or config.jwt_algorithm
        self.access_token_expire = timedelta(
            minutes=access_token_expire_minutes or config.access_token_expire_minutes
        )
        self.tenant_claim = tenant_claim or config.tenant_claim

        logger.info(f"Initialized JWT manager (algorithm={self.algorithm}, access_ttl={self.access_token_expire})")

    def create_access_token(
        self,
        user_id: str,
        tenant_id: str,
        roles: Optional[List[str]] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Create access token for an authenticated user.

        Args:
            user_id: User UUID
            tenant_id: Tenant UUID the user belongs to
            roles: Role names assigned to the user
            additional_claims: Optional additional claims to include

        Returns:
            JWT access token string
        """
        now = utcnow()
        payload = {
            "sub": str(user_id),
            self.tenant_claim: str(tenant_id),
            "roles": roles or [],
            "type": "access",
            "iat": now,
            "exp": now + self.access_token_expire,
            "jti": str(uuid.uuid4()),
        }

        if additional_claims:
            payload.update(additional_claims)

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Created access token for user {user_id} (expires in {self.access_token_expire})")

        return token

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token.

        Raises:
            JWTError: If token is invalid, expired or of the wrong type
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])

            if payload.get("type") != token_type:
                raise JWTError(f"Invalid token type: expected {token_type}, got {payload.get('type')}")

            return payload

        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            raise


# Global JWT manager instance
_jwt_manager: Optional[JWTManager] = None


def get_jwt_manager() -> JWTManager:
    """Get or create global JWT manager instance."""
    global _jwt_manager
    if _jwt_manager is None:
        _jwt_manager = JWTManager()
    return _jwt_manager


def create_access_token(user_id: str, tenant_id: str, roles: Optional[List[str]] = None) -> str:
    """Convenience function to create access token."""
    return get_jwt_manager().create_access_token(user_id, tenant_id, roles)


def verify_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """Convenience function to verify token."""
    return get_jwt_manager().verify_token(token, token_type)
