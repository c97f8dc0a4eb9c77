"""
Password hashing and verification utilities.
"""

from typing import Optional

import bcrypt

from inventory_hub.utils.config import get_config
from inventory_hub.utils.exceptions import ValidationError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


class PasswordManager:
    """
    Manages password hashing and verification using bcrypt.
    """

    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds or get_config().bcrypt_rounds

    def hash(self, password: str) -> str:
        """
        Hash a plaintext password.

        Raises:
            ValidationError: Password shorter than 8 characters
        """
        if not password or len(password) < 8:
            raise ValidationError("Password must be at least 8 characters", field="password")

        # Bcrypt only accepts up to 72 bytes
        password_bytes = password.encode('utf-8')[:72]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password_bytes, salt).decode('utf-8')

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        try:
            password_bytes = plain_password.encode('utf-8')[:72]
            return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
        except ValueError as e:
            # Malformed stored hash
            logger.error(f"Password verification failed: {e}")
            return False


_password_manager: Optional[PasswordManager] = None


def get_password_manager() -> PasswordManager:
    global _password_manager
    if _password_manager is None:
        _password_manager = PasswordManager()
    return _password_manager


def hash_password(password: str) -> str:
    """Convenience function to hash password."""
    return get_password_manager().hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Convenience function to verify password."""
    return get_password_manager().verify(plain_password, hashed_password)
