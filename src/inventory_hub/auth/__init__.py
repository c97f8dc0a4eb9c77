"""
Authentication utilities for InventoryHub.
"""

from .jwt_manager import JWTManager, get_jwt_manager, create_access_token, verify_token
from .password import PasswordManager, hash_password, verify_password

__all__ = [
    "JWTManager",
    "get_jwt_manager",
    "create_access_token",
    "verify_token",
    "PasswordManager",
    "hash_password",
    "verify_password",
]
