"""Encryption helpers for stored calendar tokens"""

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet

from ..config import SECRET_KEY


def get_token_cipher(secret_key: Optional[str] = None) -> Fernet:
    """Fernet cipher keyed from SECRET_KEY (SHA-256, urlsafe base64)"""
    digest = hashlib.sha256((secret_key or SECRET_KEY).encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_token(token: str, secret_key: Optional[str] = None) -> str:
    return get_token_cipher(secret_key).encrypt(token.encode()).decode()


def decrypt_token(encrypted: str, secret_key: Optional[str] = None) -> str:
    return get_token_cipher(secret_key).decrypt(encrypted.encode()).decode()
