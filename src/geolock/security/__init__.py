"""Security helpers: KDF and password-based encryption primitives for GeoLock.

This package provides:
- Argon2id key derivation from a password
- single-blob AES-256-GCM encryption with an authenticated header
- read-only decryption of legacy passphrase-CBC blobs
"""

from .kdf import KdfParams, DEFAULT_PARAMS, generate_salt, derive_key
from .crypto import encrypt, decrypt

__all__ = [
    "KdfParams",
    "DEFAULT_PARAMS",
    "generate_salt",
    "derive_key",
    "encrypt",
    "decrypt",
]
