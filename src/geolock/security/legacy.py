"""Read-only support for blobs written by the first, browser-based GeoLock.

Those files hold the OpenSSL "Salted__" layout:
- 8 bytes: b'Salted__'
- 8 bytes: salt
- rest: AES-256-CBC ciphertext, PKCS7 padded

Key and IV come from EVP_BytesToKey with MD5 and one iteration. The scheme has
no integrity check, so a wrong password is only caught when the padding or the
UTF-8 check in :func:`geolock.security.crypto.decrypt` fails. New blobs are
never written in this format.
"""
import hashlib

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from geolock.core.exceptions import WrongPasswordOrCorrupt


LEGACY_MAGIC = b"Salted__"
LEGACY_SALT_LEN = 8
KEY_LEN = 32
IV_LEN = 16
BLOCK_LEN = 16


def is_legacy(raw: bytes) -> bool:
    return raw.startswith(LEGACY_MAGIC)


def evp_bytes_to_key(password: bytes, salt: bytes, key_len: int = KEY_LEN, iv_len: int = IV_LEN):
    # D_i = MD5(D_{i-1} || password || salt)
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + password + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def decrypt(raw: bytes, password: str) -> bytes:
    body = raw[len(LEGACY_MAGIC) + LEGACY_SALT_LEN:]
    if not body or len(body) % BLOCK_LEN:
        raise WrongPasswordOrCorrupt()
    salt = raw[len(LEGACY_MAGIC):len(LEGACY_MAGIC) + LEGACY_SALT_LEN]
    key, iv = evp_bytes_to_key(password.encode("utf-8"), salt)

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_LEN * 8).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise WrongPasswordOrCorrupt() from None
