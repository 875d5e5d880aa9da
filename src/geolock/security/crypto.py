"""Password-based AEAD for location-bound packages, emitted as one base64 text blob.

Header layout (binary, all big-endian):
- 4 bytes: magic b'GLK1'
- 1 byte: version (1)
- 1 byte: alg_id (1 = Argon2id + AES-256-GCM)
- 1 byte: Argon2 time cost
- 4 bytes: Argon2 memory cost (KiB)
- 1 byte: Argon2 parallelism
- 16 bytes: salt
- 12 bytes: nonce

Body: AES-GCM ciphertext with its 16-byte tag. The header is passed as
associated data, so tampering with the KDF parameters, salt or nonce fails
authentication exactly like a wrong password does.

Blobs from the older passphrase-CBC browser tool are still readable; see
:mod:`geolock.security.legacy`.
"""
import base64
import binascii
import os
import struct

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from geolock.core.exceptions import WrongPasswordOrCorrupt
from .kdf import DEFAULT_PARAMS, SALT_LEN, KdfParams, derive_key, generate_salt
from . import legacy


MAGIC = b"GLK1"
VERSION = 1
ALG_ID_ARGON2_AESGCM = 1
NONCE_LEN = 12
TAG_LEN = 16

_HEADER = struct.Struct(f">4sBBBIB{SALT_LEN}s{NONCE_LEN}s")
HEADER_LEN = _HEADER.size


def _pack_header(params: KdfParams, salt: bytes, nonce: bytes) -> bytes:
    return _HEADER.pack(
        MAGIC,
        VERSION,
        ALG_ID_ARGON2_AESGCM,
        params.time_cost,
        params.memory_cost,
        params.parallelism,
        salt,
        nonce,
    )


def encrypt(plaintext: bytes | str, password: str, params: KdfParams = DEFAULT_PARAMS) -> str:
    """Encrypt ``plaintext`` under ``password`` and return the base64 blob."""
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    salt = generate_salt()
    nonce = os.urandom(NONCE_LEN)
    header = _pack_header(params, salt, nonce)

    key = derive_key(password, salt, params)
    ct = AESGCM(key).encrypt(nonce, plaintext, header)
    return base64.b64encode(header + ct).decode("ascii")


def _b64decode(blob: str | bytes) -> bytes:
    if isinstance(blob, str):
        try:
            blob = blob.encode("ascii")
        except UnicodeEncodeError:
            raise WrongPasswordOrCorrupt() from None
    # tolerate the wrapping and trailing newline editors add
    blob = b"".join(blob.split())
    try:
        return base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError):
        raise WrongPasswordOrCorrupt() from None


def decrypt(blob: str | bytes, password: str) -> bytes:
    """
    Decrypt a blob produced by :func:`encrypt` (or the legacy format).

    Any failure, whether a wrong password, truncation, tampering or a plaintext
    that is not UTF-8, raises :class:`WrongPasswordOrCorrupt`.
    """
    raw = _b64decode(blob)

    if legacy.is_legacy(raw):
        plaintext = legacy.decrypt(raw, password)
    else:
        plaintext = _decrypt_current(raw, password)

    try:
        plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise WrongPasswordOrCorrupt() from None
    return plaintext


def _decrypt_current(raw: bytes, password: str) -> bytes:
    if len(raw) < HEADER_LEN + TAG_LEN:
        raise WrongPasswordOrCorrupt()
    header = raw[:HEADER_LEN]
    magic, ver, alg, time_cost, memory_cost, parallelism, salt, nonce = _HEADER.unpack(header)
    if magic != MAGIC or ver != VERSION or alg != ALG_ID_ARGON2_AESGCM:
        raise WrongPasswordOrCorrupt()

    params = KdfParams(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)
    if not params.is_acceptable():
        raise WrongPasswordOrCorrupt()

    key = derive_key(password, salt, params)
    try:
        return AESGCM(key).decrypt(nonce, raw[HEADER_LEN:], header)
    except InvalidTag:
        raise WrongPasswordOrCorrupt() from None
