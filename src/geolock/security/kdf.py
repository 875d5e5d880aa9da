import os
from dataclasses import dataclass

from argon2.low_level import Type, hash_secret_raw


SALT_LEN = 16
KEY_LEN = 32

# Upper bounds for parameters read back from a blob, so a crafted file cannot
# make the reader allocate unbounded memory.
MAX_TIME_COST = 10
MAX_MEMORY_COST = 1024 * 1024
MAX_PARALLELISM = 16


@dataclass(frozen=True)
class KdfParams:
    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 1

    def is_acceptable(self) -> bool:
        """Return True when the parameters are within the bounds a reader accepts."""
        return (
            1 <= self.time_cost <= MAX_TIME_COST
            and 8 * self.parallelism <= self.memory_cost <= MAX_MEMORY_COST
            and 1 <= self.parallelism <= MAX_PARALLELISM
        )


DEFAULT_PARAMS = KdfParams()


def generate_salt(length: int = SALT_LEN) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_key(
    password: bytes | str,
    salt: bytes,
    params: KdfParams = DEFAULT_PARAMS,
    key_len: int = KEY_LEN,
) -> bytes:
    """
    Derive a content key from a password using Argon2id.
    Returns raw derived key bytes.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")

    return hash_secret_raw(
        secret=password,
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=key_len,
        type=Type.ID,
    )

