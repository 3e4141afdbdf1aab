from functools import lru_cache

import bcrypt

from config import get_settings

# bcrypt only looks at the first 72 bytes of a secret
_BCRYPT_MAX_BYTES = 72


def _secret_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(_secret_bytes(password), bcrypt.gensalt(rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_secret_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _decoy_hash() -> str:
    return hash_password("decoy-password-for-unknown-accounts")


def burn_verification(password: str) -> None:
    """Spend the same hashing effort as a real check when no account matched."""
    verify_password(password, _decoy_hash())
