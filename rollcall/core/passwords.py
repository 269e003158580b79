# rollcall/core/passwords.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# argon2 for new hashes; bcrypt variants still verify (and get upgraded on login)
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt_sha256", "bcrypt"],
    deprecated="auto",
    argon2__time_cost=2,
    argon2__memory_cost=19456,
    argon2__parallelism=1,
)

# verified against when the email is unknown, so both paths cost the same
_DUMMY_HASH = pwd_context.hash("rollcall-no-such-user")


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def check_password(plain: str, stored_hash: Optional[str]) -> Tuple[bool, Optional[str]]:
    """(matches, replacement hash or None).

    A stored value passlib cannot identify counts as a mismatch instead of an error.
    """
    if not stored_hash:
        pwd_context.verify(plain, _DUMMY_HASH)
        return False, None
    try:
        ok, new_hash = pwd_context.verify_and_update(plain, stored_hash)
    except ValueError:
        logger.warning("unrecognised password hash format; treating as mismatch")
        return False, None
    return ok, new_hash
