"""Password storage encodings for LDAP attributes."""

import base64
import hashlib
import hmac
import os

from Crypto.Hash import MD4

SSHA_PREFIX = "{SSHA}"
SSHA_SALT_LENGTH = 4
SHA1_DIGEST_LENGTH = 20


def hash_nt(password: str) -> str:
    """
    Compute the NT hash stored in ``sambaNTPassword``.

    Example:
        >>> hash_nt("12345678")
        '259745CB123A52AA2E693AAACCA2DB52'
    """
    digest = MD4.new(password.encode("utf-16-le")).digest()
    return digest.hex().upper()


def _ssha_with_salt(password: str, salt: bytes) -> str:
    digest = hashlib.sha1(password.encode("utf-8") + salt).digest()
    return SSHA_PREFIX + base64.b64encode(digest + salt).decode("ascii")


def hash_ssha(password: str) -> str:
    """
    Compute a salted SHA-1 ``userPassword`` value (``{SSHA}`` scheme).

    A fresh random 4-byte salt is drawn for every call, so hashing the same
    password twice yields different values.
    """
    return _ssha_with_salt(password, os.urandom(SSHA_SALT_LENGTH))


def compare_ssha(password: str, hashed: str) -> bool:
    """
    Check a password against an ``{SSHA}`` value.

    Raises:
        ValueError: if ``hashed`` is not a well-formed SSHA value
    """
    if not hashed.startswith(SSHA_PREFIX):
        raise ValueError("not an {SSHA} value")
    try:
        raw = base64.b64decode(hashed[len(SSHA_PREFIX):], validate=True)
    except ValueError as e:
        raise ValueError(f"invalid base64 in SSHA value: {e}") from e
    if len(raw) <= SHA1_DIGEST_LENGTH:
        raise ValueError("SSHA value has no salt")

    salt = raw[SHA1_DIGEST_LENGTH:]
    return hmac.compare_digest(_ssha_with_salt(password, salt), hashed)
