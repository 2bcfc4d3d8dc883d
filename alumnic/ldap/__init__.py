"""LDAP utilities for directory credential management."""

from .errors import (
    LDAP_RESULT_CODES,
    TRANSIENT_RESULT_CODES,
    AlumnicError,
    AmbiguousMatch,
    AuthenticationError,
    DirectoryConnectionError,
    DirectoryError,
    EntryNotFound,
    PolicyViolation,
    StaleEntry,
    classify_result,
    is_transient,
)
from .connection import DirectorySession, SessionPool, SessionState, build_connection
from .resolver import resolve_user
from .mutator import CredentialMutator, EncodedPassword
from .auth import check_auth

__all__ = [
    "LDAP_RESULT_CODES",
    "TRANSIENT_RESULT_CODES",
    "AlumnicError",
    "AmbiguousMatch",
    "AuthenticationError",
    "DirectoryConnectionError",
    "DirectoryError",
    "EntryNotFound",
    "PolicyViolation",
    "StaleEntry",
    "classify_result",
    "is_transient",
    "DirectorySession",
    "SessionPool",
    "SessionState",
    "build_connection",
    "resolve_user",
    "CredentialMutator",
    "EncodedPassword",
    "check_auth",
]
