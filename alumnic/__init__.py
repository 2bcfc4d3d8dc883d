"""
alumnic - Credential management for an LDAP user directory

Changes user passwords on an LDAP directory through a privileged service
identity: validate the candidate locally, resolve the account to exactly one
entry, and replace its password attributes in a single modify request.
"""

__version__ = "1.0.0"

from .constants import Colors, ErrorKind, EXIT_CODES, DEFAULT_CONFIG_PATH
from .models import (
    CharacterClass,
    DirectoryEndpoint,
    DirectorySettings,
    OperationResult,
    OperationState,
    PasswordCandidate,
    PasswordPolicy,
    RetryPolicy,
    UserEntry,
)
from .ldap import (
    AlumnicError,
    AmbiguousMatch,
    AuthenticationError,
    DirectoryConnectionError,
    DirectoryError,
    EntryNotFound,
    PolicyViolation,
    StaleEntry,
    DirectorySession,
    SessionPool,
    CredentialMutator,
    resolve_user,
    check_auth,
)
from .hashes import hash_nt, hash_ssha, compare_ssha
from .policy import password_meets_policy, validate_password
from .retry import RetryController
from .engine import PasswordChangeEngine, PasswordChangeOperation, change_password
from .config import load_config
from .cli import main

__all__ = [
    # Version
    "__version__",
    # Constants
    "Colors",
    "ErrorKind",
    "EXIT_CODES",
    "DEFAULT_CONFIG_PATH",
    # Models
    "CharacterClass",
    "DirectoryEndpoint",
    "DirectorySettings",
    "OperationResult",
    "OperationState",
    "PasswordCandidate",
    "PasswordPolicy",
    "RetryPolicy",
    "UserEntry",
    # Errors
    "AlumnicError",
    "AmbiguousMatch",
    "AuthenticationError",
    "DirectoryConnectionError",
    "DirectoryError",
    "EntryNotFound",
    "PolicyViolation",
    "StaleEntry",
    # LDAP
    "DirectorySession",
    "SessionPool",
    "CredentialMutator",
    "resolve_user",
    "check_auth",
    # Hashes
    "hash_nt",
    "hash_ssha",
    "compare_ssha",
    # Policy
    "password_meets_policy",
    "validate_password",
    # Engine
    "RetryController",
    "PasswordChangeEngine",
    "PasswordChangeOperation",
    "change_password",
    # Config
    "load_config",
    # CLI
    "main",
]
