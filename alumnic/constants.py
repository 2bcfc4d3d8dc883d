"""Constants used throughout the application."""

from enum import Enum
from pathlib import Path


class Colors:
    """ANSI color codes for terminal output."""
    NC = '\033[0m'
    RED = '\033[0;31m'
    BLUE = '\033[0;34m'
    GREEN = '\033[0;32m'
    LBLUE = '\033[1;34m'
    ORANGE = '\033[0;33m'

    @classmethod
    def disable(cls):
        """Disable colors (for non-TTY output)."""
        cls.NC = cls.RED = cls.BLUE = cls.GREEN = cls.LBLUE = cls.ORANGE = ''


class ErrorKind(str, Enum):
    """Error kinds surfaced to callers in an OperationResult."""
    CONNECTION = "ConnectionError"
    AUTHENTICATION = "AuthenticationError"
    NOT_FOUND = "NotFound"
    AMBIGUOUS_MATCH = "AmbiguousMatch"
    POLICY_VIOLATION = "PolicyViolation"
    STALE_ENTRY = "StaleEntry"
    DIRECTORY = "DirectoryError"


# Process exit codes per error kind (0 = success, 1 = usage or configuration error)
EXIT_CODES = {
    ErrorKind.POLICY_VIOLATION: 2,
    ErrorKind.NOT_FOUND: 3,
    ErrorKind.AMBIGUOUS_MATCH: 4,
    ErrorKind.STALE_ENTRY: 5,
    ErrorKind.AUTHENTICATION: 6,
    ErrorKind.CONNECTION: 7,
    ErrorKind.DIRECTORY: 8,
}

# Directory layout of the institute's LDAP
DEFAULT_BASE_DN = "dc=dcc,dc=ufrj,dc=br"
DEFAULT_UID_ATTRIBUTE = "uid"

# Password storage schemes understood by the mutator
SCHEME_SSHA = "ssha"            # hashed client-side as {SSHA}
SCHEME_CLEARTEXT = "cleartext"  # directory hashes on write (e.g. ppolicy_hash_cleartext)
PASSWORD_SCHEMES = (SCHEME_SSHA, SCHEME_CLEARTEXT)

# Object classes whose extra password attributes are kept in sync
SAMBA_OBJECT_CLASS = "sambaSamAccount"
SHADOW_OBJECT_CLASS = "shadowAccount"

# Environment variables that override the config file
ENV_LDAP_URL = "LDAP_URL"
ENV_LDAP_BIND_DN = "LDAP_BIND_DN"
ENV_LDAP_BIND_PW = "LDAP_BIND_PW"

# Default config file location
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "alumnic" / "config.ini"
