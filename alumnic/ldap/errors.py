"""Error taxonomy and LDAP result code mappings."""

from typing import Any, Dict, Optional

from ..constants import ErrorKind


# LDAP result codes (RFC 4511 section 4.1.9) that matter for credential changes
# Reference: https://ldap.com/ldap-result-code-reference/
LDAP_RESULT_CODES = {
    0: "success",
    1: "operationsError",
    2: "protocolError",
    3: "timeLimitExceeded",
    4: "sizeLimitExceeded",
    11: "adminLimitExceeded",
    16: "noSuchAttribute",
    19: "constraintViolation",          # password quality / history checks
    21: "invalidAttributeSyntax",
    32: "noSuchObject",                 # entry vanished or was renamed
    34: "invalidDNSyntax",
    48: "inappropriateAuthentication",
    49: "invalidCredentials",
    50: "insufficientAccessRights",
    51: "busy",
    52: "unavailable",
    53: "unwillingToPerform",
    80: "other",
}

RESULT_SUCCESS = 0
RESULT_SIZE_LIMIT_EXCEEDED = 4
RESULT_CONSTRAINT_VIOLATION = 19
RESULT_NO_SUCH_OBJECT = 32
RESULT_INVALID_CREDENTIALS = 49

# Codes where the same request may succeed if simply sent again later
TRANSIENT_RESULT_CODES = frozenset({3, 11, 51, 52})


class AlumnicError(Exception):
    """Base class for every error raised by the credential core."""
    kind: ErrorKind = ErrorKind.DIRECTORY
    retryable: bool = False

    def __init__(self, message: str, diagnostic: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic or None


class DirectoryConnectionError(AlumnicError):
    """The transport to the directory failed or timed out."""
    kind = ErrorKind.CONNECTION
    retryable = True


class AuthenticationError(AlumnicError):
    """The bind credentials were rejected by the directory."""
    kind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str, result_code: Optional[int] = None, diagnostic: Optional[str] = None):
        super().__init__(message, diagnostic)
        self.result_code = result_code


class EntryNotFound(AlumnicError):
    """No entry matches the user identifier."""
    kind = ErrorKind.NOT_FOUND


class AmbiguousMatch(AlumnicError):
    """More than one entry matches the user identifier."""
    kind = ErrorKind.AMBIGUOUS_MATCH

    def __init__(self, message: str, matches: int = 2):
        super().__init__(message)
        self.matches = matches


class PolicyViolation(AlumnicError):
    """
    A candidate password was rejected.

    ``source`` is ``"client"`` when the local policy rejected it and
    ``"server"`` when the directory rejected it under its own rules.
    """
    kind = ErrorKind.POLICY_VIOLATION

    def __init__(self, reason: str, source: str = "client", diagnostic: Optional[str] = None):
        super().__init__(reason, diagnostic)
        self.reason = reason
        self.source = source


class StaleEntry(AlumnicError):
    """The resolved entry no longer exists at its distinguished name."""
    kind = ErrorKind.STALE_ENTRY


class DirectoryError(AlumnicError):
    """A protocol-level failure reported by the directory."""
    kind = ErrorKind.DIRECTORY

    def __init__(
        self,
        message: str,
        result_code: Optional[int] = None,
        diagnostic: Optional[str] = None,
        transient: bool = False,
    ):
        super().__init__(message, diagnostic)
        self.result_code = result_code
        self.transient = transient

    @property
    def retryable(self) -> bool:
        return self.transient


def is_transient(error: BaseException) -> bool:
    """Check whether an error may go away if the operation is attempted again."""
    return isinstance(error, AlumnicError) and error.retryable


def result_name(code: Optional[int]) -> str:
    """Human-readable name for an LDAP result code."""
    if code is None:
        return "unknown"
    return LDAP_RESULT_CODES.get(code, f"resultCode{code}")


def classify_result(result: Optional[Dict[str, Any]], operation: str) -> Optional[AlumnicError]:
    """
    Map an ldap3 result dictionary to the error it represents.

    Args:
        result: The ``connection.result`` dict (keys ``result``, ``description``, ``message``)
        operation: Operation name used in the error message ("bind", "search", "modify")

    Returns:
        None for success, otherwise the exception instance to raise
    """
    result = result or {}
    code = result.get("result")
    diagnostic = (result.get("message") or "").strip() or None

    if code == RESULT_SUCCESS:
        return None

    name = result.get("description") or result_name(code)
    message = f"{operation} failed: {name}"

    if code in TRANSIENT_RESULT_CODES:
        return DirectoryError(message, result_code=code, diagnostic=diagnostic, transient=True)

    if operation == "bind":
        return AuthenticationError(message, result_code=code, diagnostic=diagnostic)

    if operation == "modify":
        if code == RESULT_NO_SUCH_OBJECT:
            return StaleEntry(message, diagnostic=diagnostic)
        if code == RESULT_CONSTRAINT_VIOLATION:
            return PolicyViolation("rejected by directory password policy", source="server", diagnostic=diagnostic)

    return DirectoryError(message, result_code=code, diagnostic=diagnostic)
