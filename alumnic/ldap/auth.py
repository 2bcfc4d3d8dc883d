"""Authentication checking functions."""

from typing import Any, Callable, Dict

from ..models import DirectoryEndpoint, DirectorySettings
from .connection import DirectorySession, build_connection
from .errors import AlumnicError, AuthenticationError


def check_auth(
    url: str,
    dn: str,
    password: str,
    settings: DirectorySettings = None,
    connection_factory: Callable[..., Any] = build_connection,
) -> Dict[str, Any]:
    """
    Attempt a simple bind and return the result status.

    Used to test the service identity and to confirm that a user can log in
    with a freshly set password.

    Args:
        url: Directory URL (ldap:// or ldaps://)
        dn: Distinguished name to bind as
        password: Password to bind with
        settings: Transport options (timeout, STARTTLS, TLS validation)
        connection_factory: Builds the underlying connection (tests inject stubs)

    Returns:
        Dictionary containing:
        - success: True if the bind succeeded
        - status: Error kind name, or "Success"
        - result_code: LDAP result code when the directory answered, else None
        - message: Human-readable description
        - diagnostic: Directory diagnostic message (only on failure, may be None)
    """
    endpoint = DirectoryEndpoint(url=url, bind_dn=dn, bind_password=password)
    session = DirectorySession(endpoint, settings or DirectorySettings(), connection_factory)
    try:
        session.connect()
    except AlumnicError as e:
        prefix = "Authentication failed" if isinstance(e, AuthenticationError) else "Could not bind"
        return {
            "success": False,
            "status": e.kind.value,
            "result_code": getattr(e, "result_code", None),
            "message": f"{prefix}: {e.message}",
            "diagnostic": e.diagnostic,
        }
    session.disconnect()
    return {
        "success": True,
        "status": "Success",
        "result_code": 0,
        "message": "Authentication successful",
    }
