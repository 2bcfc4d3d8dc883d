from ldap3.core.exceptions import LDAPCommunicationError

from alumnic.ldap import check_auth
from fakes import ADMIN_DN, ADMIN_PW, LDAP_URL


def test_successful_bind(directory) -> None:
    result = check_auth(LDAP_URL, ADMIN_DN, ADMIN_PW, connection_factory=directory.factory)
    assert result == {
        "success": True,
        "status": "Success",
        "result_code": 0,
        "message": "Authentication successful",
    }
    assert directory.calls == ["open", "bind", "unbind"]


def test_rejected_bind(directory) -> None:
    result = check_auth(LDAP_URL, ADMIN_DN, "wrong", connection_factory=directory.factory)
    assert not result["success"]
    assert result["status"] == "AuthenticationError"
    assert result["result_code"] == 49
    assert result["message"].startswith("Authentication failed")
    assert "data 52e" in result["diagnostic"]


def test_unreachable_server(directory) -> None:
    directory.open_failures.append(LDAPCommunicationError("connection refused"))
    result = check_auth(LDAP_URL, ADMIN_DN, ADMIN_PW, connection_factory=directory.factory)
    assert not result["success"]
    assert result["status"] == "ConnectionError"
    assert result["result_code"] is None
    assert result["message"].startswith("Could not bind")


def test_empty_password_is_an_authentication_failure(directory) -> None:
    result = check_auth(LDAP_URL, ADMIN_DN, "", connection_factory=directory.factory)
    assert not result["success"]
    assert result["status"] == "AuthenticationError"
    assert result["message"].startswith("Authentication failed")
