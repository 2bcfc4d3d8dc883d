import pytest

from alumnic.constants import ErrorKind
from alumnic.ldap.errors import (
    AuthenticationError,
    DirectoryConnectionError,
    DirectoryError,
    EntryNotFound,
    PolicyViolation,
    StaleEntry,
    classify_result,
    is_transient,
    result_name,
)
from fakes import ldap_result


def test_success_is_not_an_error() -> None:
    assert classify_result(ldap_result(0, "success"), "modify") is None


def test_invalid_bind_credentials_become_authentication_error() -> None:
    error = classify_result(ldap_result(49, "invalidCredentials", "data 52e"), "bind")
    assert isinstance(error, AuthenticationError)
    assert error.kind is ErrorKind.AUTHENTICATION
    assert error.result_code == 49
    assert error.diagnostic == "data 52e"
    assert not is_transient(error)


def test_modify_constraint_violation_is_a_server_policy_violation() -> None:
    error = classify_result(ldap_result(19, "constraintViolation", "Password fails quality checking policy"), "modify")
    assert isinstance(error, PolicyViolation)
    assert error.source == "server"
    assert error.diagnostic == "Password fails quality checking policy"


def test_modify_no_such_object_is_stale_entry() -> None:
    error = classify_result(ldap_result(32, "noSuchObject"), "modify")
    assert isinstance(error, StaleEntry)
    assert error.kind is ErrorKind.STALE_ENTRY


@pytest.mark.parametrize("code", [3, 11, 51, 52])
def test_busy_and_unavailable_codes_are_transient(code: int) -> None:
    for operation in ("bind", "search", "modify"):
        error = classify_result(ldap_result(code, result_name(code)), operation)
        assert isinstance(error, DirectoryError)
        assert error.transient
        assert is_transient(error)


def test_other_codes_are_permanent_directory_errors() -> None:
    error = classify_result(ldap_result(50, "insufficientAccessRights"), "modify")
    assert isinstance(error, DirectoryError)
    assert error.result_code == 50
    assert not is_transient(error)
    assert error.message == "modify failed: insufficientAccessRights"


def test_is_transient_only_for_connection_and_transient_directory_errors() -> None:
    assert is_transient(DirectoryConnectionError("refused"))
    assert not is_transient(EntryNotFound("nope"))
    assert not is_transient(PolicyViolation("too short"))
    assert not is_transient(ValueError("unrelated"))


def test_result_name_falls_back_for_unknown_codes() -> None:
    assert result_name(19) == "constraintViolation"
    assert result_name(123) == "resultCode123"
    assert result_name(None) == "unknown"
