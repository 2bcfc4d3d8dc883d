import json
import logging

import pytest
from ldap3.core.exceptions import LDAPResponseTimeoutError, LDAPSocketReceiveError

from alumnic.constants import ErrorKind
from alumnic.engine import PasswordChangeEngine, PasswordChangeOperation, change_password
from alumnic.hashes import compare_ssha
from alumnic.models import OperationState, PasswordPolicy, RetryPolicy
from fakes import BASE_DN, ldap_result, user_entry


@pytest.fixture
def engine(directory, endpoint, settings, retry_policy, sleeps):
    with PasswordChangeEngine(
        endpoint,
        settings=settings,
        retry_policy=retry_policy,
        sleep=sleeps.append,
        connection_factory=directory.factory,
    ) as engine:
        yield engine


def assert_no_secret(result, secret: str) -> None:
    assert secret not in repr(result)
    assert secret not in json.dumps(result.to_dict())


def test_valid_password_is_changed(engine, directory) -> None:
    result = engine.change_password("joao", "abc123")

    assert result.success
    assert result.error_kind is None
    assert result.exit_code == 0
    assert result.distinguished_name == f"uid=joao,ou=people,{BASE_DN}"
    assert result.attempts == 1
    assert result.state is OperationState.SUCCEEDED
    assert directory.calls == ["open", "bind", "search", "modify"]
    (_, changes), = directory.modifications
    assert compare_ssha("abc123", changes["userPassword"][0][1][0])
    assert_no_secret(result, "abc123")


def test_short_password_fails_before_any_directory_call(engine, directory) -> None:
    result = engine.change_password("joao", "ab")

    assert not result.success
    assert result.error_kind is ErrorKind.POLICY_VIOLATION
    assert result.policy_source == "client"
    assert "too short" in result.message
    assert result.exit_code == 2
    assert result.attempts == 0
    assert result.state is OperationState.FAILED
    assert directory.calls == []
    assert directory.connections == []


def test_two_matching_entries_are_ambiguous(engine, directory) -> None:
    directory.entries.append(user_entry("joao", ou="alumni"))

    result = engine.change_password("joao", "abc123")

    assert not result.success
    assert result.error_kind is ErrorKind.AMBIGUOUS_MATCH
    assert result.attempts == 1
    assert directory.calls_of("modify") == 0
    assert_no_secret(result, "abc123")


def test_wrong_bind_credentials_fail_without_retry(directory, bad_endpoint, settings, retry_policy, sleeps) -> None:
    with PasswordChangeEngine(
        bad_endpoint,
        settings=settings,
        retry_policy=retry_policy,
        sleep=sleeps.append,
        connection_factory=directory.factory,
    ) as engine:
        result = engine.change_password("joao", "abc123")

    assert not result.success
    assert result.error_kind is ErrorKind.AUTHENTICATION
    assert result.exit_code == 6
    assert result.attempts == 1
    assert directory.calls_of("bind") == 1
    assert sleeps == []
    assert_no_secret(result, "wrong")


def test_unknown_user_is_not_found(engine, directory) -> None:
    result = engine.change_password("maria", "abc123")
    assert result.error_kind is ErrorKind.NOT_FOUND
    assert result.exit_code == 3
    assert directory.calls_of("modify") == 0


def test_server_side_policy_rejection(engine, directory) -> None:
    directory.modify_outcomes.append(ldap_result(19, "constraintViolation", "Password fails quality checking policy"))
    result = engine.change_password("joao", "abc123")
    assert result.error_kind is ErrorKind.POLICY_VIOLATION
    assert result.policy_source == "server"
    assert result.directory_diagnostic == "Password fails quality checking policy"
    assert result.attempts == 1


def test_transport_failure_is_retried_on_a_fresh_session(engine, directory, sleeps) -> None:
    directory.search_outcomes.append(LDAPSocketReceiveError("connection reset"))

    result = engine.change_password("joao", "abc123")

    assert result.success
    assert result.attempts == 2
    assert sleeps == [0.5]
    assert len(directory.connections) == 2
    assert directory.calls_of("modify") == 1


def test_modify_timeout_is_retried_on_a_fresh_session(engine, directory) -> None:
    directory.modify_outcomes.append(LDAPResponseTimeoutError("no response from server"))

    result = engine.change_password("joao", "abc123")

    assert result.success
    assert result.attempts == 2
    assert len(directory.connections) == 2
    assert directory.connections[0].closed


def test_busy_server_exhausts_retry_budget(engine, directory, sleeps) -> None:
    directory.modify_outcomes.extend([ldap_result(51, "busy")] * 3)

    result = engine.change_password("joao", "abc123")

    assert not result.success
    assert result.error_kind is ErrorKind.DIRECTORY
    assert result.attempts == 3
    assert sleeps == [0.5, 1.0]
    assert directory.calls_of("modify") == 3
    assert result.state is OperationState.FAILED


def test_same_encoded_value_is_sent_on_every_attempt(engine, directory) -> None:
    directory.modify_outcomes.append(ldap_result(52, "unavailable"))
    result = engine.change_password("joao", "abc123")
    assert result.success
    first, second = (changes["userPassword"] for _, changes in directory.modifications)
    assert first == second


def test_sessions_are_reused_between_operations(engine, directory) -> None:
    assert engine.change_password("joao", "abc123").success
    assert engine.change_password("joao", "xyz789").success
    assert directory.calls_of("bind") == 1
    assert engine.pool.sessions_created == 1


def test_password_never_reaches_the_logs(engine, directory, caplog) -> None:
    directory.modify_outcomes.append(ldap_result(51, "busy"))
    with caplog.at_level(logging.DEBUG, logger="alumnic"):
        engine.change_password("joao", "abc123")
        engine.change_password("joao", "ab")
    assert "abc123" not in caplog.text
    assert "{SSHA}" not in caplog.text
    assert "Attempt 1 failed" in caplog.text


def test_undecodable_password_fails_before_any_directory_call(engine, directory) -> None:
    result = engine.change_password("joao", "abc\udc80de1")

    assert not result.success
    assert result.error_kind is ErrorKind.POLICY_VIOLATION
    assert result.policy_source == "client"
    assert result.message == "is not valid UTF-8 text"
    assert result.attempts == 0
    assert directory.calls == []


def test_policy_rejecting_username_as_password(directory, endpoint, settings) -> None:
    result = change_password(
        endpoint,
        "joaozinho",
        "joaozinho",
        settings=settings,
        policy=PasswordPolicy(),
        retry_policy=RetryPolicy(max_attempts=1),
        connection_factory=directory.factory,
    )
    assert result.error_kind is ErrorKind.POLICY_VIOLATION
    assert result.message == "equals the account name"
    assert directory.calls == []


def test_lookup_returns_entry(engine) -> None:
    entry = engine.lookup("joao")
    assert entry.uid == "joao"


def test_operation_states_only_move_forward() -> None:
    operation = PasswordChangeOperation("joao")
    operation.advance(OperationState.VALIDATING)
    operation.advance(OperationState.RESOLVING)
    operation.advance_once(OperationState.RESOLVING, OperationState.MUTATING)
    operation.advance_once(OperationState.RESOLVING, OperationState.MUTATING)
    operation.advance(OperationState.SUCCEEDED)
    assert operation.history == [
        OperationState.IDLE,
        OperationState.VALIDATING,
        OperationState.RESOLVING,
        OperationState.MUTATING,
        OperationState.SUCCEEDED,
    ]
    with pytest.raises(RuntimeError):
        operation.advance(OperationState.FAILED)


def test_operation_cannot_skip_validation() -> None:
    operation = PasswordChangeOperation("joao")
    with pytest.raises(RuntimeError):
        operation.advance(OperationState.MUTATING)
