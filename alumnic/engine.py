"""Password change engine: validate, resolve, mutate."""

import logging
import time
from typing import Any, Callable, List, Optional

from .ldap import (
    AlumnicError,
    CredentialMutator,
    DirectorySession,
    PolicyViolation,
    SessionPool,
    build_connection,
    resolve_user,
)
from .ldap.mutator import EncodedPassword
from .models import (
    DirectoryEndpoint,
    DirectorySettings,
    OperationResult,
    OperationState,
    PasswordCandidate,
    PasswordPolicy,
    RetryPolicy,
    UserEntry,
)
from .policy import validate_password
from .retry import RetryController

logger = logging.getLogger(__name__)


class PasswordChangeOperation:
    """
    State machine for one password change.

    IDLE -> VALIDATING -> RESOLVING -> MUTATING -> SUCCEEDED, and any
    non-terminal state may go to FAILED. States only move forward, and a
    terminal state is final. Retry attempts repeat the directory steps
    without moving the state backwards.
    """

    TRANSITIONS = {
        OperationState.IDLE: {OperationState.VALIDATING},
        OperationState.VALIDATING: {OperationState.RESOLVING, OperationState.FAILED},
        OperationState.RESOLVING: {OperationState.MUTATING, OperationState.FAILED},
        OperationState.MUTATING: {OperationState.SUCCEEDED, OperationState.FAILED},
    }

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.state = OperationState.IDLE
        self.history: List[OperationState] = [OperationState.IDLE]

    def advance(self, new_state: OperationState) -> None:
        if new_state not in self.TRANSITIONS.get(self.state, ()):
            raise RuntimeError(f"Invalid transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def advance_once(self, from_state: OperationState, to_state: OperationState) -> None:
        """Advance only if still in ``from_state`` (later retry attempts skip it)."""
        if self.state == from_state:
            self.advance(to_state)


class PasswordChangeEngine:
    """
    Runs password changes against one directory endpoint.

    Safe to share between threads: each call runs its own operation and
    checks out its own session; only the policy and the pool are shared.

    Example:
        with PasswordChangeEngine(endpoint, settings, policy) as engine:
            result = engine.change_password("joao", "abc123")
            if not result.success:
                print(result.error_kind, result.message)
    """

    def __init__(
        self,
        endpoint: DirectoryEndpoint,
        settings: DirectorySettings = None,
        policy: PasswordPolicy = None,
        retry_policy: RetryPolicy = None,
        mutator: CredentialMutator = None,
        pool: SessionPool = None,
        sleep: Callable[[float], None] = time.sleep,
        connection_factory: Callable[..., Any] = build_connection,
    ):
        self.endpoint = endpoint
        self.settings = settings or DirectorySettings()
        self.policy = policy or PasswordPolicy()
        self.retry_policy = retry_policy or RetryPolicy()
        self.mutator = mutator or CredentialMutator()
        self.pool = pool or SessionPool(endpoint, self.settings, connection_factory)
        self._sleep = sleep

    def _retry_controller(self) -> RetryController:
        # One per call so attempt counts never mix between threads
        return RetryController(self.retry_policy, sleep=self._sleep)

    def acquire_session(self) -> DirectorySession:
        """
        Bind a session, retrying transient failures.

        The caller owns the session and must hand it back with
        ``engine.pool.release(session)``.

        Raises:
            AuthenticationError: on the first rejected bind, never retried
            DirectoryConnectionError: when every attempt failed to connect
        """
        return self._retry_controller().call(self.pool.acquire)

    def lookup(self, user_id: str) -> UserEntry:
        """Resolve ``user_id`` to its entry, retrying transient failures."""
        def attempt() -> UserEntry:
            with self.pool.checkout() as session:
                return resolve_user(session, user_id, self.settings)

        return self._retry_controller().call(attempt)

    def change_password(self, user_id: str, password: str) -> OperationResult:
        """
        Change the password of ``user_id``.

        The candidate is checked against the local policy before any network
        call. Each attempt checks out one session for the resolve + modify
        pair; transient failures are retried with a fresh session.

        Returns:
            OperationResult; never contains the password
        """
        operation = PasswordChangeOperation(user_id)
        candidate = PasswordCandidate(password)
        retry = self._retry_controller()
        entry: Optional[UserEntry] = None

        logger.info("Password change requested for %r", user_id)
        try:
            operation.advance(OperationState.VALIDATING)
            validate_password(candidate, self.policy, user_id)

            operation.advance(OperationState.RESOLVING)
            encoded: EncodedPassword = self.mutator.encode(candidate)

            def attempt() -> UserEntry:
                with self.pool.checkout() as session:
                    resolved = resolve_user(session, user_id, self.settings)
                    operation.advance_once(OperationState.RESOLVING, OperationState.MUTATING)
                    self.mutator.change_password(session, resolved, encoded)
                    return resolved

            entry = retry.call(attempt)
        except AlumnicError as e:
            operation.advance(OperationState.FAILED)
            logger.warning(
                "Password change for %r failed after %d attempt(s): %s: %s",
                user_id, retry.attempts, e.kind.value, e.message,
            )
            return OperationResult(
                success=False,
                error_kind=e.kind,
                directory_diagnostic=e.diagnostic,
                message=e.message,
                policy_source=e.source if isinstance(e, PolicyViolation) else None,
                user_id=user_id,
                attempts=retry.attempts,
                state=operation.state,
            )
        except BaseException:
            if not operation.state.terminal:
                operation.advance(OperationState.FAILED)
            raise

        operation.advance(OperationState.SUCCEEDED)
        logger.info("Password changed for %r (%s)", user_id, entry.distinguished_name)
        return OperationResult(
            success=True,
            user_id=user_id,
            distinguished_name=entry.distinguished_name,
            attempts=retry.attempts,
            state=operation.state,
        )

    def close(self) -> None:
        self.pool.close()

    def __enter__(self) -> "PasswordChangeEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


def change_password(
    endpoint: DirectoryEndpoint,
    user_id: str,
    password: str,
    settings: DirectorySettings = None,
    policy: PasswordPolicy = None,
    retry_policy: RetryPolicy = None,
    mutator: CredentialMutator = None,
    connection_factory: Callable[..., Any] = build_connection,
) -> OperationResult:
    """Change the password for user ``user_id`` to ``password`` on ``endpoint``."""
    with PasswordChangeEngine(
        endpoint,
        settings=settings,
        policy=policy,
        retry_policy=retry_policy,
        mutator=mutator,
        connection_factory=connection_factory,
    ) as engine:
        return engine.change_password(user_id, password)
