"""Directory sessions and the session pool."""

import logging
import ssl
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List

from ldap3 import NONE, SUBTREE, Connection, Server, Tls
from ldap3.core.exceptions import (
    LDAPCommunicationError,
    LDAPException,
    LDAPPasswordIsMandatoryError,
    LDAPResponseTimeoutError,
    LDAPStartTLSError,
    LDAPUserNameIsMandatoryError,
)

from ..models import DirectoryEndpoint, DirectorySettings
from .errors import (
    AlumnicError,
    AuthenticationError,
    DirectoryConnectionError,
    DirectoryError,
    classify_result,
)

logger = logging.getLogger(__name__)

# Failures after which the socket can no longer be trusted
TRANSPORT_ERRORS = (LDAPCommunicationError, LDAPResponseTimeoutError, LDAPStartTLSError)

# Raised by ldap3 before sending a simple bind with an empty DN or password
MISSING_CREDENTIAL_ERRORS = (LDAPPasswordIsMandatoryError, LDAPUserNameIsMandatoryError)


class SessionState(str, Enum):
    """Lifecycle of a DirectorySession."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    BOUND = "bound"
    ACTIVE = "active"
    BROKEN = "broken"
    CLOSED = "closed"


def build_connection(endpoint: DirectoryEndpoint, settings: DirectorySettings) -> Connection:
    """Build an unopened ldap3 Connection for the endpoint."""
    tls = None
    if endpoint.use_ssl or settings.starttls:
        tls = Tls(
            validate=ssl.CERT_REQUIRED if settings.tls_validate else ssl.CERT_NONE,
            ca_certs_file=settings.ca_file or None,
        )
    server = Server(
        endpoint.host,
        port=endpoint.port,
        use_ssl=endpoint.use_ssl,
        get_info=NONE,
        tls=tls,
        connect_timeout=settings.timeout,
    )
    return Connection(
        server,
        user=endpoint.bind_dn,
        password=endpoint.bind_password,
        raise_exceptions=False,
        receive_timeout=settings.timeout,
    )


class DirectorySession:
    """
    One authenticated channel to the directory.

    A session is serial: it must be used by one operation at a time. Any
    transport error or timeout marks it BROKEN, after which it is only good
    for being discarded.

    Example:
        with DirectorySession(endpoint, settings) as session:
            ok = session.search("(uid=joao)", ["uid"])
    """

    def __init__(
        self,
        endpoint: DirectoryEndpoint,
        settings: DirectorySettings,
        connection_factory: Callable[[DirectoryEndpoint, DirectorySettings], Any] = build_connection,
    ):
        self.endpoint = endpoint
        self.settings = settings
        self._connection_factory = connection_factory
        self.connection = None
        self.state = SessionState.DISCONNECTED

    def __repr__(self) -> str:
        return f"DirectorySession({self.endpoint.url!r}, state={self.state.value})"

    @property
    def broken(self) -> bool:
        return self.state == SessionState.BROKEN

    @property
    def usable(self) -> bool:
        """Bound or active, with a socket that is still open."""
        if self.state not in (SessionState.BOUND, SessionState.ACTIVE):
            return False
        return self.connection is not None and not getattr(self.connection, "closed", False)

    def invalidate(self) -> None:
        """Mark the session as unusable."""
        if self.state != SessionState.CLOSED:
            self.state = SessionState.BROKEN

    def connect(self) -> "DirectorySession":
        """
        Open the transport and bind with the service identity.

        Raises:
            DirectoryConnectionError: transport could not be established
            AuthenticationError: the bind credentials are missing or were rejected
            DirectoryError: transient directory condition during bind
        """
        self.state = SessionState.CONNECTING
        logger.debug("Connecting to %s:%s (ssl=%s)", self.endpoint.host, self.endpoint.port, self.endpoint.use_ssl)
        try:
            self.connection = self._connection_factory(self.endpoint, self.settings)
            self.connection.open()
            if self.settings.starttls and not self.endpoint.use_ssl:
                self.connection.start_tls()
            bound = self.connection.bind()
        except TRANSPORT_ERRORS as e:
            self._abort()
            raise DirectoryConnectionError(f"Could not reach {self.endpoint.host}:{self.endpoint.port}: {e}") from e
        except MISSING_CREDENTIAL_ERRORS as e:
            self._abort()
            raise AuthenticationError(f"bind failed: {e}") from e
        except LDAPException as e:
            self._abort()
            raise DirectoryError(f"bind failed: {e}") from e

        if not bound:
            error = classify_result(self.connection.result, "bind")
            self._abort()
            raise error or DirectoryError("bind failed")

        self.state = SessionState.BOUND
        logger.debug("Bound to %s as %s", self.endpoint.host, self.endpoint.bind_dn)
        return self

    def _abort(self) -> None:
        self.state = SessionState.BROKEN
        self._unbind_quietly()

    def _unbind_quietly(self) -> None:
        if self.connection is None:
            return
        try:
            self.connection.unbind()
        except LDAPException as e:
            logger.debug("Ignoring error while closing session: %s", e)
        self.connection = None

    def disconnect(self) -> None:
        """Close the connection. Broken sessions stay BROKEN."""
        self._unbind_quietly()
        if self.state != SessionState.BROKEN:
            self.state = SessionState.CLOSED

    def __enter__(self) -> "DirectorySession":
        """Context manager entry."""
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Context manager exit."""
        self.disconnect()
        return False

    def _call(self, operation: str, method: str, *args, **kwargs) -> bool:
        """Run one request, translating transport failures and marking the session broken."""
        if not self.usable:
            raise DirectoryConnectionError(f"Session is not usable ({self.state.value})")
        self.state = SessionState.ACTIVE
        try:
            return getattr(self.connection, method)(*args, **kwargs)
        except TRANSPORT_ERRORS as e:
            self.invalidate()
            raise DirectoryConnectionError(f"{operation} failed: {e}") from e
        except LDAPException as e:
            self.invalidate()
            raise DirectoryError(f"{operation} failed: {e}") from e

    def search(
        self,
        search_filter: str,
        attributes: List[str],
        search_base: str = None,
        scope=SUBTREE,
        size_limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Perform an LDAP search.

        Args:
            search_filter: LDAP filter string (already escaped)
            attributes: List of attributes to retrieve
            search_base: Override the search base (defaults to settings.base_dn)
            scope: Search scope (SUBTREE, BASE, LEVEL)
            size_limit: Maximum entries the server should return (0 = no limit)

        Returns:
            The ``searchResEntry`` items of the response, as ldap3 dicts
            (``dn``, ``attributes``). The ldap3 result dict is left in
            ``self.result`` for callers that need the result code.
        """
        self._call(
            "search",
            "search",
            search_base=search_base or self.settings.base_dn,
            search_filter=search_filter,
            search_scope=scope,
            attributes=attributes,
            size_limit=size_limit,
        )
        return [item for item in (self.connection.response or []) if item.get("type") == "searchResEntry"]

    def modify(self, dn: str, changes: Dict[str, Any]) -> bool:
        """Send a modify request. Returns the ldap3 success flag."""
        return self._call("modify", "modify", dn, changes)

    @property
    def result(self) -> Dict[str, Any]:
        """The ldap3 result dict of the last request."""
        return dict(self.connection.result or {}) if self.connection is not None else {}


class SessionPool:
    """
    Hands out bound DirectorySessions and takes them back.

    Idle sessions are reused up to ``settings.pool_size``. A session that is
    broken when released is closed and dropped, so the next acquire always
    binds a fresh one.

    Example:
        pool = SessionPool(endpoint, settings)
        with pool.checkout() as session:
            entry = resolve_user(session, "joao", settings)
    """

    def __init__(
        self,
        endpoint: DirectoryEndpoint,
        settings: DirectorySettings = None,
        connection_factory: Callable[[DirectoryEndpoint, DirectorySettings], Any] = build_connection,
    ):
        self.endpoint = endpoint
        self.settings = settings or DirectorySettings()
        self._connection_factory = connection_factory
        self._idle: List[DirectorySession] = []
        self._lock = threading.Lock()
        self._closed = False
        self.sessions_created = 0

    def _new_session(self) -> DirectorySession:
        session = DirectorySession(self.endpoint, self.settings, self._connection_factory)
        session.connect()
        with self._lock:
            self.sessions_created += 1
        return session

    def acquire(self) -> DirectorySession:
        """
        Check out a bound session, reusing an idle one when possible.

        Raises:
            DirectoryConnectionError, AuthenticationError, DirectoryError
        """
        if self._closed:
            raise RuntimeError("Session pool is closed")
        while True:
            with self._lock:
                session = self._idle.pop() if self._idle else None
            if session is None:
                return self._new_session()
            if session.usable:
                return session
            logger.debug("Dropping stale idle session %r", session)
            session.disconnect()

    def release(self, session: DirectorySession) -> None:
        """Return a session to the pool, or close it if it is broken or surplus."""
        if not session.usable:
            logger.info("Discarding %s session to %s", session.state.value, self.endpoint.host)
            session.disconnect()
            return
        session.state = SessionState.BOUND
        with self._lock:
            if not self._closed and len(self._idle) < self.settings.pool_size:
                self._idle.append(session)
                return
        session.disconnect()

    @contextmanager
    def checkout(self) -> Iterator[DirectorySession]:
        """
        Scoped acquisition: the session is released on every exit path.

        Errors from the credential core leave the decision to the session
        itself (transport errors already marked it broken). Anything else is
        unexpected, so the session is invalidated before release.
        """
        session = self.acquire()
        try:
            yield session
        except AlumnicError:
            raise
        except BaseException:
            session.invalidate()
            raise
        finally:
            self.release(session)

    @property
    def idle_count(self) -> int:
        with self._lock:
            return len(self._idle)

    def close(self) -> None:
        """Unbind every idle session. Checked-out sessions close on release."""
        with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []
        for session in idle:
            session.disconnect()

    def __enter__(self) -> "SessionPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
