"""Data models for credential operations."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from .constants import DEFAULT_BASE_DN, DEFAULT_UID_ATTRIBUTE, EXIT_CODES, ErrorKind


@dataclass(frozen=True)
class DirectoryEndpoint:
    """The privileged identity used for every directory operation."""
    url: str
    bind_dn: str
    bind_password: str = field(repr=False)

    def __post_init__(self):
        if self.scheme not in ("ldap", "ldaps"):
            raise ValueError(f"Unsupported LDAP URL scheme: {self.url!r} (expected ldap:// or ldaps://)")
        if not self.host:
            raise ValueError(f"LDAP URL has no host: {self.url!r}")

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme.lower()

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def use_ssl(self) -> bool:
        return self.scheme == "ldaps"

    @property
    def port(self) -> int:
        return urlsplit(self.url).port or (636 if self.use_ssl else 389)


@dataclass(frozen=True)
class DirectorySettings:
    """Where and how users are looked up, and transport options."""
    base_dn: str = DEFAULT_BASE_DN
    uid_attribute: str = DEFAULT_UID_ATTRIBUTE
    starttls: bool = False
    tls_validate: bool = True
    ca_file: Optional[str] = None
    timeout: float = 10.0  # seconds, per network-facing step
    pool_size: int = 4


class CharacterClass(str, Enum):
    """Character classes a policy may require."""
    DIGIT = "digit"
    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    SPECIAL = "special"

    def matches(self, char: str) -> bool:
        if self is CharacterClass.DIGIT:
            return char.isdigit()
        if self is CharacterClass.LOWERCASE:
            return char.islower()
        if self is CharacterClass.UPPERCASE:
            return char.isupper()
        return not char.isalnum()


@dataclass(frozen=True)
class PasswordPolicy:
    """Acceptable password shape. Read-only once built."""
    version: int = 1
    min_length: int = 6
    max_length: int = 12
    required_classes: FrozenSet[CharacterClass] = frozenset()
    reject_username: bool = True

    def __post_init__(self):
        if self.min_length < 1:
            raise ValueError("min_length must be at least 1")
        if self.max_length < self.min_length:
            raise ValueError(f"max_length ({self.max_length}) is below min_length ({self.min_length})")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # Enum order keeps the output stable
        d["required_classes"] = [c.value for c in CharacterClass if c in self.required_classes]
        return d


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient failures."""
    max_attempts: int = 3
    base_delay: float = 0.5  # seconds before the first retry
    multiplier: float = 2.0
    max_delay: float = 8.0
    max_elapsed: Optional[float] = 30.0  # None disables the elapsed-time bound

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


@dataclass(frozen=True)
class UserEntry:
    """Snapshot of a directory entry as returned by a search."""
    distinguished_name: str
    uid: str
    attributes: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def get(self, name: str) -> Tuple[str, ...]:
        """Attribute values by case-insensitive name."""
        for key, values in self.attributes.items():
            if key.lower() == name.lower():
                return values
        return ()

    @property
    def object_classes(self) -> FrozenSet[str]:
        return frozenset(v.lower() for v in self.get("objectClass"))

    def has_object_class(self, name: str) -> bool:
        return name.lower() in self.object_classes


class PasswordCandidate:
    """
    A plaintext password in transit.

    The value never appears in repr/str output and can be read once.
    """

    __slots__ = ("_plaintext", "_consumed")

    def __init__(self, plaintext: str):
        if not isinstance(plaintext, str):
            raise TypeError("password must be a str")
        self._plaintext = plaintext
        self._consumed = False

    def __repr__(self) -> str:
        return "PasswordCandidate(<hidden>)"

    __str__ = __repr__

    def __len__(self) -> int:
        return len(self._plaintext or "")

    @property
    def consumed(self) -> bool:
        return self._consumed

    def peek(self) -> str:
        """Read the value for local validation without consuming it."""
        if self._consumed:
            raise RuntimeError("password candidate already consumed")
        return self._plaintext

    def consume(self) -> str:
        """Hand the value over for transmission. Works exactly once."""
        value = self.peek()
        self._plaintext = None
        self._consumed = True
        return value


class OperationState(str, Enum):
    """States of a single password-change operation."""
    IDLE = "idle"
    VALIDATING = "validating"
    RESOLVING = "resolving"
    MUTATING = "mutating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (OperationState.SUCCEEDED, OperationState.FAILED)


@dataclass
class OperationResult:
    """Outcome of a credential operation. Never carries the password."""
    success: bool
    error_kind: Optional[ErrorKind] = None
    directory_diagnostic: Optional[str] = None
    message: Optional[str] = None
    policy_source: Optional[str] = None  # "client" or "server" for policy violations
    user_id: Optional[str] = None
    distinguished_name: Optional[str] = None
    attempts: int = 0
    state: OperationState = OperationState.IDLE

    @property
    def exit_code(self) -> int:
        """Process exit code for this outcome."""
        if self.success:
            return 0
        return EXIT_CODES.get(self.error_kind, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "directory_diagnostic": self.directory_diagnostic,
            "message": self.message,
            "policy_source": self.policy_source,
            "user_id": self.user_id,
            "distinguished_name": self.distinguished_name,
            "attempts": self.attempts,
            "state": self.state.value,
        }
