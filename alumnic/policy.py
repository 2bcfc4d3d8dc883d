"""Password policy validation utilities."""

from typing import Optional, Tuple, Union

from .ldap.errors import PolicyViolation
from .models import CharacterClass, PasswordCandidate, PasswordPolicy

CLASS_REASONS = {
    CharacterClass.DIGIT: "needs at least one digit",
    CharacterClass.LOWERCASE: "needs at least one lowercase letter",
    CharacterClass.UPPERCASE: "needs at least one uppercase letter",
    CharacterClass.SPECIAL: "needs at least one special character",
}


def password_meets_policy(
    password: str,
    policy: PasswordPolicy,
    username: str = None
) -> Tuple[bool, Optional[str]]:
    """
    Check if a password meets the policy requirements.

    Checks run in a fixed order and the first failure is reported:
    encodability as UTF-8, length bounds, required character classes, then
    equality with the account name.

    Args:
        password: The password to check
        policy: The password policy to check against
        username: Optional account name the password must not equal

    Returns:
        Tuple of (meets_policy: bool, reason: str or None)
    """
    # Lone surrogates (e.g. undecodable stdin bytes) cannot be hashed or sent
    try:
        password.encode("utf-8")
    except UnicodeEncodeError:
        return False, "is not valid UTF-8 text"

    if len(password) < policy.min_length:
        return False, f"too short (minimum {policy.min_length} characters)"
    if len(password) > policy.max_length:
        return False, f"too long (maximum {policy.max_length} characters)"

    # Enum order, not set order, so the reported class is deterministic
    for char_class in CharacterClass:
        if char_class in policy.required_classes and not any(char_class.matches(c) for c in password):
            return False, CLASS_REASONS[char_class]

    if policy.reject_username and username and password.casefold() == username.strip().casefold():
        return False, "equals the account name"

    return True, None


def validate_password(
    candidate: Union[PasswordCandidate, str],
    policy: PasswordPolicy,
    username: str = None,
) -> None:
    """
    Validate a candidate password, raising on the first violation.

    Does not consume the candidate.

    Raises:
        PolicyViolation: with ``source="client"``
    """
    password = candidate.peek() if isinstance(candidate, PasswordCandidate) else candidate
    ok, reason = password_meets_policy(password, policy, username)
    if not ok:
        raise PolicyViolation(reason, source="client")
