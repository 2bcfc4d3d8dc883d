import pytest

from alumnic.ldap import PolicyViolation
from alumnic.models import CharacterClass, PasswordCandidate, PasswordPolicy
from alumnic.policy import password_meets_policy, validate_password


def test_default_policy_accepts_six_to_twelve_characters() -> None:
    policy = PasswordPolicy()
    assert password_meets_policy("abc123", policy) == (True, None)
    assert password_meets_policy("abcdefghijkl", policy) == (True, None)


def test_too_short_and_too_long_are_reported_with_bounds() -> None:
    policy = PasswordPolicy(min_length=6, max_length=12)
    assert password_meets_policy("ab", policy) == (False, "too short (minimum 6 characters)")
    assert password_meets_policy("a" * 13, policy) == (False, "too long (maximum 12 characters)")


def test_length_is_checked_before_character_classes() -> None:
    policy = PasswordPolicy(required_classes=frozenset({CharacterClass.DIGIT}))
    ok, reason = password_meets_policy("ab", policy)
    assert not ok
    assert reason.startswith("too short")


def test_missing_classes_reported_in_fixed_order() -> None:
    policy = PasswordPolicy(
        required_classes=frozenset({CharacterClass.SPECIAL, CharacterClass.UPPERCASE, CharacterClass.DIGIT}),
    )
    assert password_meets_policy("abcdefg", policy) == (False, "needs at least one digit")
    assert password_meets_policy("abcdef1", policy) == (False, "needs at least one uppercase letter")
    assert password_meets_policy("Abcdef1", policy) == (False, "needs at least one special character")
    assert password_meets_policy("Abcde!1", policy) == (True, None)


def test_password_equal_to_username_is_rejected_case_insensitively() -> None:
    policy = PasswordPolicy(min_length=4)
    assert password_meets_policy("JOAO", policy, "joao") == (False, "equals the account name")
    assert password_meets_policy("joao12", policy, "joao") == (True, None)


def test_username_check_can_be_disabled() -> None:
    policy = PasswordPolicy(min_length=4, reject_username=False)
    assert password_meets_policy("joao", policy, "joao") == (True, None)


def test_policy_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError):
        PasswordPolicy(min_length=8, max_length=4)
    with pytest.raises(ValueError):
        PasswordPolicy(min_length=0)


def test_validate_password_raises_client_side_violation_without_consuming() -> None:
    candidate = PasswordCandidate("ab")
    with pytest.raises(PolicyViolation) as excinfo:
        validate_password(candidate, PasswordPolicy())
    assert excinfo.value.source == "client"
    assert excinfo.value.reason == "too short (minimum 6 characters)"
    assert not candidate.consumed


def test_validate_password_accepts_plain_strings() -> None:
    validate_password("abc123", PasswordPolicy(), "joao")


def test_policy_to_dict_lists_classes_in_stable_order() -> None:
    policy = PasswordPolicy(version=2, required_classes=frozenset({CharacterClass.SPECIAL, CharacterClass.DIGIT}))
    assert policy.to_dict() == {
        "version": 2,
        "min_length": 6,
        "max_length": 12,
        "required_classes": ["digit", "special"],
        "reject_username": True,
    }


def test_text_that_cannot_be_encoded_is_rejected_first() -> None:
    policy = PasswordPolicy()
    assert password_meets_policy("abc\udc80de1", policy) == (False, "is not valid UTF-8 text")
    assert password_meets_policy("\udc80", policy) == (False, "is not valid UTF-8 text")
    assert password_meets_policy("sênha1", policy) == (True, None)
