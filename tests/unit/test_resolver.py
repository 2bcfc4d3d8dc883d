import pytest

from alumnic.ldap import AmbiguousMatch, DirectoryError, DirectorySession, EntryNotFound, resolve_user
from alumnic.ldap.resolver import build_user_filter, entry_from_response
from fakes import BASE_DN, ldap_result, user_entry


@pytest.fixture
def session(directory, endpoint, settings):
    with DirectorySession(endpoint, settings, directory.factory) as session:
        yield session


def test_resolves_single_entry(session, settings, directory) -> None:
    entry = resolve_user(session, "joao", settings)
    assert entry.distinguished_name == f"uid=joao,ou=people,{BASE_DN}"
    assert entry.uid == "joao"
    assert entry.has_object_class("posixaccount")
    assert directory.searches[-1] == {"base": BASE_DN, "filter": "(uid=joao)", "size_limit": 2}


def test_missing_user_is_not_found(session, settings) -> None:
    with pytest.raises(EntryNotFound):
        resolve_user(session, "maria", settings)


def test_blank_user_is_not_found_without_searching(session, settings, directory) -> None:
    with pytest.raises(EntryNotFound):
        resolve_user(session, "   ", settings)
    assert directory.calls_of("search") == 0


def test_two_matches_are_ambiguous(session, settings, directory) -> None:
    directory.entries.append(user_entry("joao", ou="alumni"))
    with pytest.raises(AmbiguousMatch) as excinfo:
        resolve_user(session, "joao", settings)
    assert excinfo.value.matches == 2


def test_size_limit_exceeded_is_ambiguous(session, settings, directory) -> None:
    directory.entries.extend([user_entry("joao", ou="alumni"), user_entry("joao", ou="staff")])
    with pytest.raises(AmbiguousMatch):
        resolve_user(session, "joao", settings)


def test_distinguished_name_is_passed_through_unchanged(session, settings, directory) -> None:
    directory.entries = [{
        "dn": "UID=Joao,OU=People,DC=dcc,DC=ufrj,DC=br",
        "attributes": {"uid": ["joao"], "objectClass": ["inetOrgPerson"]},
    }]
    entry = resolve_user(session, "joao", settings)
    assert entry.distinguished_name == "UID=Joao,OU=People,DC=dcc,DC=ufrj,DC=br"


def test_failed_search_raises_directory_error(session, settings, directory) -> None:
    directory.search_outcomes.append(ldap_result(50, "insufficientAccessRights"))
    with pytest.raises(DirectoryError) as excinfo:
        resolve_user(session, "joao", settings)
    assert not excinfo.value.transient


def test_busy_server_during_search_is_transient(session, settings, directory) -> None:
    directory.search_outcomes.append(ldap_result(51, "busy"))
    with pytest.raises(DirectoryError) as excinfo:
        resolve_user(session, "joao", settings)
    assert excinfo.value.transient


def test_filter_escapes_special_characters() -> None:
    assert build_user_filter("jo*ao", "uid") == "(uid=jo\\2aao)"
    assert build_user_filter("a)(uid=*", "uid") == "(uid=a\\29\\28uid=\\2a)"


def test_entry_from_response_decodes_values_and_falls_back_to_user_id() -> None:
    entry = entry_from_response(
        {"dn": "cn=x,dc=example", "attributes": {"objectClass": [b"shadowAccount"], "cn": "x"}},
        "uid",
        "joao",
    )
    assert entry.uid == "joao"
    assert entry.get("objectclass") == ("shadowAccount",)
    assert entry.get("CN") == ("x",)
