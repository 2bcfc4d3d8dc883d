from typing import List

import pytest

from alumnic.models import DirectoryEndpoint, DirectorySettings, RetryPolicy
from fakes import ADMIN_DN, ADMIN_PW, BASE_DN, LDAP_URL, FakeDirectory, user_entry


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory(entries=[user_entry("joao")])


@pytest.fixture
def endpoint() -> DirectoryEndpoint:
    return DirectoryEndpoint(url=LDAP_URL, bind_dn=ADMIN_DN, bind_password=ADMIN_PW)


@pytest.fixture
def bad_endpoint() -> DirectoryEndpoint:
    return DirectoryEndpoint(url=LDAP_URL, bind_dn=ADMIN_DN, bind_password="wrong")


@pytest.fixture
def settings() -> DirectorySettings:
    return DirectorySettings(base_dn=BASE_DN)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.5, multiplier=2.0, max_delay=8.0, max_elapsed=None)
