"""Configuration file handling."""

import argparse
import configparser
import os
from typing import Any, Dict, Mapping, Optional

from .constants import (
    DEFAULT_BASE_DN,
    DEFAULT_UID_ATTRIBUTE,
    ENV_LDAP_BIND_DN,
    ENV_LDAP_BIND_PW,
    ENV_LDAP_URL,
    PASSWORD_SCHEMES,
    SCHEME_SSHA,
)
from .ldap.mutator import CredentialMutator
from .models import (
    CharacterClass,
    DirectoryEndpoint,
    DirectorySettings,
    PasswordPolicy,
    RetryPolicy,
)


DEFAULT_CONFIG_TEMPLATE = """\
# alumnic Configuration File
# --------------------------
# LDAP_URL, LDAP_BIND_DN and LDAP_BIND_PW in the environment override the
# matching [ldap] keys. Command-line options override both.

[ldap]
# Directory URL; ldaps:// for TLS, ldap:// for plaintext (e.g. through an SSH tunnel)
url = ldap://localhost:9090
# Privileged identity used for lookups and password changes
bind_dn = cn=admin,dc=dcc,dc=ufrj,dc=br
# Leave empty and set LDAP_BIND_PW instead to keep the secret out of this file
bind_pw =
# Subtree searched for users
base_dn = dc=dcc,dc=ufrj,dc=br
# Attribute holding the account name
uid_attribute = uid
# Upgrade ldap:// connections with STARTTLS
starttls = false
# Verify the server certificate (ldaps:// and STARTTLS)
tls_validate = true
# CA bundle for certificate validation (optional)
ca_file =
# Seconds allowed for each network step (connect, bind, search, modify)
timeout = 10
# Bound sessions kept open for reuse
pool_size = 4

[password]
# How userPassword is written:
#   ssha      = hashed here as {SSHA} (directory stores what it is given)
#   cleartext = sent as-is, directory hashes on write (use ldaps:// or STARTTLS)
scheme = ssha
# Also update sambaNTPassword/sambaPwdLastSet on sambaSamAccount entries
samba_nt_hash = true
# Also update shadowLastChange on shadowAccount entries
update_shadow_last_change = true

[policy]
# Bump when the rules below change
version = 1
# Accepted password length, inclusive
min_length = 6
max_length = 12
# Comma-separated: digit, lowercase, uppercase, special (empty = none)
required_classes =
# Refuse passwords equal to the account name
reject_username = true

[retry]
# Attempts for transient failures (connection errors, busy/unavailable server)
max_attempts = 3
# Delay before the first retry, in seconds; grows by multiplier each time
base_delay = 0.5
multiplier = 2.0
# Cap for a single delay, in seconds
max_delay = 8
# Give up after this many seconds in total (0 or empty = no limit)
max_elapsed = 30
"""


def _get_optional(config: configparser.ConfigParser, section: str, key: str) -> Optional[str]:
    """Read a value, mapping empty strings to None."""
    value = config.get(section, key, fallback='')
    return value.strip() or None


def parse_character_classes(value: Optional[str]) -> list:
    """Parse a comma-separated list of character class names."""
    classes = []
    for name in (value or '').split(','):
        name = name.strip().lower()
        if not name:
            continue
        try:
            classes.append(CharacterClass(name))
        except ValueError:
            valid = ', '.join(c.value for c in CharacterClass)
            raise ValueError(f"Unknown character class {name!r} in required_classes (expected: {valid})")
    return classes


def load_config(config_path: str, environ: Mapping[str, str] = None) -> Dict[str, Any]:
    """
    Load configuration from INI file, then apply environment overrides.

    Returns a dict with all config values, using None for unset values.
    A missing file yields only the environment values.
    """
    config = configparser.ConfigParser()
    config.read(config_path)
    environ = os.environ if environ is None else environ

    result: Dict[str, Any] = {}

    # [ldap] section
    if config.has_section('ldap'):
        result['url'] = _get_optional(config, 'ldap', 'url')
        result['bind_dn'] = _get_optional(config, 'ldap', 'bind_dn')
        result['bind_pw'] = _get_optional(config, 'ldap', 'bind_pw')
        result['base_dn'] = _get_optional(config, 'ldap', 'base_dn')
        result['uid_attribute'] = _get_optional(config, 'ldap', 'uid_attribute')
        result['starttls'] = config.getboolean('ldap', 'starttls', fallback=False)
        result['tls_validate'] = config.getboolean('ldap', 'tls_validate', fallback=True)
        result['ca_file'] = _get_optional(config, 'ldap', 'ca_file')
        result['timeout'] = config.getfloat('ldap', 'timeout', fallback=10.0)
        result['pool_size'] = config.getint('ldap', 'pool_size', fallback=4)

    # [password] section
    if config.has_section('password'):
        scheme = config.get('password', 'scheme', fallback='ssha').strip().lower()
        if scheme not in PASSWORD_SCHEMES:
            raise ValueError(f"Unknown password scheme {scheme!r} in [password] (expected: {', '.join(PASSWORD_SCHEMES)})")
        result['scheme'] = scheme
        result['samba_nt_hash'] = config.getboolean('password', 'samba_nt_hash', fallback=True)
        result['update_shadow_last_change'] = config.getboolean('password', 'update_shadow_last_change', fallback=True)

    # [policy] section
    if config.has_section('policy'):
        result['policy_version'] = config.getint('policy', 'version', fallback=1)
        result['min_length'] = config.getint('policy', 'min_length', fallback=6)
        result['max_length'] = config.getint('policy', 'max_length', fallback=12)
        result['required_classes'] = parse_character_classes(config.get('policy', 'required_classes', fallback=''))
        result['reject_username'] = config.getboolean('policy', 'reject_username', fallback=True)

    # [retry] section
    if config.has_section('retry'):
        result['max_attempts'] = config.getint('retry', 'max_attempts', fallback=3)
        result['base_delay'] = config.getfloat('retry', 'base_delay', fallback=0.5)
        result['multiplier'] = config.getfloat('retry', 'multiplier', fallback=2.0)
        result['max_delay'] = config.getfloat('retry', 'max_delay', fallback=8.0)
        max_elapsed = _get_optional(config, 'retry', 'max_elapsed')
        result['max_elapsed'] = float(max_elapsed) if max_elapsed else 0.0

    # Environment beats the file
    for env_key, config_key in ((ENV_LDAP_URL, 'url'), (ENV_LDAP_BIND_DN, 'bind_dn'), (ENV_LDAP_BIND_PW, 'bind_pw')):
        if environ.get(env_key):
            result[config_key] = environ[env_key]

    return result


def merge_config_with_args(config: Dict[str, Any], args: argparse.Namespace) -> argparse.Namespace:
    """
    Merge config file values with CLI args. CLI args take precedence.
    """
    for config_key, config_value in config.items():
        if config_value is None:
            continue

        # Keep values given explicitly on the command line
        if getattr(args, config_key, None) is not None:
            continue

        setattr(args, config_key, config_value)

    return args


def generate_config_file(output_path: Optional[str] = None) -> str:
    """Generate a template configuration file."""
    if output_path:
        with open(output_path, 'w') as f:
            f.write(DEFAULT_CONFIG_TEMPLATE)
        return f"Configuration template written to: {output_path}"
    else:
        return DEFAULT_CONFIG_TEMPLATE


def _value(args: Any, key: str, default: Any = None) -> Any:
    value = getattr(args, key, None)
    return default if value is None else value


def build_endpoint(args) -> DirectoryEndpoint:
    """Build the directory endpoint from merged args."""
    url = _value(args, 'url')
    bind_dn = _value(args, 'bind_dn')
    if not url:
        raise ValueError(f"LDAP URL is required (--url, [ldap] url or {ENV_LDAP_URL})")
    if not bind_dn:
        raise ValueError(f"Bind DN is required (--bind-dn, [ldap] bind_dn or {ENV_LDAP_BIND_DN})")
    return DirectoryEndpoint(url=url, bind_dn=bind_dn, bind_password=_value(args, 'bind_pw', ''))


def build_directory_settings(args) -> DirectorySettings:
    """Build search and transport settings from merged args."""
    return DirectorySettings(
        base_dn=_value(args, 'base_dn', DEFAULT_BASE_DN),
        uid_attribute=_value(args, 'uid_attribute', DEFAULT_UID_ATTRIBUTE),
        starttls=_value(args, 'starttls', False),
        tls_validate=_value(args, 'tls_validate', True),
        ca_file=_value(args, 'ca_file'),
        timeout=_value(args, 'timeout', 10.0),
        pool_size=_value(args, 'pool_size', 4),
    )


def build_password_policy(args) -> PasswordPolicy:
    """Build the password policy from merged args."""
    return PasswordPolicy(
        version=_value(args, 'policy_version', 1),
        min_length=_value(args, 'min_length', 6),
        max_length=_value(args, 'max_length', 12),
        required_classes=frozenset(_value(args, 'required_classes', [])),
        reject_username=_value(args, 'reject_username', True),
    )


def build_retry_policy(args) -> RetryPolicy:
    """Build the retry policy from merged args."""
    return RetryPolicy(
        max_attempts=_value(args, 'max_attempts', 3),
        base_delay=_value(args, 'base_delay', 0.5),
        multiplier=_value(args, 'multiplier', 2.0),
        max_delay=_value(args, 'max_delay', 8.0),
        max_elapsed=_value(args, 'max_elapsed', 30.0) or None,
    )


def build_mutator(args) -> CredentialMutator:
    """Build the credential mutator from merged args."""
    return CredentialMutator(
        scheme=_value(args, 'scheme', SCHEME_SSHA),
        samba_nt_hash=_value(args, 'samba_nt_hash', True),
        update_shadow_last_change=_value(args, 'update_shadow_last_change', True),
    )
