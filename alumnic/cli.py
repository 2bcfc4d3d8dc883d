"""Command-line interface for alumnic."""

import argparse
import getpass
import json
import logging
import sys
from typing import List, Optional

from .config import (
    build_directory_settings,
    build_endpoint,
    build_mutator,
    build_password_policy,
    build_retry_policy,
    generate_config_file,
    load_config,
    merge_config_with_args,
)
from .constants import DEFAULT_CONFIG_PATH, EXIT_CODES, Colors, ErrorKind
from .engine import PasswordChangeEngine
from .ldap import AlumnicError, check_auth
from .models import OperationResult

LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO, 3: logging.DEBUG}


def setup_logging(verbose: Optional[int]) -> None:
    """Send library logs to stderr at the level picked with -v."""
    level = LOG_LEVELS.get(verbose if verbose is not None else 1, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    # ldap3 is chatty at DEBUG and may dump request contents
    logging.getLogger("ldap3").setLevel(logging.WARNING)


def prepare_args(args) -> Optional[argparse.Namespace]:
    """Load the config file and merge it under the CLI args. Returns None on error."""
    try:
        config_values = load_config(args.config)
    except (ValueError, OSError) as e:
        print(f"{Colors.RED}[!] Failed to load config: {e}{Colors.NC}", file=sys.stderr)
        return None
    return merge_config_with_args(config_values, args)


def build_engine(args) -> Optional[PasswordChangeEngine]:
    """Build the engine from merged args. Returns None on a configuration error."""
    try:
        return PasswordChangeEngine(
            build_endpoint(args),
            settings=build_directory_settings(args),
            policy=build_password_policy(args),
            retry_policy=build_retry_policy(args),
            mutator=build_mutator(args),
        )
    except ValueError as e:
        print(f"{Colors.RED}[!] {e}{Colors.NC}", file=sys.stderr)
        return None


def read_new_password(args) -> Optional[str]:
    """Read the new password from stdin or prompt for it twice."""
    if args.password_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    try:
        password = getpass.getpass("New password: ")
        confirmation = getpass.getpass("Confirm new password: ")
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)
        return None
    if password != confirmation:
        print(f"{Colors.RED}[!] Passwords do not match{Colors.NC}", file=sys.stderr)
        return None
    return password


def print_result(result: OperationResult) -> None:
    """Human-readable outcome of a password change."""
    if result.success:
        print(f"{Colors.GREEN}[+] Password changed for {result.user_id} ({result.distinguished_name}){Colors.NC}",
              file=sys.stderr)
        return

    kind = result.error_kind.value if result.error_kind else "Error"
    if result.policy_source == "server":
        kind = f"{kind} (directory)"
    print(f"{Colors.RED}[!] {kind}: {result.message}{Colors.NC}", file=sys.stderr)
    if result.directory_diagnostic:
        print(f"{Colors.ORANGE}    Directory said: {result.directory_diagnostic}{Colors.NC}", file=sys.stderr)
    if result.attempts > 1:
        print(f"{Colors.ORANGE}    Gave up after {result.attempts} attempts{Colors.NC}", file=sys.stderr)


def cmd_passwd(args) -> int:
    """Change a user's password."""
    args = prepare_args(args)
    if args is None:
        return 1
    engine = build_engine(args)
    if engine is None:
        return 1

    password = read_new_password(args)
    if password is None:
        return 1

    with engine:
        result = engine.change_password(args.user, password)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result)

    if result.success and args.verify:
        check = check_auth(engine.endpoint.url, result.distinguished_name, password, engine.settings)
        if check["success"]:
            print(f"{Colors.GREEN}[+] Verified: {args.user} can bind with the new password{Colors.NC}",
                  file=sys.stderr)
        else:
            print(f"{Colors.RED}[!] Verification failed: {check['message']}{Colors.NC}", file=sys.stderr)
            return EXIT_CODES[ErrorKind.AUTHENTICATION]

    return result.exit_code


def cmd_lookup(args) -> int:
    """Show the directory entry for a user."""
    args = prepare_args(args)
    if args is None:
        return 1
    engine = build_engine(args)
    if engine is None:
        return 1

    try:
        with engine:
            entry = engine.lookup(args.user)
    except AlumnicError as e:
        print(f"{Colors.RED}[!] {e.kind.value}: {e.message}{Colors.NC}", file=sys.stderr)
        return EXIT_CODES.get(e.kind, 1)

    if args.json:
        print(json.dumps({
            "dn": entry.distinguished_name,
            "uid": entry.uid,
            "attributes": {k: list(v) for k, v in entry.attributes.items()},
        }, indent=2))
        return 0

    print(f"  {Colors.LBLUE}DN:{Colors.NC}            {entry.distinguished_name}")
    print(f"  {Colors.LBLUE}uid:{Colors.NC}           {entry.uid}")
    print(f"  {Colors.LBLUE}objectClass:{Colors.NC}   {', '.join(entry.get('objectClass'))}")
    return 0


def cmd_check(args) -> int:
    """Bind with the service identity to test the configuration."""
    args = prepare_args(args)
    if args is None:
        return 1
    try:
        endpoint = build_endpoint(args)
        settings = build_directory_settings(args)
    except ValueError as e:
        print(f"{Colors.RED}[!] {e}{Colors.NC}", file=sys.stderr)
        return 1

    print(f"{Colors.BLUE}[+] Binding to {endpoint.url} as {endpoint.bind_dn}...{Colors.NC}", file=sys.stderr)
    check = check_auth(endpoint.url, endpoint.bind_dn, endpoint.bind_password, settings)
    if check["success"]:
        print(f"{Colors.GREEN}[+] {check['message']}{Colors.NC}", file=sys.stderr)
        return 0

    print(f"{Colors.RED}[!] {check['message']}{Colors.NC}", file=sys.stderr)
    if check.get("diagnostic"):
        print(f"{Colors.ORANGE}    Directory said: {check['diagnostic']}{Colors.NC}", file=sys.stderr)
    return EXIT_CODES.get(ErrorKind(check["status"]), 1)


def cmd_show_policy(args) -> int:
    """Display the password policy in force."""
    args = prepare_args(args)
    if args is None:
        return 1
    try:
        policy = build_password_policy(args)
    except ValueError as e:
        print(f"{Colors.RED}[!] {e}{Colors.NC}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(policy.to_dict(), indent=2))
        return 0

    classes = policy.to_dict()["required_classes"]
    print(f"\n{Colors.BLUE}{'═' * 50}{Colors.NC}")
    print(f"{Colors.ORANGE} Password Policy (version {policy.version}){Colors.NC}")
    print(f"{Colors.BLUE}{'═' * 50}{Colors.NC}\n")
    print(f"  {Colors.LBLUE}Length:{Colors.NC}                 {policy.min_length} to {policy.max_length} characters")
    print(f"  {Colors.LBLUE}Required classes:{Colors.NC}       {', '.join(classes) if classes else 'none'}")
    print(f"  {Colors.LBLUE}Reject account name:{Colors.NC}    {policy.reject_username}")
    print(f"\n{Colors.BLUE}{'═' * 50}{Colors.NC}\n")
    return 0


def cmd_init_config(args) -> int:
    """Print or write a configuration template."""
    try:
        message = generate_config_file(args.output)
    except OSError as e:
        print(f"{Colors.RED}[!] Failed to write config: {e}{Colors.NC}", file=sys.stderr)
        return 1
    if args.output:
        print(f"{Colors.GREEN}[+] {message}{Colors.NC}", file=sys.stderr)
    else:
        print(message, end="")
    return 0


def add_directory_args(parser: argparse.ArgumentParser) -> None:
    """Options shared by every command that talks to the directory."""
    parser.add_argument("-c", "--config", default=str(DEFAULT_CONFIG_PATH),
                        help=f"Configuration file (INI format, default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--url", help="Directory URL, e.g. ldap://localhost:9090 (env: LDAP_URL)")
    parser.add_argument("--bind-dn", dest="bind_dn", help="Privileged bind DN (env: LDAP_BIND_DN)")
    parser.add_argument("--base-dn", dest="base_dn", help="Search base for users")
    parser.add_argument("--uid-attribute", dest="uid_attribute", help="Attribute holding the account name")
    parser.add_argument("--starttls", action="store_true", default=None, help="Upgrade ldap:// with STARTTLS")
    parser.add_argument("--timeout", type=float, help="Seconds allowed per network step")
    parser.add_argument("--max-attempts", dest="max_attempts", type=int,
                        help="Attempts for transient failures")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    parser.add_argument("-v", "--verbose", type=int, choices=[0, 1, 2, 3],
                        help="Log level (0=errors, 1=warnings, 2=info, 3=debug; default: 1)")


def add_policy_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--min-length", dest="min_length", type=int, help="Minimum password length")
    parser.add_argument("--max-length", dest="max_length", type=int, help="Maximum password length")


def main(argv: List[str] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Credential management for the alumni LDAP directory.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Passwd subcommand
    passwd_parser = subparsers.add_parser(
        "passwd",
        help="Change a user's password",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Prompt for the new password (asked twice)
  %(prog)s joao

  # Through an SSH tunnel, credentials from the environment
  LDAP_BIND_PW=secret %(prog)s joao --url ldap://localhost:9090 \\
      --bind-dn cn=admin,dc=dcc,dc=ufrj,dc=br

  # Non-interactive, confirm the new password binds
  printf '%%s\\n' "$NEWPW" | %(prog)s joao --password-stdin --verify
        """,
    )
    passwd_parser.add_argument("user", help="Account name (uid) whose password is changed")
    passwd_parser.add_argument("--password-stdin", action="store_true",
                               help="Read the new password from the first line of stdin")
    passwd_parser.add_argument("--verify", action="store_true",
                               help="Bind as the user afterwards to confirm the change")
    add_directory_args(passwd_parser)
    add_policy_args(passwd_parser)
    passwd_parser.set_defaults(func=cmd_passwd)

    # Lookup subcommand
    lookup_parser = subparsers.add_parser("lookup", help="Show the directory entry for a user")
    lookup_parser.add_argument("user", help="Account name (uid) to look up")
    add_directory_args(lookup_parser)
    lookup_parser.set_defaults(func=cmd_lookup)

    # Check subcommand
    check_parser = subparsers.add_parser("check", help="Test the service bind")
    add_directory_args(check_parser)
    check_parser.set_defaults(func=cmd_check)

    # Show-policy subcommand
    policy_parser = subparsers.add_parser("show-policy", help="Display the password policy in force")
    add_directory_args(policy_parser)
    add_policy_args(policy_parser)
    policy_parser.set_defaults(func=cmd_show_policy)

    # Init-config subcommand
    init_parser = subparsers.add_parser("init-config", help="Print or write a configuration template")
    init_parser.add_argument("-o", "--output", help="Write the template to this file instead of stdout")
    init_parser.set_defaults(func=cmd_init_config)

    args = parser.parse_args(argv)

    # Disable colors if not a TTY
    if not sys.stderr.isatty():
        Colors.disable()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(getattr(args, "verbose", None))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
