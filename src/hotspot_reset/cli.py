"""Command line interface for HotspotReset."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Any

from hotspot_reset.core.audit import AuditTrail, start_audit_listener
from hotspot_reset.core.config import ConfigError, MAC_STRATEGIES, Settings, load_settings
from hotspot_reset.core.crypto import CredentialCipher, CredentialCipherError, generate_key
from hotspot_reset.core.logging import setup_logging
from hotspot_reset.core.models import DEFAULT_PORT
from hotspot_reset.core.storage import StoreError, YamlRouterStore
from hotspot_reset.core.vault import RouterNotFoundError, RouterParams, RouterValidationError, RouterVault
from hotspot_reset.mikrotik.client import MikroTikClientError
from hotspot_reset.mikrotik.hotspot import MacStrategy, ResetOptions
from hotspot_reset.service import ResetService, ResetValidationError

DEFAULT_ACTOR = "cli"


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""

    parser = argparse.ArgumentParser(
        prog="hotspot-reset",
        description=(
            "Manage MikroTik routers and reset hotspot users. "
            "Router passwords are stored encrypted and decrypted only to connect."
        ),
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to local.yml")
    parser.add_argument(
        "--store", type=Path, default=None, help="Path to the router store (YAML). Overrides local.yml."
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging. Overrides local.yml logging.level.",
    )
    parser.add_argument("--actor", default=DEFAULT_ACTOR, help="Operator name recorded in the audit trail")

    commands = parser.add_subparsers(dest="command", title="commands")

    commands.add_parser("generate-key", help="Print a new random encryption key")

    router_parser = commands.add_parser("router", help="Manage stored routers")
    router_commands = router_parser.add_subparsers(dest="router_command", title="router commands")

    password_parent = argparse.ArgumentParser(add_help=False)
    password_parent.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the router password from the first line of stdin instead of prompting",
    )

    add_parser = router_commands.add_parser("add", help="Add a router", parents=[password_parent])
    add_parser.add_argument("--name", required=True)
    add_parser.add_argument("--ip", dest="ip_address", required=True)
    add_parser.add_argument("--username", required=True)
    add_parser.add_argument("--port", type=int, default=DEFAULT_PORT)

    router_commands.add_parser("list", help="List routers")

    show_parser = router_commands.add_parser("show", help="Show one router")
    show_parser.add_argument("router_id")

    update_parser = router_commands.add_parser(
        "update", help="Update a router. An empty password keeps the stored one.", parents=[password_parent]
    )
    update_parser.add_argument("router_id")
    update_parser.add_argument("--name")
    update_parser.add_argument("--ip", dest="ip_address")
    update_parser.add_argument("--username")
    update_parser.add_argument("--port", type=int)

    delete_parser = router_commands.add_parser("delete", help="Delete a router")
    delete_parser.add_argument("router_id")

    reset_parser = commands.add_parser("reset", help="Reset a hotspot user on a router")
    reset_parser.add_argument("router_id")
    reset_parser.add_argument("username")
    reset_parser.add_argument("--keep-active", action="store_true", help="Do not remove active sessions")
    reset_parser.add_argument("--keep-cookies", action="store_true", help="Do not remove hotspot cookies")
    reset_parser.add_argument("--keep-mac", action="store_true", help="Do not remove MAC residue")
    reset_parser.add_argument(
        "--mac-strategy",
        choices=MAC_STRATEGIES,
        default=None,
        help="Where MAC residue lives. Overrides local.yml mikrotik.mac_strategy.",
    )

    users_parser = commands.add_parser("users", help="List usernames with an active hotspot session")
    users_parser.add_argument("router_id")
    users_parser.add_argument("--search", default="")
    users_parser.add_argument("--limit", type=int, default=10)

    return parser


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _read_password(args: argparse.Namespace, prompt: str) -> str:
    if args.password_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    return getpass.getpass(prompt)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None or (args.command == "router" and args.router_command is None):
        parser.print_help()
        return 0

    if args.command == "generate-key":
        print(generate_key())
        return 0

    # paths given on the command line are relative to the working directory
    for name in ("config", "store"):
        value = getattr(args, name)
        if value is not None:
            setattr(args, name, value.expanduser().resolve())

    logger = setup_logging(args.config, cli_level=logging.DEBUG if args.debug else None)

    try:
        settings = load_settings(args.config, args.store, logger)
        cipher = CredentialCipher(settings.encryption_key)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    listener = start_audit_listener()
    try:
        return _dispatch(args, settings, cipher, logger)
    finally:
        listener.stop()


def _dispatch(
    args: argparse.Namespace, settings: Settings, cipher: CredentialCipher, logger: logging.Logger
) -> int:
    audit = AuditTrail()
    vault = RouterVault(YamlRouterStore(settings.store_path), cipher, audit)
    service = ResetService(vault, audit, timeout=settings.timeout)

    try:
        if args.command == "router":
            return _run_router_command(args, vault)
        if args.command == "reset":
            return _run_reset(args, service, settings, logger)
        if args.command == "users":
            users = service.list_users(args.router_id, search=args.search, limit=args.limit, actor=args.actor)
            _print_json({"users": users})
            return 0
    except RouterNotFoundError as exc:
        logger.error("%s", exc)
        return 1
    except (RouterValidationError, ResetValidationError) as exc:
        logger.error("%s", exc)
        return 2
    except (StoreError, CredentialCipherError, MikroTikClientError) as exc:
        logger.error("%s", exc)
        return 1

    logger.error("Unknown command: %s", args.command)
    return 2


def _run_router_command(args: argparse.Namespace, vault: RouterVault) -> int:
    if args.router_command == "add":
        password = _read_password(args, "Router password: ")
        router = vault.create(
            RouterParams(
                name=args.name,
                ip_address=args.ip_address,
                username=args.username,
                password=password,
                port=args.port,
            ),
            actor=args.actor,
        )
        _print_json({"message": "Router added successfully", "router": router.to_dict()})
        return 0

    if args.router_command == "list":
        _print_json({"routers": [router.to_dict() for router in vault.list()]})
        return 0

    if args.router_command == "show":
        _print_json({"router": vault.get(args.router_id).to_dict()})
        return 0

    if args.router_command == "update":
        current = vault.get(args.router_id)
        password = _read_password(args, "New router password (empty keeps the current one): ")
        router = vault.update(
            args.router_id,
            RouterParams(
                name=args.name if args.name is not None else current.name,
                ip_address=args.ip_address if args.ip_address is not None else current.ip_address,
                username=args.username if args.username is not None else current.username,
                password=password,
                port=args.port if args.port is not None else current.port,
            ),
            actor=args.actor,
        )
        _print_json({"message": "Router updated successfully", "router": router.to_dict()})
        return 0

    if args.router_command == "delete":
        vault.delete(args.router_id, actor=args.actor)
        _print_json({"message": "Router deleted successfully"})
        return 0

    return 2


def _run_reset(
    args: argparse.Namespace, service: ResetService, settings: Settings, logger: logging.Logger
) -> int:
    options = ResetOptions(
        remove_active=not args.keep_active,
        remove_cookies=not args.keep_cookies,
        remove_mac_info=not args.keep_mac,
        mac_strategy=MacStrategy(args.mac_strategy or settings.mac_strategy),
    )
    result = service.reset_user(args.router_id, args.username, options, actor=args.actor)
    _print_json(result.to_dict())

    if not result.success:
        logger.error("Reset operation failed: %s", result.error)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
