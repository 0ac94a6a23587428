"""Command line front end for the user directory.

Every gated command names an acting user with ``--as`` and a target user.
The action is checked against the acting user's role, and the target is
saved back to the directory only if the action went through.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import TYPE_CHECKING

from userdir.common import Role, User, may_check_credential, now_ms
from userdir.config import configure_logging, load_config_from_env
from userdir.directory import DirectoryStoreError, SearchCriteria, UserDirectory

if TYPE_CHECKING:
    from collections.abc import Sequence

    from userdir.config import AppConfig

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DENIED = 1
EXIT_STORE_ERROR = 2

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND


def format_duration(ms: int) -> str:
    """Round a duration up to the largest sensible unit."""
    if ms >= _MS_PER_MINUTE:
        return f"{-(-ms // _MS_PER_MINUTE)} min"
    if ms >= _MS_PER_SECOND:
        return f"{-(-ms // _MS_PER_SECOND)} s"
    return f"{ms} ms"


def describe(user: User, now: int | None = None) -> str:
    """One-line summary of a user for listings."""
    if now is None:
        now = now_ms()
    parts = [user.id, user.name, user.email, user.role.value]
    parts.append(f"warnings={user.warning_count}")
    if user.is_muted(now):
        parts.append(f"muted={format_duration(user.remaining_mute_ms(now))}")
    if user.is_deleted:
        parts.append("deleted")
    return "\t".join(parts)


def _criteria_from_args(args: argparse.Namespace) -> SearchCriteria:
    return SearchCriteria(
        q=args.q,
        id=args.id,
        name=args.name,
        email=args.email,
        role=args.role,
        is_deleted=args.is_deleted,
    )


async def _load_pair(
    directory: UserDirectory,
    args: argparse.Namespace,
) -> tuple[User, User] | None:
    """Fetch the acting and target users named on the command line."""
    actor = await directory.get(args.actor)
    if actor is None:
        print(f"No user with id {args.actor}")
        return None
    target = await directory.get(args.target)
    if target is None:
        print(f"No user with id {args.target}")
        return None
    return actor, target


def _refuse_target(actor: User, target: User) -> bool:
    if actor.id == target.id:
        print("You cannot act on yourself")
        return True
    if target.is_deleted:
        print(f"{target.name} is deleted")
        return True
    return False


async def cmd_create(
    directory: UserDirectory,
    args: argparse.Namespace,
    _config: AppConfig,
) -> int:
    user = User(args.name, args.email, args.credential, Role(args.role))
    await directory.create(user)
    print(user.id)
    return EXIT_OK


async def cmd_list(
    directory: UserDirectory,
    args: argparse.Namespace,
    _config: AppConfig,
) -> int:
    now = now_ms()
    for user in await directory.search(_criteria_from_args(args)):
        print(describe(user, now))
    return EXIT_OK


async def cmd_warn(
    directory: UserDirectory,
    args: argparse.Namespace,
    _config: AppConfig,
) -> int:
    pair = await _load_pair(directory, args)
    if pair is None or _refuse_target(*pair):
        return EXIT_DENIED
    actor, target = pair
    count = actor.warn_user(target)
    if count is None:
        print(f"{actor.name} is not allowed to warn users")
        return EXIT_DENIED
    await directory.save(target)
    print(f"{actor.name} warned {target.name}. Total warnings: {count}")
    return EXIT_OK


async def cmd_mute(
    directory: UserDirectory,
    args: argparse.Namespace,
    config: AppConfig,
) -> int:
    pair = await _load_pair(directory, args)
    if pair is None or _refuse_target(*pair):
        return EXIT_DENIED
    actor, target = pair
    minutes = args.minutes if args.minutes is not None else config.default_mute_minutes
    now = now_ms()
    until = actor.mute_user(target, max(0, minutes) * _MS_PER_MINUTE, now)
    if until is None:
        print(f"{actor.name} is not allowed to mute users")
        return EXIT_DENIED
    await directory.save(target)
    print(f"{actor.name} muted {target.name} for {format_duration(until - now)}")
    return EXIT_OK


async def cmd_reset_credential(
    directory: UserDirectory,
    args: argparse.Namespace,
    _config: AppConfig,
) -> int:
    pair = await _load_pair(directory, args)
    if pair is None or _refuse_target(*pair):
        return EXIT_DENIED
    actor, target = pair
    if not actor.reset_credential(target, args.new_credential):
        print(f"{actor.name} is not allowed to reset credentials")
        return EXIT_DENIED
    await directory.save(target)
    print(f"{actor.name} reset the credential of {target.name}")
    return EXIT_OK


async def cmd_delete(
    directory: UserDirectory,
    args: argparse.Namespace,
    _config: AppConfig,
) -> int:
    pair = await _load_pair(directory, args)
    if pair is None or _refuse_target(*pair):
        return EXIT_DENIED
    actor, target = pair
    if not actor.delete_user(target):
        print(f"{actor.name} is not allowed to delete users")
        return EXIT_DENIED
    await directory.save(target)
    print(f"{actor.name} deleted {target.name}")
    return EXIT_OK


async def cmd_check_credential(
    directory: UserDirectory,
    args: argparse.Namespace,
    _config: AppConfig,
) -> int:
    pair = await _load_pair(directory, args)
    if pair is None:
        return EXIT_DENIED
    actor, target = pair
    if not may_check_credential(actor, target):
        print(f"{actor.name} is not allowed to check the credential of {target.name}")
        return EXIT_DENIED
    if target.check_credential(args.value):
        print(f"Credential for {target.name}: correct")
        return EXIT_OK
    print(f"Credential for {target.name}: incorrect")
    return EXIT_DENIED


async def cmd_delete_where(
    directory: UserDirectory,
    args: argparse.Namespace,
    _config: AppConfig,
) -> int:
    criteria = _criteria_from_args(args)
    if criteria.is_empty() and not args.all:
        print("No filters given. Pass --all to delete every user.")
        return EXIT_DENIED
    count = await directory.soft_delete_by_criteria(criteria)
    print(f"Deleted {count} user(s)")
    return EXIT_OK


def _add_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--q", help="Substring of name or email.")
    parser.add_argument("--id", help="Exact user id.")
    parser.add_argument("--name", help="Substring of the name.")
    parser.add_argument("--email", help="Substring of the email.")
    parser.add_argument("--role", choices=[role.value for role in Role])
    deleted = parser.add_mutually_exclusive_group()
    deleted.add_argument(
        "--deleted",
        dest="is_deleted",
        action="store_const",
        const=True,
        help="Only deleted users.",
    )
    deleted.add_argument(
        "--active",
        dest="is_deleted",
        action="store_const",
        const=False,
        help="Only users that are not deleted.",
    )


def _add_pair(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--as", dest="actor", required=True, help="Acting user id.")
    parser.add_argument("target", help="Target user id.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userdir",
        description="Manage a role-gated user directory.",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to the environment configuration file.",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="Directory database file, overrides DATABASE_PATH.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="Create a user.")
    create.add_argument("name")
    create.add_argument("email")
    create.add_argument("credential")
    create.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=Role.USER.value,
    )
    create.set_defaults(handler=cmd_create)

    listing = commands.add_parser("list", help="Search users.")
    _add_filters(listing)
    listing.set_defaults(handler=cmd_list)

    warn = commands.add_parser("warn", help="Warn a user (moderators).")
    _add_pair(warn)
    warn.set_defaults(handler=cmd_warn)

    mute = commands.add_parser("mute", help="Mute a user (moderators).")
    _add_pair(mute)
    mute.add_argument("--minutes", type=int, default=None)
    mute.set_defaults(handler=cmd_mute)

    reset = commands.add_parser(
        "reset-credential",
        help="Replace a user's credential (admins).",
    )
    _add_pair(reset)
    reset.add_argument("new_credential")
    reset.set_defaults(handler=cmd_reset_credential)

    delete = commands.add_parser("delete", help="Soft delete a user (admins).")
    _add_pair(delete)
    delete.set_defaults(handler=cmd_delete)

    check = commands.add_parser(
        "check-credential",
        help="Check a credential (self or admins).",
    )
    _add_pair(check)
    check.add_argument("value")
    check.set_defaults(handler=cmd_check_credential)

    delete_where = commands.add_parser(
        "delete-where",
        help="Soft delete every user matching the filters.",
    )
    _add_filters(delete_where)
    delete_where.add_argument(
        "--all",
        action="store_true",
        help="Confirm deleting every user when no filter is given.",
    )
    delete_where.set_defaults(handler=cmd_delete_where)

    return parser


async def run(args: argparse.Namespace, config: AppConfig) -> int:
    async with UserDirectory(args.db_path or config.database_path) as directory:
        return await args.handler(directory, args, config)


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, load configuration and run one command."""
    args = build_parser().parse_args(argv)
    config = load_config_from_env(args.env_file)
    configure_logging(config)
    try:
        return asyncio.run(run(args, config))
    except DirectoryStoreError as e:
        LOGGER.error("%s", e)
        return EXIT_STORE_ERROR
