"""Operator CLI for relationship maintenance.

    coachshare-maintenance repair
    coachshare-maintenance purge-orphans --dry-run
    coachshare-maintenance sync-assignments
    coachshare-maintenance sync-links
    coachshare-maintenance migrate-legacy
    coachshare-maintenance create-admin --email ops@example.com --password ...

Each command runs in a single transaction that is committed only on success.
"""

import argparse
import asyncio
import logging
from dataclasses import asdict

from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.logging import setup_logging
from coachshare.dependencies import session_factory
from coachshare.models.user import UserRole
from coachshare.services import reconciliation_service

logger = logging.getLogger("coachshare.maintenance")


async def _repair(db: AsyncSession, args: argparse.Namespace) -> dict:
    return asdict(await reconciliation_service.repair_workout_log_relationships(db))


async def _purge_orphans(db: AsyncSession, args: argparse.Namespace) -> dict:
    report = await reconciliation_service.purge_orphaned_logs(db, dry_run=args.dry_run)
    if args.dry_run and args.sample:
        for log in (await reconciliation_service.find_orphaned_logs(db))[: args.sample]:
            print(f"  - log={log.id} athlete={log.athlete_id} regimen={log.regimen_id}")
    return asdict(report)


async def _sync_assignments(db: AsyncSession, args: argparse.Namespace) -> dict:
    return asdict(await reconciliation_service.sync_regimen_assignments(db))


async def _sync_links(db: AsyncSession, args: argparse.Namespace) -> dict:
    return asdict(await reconciliation_service.sync_coach_links(db))


async def _migrate_legacy(db: AsyncSession, args: argparse.Namespace) -> dict:
    return {"migrated": await reconciliation_service.migrate_legacy_coach_fields(db)}


async def _create_admin(db: AsyncSession, args: argparse.Namespace) -> dict:
    from coachshare.core.auth import register_user

    user = await register_user(
        db,
        email=args.email,
        password=args.password,
        first_name=args.first_name,
        last_name=args.last_name,
        role=UserRole.admin,
    )
    return {"id": str(user.id), "email": user.email}


COMMANDS = {
    "repair": (_repair, "Repair coach/athlete links and assignments implied by workout logs"),
    "purge-orphans": (_purge_orphans, "Delete workout logs whose regimen no longer exists"),
    "sync-assignments": (_sync_assignments, "Mirror regimen assignments on both sides"),
    "sync-links": (_sync_links, "Mirror coach/athlete links and fix primary coaches"),
    "migrate-legacy": (_migrate_legacy, "Move legacy single-coach athletes onto the coaches set"),
    "create-admin": (_create_admin, "Create an admin account"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coachshare-maintenance",
        description="Relationship maintenance for the CoachShare database.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, (_, help_text) in COMMANDS.items():
        cmd = sub.add_parser(name, help=help_text)
        if name == "purge-orphans":
            cmd.add_argument("--dry-run", action="store_true", help="Count orphaned logs without deleting")
            cmd.add_argument("--sample", type=int, default=5, help="With --dry-run, list up to N logs (default: 5)")
        elif name == "create-admin":
            cmd.add_argument("--email", required=True)
            cmd.add_argument("--password", required=True)
            cmd.add_argument("--first-name", default="")
            cmd.add_argument("--last-name", default="")

    return parser


async def run(args: argparse.Namespace) -> dict:
    handler, _ = COMMANDS[args.command]
    async with session_factory() as db:
        try:
            result = await handler(db, args)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return result


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    result = asyncio.run(run(args))
    print(f"{args.command}:")
    for key, value in result.items():
        print(f"- {key}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
