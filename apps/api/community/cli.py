"""
CLI entrypoint for maintenance jobs that run outside the API process.

Use cases:
- Local bootstrap: python -m community.cli init-db && python -m community.cli create-admin --email ...
- Scheduled runs (cron, CI): check-expiring, check-expired, prune-notifications, sync-points,
  update-event-statuses

Behavior:
- Each command opens its own engine and session and disposes of it on exit
- Seeding commands are idempotent; existing roles and rules are left untouched
- Results are logged as one line per command for CI visibility
"""
import argparse
import asyncio
from typing import Any, Dict

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .auth.jwt import get_password_hash
from .config import settings
from .database.events import EventsRepository
from .database.gamification import GamificationRepository
from .database.notifications import NotificationsRepository
from .database.profiles import ProfilesRepository
from .database.subscriptions import SubscriptionsRepository
from .database.users import UsersRepository
from .logging_config import setup_logging
from .models import Base


logger = setup_logging(__name__)


async def init_db() -> Dict[str, Any]:
    """Create tables and seed roles and point rules"""
    engine = create_async_engine(settings.async_database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    return await ensure_rules()


async def ensure_rules() -> Dict[str, Any]:
    engine = create_async_engine(settings.async_database_url)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as session:
        roles = await ProfilesRepository(session).ensure_default_roles()
        rules = await GamificationRepository(session).ensure_default_rules()
        out = {"roles_created": [role.name for role in roles], "rules_created": rules}

    await engine.dispose()
    return out


async def sync_points() -> Dict[str, Any]:
    engine = create_async_engine(settings.async_database_url)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as session:
        synced = await GamificationRepository(session).sync_all_points()

    await engine.dispose()
    return {"profiles_synced": len(synced)}


async def prune_notifications(keep: int) -> Dict[str, Any]:
    engine = create_async_engine(settings.async_database_url)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as session:
        removed = await NotificationsRepository(session).prune_all(keep)

    await engine.dispose()
    return {"removed": removed, "kept_per_user": keep}


async def check_subscriptions(expired: bool) -> Dict[str, Any]:
    """Warn unpaid subscriptions past grace, or expire them once the warning period is over"""
    engine = create_async_engine(settings.async_database_url)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as session:
        repo = SubscriptionsRepository(session)
        if expired:
            out = await repo.check_expired_subscriptions()
        else:
            out = await repo.check_expiring_subscriptions()

    await engine.dispose()
    return out


async def update_event_statuses() -> Dict[str, Any]:
    engine = create_async_engine(settings.async_database_url)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as session:
        updated = await EventsRepository(session).refresh_event_statuses()

    await engine.dispose()
    return {"events_updated": updated}


async def create_admin(email: str, password: str, display_name: str) -> Dict[str, Any]:
    engine = create_async_engine(settings.async_database_url)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as session:
        profiles = ProfilesRepository(session)
        await profiles.ensure_default_roles()

        users = UsersRepository(session)
        user = await users.get_user_by_email(email)
        if user is None:
            user = await users.create_user(email, get_password_hash(password))
        if await profiles.get_profile(user.id) is None:
            await profiles.create_profile(user, display_name=display_name)
        await profiles.update_user_role(user.id, "admin")
        out = {"user_id": str(user.id), "email": user.email, "role": "admin"}

    await engine.dispose()
    return out


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Community maintenance jobs")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create tables and seed roles and point rules")
    commands.add_parser("ensure-rules", help="Seed missing roles and point rules")
    commands.add_parser("sync-points", help="Recompute every profile's points from the history")

    prune = commands.add_parser("prune-notifications", help="Trim each user's notifications")
    prune.add_argument("--keep", type=int, default=settings.MAX_NOTIFICATIONS, help="Notifications kept per user")

    commands.add_parser("check-expiring", help="Warn subscriptions past their grace period")
    commands.add_parser("check-expired", help="Expire subscriptions and restore the free role")
    commands.add_parser("update-event-statuses", help="Mark started events active and finished ones completed")

    admin = commands.add_parser("create-admin", help="Create an account (or reuse one) with the admin role")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)
    admin.add_argument("--display-name", default="Admin")
    return parser.parse_args()


def main():
    args = _parse_args()
    if args.command == "init-db":
        out = asyncio.run(init_db())
    elif args.command == "ensure-rules":
        out = asyncio.run(ensure_rules())
    elif args.command == "sync-points":
        out = asyncio.run(sync_points())
    elif args.command == "prune-notifications":
        out = asyncio.run(prune_notifications(args.keep))
    elif args.command == "check-expiring":
        out = asyncio.run(check_subscriptions(expired=False))
    elif args.command == "check-expired":
        out = asyncio.run(check_subscriptions(expired=True))
    elif args.command == "update-event-statuses":
        out = asyncio.run(update_event_statuses())
    else:
        out = asyncio.run(create_admin(args.email, args.password, args.display_name))
    # Minimal stdout for CI visibility
    logger.info(f"{args.command} -> {out}")


if __name__ == "__main__":
    main()
