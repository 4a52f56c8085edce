"""Idempotent schema and storage fix-ups for existing deployments.

Fresh databases get the full schema from alembic or the startup
``create_all``; these scripts bring older databases forward one change at a
time. Every statement is safe to run twice.
"""

from typing import Awaitable, Callable, Dict, List

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import settings
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

Migration = Callable[[AsyncEngine], Awaitable[None]]

# Buckets and whether objects are publicly readable
BUCKETS = {
    settings.supabase.user_ids_bucket: False,
    settings.supabase.announcement_bucket: True,
    settings.supabase.complaint_bucket: True,
    settings.supabase.message_bucket: False,
}

EXPECTED_COLUMNS = {
    "users": ["status", "last_reminder_at", "email_verified"],
    "id_verifications": ["status", "approved_at"],
    "announcements": ["body", "image_url"],
    "complaints": ["media_urls", "resolution_message"],
    "communities": ["description", "logo_url"],
    "conversation_participants": ["muted", "mute_until", "custom_title"],
    "feedback_form_templates": ["fields", "is_active"],
}


async def _run_statements(engine: AsyncEngine, statements: List[str]) -> None:
    async with engine.begin() as conn:
        for statement in statements:
            LOGGER.info(f"Executing: {statement}")
            await conn.execute(text(statement))


async def add_status_columns(engine: AsyncEngine) -> None:
    await _run_statements(
        engine,
        [
            "ALTER TABLE users ADD COLUMN IF NOT EXISTS status VARCHAR NOT NULL DEFAULT 'unverified'",
            "ALTER TABLE id_verifications ADD COLUMN IF NOT EXISTS status VARCHAR NOT NULL DEFAULT 'pending'",
            "ALTER TABLE communities ADD COLUMN IF NOT EXISTS description TEXT",
        ],
    )


async def add_approved_at_column(engine: AsyncEngine) -> None:
    await _run_statements(
        engine,
        ["ALTER TABLE id_verifications ADD COLUMN IF NOT EXISTS approved_at TIMESTAMPTZ"],
    )


async def add_announcement_body(engine: AsyncEngine) -> None:
    await _run_statements(engine, ["ALTER TABLE announcements ADD COLUMN IF NOT EXISTS body TEXT"])


async def add_announcement_image_url(engine: AsyncEngine) -> None:
    await _run_statements(engine, ["ALTER TABLE announcements ADD COLUMN IF NOT EXISTS image_url VARCHAR"])


async def add_last_reminder_at(engine: AsyncEngine) -> None:
    await _run_statements(engine, ["ALTER TABLE users ADD COLUMN IF NOT EXISTS last_reminder_at TIMESTAMPTZ"])


async def add_media_urls(engine: AsyncEngine) -> None:
    await _run_statements(
        engine,
        ["ALTER TABLE complaints ADD COLUMN IF NOT EXISTS media_urls JSONB DEFAULT '[]'::jsonb"],
    )


async def add_resolution_message(engine: AsyncEngine) -> None:
    await _run_statements(engine, ["ALTER TABLE complaints ADD COLUMN IF NOT EXISTS resolution_message TEXT"])


async def add_conversation_settings(engine: AsyncEngine) -> None:
    await _run_statements(
        engine,
        [
            "ALTER TABLE conversation_participants ADD COLUMN IF NOT EXISTS mute_until TIMESTAMPTZ",
            "ALTER TABLE conversation_participants ADD COLUMN IF NOT EXISTS custom_title VARCHAR",
        ],
    )


async def fix_users_status_constraint(engine: AsyncEngine) -> None:
    """Replace the users status check so it admits every lifecycle state."""
    await _run_statements(
        engine,
        [
            "UPDATE users SET status = 'unverified' WHERE status IS NULL "
            "OR status NOT IN ('unverified', 'pending', 'approved', 'rejected')",
            "ALTER TABLE users DROP CONSTRAINT IF EXISTS users_status_check",
            "ALTER TABLE users ADD CONSTRAINT users_status_check "
            "CHECK (status IN ('unverified', 'pending', 'approved', 'rejected'))",
        ],
    )


async def create_buckets(engine: AsyncEngine) -> None:
    """Create the storage buckets the API uploads into."""
    storage = StorageService()
    for name, public in BUCKETS.items():
        created = await storage.create_bucket(name, public=public)
        LOGGER.info(f"Bucket {name}: {'created' if created else 'already exists'} (public={public})")


async def check_schema(engine: AsyncEngine) -> None:
    """Report columns that the running code expects but the database lacks.

    Raises:
        RuntimeError: If any expected column is missing.
    """
    missing = []
    async with engine.connect() as conn:
        for table, columns in EXPECTED_COLUMNS.items():
            result = await conn.execute(
                text("SELECT column_name FROM information_schema.columns WHERE table_name = :table"),
                {"table": table},
            )
            present = {row[0] for row in result}
            if not present:
                missing.append(f"{table} (table)")
                continue
            missing.extend(f"{table}.{column}" for column in columns if column not in present)

    if missing:
        for item in missing:
            LOGGER.error(f"Missing: {item}")
        raise RuntimeError(f"{len(missing)} schema item(s) missing")
    LOGGER.info("Schema check passed")


MIGRATIONS: Dict[str, Migration] = {
    "add_status_columns": add_status_columns,
    "add_approved_at_column": add_approved_at_column,
    "add_announcement_body": add_announcement_body,
    "add_announcement_image_url": add_announcement_image_url,
    "add_last_reminder_at": add_last_reminder_at,
    "add_media_urls": add_media_urls,
    "add_resolution_message": add_resolution_message,
    "add_conversation_settings": add_conversation_settings,
    "fix_users_status_constraint": fix_users_status_constraint,
    "create_buckets": create_buckets,
    "check_schema": check_schema,
}


async def run_migration(name: str, engine: AsyncEngine) -> int:
    """Run one named migration and return the process exit code."""
    migration = MIGRATIONS.get(name)
    if migration is None:
        LOGGER.error(f"Unknown migration {name!r}. Available: {', '.join(sorted(MIGRATIONS))}")
        return 1

    LOGGER.info(f"Running migration: {name}")
    try:
        await migration(engine)
    except Exception as e:
        LOGGER.error(f"Migration {name} failed: {e}", exc_info=True)
        return 1
    finally:
        await engine.dispose()

    LOGGER.info(f"Migration {name} completed successfully")
    return 0
