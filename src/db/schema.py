"""Database schema for profiles and habits

Row changes are broadcast with pg_notify so that subscribers can follow a
user's profile and habit list without polling:
- 'profile_changes': JSON of the changed profile row ({"user_id", "deleted": true} on delete)
- 'habit_changes': owner_id of the habit that changed
"""
import logging

from src.db.connection import Database, translate_errors

logger = logging.getLogger(__name__)

PROFILE_CHANNEL = "profile_changes"
HABIT_CHANNEL = "habit_changes"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
    xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
    display_name TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS habits (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    owner_id TEXT NOT NULL REFERENCES profiles (user_id) ON DELETE CASCADE,
    name TEXT NOT NULL CHECK (length(btrim(name)) > 0),
    streak INTEGER NOT NULL DEFAULT 0 CHECK (streak >= 0),
    status TEXT NOT NULL DEFAULT 'Not Activated'
        CHECK (status IN ('Not Activated', 'In Progress', 'Activated')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
);

CREATE INDEX IF NOT EXISTS idx_habits_owner ON habits (owner_id, created_at);

CREATE OR REPLACE FUNCTION notify_profile_change() RETURNS trigger AS $$
BEGIN
    IF TG_OP = 'DELETE' THEN
        PERFORM pg_notify(
            'profile_changes',
            json_build_object('user_id', OLD.user_id, 'deleted', true)::text
        );
        RETURN OLD;
    END IF;
    PERFORM pg_notify(
        'profile_changes',
        json_build_object(
            'user_id', NEW.user_id,
            'level', NEW.level,
            'xp', NEW.xp,
            'display_name', NEW.display_name
        )::text
    );
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION notify_habit_change() RETURNS trigger AS $$
BEGIN
    IF TG_OP = 'DELETE' THEN
        PERFORM pg_notify('habit_changes', OLD.owner_id);
        RETURN OLD;
    END IF;
    PERFORM pg_notify('habit_changes', NEW.owner_id);
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS profiles_notify ON profiles;
CREATE TRIGGER profiles_notify
    AFTER INSERT OR UPDATE OR DELETE ON profiles
    FOR EACH ROW EXECUTE FUNCTION notify_profile_change();

DROP TRIGGER IF EXISTS habits_notify ON habits;
CREATE TRIGGER habits_notify
    AFTER INSERT OR UPDATE OR DELETE ON habits
    FOR EACH ROW EXECUTE FUNCTION notify_habit_change();
"""


async def init_schema(database: Database) -> None:
    """Create tables and change-notification triggers (idempotent)"""
    with translate_errors("init_schema"):
        async with database.connection() as conn:
            await conn.execute(SCHEMA_SQL)
            await conn.commit()
    logger.info("Database schema ready")
