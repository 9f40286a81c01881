#!/usr/bin/env python3
"""Check the Kai tables exist, printing the DDL to create any that are missing."""
import sys
sys.path.insert(0, '.')

from kai.core.config import get_settings
from kai.db.supabase_client import get_supabase

DDL = {
    "journal_entries": """
    CREATE TABLE IF NOT EXISTS {table} (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        text TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        date TEXT,
        keywords JSONB,
        created_at TIMESTAMPTZ DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS {table}_user_timestamp_idx ON {table} (user_id, timestamp DESC);
    """,
    "chat_history": """
    CREATE TABLE IF NOT EXISTS {table} (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id TEXT NOT NULL,
        question TEXT NOT NULL,
        answer TEXT NOT NULL,
        timestamp TEXT,
        sources JSONB,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS {table}_user_created_idx ON {table} (user_id, created_at DESC);
    """,
    "user_settings": """
    CREATE TABLE IF NOT EXISTS {table} (
        user_id TEXT PRIMARY KEY,
        chat_prompt TEXT,
        updated_at TEXT
    );
    """,
}


def run_migration():
    supabase = get_supabase()
    prefix = get_settings().KAI_TABLE_PREFIX
    missing = []

    for name, ddl in DDL.items():
        table = f"{prefix}{name}"
        print(f"🔍 Checking table {table}...")
        try:
            supabase.table(table).select('*').limit(1).execute()
            print(f"✅ {table} exists")
        except Exception as e:
            print(f"❌ {table} unavailable: {e}")
            missing.append(ddl.format(table=table))

    if missing:
        print("💡 Run this SQL in your Supabase SQL editor:")
        for ddl in missing:
            print(ddl)
        sys.exit(1)

if __name__ == "__main__":
    run_migration()
