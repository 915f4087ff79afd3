"""
Database schema definitions.
"""
import sqlite3
import logging

from .. import config

CURRENT_SCHEMA_VERSION = 1

_FOLDER_FOR_CATEGORY = dict(config.DEFAULT_RULE_SEEDS)


def init_schema(conn: sqlite3.Connection):
    """
    Applies the core schema to the database and seeds the default rule and
    extension mapping tables when they are empty.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. User settings (key/value)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key         TEXT PRIMARY KEY,
            value       TEXT NOT NULL,
            updated_at  DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        """)

        # 3. Custom rules; conditions are a JSON list
        conn.execute("""
        CREATE TABLE IF NOT EXISTS rules (
            id                      INTEGER PRIMARY KEY AUTOINCREMENT,
            name                    TEXT NOT NULL,
            priority                INTEGER NOT NULL DEFAULT 0,
            enabled                 INTEGER NOT NULL DEFAULT 1,
            conditions              TEXT NOT NULL,
            condition_logic         TEXT DEFAULT 'AND',
            action_type             TEXT NOT NULL,
            action_destination      TEXT,
            action_rename_pattern   TEXT,
            create_date_subfolder   INTEGER DEFAULT 0,
            created_at              DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at              DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        """)

        # 4. One default rule per category
        conn.execute("""
        CREATE TABLE IF NOT EXISTS default_rules (
            id                      INTEGER PRIMARY KEY AUTOINCREMENT,
            category                TEXT NOT NULL UNIQUE,
            destination             TEXT NOT NULL,
            enabled                 INTEGER NOT NULL DEFAULT 1,
            create_date_subfolder   INTEGER NOT NULL DEFAULT 0,
            priority                INTEGER NOT NULL DEFAULT 0
        );
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS extension_mappings (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            extension       TEXT NOT NULL UNIQUE,
            category        TEXT NOT NULL,
            target_folder   TEXT NOT NULL,
            created_at      DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS exclusions (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            pattern         TEXT NOT NULL,
            pattern_type    TEXT NOT NULL,
            created_at      DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        """)

        # 5. Operation log for undo
        conn.execute("""
        CREATE TABLE IF NOT EXISTS history (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            operation_type  TEXT NOT NULL,
            description     TEXT NOT NULL,
            details         TEXT,
            files_affected  INTEGER DEFAULT 1,
            is_undone       INTEGER DEFAULT 0,
            created_at      DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        """)

        # 6. Indices
        conn.execute("CREATE INDEX IF NOT EXISTS idx_rules_priority ON rules(priority);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_rules_enabled ON rules(enabled);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_history_created ON history(created_at);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_history_undone ON history(is_undone);")

        seed_defaults(conn)

    logging.debug("Database schema initialized.")


def seed_defaults(conn: sqlite3.Connection):
    """Fills default_rules and extension_mappings if either is empty."""
    cur = conn.cursor()

    cur.execute("SELECT COUNT(*) FROM default_rules")
    if cur.fetchone()[0] == 0:
        for order, (category, folder) in enumerate(config.DEFAULT_RULE_SEEDS):
            conn.execute(
                "INSERT OR IGNORE INTO default_rules (category, destination, enabled, create_date_subfolder, priority) "
                "VALUES (?, ?, 1, 0, ?)",
                (category, folder, order),
            )
        logging.debug(f"Seeded {len(config.DEFAULT_RULE_SEEDS)} default rules.")

    cur.execute("SELECT COUNT(*) FROM extension_mappings")
    if cur.fetchone()[0] == 0:
        rows = [
            (ext, category, _FOLDER_FOR_CATEGORY[category])
            for ext, category in sorted(config.EXT_TO_CATEGORY.items())
        ]
        conn.executemany(
            "INSERT OR IGNORE INTO extension_mappings (extension, category, target_folder) VALUES (?, ?, ?)",
            rows,
        )
        logging.debug(f"Seeded {len(rows)} extension mappings.")
