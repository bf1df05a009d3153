"""Database schema initialization for the ledger."""

from ..utils.logging_config import StructuredLogger
from .connection import get_db_connection, get_db_path

logger = StructuredLogger(__name__)

SCHEMA_VERSION = 1

REQUIRED_TABLES = (
    "balances",
    "credits",
    "company_tokens",
    "event_log",
)


def init_db():
    """Initialize the database with the required schema. Safe to call repeatedly."""
    logger.info("Initializing database", path=get_db_path())
    with get_db_connection() as conn:
        cursor = conn.cursor()

        # WAL mode: readers see a committed snapshot while a writer holds the lock
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")

        cursor.execute("BEGIN IMMEDIATE")

        # Emission balances, one row per principal
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS balances (
                principal TEXT PRIMARY KEY,
                emissions INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                CHECK (emissions >= 0)
            )
        """)

        # Credits
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS credits (
                token_id INTEGER PRIMARY KEY,
                owner TEXT NOT NULL,
                amount INTEGER NOT NULL,
                source TEXT NOT NULL,
                emission_data INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                uri TEXT,
                offset_at INTEGER,
                CHECK (token_id > 0),
                CHECK (amount > 0),
                CHECK (length(source) > 0),
                CHECK (active IN (0, 1))
            )
        """)

        # Owned-tokens index, written in the same transaction as the credit row
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS company_tokens (
                owner TEXT NOT NULL,
                position INTEGER NOT NULL,
                token_id INTEGER NOT NULL UNIQUE,
                PRIMARY KEY (owner, position),
                FOREIGN KEY(token_id) REFERENCES credits(token_id)
            )
        """)

        # Hash-chained audit log
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS event_log (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                principal TEXT NOT NULL,
                token_id INTEGER,
                payload_json TEXT NOT NULL,
                prev_hash TEXT NOT NULL,
                event_hash TEXT NOT NULL UNIQUE,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_credits_owner ON credits(owner, token_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_event_log_token ON event_log(token_id, seq)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_event_log_principal ON event_log(principal, seq)")

        # Write-once columns and the one-way active flag
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS credits_write_once
            BEFORE UPDATE OF token_id, owner, amount, source, emission_data, created_at ON credits
            WHEN NEW.token_id IS NOT OLD.token_id
              OR NEW.owner IS NOT OLD.owner
              OR NEW.amount IS NOT OLD.amount
              OR NEW.source IS NOT OLD.source
              OR NEW.emission_data IS NOT OLD.emission_data
              OR NEW.created_at IS NOT OLD.created_at
            BEGIN
                SELECT RAISE(ABORT, 'credit fields are write-once');
            END
        """)
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS credits_no_reactivation
            BEFORE UPDATE OF active ON credits
            WHEN OLD.active = 0 AND NEW.active != 0
            BEGIN
                SELECT RAISE(ABORT, 'offset credits cannot be reactivated');
            END
        """)
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS credits_no_delete
            BEFORE DELETE ON credits
            BEGIN
                SELECT RAISE(ABORT, 'credits are never deleted');
            END
        """)
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS event_log_append_only
            BEFORE UPDATE ON event_log
            BEGIN
                SELECT RAISE(ABORT, 'event_log is append-only');
            END
        """)
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS event_log_no_delete
            BEFORE DELETE ON event_log
            BEGIN
                SELECT RAISE(ABORT, 'event_log is append-only');
            END
        """)

        cursor.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        conn.commit()

    logger.info("Database initialized successfully", schema_version=SCHEMA_VERSION)
