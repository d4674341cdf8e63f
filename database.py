import logging
import os
import sqlite3
import tempfile

from dotenv import load_dotenv

from config import settings

# Make sure .env is loaded before LIBRARY_DB_FILE is read, regardless of import order.
load_dotenv()

logger = logging.getLogger(__name__)

# Default database file.
# Priority:
# 1) LIBRARY_DB_FILE (explicit override)
# 2) Per-process temp file
DATABASE_FILE = (
    os.environ.get("LIBRARY_DB_FILE")
    or settings.database_file
    or os.path.join(tempfile.gettempdir(), f"library_reservations_{os.getpid()}.db")
)


def get_db_connection() -> sqlite3.Connection:
    """Open a new connection to the SQLite database.

    Connections are per operation. The busy timeout lets concurrent writers
    queue on the database lock instead of failing immediately.
    """
    conn = sqlite3.connect(DATABASE_FILE, timeout=settings.database_timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_tables() -> None:
    """Create the users, books and reservations tables if they do not exist."""
    conn = get_db_connection()
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Prices are stored as decimal text so fee arithmetic stays exact
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                external_id INTEGER PRIMARY KEY,
                title TEXT NOT NULL,
                price TEXT NOT NULL,
                stock_quantity INTEGER NOT NULL CHECK(stock_quantity >= 0),
                available_quantity INTEGER NOT NULL
                    CHECK(available_quantity >= 0 AND available_quantity <= stock_quantity),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS reservations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                book_external_id INTEGER NOT NULL,
                rental_days INTEGER NOT NULL CHECK(rental_days > 0),
                start_date TEXT NOT NULL,
                expected_return_date TEXT NOT NULL,
                actual_return_date TEXT,
                daily_rate TEXT NOT NULL,
                total_fee TEXT NOT NULL,
                late_fee TEXT NOT NULL DEFAULT '0.00',
                status TEXT NOT NULL CHECK(status IN ('ACTIVE', 'RETURNED', 'OVERDUE')),
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id),
                FOREIGN KEY (book_external_id) REFERENCES books(external_id)
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_reservations_user_id ON reservations(user_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_reservations_status ON reservations(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_reservations_book ON reservations(book_external_id)")

        conn.commit()
    finally:
        conn.close()


def initialize_database() -> None:
    """Initialize the database, creating tables if needed."""
    create_tables()
    logger.debug("Database ready at %s", DATABASE_FILE)
