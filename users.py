import logging
import sqlite3
from typing import List

from database import get_db_connection
from errors import ConflictError, InvalidRequestError, NotFoundError
from user import User

logger = logging.getLogger(__name__)


class UserDirectory:
    """Resolves user ids to user records stored in SQLite."""

    def add_user(self, name: str, email: str) -> User:
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name:
            raise InvalidRequestError("User name cannot be empty.")
        if "@" not in email:
            raise InvalidRequestError(f"Invalid email address: {email!r}")

        conn = get_db_connection()
        try:
            cursor = conn.execute("INSERT INTO users (name, email) VALUES (?, ?)", (name, email))
            conn.commit()
            user_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"User with email {email} already exists.") from e
        finally:
            conn.close()

        logger.info("Registered user %s (%s)", user_id, email)
        return self.resolve(user_id)

    def resolve(self, user_id: int) -> User:
        conn = get_db_connection()
        try:
            row = conn.execute(
                "SELECT id, name, email, created_at FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        except OverflowError:
            # Beyond SQLite's INTEGER range no row can match
            row = None
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(f"User {user_id} not found.")
        return User.from_dict(dict(row))

    def list_users(self) -> List[User]:
        conn = get_db_connection()
        try:
            rows = conn.execute("SELECT id, name, email, created_at FROM users ORDER BY id").fetchall()
            return [User.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()
