import logging
import sqlite3
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from book import Book
from database import get_db_connection
from errors import BookUnavailableError, ConflictError, InvalidRequestError, NotFoundError
from fees import round_money

logger = logging.getLogger(__name__)

_BOOK_COLUMNS = "external_id, title, price, stock_quantity, available_quantity, created_at"


class BookLedger:
    """Book records and their stock/available counters.

    Counter changes are single conditional UPDATE statements, so the
    availability check and the decrement happen atomically inside SQLite.
    """

    def add_book(self, external_id: int, title: str, price, stock_quantity: int,
                 available_quantity: Optional[int] = None) -> Book:
        title = (title or "").strip()
        if not title:
            raise InvalidRequestError("Book title cannot be empty.")
        try:
            price = round_money(Decimal(str(price)))
        except (InvalidOperation, ValueError) as e:
            raise InvalidRequestError(f"Invalid price: {price!r}") from e
        if price < 0:
            raise InvalidRequestError("Price cannot be negative.")
        if stock_quantity < 0:
            raise InvalidRequestError("Stock quantity cannot be negative.")
        if available_quantity is None:
            available_quantity = stock_quantity
        if not 0 <= available_quantity <= stock_quantity:
            raise InvalidRequestError("Available quantity must be between 0 and stock quantity.")

        conn = get_db_connection()
        try:
            conn.execute(
                "INSERT INTO books (external_id, title, price, stock_quantity, available_quantity) "
                "VALUES (?, ?, ?, ?, ?)",
                (external_id, title, f"{price:.2f}", stock_quantity, available_quantity),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Book with external id {external_id} already exists.") from e
        except OverflowError as e:
            raise InvalidRequestError("External id and quantities must fit in a 64-bit integer.") from e
        finally:
            conn.close()

        logger.info("Added book %s (%s), stock=%s", external_id, title, stock_quantity)
        return self.find_by_external_id(external_id)

    def find_by_external_id(self, external_id: int) -> Optional[Book]:
        conn = get_db_connection()
        try:
            row = conn.execute(
                f"SELECT {_BOOK_COLUMNS} FROM books WHERE external_id = ?", (external_id,)
            ).fetchone()
        except OverflowError:
            # Beyond SQLite's INTEGER range no row can match
            row = None
        finally:
            conn.close()
        return Book.from_dict(dict(row)) if row else None

    def list_books(self) -> List[Book]:
        conn = get_db_connection()
        try:
            rows = conn.execute(f"SELECT {_BOOK_COLUMNS} FROM books ORDER BY external_id").fetchall()
            return [Book.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def decrease_available(self, external_id: int) -> None:
        """Take one unit of stock. Raises BookUnavailableError if none is left."""
        conn = get_db_connection()
        try:
            cursor = conn.execute(
                "UPDATE books SET available_quantity = available_quantity - 1 "
                "WHERE external_id = ? AND available_quantity > 0",
                (external_id,),
            )
            conn.commit()
            updated = cursor.rowcount
        finally:
            conn.close()

        if updated == 0:
            if self.find_by_external_id(external_id) is None:
                raise NotFoundError(f"Book {external_id} not found.")
            raise BookUnavailableError(f"Book {external_id} is not available.")

    def increase_available(self, external_id: int) -> None:
        """Give one unit of stock back, never going above the stock quantity."""
        conn = get_db_connection()
        try:
            cursor = conn.execute(
                "UPDATE books SET available_quantity = available_quantity + 1 "
                "WHERE external_id = ? AND available_quantity < stock_quantity",
                (external_id,),
            )
            conn.commit()
            updated = cursor.rowcount
        finally:
            conn.close()

        if updated == 0:
            logger.warning("Available quantity of book %s already at stock; not incremented", external_id)
