import logging
from typing import List, Optional

from database import get_db_connection
from errors import ConflictError, NotFoundError
from reservation import Reservation, ReservationStatus

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, user_id, book_external_id, rental_days, start_date, expected_return_date, "
    "actual_return_date, daily_rate, total_fee, late_fee, status, created_at"
)


class ReservationStore:
    """Persists reservations in SQLite. Reservations are never deleted."""

    def save(self, reservation: Reservation,
             expected_status: Optional[ReservationStatus] = None) -> Reservation:
        """Insert a new reservation or update an existing one.

        The id is assigned on first save. On update, ``expected_status`` turns
        the write into a compare-and-set on the stored status; a mismatch
        raises ConflictError.
        """
        data = reservation.to_dict()
        conn = get_db_connection()
        try:
            if reservation.id is None:
                cursor = conn.execute(
                    "INSERT INTO reservations (user_id, book_external_id, rental_days, start_date, "
                    "expected_return_date, actual_return_date, daily_rate, total_fee, late_fee, "
                    "status, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        data["user_id"], data["book_external_id"], data["rental_days"],
                        data["start_date"], data["expected_return_date"], data["actual_return_date"],
                        data["daily_rate"], data["total_fee"], data["late_fee"],
                        data["status"], data["created_at"],
                    ),
                )
                conn.commit()
                reservation.id = cursor.lastrowid
                return reservation

            sql = ("UPDATE reservations SET actual_return_date = ?, late_fee = ?, status = ? "
                   "WHERE id = ?")
            params = [data["actual_return_date"], data["late_fee"], data["status"], reservation.id]
            if expected_status is not None:
                sql += " AND status = ?"
                params.append(expected_status.value)
            cursor = conn.execute(sql, params)
            conn.commit()
            updated = cursor.rowcount
        finally:
            conn.close()

        if updated == 0:
            if self.find_by_id(reservation.id) is None:
                raise NotFoundError(f"Reservation {reservation.id} not found.")
            raise ConflictError(f"Reservation {reservation.id} was modified concurrently.")
        return reservation

    def find_by_id(self, reservation_id: int) -> Optional[Reservation]:
        conn = get_db_connection()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM reservations WHERE id = ?", (reservation_id,)
            ).fetchone()
        except OverflowError:
            # Beyond SQLite's INTEGER range no row can match
            row = None
        finally:
            conn.close()
        return Reservation.from_dict(dict(row)) if row else None

    def find_all(self) -> List[Reservation]:
        return self._query(f"SELECT {_COLUMNS} FROM reservations ORDER BY id")

    def find_by_user_id(self, user_id: int) -> List[Reservation]:
        return self._query(
            f"SELECT {_COLUMNS} FROM reservations WHERE user_id = ? ORDER BY id", (user_id,)
        )

    def find_by_status(self, status: ReservationStatus) -> List[Reservation]:
        return self._query(
            f"SELECT {_COLUMNS} FROM reservations WHERE status = ? ORDER BY id", (status.value,)
        )

    def _query(self, sql: str, params: tuple = ()) -> List[Reservation]:
        conn = get_db_connection()
        try:
            rows = conn.execute(sql, params).fetchall()
        except OverflowError:
            rows = []
        finally:
            conn.close()
        return [Reservation.from_dict(dict(row)) for row in rows]
