"""Reservation engine: creation, returns with late fees, and history queries."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

import database
import fees
from catalog import BookLedger
from errors import BookUnavailableError, InvalidRequestError, NotFoundError
from reservation import Reservation, ReservationStatus
from store import ReservationStore
from users import UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationView:
    """Read-only projection of a reservation returned to callers."""

    id: int
    user_id: int
    book_external_id: int
    rental_days: int
    start_date: date
    expected_return_date: date
    actual_return_date: Optional[date]
    daily_rate: Decimal
    total_fee: Decimal
    late_fee: Decimal
    status: ReservationStatus
    created_at: datetime

    @classmethod
    def from_reservation(cls, r: Reservation) -> "ReservationView":
        return cls(
            id=r.id,
            user_id=r.user_id,
            book_external_id=r.book_external_id,
            rental_days=r.rental_days,
            start_date=r.start_date,
            expected_return_date=r.expected_return_date,
            actual_return_date=r.actual_return_date,
            daily_rate=r.daily_rate,
            total_fee=r.total_fee,
            late_fee=r.late_fee,
            status=r.status,
            created_at=r.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_external_id": self.book_external_id,
            "rental_days": self.rental_days,
            "start_date": self.start_date.isoformat(),
            "expected_return_date": self.expected_return_date.isoformat(),
            "actual_return_date": self.actual_return_date.isoformat() if self.actual_return_date else None,
            "daily_rate": f"{self.daily_rate:.2f}",
            "total_fee": f"{self.total_fee:.2f}",
            "late_fee": f"{self.late_fee:.2f}",
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


class ReservationService:
    """Validates requests, computes dates and fees, and drives status changes.

    Collaborators are injected so they can be swapped for stand-ins in tests:
    ``users`` resolves user ids, ``books`` owns the availability counters and
    ``store`` persists reservations.
    """

    def __init__(self, users: UserDirectory, books: BookLedger, store: ReservationStore) -> None:
        self.users = users
        self.books = books
        self.store = store

    # ------------------------- Commands ------------------------- #
    def create_reservation(self, user_id: int, book_external_id: int, rental_days: int,
                           start_date: date) -> ReservationView:
        if isinstance(rental_days, bool) or not isinstance(rental_days, int) or rental_days <= 0:
            raise InvalidRequestError("Rental days must be a positive integer.")
        if not isinstance(start_date, date):
            raise InvalidRequestError("Start date must be a valid calendar date.")
        if isinstance(start_date, datetime):
            start_date = start_date.date()
        try:
            expected_return_date = start_date + timedelta(days=rental_days)
        except OverflowError as e:
            raise InvalidRequestError("Rental period runs past the supported date range.") from e

        self.users.resolve(user_id)
        book = self.books.find_by_external_id(book_external_id)
        if book is None:
            raise NotFoundError(f"Book {book_external_id} not found.")
        if book.available_quantity <= 0:
            logger.info("Rejected reservation for book %s: no copies available", book_external_id)
            raise BookUnavailableError(f"Book {book_external_id} is not available.")

        reservation = Reservation(
            user_id=user_id,
            book_external_id=book.external_id,
            rental_days=rental_days,
            start_date=start_date,
            expected_return_date=expected_return_date,
            daily_rate=book.price,
            total_fee=fees.total_fee(book.price, rental_days),
        )

        # The ledger re-checks availability atomically; a concurrent reservation
        # may have taken the last copy since the read above.
        self.books.decrease_available(book.external_id)
        try:
            saved = self.store.save(reservation)
        except Exception:
            logger.warning("Saving reservation for book %s failed; releasing copy", book.external_id)
            self.books.increase_available(book.external_id)
            raise

        logger.info(
            "Created reservation %s: user=%s book=%s days=%s total_fee=%s",
            saved.id, user_id, book.external_id, rental_days, saved.total_fee,
        )
        return ReservationView.from_reservation(saved)

    def return_book(self, reservation_id: int, return_date: date) -> ReservationView:
        reservation = self._get(reservation_id)
        if not isinstance(return_date, date):
            raise InvalidRequestError("Return date must be a valid calendar date.")
        if isinstance(return_date, datetime):
            return_date = return_date.date()
        if return_date < reservation.start_date:
            raise InvalidRequestError("Return date cannot be before the start date.")

        days_late = fees.late_days(reservation.expected_return_date, return_date)
        if days_late == 0:
            target = ReservationStatus.RETURNED
        else:
            target = ReservationStatus.OVERDUE
        late_fee = fees.late_fee(reservation.daily_rate, days_late)

        previous = reservation.status
        reservation.mark_returned(return_date, late_fee, target)
        saved = self.store.save(reservation, expected_status=previous)
        self.books.increase_available(reservation.book_external_id)

        logger.info(
            "Returned reservation %s: status=%s late_days=%s late_fee=%s",
            saved.id, saved.status.value, days_late, saved.late_fee,
        )
        return ReservationView.from_reservation(saved)

    # ------------------------- Queries ------------------------- #
    def get_reservation_by_id(self, reservation_id: int) -> ReservationView:
        return ReservationView.from_reservation(self._get(reservation_id))

    def get_all_reservations(self) -> List[ReservationView]:
        return self._views(self.store.find_all())

    def get_reservations_by_user_id(self, user_id: int) -> List[ReservationView]:
        return self._views(self.store.find_by_user_id(user_id))

    def get_reservations_by_status(self, status) -> List[ReservationView]:
        return self._views(self.store.find_by_status(ReservationStatus.parse(status)))

    def get_active_reservations(self) -> List[ReservationView]:
        return self.get_reservations_by_status(ReservationStatus.ACTIVE)

    def get_overdue_reservations(self) -> List[ReservationView]:
        return self.get_reservations_by_status(ReservationStatus.OVERDUE)

    # ------------------------- Helpers ------------------------- #
    def _get(self, reservation_id: int) -> Reservation:
        reservation = self.store.find_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found.")
        return reservation

    @staticmethod
    def _views(reservations: List[Reservation]) -> List[ReservationView]:
        return [ReservationView.from_reservation(r) for r in reservations]


def build_service(db_file: Optional[str] = None) -> ReservationService:
    """Wire the SQLite-backed collaborators into a ReservationService.

    Passing ``db_file`` points the module-level database helpers at that file.
    """
    if db_file:
        database.DATABASE_FILE = db_file
    database.initialize_database()
    return ReservationService(UserDirectory(), BookLedger(), ReservationStore())
