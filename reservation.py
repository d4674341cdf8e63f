from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum

from errors import ConflictError, InvalidRequestError


class ReservationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"

    @classmethod
    def parse(cls, value: "str | ReservationStatus") -> "ReservationStatus":
        if isinstance(value, ReservationStatus):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as e:
            allowed = ", ".join(s.value for s in cls)
            raise InvalidRequestError(f"Unknown status '{value}'. Allowed: {allowed}") from e


# RETURNED and OVERDUE are terminal: an OVERDUE reservation is a processed late return.
_TRANSITIONS = {
    ReservationStatus.ACTIVE: {ReservationStatus.RETURNED, ReservationStatus.OVERDUE},
    ReservationStatus.RETURNED: set(),
    ReservationStatus.OVERDUE: set(),
}


def transition(current: ReservationStatus, target: ReservationStatus) -> ReservationStatus:
    """Validate a status change and return the new status.

    Raises ConflictError when ``target`` is not reachable from ``current``.
    """
    if target not in _TRANSITIONS[current]:
        raise ConflictError(f"Cannot move reservation from {current.value} to {target.value}")
    return target


class Reservation:
    """One book rented by one user for a bounded number of days."""

    def __init__(self, user_id: int, book_external_id: int, rental_days: int, start_date: date,
                 daily_rate: Decimal, total_fee: Decimal,
                 expected_return_date: date | None = None,
                 status: ReservationStatus = ReservationStatus.ACTIVE,
                 actual_return_date: date | None = None,
                 late_fee: Decimal = Decimal("0.00"),
                 created_at: datetime | None = None,
                 id: int | None = None) -> None:
        self.id = id
        self.user_id = int(user_id)
        self.book_external_id = int(book_external_id)
        self.rental_days = int(rental_days)
        self.start_date = start_date
        self.expected_return_date = expected_return_date or start_date + timedelta(days=self.rental_days)
        self.daily_rate = daily_rate
        self.total_fee = total_fee
        self.status = status
        self.actual_return_date = actual_return_date
        self.late_fee = late_fee
        self.created_at = created_at or datetime.now(timezone.utc)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<Reservation id={self.id} user={self.user_id} book={self.book_external_id} {self.status.value}>"

    def mark_returned(self, return_date: date, late_fee: Decimal, status: ReservationStatus) -> None:
        self.status = transition(self.status, status)
        self.actual_return_date = return_date
        self.late_fee = late_fee

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

    @staticmethod
    def from_dict(data: dict) -> "Reservation":
        # SQLite rows carry dates and money as text
        actual = data.get("actual_return_date")
        return Reservation(
            id=data.get("id"),
            user_id=data["user_id"],
            book_external_id=data["book_external_id"],
            rental_days=data["rental_days"],
            start_date=date.fromisoformat(data["start_date"]),
            expected_return_date=date.fromisoformat(data["expected_return_date"]),
            actual_return_date=date.fromisoformat(actual) if actual else None,
            daily_rate=Decimal(data["daily_rate"]),
            total_fee=Decimal(data["total_fee"]),
            late_fee=Decimal(data.get("late_fee") or "0.00"),
            status=ReservationStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
