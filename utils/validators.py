from datetime import date
from typing import Optional

from errors import InvalidRequestError


class DateValidator:
    """Parses ISO calendar dates typed on the command line."""

    @staticmethod
    def parse_date(raw: Optional[str], default: Optional[date] = None) -> date:
        if raw is None or not raw.strip():
            if default is None:
                raise InvalidRequestError("A date is required (YYYY-MM-DD).")
            return default
        try:
            return date.fromisoformat(raw.strip())
        except ValueError as e:
            raise InvalidRequestError(f"Invalid date '{raw}'. Use YYYY-MM-DD.") from e


class QuantityValidator:
    """Very basic numeric checks for CLI arguments."""

    @staticmethod
    def positive_days(days: int) -> int:
        if days <= 0:
            raise InvalidRequestError("Rental days must be a positive integer.")
        return days
