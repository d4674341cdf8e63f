from __future__ import annotations

from decimal import Decimal


class Book:
    """A rentable title with its price and stock counters."""

    def __init__(self, external_id: int, title: str, price: Decimal | str | int,
                 stock_quantity: int, available_quantity: int | None = None,
                 created_at: str | None = None) -> None:
        self.external_id = int(external_id)
        self.title = title.strip()
        self.price = Decimal(str(price))
        self.stock_quantity = int(stock_quantity)
        self.available_quantity = self.stock_quantity if available_quantity is None else int(available_quantity)
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} (#{self.external_id}, {self.available_quantity}/{self.stock_quantity} available)"

    def to_dict(self) -> dict:
        return {
            "external_id": self.external_id,
            "title": self.title,
            "price": f"{self.price:.2f}",
            "stock_quantity": self.stock_quantity,
            "available_quantity": self.available_quantity,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            external_id=data["external_id"],
            title=data["title"],
            price=data["price"],
            stock_quantity=data["stock_quantity"],
            available_quantity=data.get("available_quantity"),
            created_at=data.get("created_at"),
        )
