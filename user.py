from __future__ import annotations


class User:
    """A library member who can hold reservations."""

    def __init__(self, id: int, name: str, email: str, created_at: str | None = None) -> None:
        self.id = int(id)
        self.name = name.strip()
        self.email = email.strip().lower()
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}>"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "created_at": self.created_at}

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            created_at=data.get("created_at"),
        )
