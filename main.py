import logging
import subprocess
import sys
from datetime import date
from functools import wraps
from typing import Optional

import typer

import database
from config import settings
from errors import ReservationError
from reservation import ReservationStatus
from reservations import ReservationService, build_service
from utils.ui_helpers import print_reservation_list, print_reservation_result, set_output_mode
from utils.validators import DateValidator, QuantityValidator

APP_NAME = "Library Reservations CLI"


class ServiceManager:
    """Holds one ReservationService per database file."""

    _instance: Optional[ReservationService] = None
    _db_file_snapshot: Optional[str] = None

    @classmethod
    def get_instance(cls) -> ReservationService:
        current_db = getattr(database, "DATABASE_FILE", None)
        # Rebuild when the database file changes (e.g. a per-test database)
        if cls._instance is None or current_db != cls._db_file_snapshot:
            cls._instance = build_service()
            cls._db_file_snapshot = current_db
        return cls._instance


def handle_errors(func):
    """Report domain errors as one stable line and exit with code 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ReservationError as e:
            print(f"Error ({e.code}): {e.message}")
            raise typer.Exit(code=1)
    return wrapper


# --- Typer CLI application ---
app = typer.Typer(help=APP_NAME)

@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    logging.basicConfig(level=settings.log_level)
    if output:
        set_output_mode(output)

@app.command("add-user")
@handle_errors
def cli_add_user(name: str, email: str):
    """Register a library user."""
    user = ServiceManager.get_instance().users.add_user(name, email)
    print(f"Added user {user.id}: {user.name} <{user.email}>")

@app.command("add-book")
@handle_errors
def cli_add_book(
    external_id: int,
    title: str,
    price: str = typer.Argument(..., help="Daily rental rate, e.g. 15.99"),
    stock: int = typer.Argument(..., help="Number of copies owned"),
):
    """Add a book with its daily rate and stock."""
    book = ServiceManager.get_instance().books.add_book(external_id, title, price, stock)
    print(f"Added book {book.external_id}: {book.title} ({book.available_quantity}/{book.stock_quantity} available)")

@app.command("reserve")
@handle_errors
def cli_reserve(
    user_id: int,
    book_external_id: int,
    days: int = typer.Argument(..., help="Rental duration in days"),
    start: Optional[str] = typer.Option(None, "--start", "-s", help="Start date YYYY-MM-DD (default: today)"),
):
    """Reserve a book for a user."""
    start_date = DateValidator.parse_date(start, default=date.today())
    view = ServiceManager.get_instance().create_reservation(
        user_id, book_external_id, QuantityValidator.positive_days(days), start_date
    )
    print_reservation_result(view.to_dict())

@app.command("return")
@handle_errors
def cli_return(
    reservation_id: int,
    return_date: Optional[str] = typer.Option(None, "--date", "-d", help="Return date YYYY-MM-DD (default: today)"),
):
    """Process the return of a reserved book."""
    when = DateValidator.parse_date(return_date, default=date.today())
    view = ServiceManager.get_instance().return_book(reservation_id, when)
    print_reservation_result(view.to_dict())

@app.command("show")
@handle_errors
def cli_show(reservation_id: int):
    """Show one reservation."""
    view = ServiceManager.get_instance().get_reservation_by_id(reservation_id)
    print_reservation_result(view.to_dict())

@app.command("list")
@handle_errors
def cli_list(
    user: Optional[int] = typer.Option(None, "--user", "-u", help="Only this user's reservations"),
    status: Optional[str] = typer.Option(None, "--status", help="ACTIVE, RETURNED or OVERDUE"),
):
    """List reservations, optionally filtered by user or status."""
    svc = ServiceManager.get_instance()
    if user is not None:
        views = svc.get_reservations_by_user_id(user)
        if status:
            wanted = ReservationStatus.parse(status)
            views = [v for v in views if v.status == wanted]
    elif status:
        views = svc.get_reservations_by_status(status)
    else:
        views = svc.get_all_reservations()
    print_reservation_list([v.to_dict() for v in views])

@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host", help="Bind address"),
    port: int = typer.Option(settings.api_port, "--port", help="Bind port"),
):
    """Start the HTTP API with uvicorn."""
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args, check=False)
    except KeyboardInterrupt:
        print("Server stopped.")


if __name__ == "__main__":
    app()
