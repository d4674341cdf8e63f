import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

_STATUS_STYLES = {"ACTIVE": "green", "RETURNED": "cyan", "OVERDUE": "red"}

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _plain_line(r: Dict[str, Any]) -> str:
    line = (f"#{r['id']} user={r['user_id']} book={r['book_external_id']} {r['status']} "
            f"{r['start_date']} -> {r['expected_return_date']} total={r['total_fee']}")
    if r.get("actual_return_date"):
        line += f" returned={r['actual_return_date']} late_fee={r['late_fee']}"
    return line

def print_reservation_result(reservation: Dict[str, Any]) -> None:
    """Print one reservation in the current output mode.
    - plain: 'Field: value' lines
    - json: JSON object
    - rich: Panel with the main fields
    """
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(reservation, ensure_ascii=False))
    elif mode == "rich":
        style = _STATUS_STYLES.get(reservation["status"], "white")
        content = (
            f"[bold]User:[/] {reservation['user_id']}   [bold]Book:[/] {reservation['book_external_id']}\n"
            f"[bold]Status:[/] [{style}]{reservation['status']}[/]\n"
            f"[bold]Period:[/] {reservation['start_date']} -> {reservation['expected_return_date']}"
            f" ({reservation['rental_days']} days)\n"
            f"[bold]Daily rate:[/] {reservation['daily_rate']}   [bold]Total fee:[/] {reservation['total_fee']}\n"
            f"[bold]Returned:[/] {reservation['actual_return_date'] or '-'}"
            f"   [bold]Late fee:[/] {reservation['late_fee']}"
        )
        _console.print(Panel.fit(content, title=f"Reservation #{reservation['id']}", border_style=style))
    else:
        print(f"Reservation: {reservation['id']}")
        print(f"User: {reservation['user_id']}")
        print(f"Book: {reservation['book_external_id']}")
        print(f"Status: {reservation['status']}")
        print(f"Start: {reservation['start_date']}")
        print(f"Expected return: {reservation['expected_return_date']}")
        print(f"Actual return: {reservation['actual_return_date'] or '-'}")
        print(f"Daily rate: {reservation['daily_rate']}")
        print(f"Total fee: {reservation['total_fee']}")
        print(f"Late fee: {reservation['late_fee']}")

def print_reservation_list(reservations: List[Dict[str, Any]]) -> None:
    """Print a reservation list in the current output mode."""
    mode = get_output_mode()

    if not reservations:
        print("No reservations found.")
        return

    if mode == "json":
        print(json.dumps(reservations, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Reservations", show_lines=True, header_style="bold cyan")
        for column in ("ID", "User", "Book", "Status", "Start", "Expected", "Returned", "Total", "Late fee"):
            table.add_column(column)
        for r in reservations:
            style = _STATUS_STYLES.get(r["status"], "white")
            table.add_row(
                str(r["id"]), str(r["user_id"]), str(r["book_external_id"]),
                f"[{style}]{r['status']}[/]", r["start_date"], r["expected_return_date"],
                r["actual_return_date"] or "-", r["total_fee"], r["late_fee"],
            )
        _console.print(table)
    else:
        for r in reservations:
            print(_plain_line(r))
