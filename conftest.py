import pytest

import database
from reservations import build_service


@pytest.fixture
def service(tmp_path):
    # Each test gets its own database file
    original = database.DATABASE_FILE
    svc = build_service(db_file=str(tmp_path / "reservations.db"))
    yield svc
    database.DATABASE_FILE = original
