import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import settings
from database import get_db_connection
from errors import InvalidRequestError, NotFoundError, ReservationError
from reservations import ReservationView, build_service

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

service = build_service()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s %s starting", settings.app_name, settings.app_version)
    try:
        yield
    finally:
        logger.info("%s shutting down", settings.app_name)

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error mapping ---
@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    """Map each domain error kind to its stable status code and error code."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies (bad dates, missing fields) are invalid requests too."""
    return JSONResponse(
        status_code=InvalidRequestError.status_code,
        content={"detail": jsonable_encoder(exc.errors()), "code": InvalidRequestError.code},
    )

# --- Models ---
class UserCreateModel(BaseModel):
    name: str
    email: str

class UserModel(BaseModel):
    id: int
    name: str
    email: str
    created_at: str | None = None

class BookCreateModel(BaseModel):
    external_id: int
    title: str
    price: Decimal = Field(..., description="Daily rental rate")
    stock_quantity: int
    available_quantity: int | None = Field(default=None, description="Defaults to stock quantity")

class BookModel(BaseModel):
    external_id: int
    title: str
    price: str
    stock_quantity: int
    available_quantity: int
    created_at: str | None = None

class ReservationCreateModel(BaseModel):
    user_id: int
    book_external_id: int
    rental_days: int
    start_date: date

class ReturnBookModel(BaseModel):
    return_date: date

class ReservationModel(BaseModel):
    id: int
    user_id: int
    book_external_id: int
    rental_days: int
    start_date: str
    expected_return_date: str
    actual_return_date: str | None = None
    daily_rate: str
    total_fee: str
    late_fee: str
    status: str  # ACTIVE, RETURNED, OVERDUE
    created_at: str

def _to_model(view: ReservationView) -> ReservationModel:
    return ReservationModel(**view.to_dict())

def _to_models(views: List[ReservationView]) -> List[ReservationModel]:
    return [_to_model(v) for v in views]

# --- Health ---
@app.get("/health")
def health():
    """Lightweight health check with a quick database round trip."""
    db_ok = True
    try:
        conn = get_db_connection()
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except Exception:
        logger.exception("Health check could not reach the database")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": db_ok,
    }

# --- Users ---
@app.post("/users", response_model=UserModel, status_code=201)
def create_user(payload: UserCreateModel):
    user = service.users.add_user(payload.name, payload.email)
    return UserModel(**user.to_dict())

@app.get("/users", response_model=List[UserModel])
def list_users():
    return [UserModel(**u.to_dict()) for u in service.users.list_users()]

@app.get("/users/{user_id}", response_model=UserModel)
def get_user(user_id: int):
    return UserModel(**service.users.resolve(user_id).to_dict())

@app.get("/users/{user_id}/reservations", response_model=List[ReservationModel])
def get_user_reservations(user_id: int):
    service.users.resolve(user_id)
    return _to_models(service.get_reservations_by_user_id(user_id))

# --- Books ---
@app.post("/books", response_model=BookModel, status_code=201)
def create_book(payload: BookCreateModel):
    book = service.books.add_book(
        payload.external_id,
        payload.title,
        payload.price,
        payload.stock_quantity,
        payload.available_quantity,
    )
    return BookModel(**book.to_dict())

@app.get("/books", response_model=List[BookModel])
def list_books():
    return [BookModel(**b.to_dict()) for b in service.books.list_books()]

@app.get("/books/{external_id}", response_model=BookModel)
def get_book(external_id: int):
    book = service.books.find_by_external_id(external_id)
    if book is None:
        raise NotFoundError(f"Book {external_id} not found.")
    return BookModel(**book.to_dict())

# --- Reservations ---
# Fixed paths are registered before /reservations/{reservation_id}.
@app.get("/reservations/active", response_model=List[ReservationModel])
def get_active_reservations():
    return _to_models(service.get_active_reservations())

@app.get("/reservations/overdue", response_model=List[ReservationModel])
def get_overdue_reservations():
    return _to_models(service.get_overdue_reservations())

@app.get("/reservations", response_model=List[ReservationModel])
def list_reservations(status: Optional[str] = Query(None, description="ACTIVE, RETURNED or OVERDUE")):
    if status:
        return _to_models(service.get_reservations_by_status(status))
    return _to_models(service.get_all_reservations())

@app.post("/reservations", response_model=ReservationModel, status_code=201)
def create_reservation(payload: ReservationCreateModel):
    view = service.create_reservation(
        payload.user_id, payload.book_external_id, payload.rental_days, payload.start_date
    )
    return _to_model(view)

@app.get("/reservations/{reservation_id}", response_model=ReservationModel)
def get_reservation(reservation_id: int):
    return _to_model(service.get_reservation_by_id(reservation_id))

@app.post("/reservations/{reservation_id}/return", response_model=ReservationModel)
def return_book(reservation_id: int, payload: ReturnBookModel):
    return _to_model(service.return_book(reservation_id, payload.return_date))
