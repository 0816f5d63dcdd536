import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from itertools import islice
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from library_service.book import Book
from library_service.config import Settings, settings as default_settings
from library_service.errors import ConflictError, LibraryError, NotFoundError, ValidationError
from library_service.library import Library
from library_service.logging_config import setup_logging
from library_service.member import Member

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
}


# --- Modeller ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str
    isbn: str
    copies: int
    published_year: Optional[int] = None
    status: str
    created_at: Optional[str] = None


class BookCreateModel(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    copies: int = 1
    published_year: Optional[int] = None


class UpdateBookModel(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    copies: Optional[int] = None
    published_year: Optional[int] = None


class MemberModel(BaseModel):
    id: int
    name: str
    email: str
    membership_type: str
    member_since: Optional[str] = None
    books_checked_out: int


class MemberCreateModel(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    membership_type: str = "REGULAR"
    member_since: Optional[date] = None


class LoanModel(BaseModel):
    id: int
    book_id: int
    member_id: int
    checkout_date: str
    due_date: str
    return_date: Optional[str] = None
    status: str
    late_fee: float


class CheckoutModel(BaseModel):
    isbn: str = Field(description="Ödünç verilecek kitabın ISBN'i")
    email: str = Field(description="Ödünç alan üyenin e-postası")


class ReportModel(BaseModel):
    report_type: str
    content: str


class StatsModel(BaseModel):
    total_books: int
    unique_authors: int
    available_books: int
    checked_out_books: int
    total_members: int
    active_loans: int
    overdue_loans: int


# --- Güvenlik ---
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_api_key(request: Request, api_key: Optional[str] = Security(api_key_header)) -> str:
    """API anahtarını doğrulamak için bağımlılık."""
    if api_key and api_key == request.app.state.settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Could not validate credentials")


def get_library(request: Request) -> Library:
    return request.app.state.library


def _page(items, skip: int, limit: int) -> list:
    return list(islice(items, skip, skip + limit))


def create_app(library: Optional[Library] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the HTTP adapter over ``library``.

    When no library is given one is opened from ``settings`` and closed again
    on shutdown. A library passed in stays owned by the caller.
    """
    settings = settings or default_settings
    setup_logging(settings.log_level, settings.log_file)
    owns_library = library is None
    if library is None:
        library = Library.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("%s %s started", settings.app_name, settings.app_version)
        try:
            yield
        finally:
            if owns_library:
                library.close()

    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug,
                  lifespan=lifespan)
    app.state.library = library
    app.state.settings = settings

    @app.exception_handler(LibraryError)
    async def library_error_handler(request: Request, exc: LibraryError):
        status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
        logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    # --- Sağlık Kontrolü ---
    @app.get("/health")
    def health(lib: Library = Depends(get_library)):
        """Hafif sağlık uç noktası; veritabanına hızlı bir bağlantı denemesi yapar."""
        ping = getattr(lib.store, "ping", None)
        db_ok = ping() if callable(ping) else True
        return {
            "status": "healthy" if db_ok else "degraded",
            "database": db_ok,
            "timestamp": datetime.now().isoformat(),
            "total_books": lib.books.count(),
        }

    # --- Kitaplar ---
    @app.get("/books", response_model=List[BookModel])
    def list_books(status: Optional[str] = None, author: Optional[str] = None,
                   skip: int = Query(0, ge=0),
                   limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
                   lib: Library = Depends(get_library)):
        """Kitapları id sırasına göre listele; durum ve yazara göre süzülebilir."""
        filters = {}
        if status:
            filters["status"] = status.upper()
        if author:
            filters["author"] = author
        return [book.to_dict() for book in _page(lib.books.query(filters), skip, limit)]

    @app.get("/books/search", response_model=List[BookModel])
    def search_books(q: str, type: str = "title", lib: Library = Depends(get_library)):
        return [book.to_dict() for book in lib.search_books(q, type)]

    @app.get("/books/{isbn}", response_model=BookModel)
    def get_book(isbn: str, lib: Library = Depends(get_library)):
        """ISBN'sine göre tek bir kitap al."""
        return lib.books.get_by_isbn(isbn).to_dict()

    @app.post("/books", response_model=BookModel, status_code=201, dependencies=[Depends(get_api_key)])
    def add_book(payload: BookCreateModel, lib: Library = Depends(get_library)):
        book = lib.add_book(Book(**payload.model_dump()))
        return book.to_dict()

    @app.put("/books/{isbn}", response_model=BookModel, dependencies=[Depends(get_api_key)])
    def update_book(isbn: str, update: UpdateBookModel, lib: Library = Depends(get_library)):
        """ISBN'sine göre bir kitabın alanlarını güncelle; yalnızca gönderilen alanlar değişir."""
        return lib.update_book(isbn, update.model_dump(exclude_unset=True)).to_dict()

    @app.delete("/books/{isbn}", dependencies=[Depends(get_api_key)])
    def delete_book(isbn: str, lib: Library = Depends(get_library)):
        book = lib.books.get_by_isbn(isbn)
        lib.books.delete(book.id)
        return {"message": f"Book with ISBN {book.isbn} has been removed."}

    # --- Üyeler ---
    @app.get("/members", response_model=List[MemberModel])
    def list_members(membership_type: Optional[str] = None, skip: int = Query(0, ge=0),
                     limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
                     lib: Library = Depends(get_library)):
        filters = {"membership_type": membership_type.upper()} if membership_type else {}
        return [member.to_dict() for member in _page(lib.members.query(filters), skip, limit)]

    @app.get("/members/{member_id}", response_model=MemberModel)
    def get_member(member_id: int, lib: Library = Depends(get_library)):
        return lib.members.get(member_id).to_dict()

    @app.post("/members", response_model=MemberModel, status_code=201, dependencies=[Depends(get_api_key)])
    def add_member(payload: MemberCreateModel, lib: Library = Depends(get_library)):
        data = payload.model_dump(exclude_none=True)
        data["membership_type"] = payload.membership_type.strip().upper()
        return lib.register_member(Member(**data)).to_dict()

    @app.delete("/members/{member_id}", dependencies=[Depends(get_api_key)])
    def delete_member(member_id: int, lib: Library = Depends(get_library)):
        lib.members.delete(member_id)
        return {"message": f"Member {member_id} has been removed."}

    # --- Ödünçler ---
    @app.get("/loans", response_model=List[LoanModel])
    def list_loans(status: Optional[str] = None, member_id: Optional[int] = None,
                   skip: int = Query(0, ge=0),
                   limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
                   lib: Library = Depends(get_library)):
        filters = {}
        if status:
            filters["status"] = status.upper()
        if member_id is not None:
            filters["member_id"] = member_id
        return [loan.to_dict() for loan in _page(lib.loans.query(filters), skip, limit)]

    @app.post("/loans", response_model=LoanModel, status_code=201, dependencies=[Depends(get_api_key)])
    def checkout(payload: CheckoutModel, lib: Library = Depends(get_library)):
        """Bir kitabı bir üyeye ödünç ver; vade tarihi üyelik türüne göre hesaplanır."""
        return lib.checkout_book(payload.isbn, payload.email).to_dict()

    @app.post("/loans/mark-overdue", dependencies=[Depends(get_api_key)])
    def mark_overdue(lib: Library = Depends(get_library)):
        """Vadesi geçmiş ACTIVE ödünçleri OVERDUE olarak işaretle."""
        return {"marked": lib.mark_overdue()}

    @app.post("/loans/{loan_id}/return", response_model=LoanModel, dependencies=[Depends(get_api_key)])
    def return_loan(loan_id: int, lib: Library = Depends(get_library)):
        return lib.loans.return_loan(loan_id).to_dict()

    # --- Raporlar ve istatistikler ---
    @app.get("/reports/{report_type}", response_model=ReportModel)
    def report(report_type: str, lib: Library = Depends(get_library)):
        return ReportModel(report_type=report_type, content=lib.generate_report(report_type))

    @app.get("/stats", response_model=StatsModel)
    def get_library_stats(lib: Library = Depends(get_library)):
        """Kütüphane hakkında temel istatistikleri al."""
        return StatsModel(**lib.get_statistics())

    return app
