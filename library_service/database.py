import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Type, TypeVar

from library_service.book import Book
from library_service.errors import ConflictError
from library_service.loan import Loan
from library_service.member import Member
from library_service.repository import Filters, Repository, Store, storage_filters

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY = ":memory:"


class Database:
    """SQLite veritabanı dosyasına bağlantıları yönetir.

    Modül düzeyinde paylaşılan durum yoktur: her ``Database`` kendi dosyasını
    ve iş parçacığına özel işlem bağlantısını taşır.
    """

    def __init__(self, db_file: str) -> None:
        self.db_file = db_file
        self._local = threading.local()
        self._keeper: Optional[sqlite3.Connection] = None
        if db_file == MEMORY:
            # Paylaşılan önbellekli bellek içi veritabanı, en az bir bağlantı açık kaldığı sürece yaşar
            self._uri = f"file:library_service_{id(self)}?mode=memory&cache=shared"
            self._keeper = self._connect()
        else:
            self._uri = None

    def _connect(self) -> sqlite3.Connection:
        if self._uri:
            conn = sqlite3.connect(self._uri, uri=True, check_same_thread=False)
        else:
            conn = sqlite3.connect(self.db_file, check_same_thread=False)
            # Daha iyi eşzamanlı erişim için WAL modunu etkinleştir
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "conn", None) is not None

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Etkin işlemin bağlantısını ya da tek işlemlik yeni bir bağlantı ver."""
        current = getattr(self._local, "conn", None)
        if current is not None:
            yield current
            return
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """İç içe çağrılar dıştaki işleme katılır; yalnızca en dıştaki blok commit eder."""
        current = getattr(self._local, "conn", None)
        if current is not None:
            yield current
            return
        conn = self._connect()
        self._local.conn = conn
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            logger.warning("Transaction rolled back on %s", self.db_file)
            raise
        finally:
            self._local.conn = None
            conn.close()

    def close(self) -> None:
        if self._keeper is not None:
            self._keeper.close()
            self._keeper = None


def create_tables(db: Database) -> None:
    """Veritabanında mevcut değilse gerekli tabloları oluşturur."""
    with db.connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                isbn TEXT NOT NULL UNIQUE,
                copies INTEGER NOT NULL DEFAULT 1 CHECK(copies >= 1),
                status TEXT NOT NULL DEFAULT 'AVAILABLE',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS members (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                membership_type TEXT NOT NULL DEFAULT 'REGULAR',
                member_since TEXT,
                books_checked_out INTEGER NOT NULL DEFAULT 0 CHECK(books_checked_out >= 0)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS loans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id INTEGER NOT NULL,
                member_id INTEGER NOT NULL,
                checkout_date TEXT NOT NULL,
                due_date TEXT NOT NULL,
                return_date TEXT,
                status TEXT NOT NULL DEFAULT 'ACTIVE',
                late_fee REAL NOT NULL DEFAULT 0 CHECK(late_fee >= 0),
                FOREIGN KEY (book_id) REFERENCES books(id),
                FOREIGN KEY (member_id) REFERENCES members(id)
            )
        """)

        # Sütunların var olup olmadığını kontrol edin, yoksa ekleyin (geçiş için)
        cursor.execute("PRAGMA table_info(books)")
        columns = [column[1] for column in cursor.fetchall()]
        if "published_year" not in columns:
            cursor.execute("ALTER TABLE books ADD COLUMN published_year INTEGER")

        # Daha iyi performans için dizinler oluştur
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author ON books(author)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_status ON books(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_members_membership_type ON members(membership_type)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_loans_book_id ON loans(book_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_loans_member_id ON loans(member_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_loans_status_due ON loans(status, due_date)")


def initialize_database(db: Database) -> None:
    """Veritabanını başlatır ve gerekirse tabloları oluşturur."""
    create_tables(db)
    logger.info("Database ready: %s", db.db_file)


class SqliteRepository(Repository[T]):
    """Bir tabloya açık eşleme (``to_dict``/``from_dict``) ile erişen depo."""

    def __init__(self, db: Database, table: str, entity_cls: Type[T], columns: Sequence[str],
                 generated: Sequence[str] = (), batch_size: int = 100) -> None:
        self.db = db
        self.table = table
        self.entity_cls = entity_cls
        self.columns = list(columns)
        # Veritabanı tarafından doldurulan, yazılmayan sütunlar
        self.generated = set(generated) | {"id"}
        self.batch_size = batch_size
        self._label = entity_cls.__name__

    def _writable_row(self, entity: T) -> Dict[str, Any]:
        row = entity.to_dict()
        return {key: row[key] for key in self.columns if key not in self.generated}

    def _select(self) -> str:
        return f"SELECT {', '.join(self.columns)} FROM {self.table}"

    def _raise_conflict(self, exc: sqlite3.IntegrityError, row: Dict[str, Any]) -> None:
        message = str(exc)
        if "UNIQUE" in message:
            field = message.rsplit(".", 1)[-1].strip()
            raise ConflictError(
                f"{self._label} with {field} {row.get(field)} already exists.", field=field
            ) from exc
        raise exc

    def add(self, entity: T) -> T:
        row = self._writable_row(entity)
        names = list(row)
        placeholders = ", ".join("?" for _ in names)
        with self.db.connection() as conn:
            try:
                cursor = conn.execute(
                    f"INSERT INTO {self.table} ({', '.join(names)}) VALUES ({placeholders})",
                    [row[name] for name in names],
                )
            except sqlite3.IntegrityError as e:
                self._raise_conflict(e, row)
            new_id = cursor.lastrowid
            stored = conn.execute(f"{self._select()} WHERE id = ?", (new_id,)).fetchone()
        return self.entity_cls.from_dict(dict(stored))

    def get(self, entity_id: int) -> Optional[T]:
        with self.db.connection() as conn:
            row = conn.execute(f"{self._select()} WHERE id = ?", (entity_id,)).fetchone()
        return self.entity_cls.from_dict(dict(row)) if row else None

    def update(self, entity: T) -> Optional[T]:
        if entity.id is None:
            return None
        row = self._writable_row(entity)
        set_clause = ", ".join(f"{name} = ?" for name in row)
        params = list(row.values()) + [entity.id]
        with self.db.connection() as conn:
            try:
                cursor = conn.execute(f"UPDATE {self.table} SET {set_clause} WHERE id = ?", params)
            except sqlite3.IntegrityError as e:
                self._raise_conflict(e, row)
            if cursor.rowcount == 0:
                return None
        return self.get(entity.id)

    def remove(self, entity_id: int) -> bool:
        with self.db.connection() as conn:
            cursor = conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (entity_id,))
            return cursor.rowcount > 0

    def _where(self, filters: Optional[Filters]) -> tuple:
        clauses: List[str] = []
        params: List[Any] = []
        for key, value in storage_filters(filters).items():
            if key not in self.columns:
                raise ValueError(f"Unknown column for {self.table}: {key}")
            if value is None:
                clauses.append(f"{key} IS NULL")
            else:
                clauses.append(f"{key} = ?")
                params.append(value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def query(self, filters: Optional[Filters] = None) -> Iterator[T]:
        """Bellek açısından verimli işleme için kayıtları toplu halde okuyan üreteç."""
        where, params = self._where(filters)
        with self.db.connection() as conn:
            cursor = conn.execute(f"{self._select()}{where} ORDER BY id", params)
            while True:
                batch = cursor.fetchmany(self.batch_size)
                if not batch:
                    break
                for row in batch:
                    yield self.entity_cls.from_dict(dict(row))

    def count(self, filters: Optional[Filters] = None) -> int:
        where, params = self._where(filters)
        with self.db.connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {self.table}{where}", params).fetchone()[0]


BOOK_COLUMNS = ["id", "title", "author", "isbn", "copies", "published_year", "status", "created_at"]
MEMBER_COLUMNS = ["id", "name", "email", "membership_type", "member_since", "books_checked_out"]
LOAN_COLUMNS = ["id", "book_id", "member_id", "checkout_date", "due_date", "return_date", "status", "late_fee"]


class SqliteStore(Store):
    """SQLite destekli depo kümesi."""

    def __init__(self, db_file: str) -> None:
        self.db = Database(db_file)
        initialize_database(self.db)
        self.books = SqliteRepository(self.db, "books", Book, BOOK_COLUMNS, generated=("created_at",))
        self.members = SqliteRepository(self.db, "members", Member, MEMBER_COLUMNS)
        self.loans = SqliteRepository(self.db, "loans", Loan, LOAN_COLUMNS)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self.db.transaction():
            yield

    def ping(self) -> bool:
        with self.db.connection() as conn:
            conn.execute("SELECT 1")
        return True

    def close(self) -> None:
        self.db.close()
