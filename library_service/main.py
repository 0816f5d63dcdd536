import json
import os
import subprocess
import sys
from dataclasses import dataclass
from functools import wraps
from typing import Optional

import typer
from rich.console import Console

from library_service.book import Book
from library_service.config import settings
from library_service.errors import LibraryError, ValidationError
from library_service.library import Library
from library_service.logging_config import setup_logging
from library_service.member import Member
from library_service.ui_helpers import (
    OUTPUT_MODES,
    normalize_output_mode,
    print_list_result,
    print_record,
    print_stats_result,
)

APP_NAME = "Library CLI"

console = Console()


@dataclass
class CliState:
    db_file: str
    output: str = "plain"
    library: Optional[Library] = None


def get_library(ctx: typer.Context) -> Library:
    """Komut için kütüphaneyi aç; komut bittiğinde bağlantı kapatılır."""
    state: CliState = ctx.obj
    if state.library is None:
        state.library = Library.from_settings(settings, db_file=state.db_file)
        ctx.call_on_close(state.library.close)
    return state.library


def handle_errors(func):
    """Servis hatalarını yığın izi yerine kısa bir mesaj olarak yazdır."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            print(f"Error: {e}")
            for violation in e.violations:
                print(f"  - {violation.field}: {violation.message}")
            raise typer.Exit(code=1)
        except LibraryError as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)
    return wrapper


# --- Typer CLI Uygulaması ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    ctx: typer.Context,
    db: str = typer.Option(settings.db_file, "--db", help="SQLite veritabanı dosyası"),
    output: str = typer.Option(
        "plain",
        "--output",
        "-o",
        help=f"Çıktı formatı: {' | '.join(OUTPUT_MODES)} (varsayılan: plain)",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Günlük seviyesi"),
):
    """CLI için genel seçenekler (veritabanı, çıktı modu)."""
    setup_logging(log_level, settings.log_file)
    ctx.obj = CliState(db_file=db, output=normalize_output_mode(output))


# ------------------------- Kitaplar ------------------------- #
@app.command("add-book")
@handle_errors
def cli_add_book(
    ctx: typer.Context,
    title: str,
    author: str,
    isbn: str,
    copies: int = typer.Option(1, "--copies", help="Kopya sayısı"),
    year: Optional[int] = typer.Option(None, "--year", help="Yayın yılı"),
):
    """Kütüphaneye yeni bir kitap ekle."""
    book = get_library(ctx).add_book(
        Book(title=title, author=author, isbn=isbn, copies=copies, published_year=year)
    )
    print(f"Successfully added: {book.title} by {book.author}")


@app.command("list")
@handle_errors
def cli_list(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(None, "--status", help="AVAILABLE veya CHECKED_OUT"),
):
    """Tüm kitapları listele."""
    lib = get_library(ctx)
    books = lib.books.query({"status": status.upper()}) if status else lib.list_books()
    print_list_result(books, ctx.obj.output)


@app.command("find")
@handle_errors
def cli_find(ctx: typer.Context, isbn: str):
    """ISBN ile bir kitap bul ve detayları göster."""
    book = get_library(ctx).find_book(isbn)
    if book is None:
        print(f"Book with ISBN {isbn} not found.")
        raise typer.Exit(code=1)
    print_record("Book Found", book.to_dict(), ctx.obj.output)


@app.command("remove")
@handle_errors
def cli_remove(ctx: typer.Context, isbn: str):
    """ISBN ile bir kitabı kaldır."""
    if get_library(ctx).remove_book(isbn):
        print(f"Book with ISBN {isbn} has been removed.")
    else:
        print(f"Book with ISBN {isbn} not found.")
        raise typer.Exit(code=1)


@app.command("search")
@handle_errors
def cli_search(
    ctx: typer.Context,
    term: str,
    search_type: str = typer.Option("title", "--type", "-t", help="title | author | isbn"),
):
    """Kitapları başlığa, yazara veya ISBN'e göre ara."""
    print_list_result(get_library(ctx).search_books(term, search_type), ctx.obj.output)


# ------------------------- Üyeler ------------------------- #
@app.command("add-member")
@handle_errors
def cli_add_member(
    ctx: typer.Context,
    name: str,
    email: str,
    membership_type: str = typer.Option("regular", "--type", help="regular | student | premium"),
):
    """Yeni bir üye kaydet."""
    member = get_library(ctx).register_member(
        Member(name=name, email=email, membership_type=membership_type.strip().upper())
    )
    print(f"Registered member {member.id}: {member.name} <{member.email}> ({member.membership_type.value})")


# ------------------------- Ödünçler ------------------------- #
@app.command("checkout")
@handle_errors
def cli_checkout(ctx: typer.Context, isbn: str, email: str):
    """Bir kitabı bir üyeye ödünç ver."""
    loan = get_library(ctx).checkout_book(isbn, email)
    print(f"Checked out ISBN {isbn} to {email.strip().lower()}. Due {loan.due_date.isoformat()} (loan {loan.id})")


@app.command("return")
@handle_errors
def cli_return(ctx: typer.Context, isbn: str):
    """Ödünç verilmiş bir kitabı iade al ve gecikme ücretini göster."""
    loan = get_library(ctx).return_book(isbn)
    if loan.late_fee > 0:
        print(f"Returned ISBN {isbn}. Late fee: ${loan.late_fee:.2f}")
    else:
        print(f"Returned ISBN {isbn}. No late fee.")


@app.command("loans")
@handle_errors
def cli_loans(ctx: typer.Context, email: str):
    """Bir üyenin tüm ödünç kayıtlarını listele."""
    loans = get_library(ctx).loans_for_member(email)
    if not loans:
        print(f"No loans for {email}.")
        return
    if ctx.obj.output == "json":
        print(json.dumps([loan.to_dict() for loan in loans], ensure_ascii=False))
        return
    for loan in loans:
        print_record(f"Loan {loan.id}", loan.to_dict(), ctx.obj.output)


@app.command("mark-overdue")
@handle_errors
def cli_mark_overdue(ctx: typer.Context):
    """Vadesi geçmiş ödünçleri OVERDUE olarak işaretle."""
    print(f"Marked {get_library(ctx).mark_overdue()} loans overdue.")


# ------------------------- Raporlar ------------------------- #
@app.command("report")
@handle_errors
def cli_report(ctx: typer.Context, report_type: str):
    """Rapor üret: overdue | available | members."""
    print(get_library(ctx).generate_report(report_type))


@app.command("stats")
@handle_errors
def cli_stats(ctx: typer.Context):
    """Kütüphane istatistiklerini göster."""
    print_stats_result(get_library(ctx).get_statistics(), ctx.obj.output)


@app.command("serve")
def cli_serve(
    ctx: typer.Context,
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
):
    """HTTP API'sini uvicorn ile başlat."""
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "library_service.api:create_app",
        "--factory",
        "--host", host,
        "--port", str(port),
    ]
    env = dict(os.environ, LIBRARY_DB_FILE=ctx.obj.db_file)
    try:
        subprocess.run(args, env=env, check=False)
    except FileNotFoundError:
        console.print("[bold red]Error:[/] `uvicorn` could not be started. Make sure it is installed.")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        print("Server stopped.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
