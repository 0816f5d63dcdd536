import json
from typing import Any, Dict, Iterable, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# İzin verilen değerler: 'plain' (varsayılan), 'json', 'rich'
OUTPUT_MODES = ("plain", "json", "rich")

_console = Console()


def normalize_output_mode(mode: str) -> str:
    mode = (mode or "").lower().strip()
    return mode if mode in OUTPUT_MODES else "plain"


def print_list_result(books: Iterable[Any], mode: str = "plain") -> None:
    """Kitap listesini çıktı moduna göre yazdır.
    - plain: 'ISBN - Title by Author [STATUS]' satırları, veya 'No books in library.'
    - json: JSON dizisi olarak kitap sözlükleri
    - rich: Rich tablosu
    """
    books = list(books)
    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Status", style="green")
        for b in books:
            table.add_row(b.isbn, b.title, b.author, b.status.value)
        _console.print(table)
    else:
        for b in books:
            print(f"{b.isbn} - {b.title} by {b.author} [{b.status.value}]")


def print_record(title: str, record: Dict[str, Any], mode: str = "plain") -> None:
    """Tek bir kaydı (kitap, üye, ödünç) alan: değer satırları olarak yazdır."""
    if mode == "json":
        print(json.dumps(record, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{key}:[/] {value}" for key, value in record.items())
        _console.print(Panel.fit(content, title=title, border_style="blue"))
    else:
        print(title)
        for key, value in record.items():
            print(f"{key}: {value}")


def print_stats_result(stats: Dict[str, Any], mode: str = "plain") -> None:
    if not stats:
        print("No statistics available.")
        return

    labels: List[tuple] = [(key, key.replace("_", " ").title()) for key in stats]
    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {stats[key]}" for key, label in labels)
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for key, label in labels:
            print(f"{label}: {stats[key]}")
