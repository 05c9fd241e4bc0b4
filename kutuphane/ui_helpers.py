import json
import os
from typing import Any, Dict, List, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# CLI çıktı modunu kontrol eden ortam değişkeni
# İzin verilen değerler: 'plain' (varsayılan), 'json', 'rich'
OUTPUT_MODE_ENV = "KUTUPHANE_CLI_OUTPUT"
OUTPUT_MODES = ("plain", "json", "rich")

_console = Console()


def set_output_mode(mode: str) -> bool:
    mode = (mode or "").lower().strip()
    if mode not in OUTPUT_MODES:
        return False
    os.environ[OUTPUT_MODE_ENV] = mode
    return True


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _print_rows(title: str, columns: Sequence[str], rows: List[Dict[str, Any]], empty: str, line) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(rows, ensure_ascii=False, default=str))
        return
    if not rows:
        print(empty)
        return
    if mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        for col in columns:
            table.add_column(col)
        for row in rows:
            table.add_row(*["" if row.get(col) is None else str(row.get(col)) for col in columns])
        _console.print(table)
    else:
        for row in rows:
            print(line(row))


def print_books(books: List[Any]) -> None:
    """Kitap listesini mevcut çıktı moduna göre yazdır.
    - plain: 'Başlık - Yazar [konum] mevcut/toplam' satırları
    - json: kitap sözlüklerinden oluşan JSON dizisi
    - rich: Rich tablosu
    """
    rows = [b.to_dict() for b in books]
    _print_rows(
        "📚 Kitaplar",
        ("title", "author", "isbn", "category", "location", "available_copies", "total_copies"),
        rows,
        "Kitap bulunamadı.",
        lambda r: f"{r['title']} - {r['author']} [{r['location']}] {r['available_copies']}/{r['total_copies']}",
    )


def print_rentals(rentals: List[Any]) -> None:
    rows = [r.to_dict() for r in rentals]
    _print_rows(
        "📖 Kiralamalar",
        ("id", "book_title", "customer_name", "status", "due_date", "returned_at"),
        rows,
        "Kiralama kaydı bulunamadı.",
        lambda r: f"{r['id']} {r['status']} {r['book_title']} - {r['customer_name']} (iade: {r['due_date']})",
    )


def print_message(message: str, data: Dict[str, Any] | None = None, style: str = "green") -> None:
    """Tek bir işlem sonucunu yazdır; json modunda mesaj ve ek veriler nesne olarak basılır."""
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps({"message": message, **(data or {})}, ensure_ascii=False, default=str))
    elif mode == "rich":
        _console.print(Panel.fit(message, border_style=style))
    else:
        print(message)


def print_error(message: str) -> None:
    if get_output_mode() == "json":
        print(json.dumps({"error": message}, ensure_ascii=False))
    elif get_output_mode() == "rich":
        _console.print(f"[bold red]Hata:[/] {message}")
    else:
        print(f"Hata: {message}")
