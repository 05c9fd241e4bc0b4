import subprocess
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console

from kutuphane import database
from kutuphane.auth import find_user_by_email, register_user
from kutuphane.catalog import Catalog
from kutuphane.config import configure_logging, settings
from kutuphane.errors import LibraryError, NotFound
from kutuphane.models import Role
from kutuphane.rentals import RentalLedger
from kutuphane.seed import DEMO_PASSWORD, seed_demo_data
from kutuphane.services.identity_card import render_identity_card
from kutuphane.ui_helpers import print_books, print_error, print_message, print_rentals, set_output_mode

console = Console()

# --- Typer CLI Uygulaması ---
app = typer.Typer(help="Kütüphane yönetim CLI")


@contextmanager
def _session() -> Iterator:
    """Komut başına bir veritabanı oturumu; alan hataları çıkış kodu 1 ile sonlanır."""
    db = database.SessionLocal()
    try:
        yield db
    except LibraryError as e:
        print_error(e.message)
        raise typer.Exit(code=1)
    finally:
        db.close()


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Çıktı formatı: plain | json | rich (varsayılan: plain)",
    )
):
    """CLI için genel seçenekler (ör. çıktı modu)."""
    configure_logging("WARNING")
    # Atlanırsa önceki çağrının modu kalmasın
    if not set_output_mode(output or "plain"):
        raise typer.BadParameter("plain, json veya rich olmalıdır", param_hint="--output")


@app.command("init-db")
def cli_init_db():
    """Veritabanı tablolarını oluştur."""
    database.init_db(database.engine)
    print_message("Veritabanı hazır.")


@app.command("seed")
def cli_seed():
    """Örnek çalışan, müşteri ve kitapları ekle."""
    database.init_db(database.engine)
    with _session() as db:
        summary = seed_demo_data(db)
    print_message(
        f"Örnek veriler yüklendi: {summary['users']} kullanıcı, {summary['books']} kitap "
        f"(şifre: {DEMO_PASSWORD})",
        summary,
    )


@app.command("create-user")
def cli_create_user(
    email: str,
    name: str,
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    role: Role = typer.Option(Role.CUSTOMER, "--role", "-r", case_sensitive=False),
):
    """Kullanıcı oluştur; çalışan ve yönetici hesapları buradan açılabilir."""
    with _session() as db:
        user = register_user(db, email, password, name, role)
        print_message(f"Kullanıcı oluşturuldu: {user.email} ({user.role.value})", {"user": user.to_dict()})


@app.command("books")
def cli_books(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Başlık, yazar veya ISBN"),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
):
    """Kitapları listele."""
    with _session() as db:
        books, _ = Catalog(db).list_books(search=search, category=category, limit=settings.max_page_size)
        print_books(books)


@app.command("rentals")
def cli_rentals(status: Optional[str] = typer.Option(None, "--status", help="BORROWED | OVERDUE | RETURNED")):
    """Kiralamaları listele (gecikmiş kayıtlar önce işaretlenir)."""
    with _session() as db:
        rentals, _ = RentalLedger(db).list_all_rentals(status=status, limit=settings.max_page_size)
        print_rentals(rentals)


@app.command("sweep-overdue")
def cli_sweep_overdue():
    """Süresi geçmiş kiralamaları OVERDUE olarak işaretle."""
    with _session() as db:
        changed = RentalLedger(db).sweep_overdue()
    print_message(f"{changed} kiralama gecikmiş olarak işaretlendi.", {"updated": changed})


@app.command("card")
def cli_card(
    email: str,
    output_file: Optional[Path] = typer.Option(None, "--output-file", "-f", help="PDF dosya yolu"),
):
    """Bir üyenin kimlik kartını PDF olarak kaydet."""
    with _session() as db:
        user = find_user_by_email(db, email)
        if user is None:
            raise NotFound("Kullanıcı bulunamadı")
        target = output_file or Path(f"kimlik-{user.id}.pdf")
        target.write_bytes(render_identity_card(user))
        print_message(f"Kimlik kartı kaydedildi: {target}", {"path": str(target)})


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """API sunucusunu Uvicorn ile başlat."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    console.print(f"[green]API başlatılıyor: http://{host}:{port}/[/]")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "kutuphane.api:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    try:
        subprocess.run(args, check=False)
    except KeyboardInterrupt:
        console.print("[yellow]Sunucu durduruldu.[/]")


def main():
    app()


if __name__ == "__main__":
    main()
