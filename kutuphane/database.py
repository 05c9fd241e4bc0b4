import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from kutuphane.config import settings

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
    """SQLite dosyasının bulunduğu dizinin var olduğundan emin ol."""
    url = make_url(database_url)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        db_dir = os.path.dirname(url.database)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    # Daha iyi eşzamanlı erişim için WAL modunu etkinleştir
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Verilen URL için bir SQLAlchemy motoru oluştur.

    SQLite için iş parçacıkları arası kullanım açılır, bir meşgul zaman aşımı
    ayarlanır ve her bağlantıda WAL ve yabancı anahtar pragmaları uygulanır.
    """
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {}
    if is_sqlite:
        _ensure_sqlite_dir(database_url)
        connect_args = {"check_same_thread": False, "timeout": settings.sqlite_busy_timeout}

    engine = create_engine(database_url, echo=echo, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


engine = create_db_engine(settings.database_url, echo=settings.database_echo)
SessionLocal = create_session_factory(engine)


def get_db() -> Iterator[Session]:
    """FastAPI bağımlılığı: istek başına bir oturum aç ve sonunda kapat."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Bloğu tek bir işlem olarak çalıştır; hata olursa geri al ve yeniden yükselt."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(bind: Engine = engine) -> None:
    """Veritabanında mevcut değilse gerekli tabloları oluşturur."""
    from kutuphane import models

    models.Base.metadata.create_all(bind=bind)
    logger.info("Veritabanı tabloları hazır: %s", bind.url.render_as_string(hide_password=True))
