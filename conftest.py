import itertools
import os

# Testlerde hızlı bcrypt ve sabit imza anahtarı; kutuphane içe aktarılmadan önce ayarlanmalı
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient

from kutuphane.api import app
from kutuphane.auth import create_access_token, register_user
from kutuphane.catalog import Catalog
from kutuphane.database import create_db_engine, create_session_factory, get_db, init_db
from kutuphane.models import Role

_emails = itertools.count(1)


@pytest.fixture
def engine(tmp_path, request):
    # Her test için benzersiz bir veritabanı dosyası oluştur
    db_file = tmp_path / f"test_{request.node.name}.db"
    engine = create_db_engine(f"sqlite:///{db_file}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make(email=None, role=Role.CUSTOMER, name="Test Kullanıcı", password="123456"):
        email = email or f"kullanici{next(_emails)}@example.com"
        return register_user(db, email, password, name, role)

    return _make


@pytest.fixture
def worker(make_user):
    return make_user("calisan@kutuphane.com", Role.WORKER, "Test Çalışan")


@pytest.fixture
def customer(make_user):
    return make_user("musteri@example.com", Role.CUSTOMER, "Test Müşteri")


@pytest.fixture
def admin(make_user):
    return make_user("yonetici@kutuphane.com", Role.ADMIN, "Test Yönetici")


@pytest.fixture
def make_book(db):
    def _make(title="Suç ve Ceza", author="Fyodor Dostoyevski", location="A-1-1", **fields):
        book, _ = Catalog(db).add_or_merge_book(title=title, author=author, location=location, **fields)
        return book

    return _make


@pytest.fixture
def client(session_factory):
    # get_db bağımlılığını test veritabanına yönlendir; lifespan çalıştırılmaz
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers
