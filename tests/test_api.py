import httpx
from fastapi.testclient import TestClient

from kutuphane import api as api_module
from kutuphane.api import app, get_isbn_lookup
from kutuphane.config import settings
from kutuphane.database import init_db
from kutuphane.models import Role
from kutuphane.services.http_client import HTTPClient
from kutuphane.services.isbn_lookup import ISBNLookupService

ISBN = "9780306406157"


def _book_payload(**overrides):
    payload = {"title": "Suç ve Ceza", "author": "Fyodor Dostoyevski", "location": "A-1-1", "category": "Klasik"}
    payload.update(overrides)
    return payload


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["db"] is True


def test_startup_lifespan_serves_root(client, engine, monkeypatch):
    # Tablolar ./kutuphane.db yerine test veritabanında oluşturulsun
    monkeypatch.setattr(api_module, "init_db", lambda: init_db(engine))
    with TestClient(app) as started:
        response = started.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == settings.app_name
    assert app.debug is settings.debug


def test_register_and_login(client):
    response = client.post(
        "/api/auth/register", json={"email": "Okur@Example.com", "password": "123456", "name": "Okur"}
    )
    assert response.status_code == 201
    assert response.json()["user"]["email"] == "okur@example.com"
    assert response.json()["user"]["role"] == "CUSTOMER"

    response = client.post("/api/auth/login", json={"email": "okur@example.com", "password": "123456"})
    assert response.status_code == 200
    token = response.json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["user"]["email"] == "okur@example.com"


def test_login_failure_returns_error_body(client, customer):
    response = client.post("/api/auth/login", json={"email": "musteri@example.com", "password": "yanlis"})
    assert response.status_code == 401
    assert response.json() == {"error": "Geçersiz email veya şifre"}


def test_duplicate_registration_is_conflict(client, customer):
    response = client.post(
        "/api/auth/register", json={"email": "musteri@example.com", "password": "123456", "name": "Tekrar"}
    )
    assert response.status_code == 409


def test_staff_registration_requires_admin(client, worker, admin, auth_headers):
    payload = {"email": "yeni@kutuphane.com", "password": "123456", "name": "Yeni", "role": "WORKER"}
    assert client.post("/api/auth/register", json=payload).status_code == 401
    assert client.post("/api/auth/register", json=payload, headers=auth_headers(worker)).status_code == 403

    response = client.post("/api/auth/register", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "WORKER"


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer bozuk"})
    assert response.status_code == 401
    assert response.json() == {"error": "Geçersiz token"}


def test_books_crud_and_merge(client, worker, customer, auth_headers):
    headers = auth_headers(worker)

    assert client.post("/api/books", json=_book_payload(), headers=auth_headers(customer)).status_code == 403

    created = client.post("/api/books", json=_book_payload(isbn=ISBN, total_copies=2), headers=headers)
    assert created.status_code == 201
    assert created.json()["action"] == "created"
    book_id = created.json()["book"]["id"]

    merged = client.post("/api/books", json=_book_payload(isbn=ISBN, total_copies=3), headers=headers)
    assert merged.status_code == 200
    assert merged.json()["action"] == "updated"
    assert merged.json()["book"]["total_copies"] == 5
    assert "Toplam: 5, Mevcut: 5" in merged.json()["message"]

    listing = client.get("/api/books", params={"search": "suç"}).json()
    assert listing["pagination"]["total"] == 1
    assert client.get(f"/api/books/{book_id}").json()["book"]["isbn"] == ISBN
    assert client.get("/api/books/categories").json() == {"categories": ["Klasik"]}

    bad = client.patch(f"/api/books/{book_id}", json={"available_copies": 9}, headers=headers)
    assert bad.status_code == 400

    ok = client.patch(f"/api/books/{book_id}", json={"location": "Z-1-1"}, headers=headers)
    assert ok.json()["book"]["location"] == "Z-1-1"

    assert client.delete(f"/api/books/{book_id}", headers=headers).status_code == 200
    assert client.get(f"/api/books/{book_id}").status_code == 404


def test_missing_required_book_fields(client, worker, auth_headers):
    response = client.post("/api/books", json={"title": "Sadece başlık"}, headers=auth_headers(worker))
    assert response.status_code == 400
    assert response.json() == {"error": "Başlık, yazar ve konum gereklidir"}


def test_location_search_requires_login(client, customer, make_book, auth_headers):
    make_book(title="Simyacı", location="B-2-1")
    assert client.get("/api/books/search/location", params={"search": "simya"}).status_code == 401

    response = client.get("/api/books/search/location", params={"search": "simya"}, headers=auth_headers(customer))
    assert response.json()["books"][0]["location"] == "B-2-1"


def test_rental_flow(client, worker, customer, make_book, auth_headers):
    book = make_book(total_copies=1)
    staff = auth_headers(worker)

    assert client.post(
        "/api/rentals", json={"book_id": book.id, "customer_id": customer.id}, headers=auth_headers(customer)
    ).status_code == 403

    issued = client.post("/api/rentals", json={"book_id": book.id, "customer_id": customer.id}, headers=staff)
    assert issued.status_code == 201
    rental = issued.json()["rental"]
    assert rental["status"] == "BORROWED"
    assert rental["worker_id"] == worker.id

    again = client.post("/api/rentals", json={"book_id": book.id, "customer_id": customer.id}, headers=staff)
    assert again.status_code == 400
    assert again.json() == {"error": "Kitap şu anda mevcut değil"}

    deleted = client.delete(f"/api/books/{book.id}", headers=staff)
    assert deleted.status_code == 400

    mine = client.get("/api/rentals/my-rentals", headers=auth_headers(customer)).json()["rentals"]
    assert [r["id"] for r in mine] == [rental["id"]]

    everything = client.get("/api/rentals/all", params={"status": "BORROWED"}, headers=staff).json()
    assert everything["pagination"]["total"] == 1
    assert client.get("/api/rentals/all", headers=auth_headers(customer)).status_code == 403

    returned = client.post(f"/api/rentals/{rental['id']}/return", headers=staff)
    assert returned.status_code == 200
    assert returned.json()["rental"]["status"] == "RETURNED"

    twice = client.post(f"/api/rentals/{rental['id']}/return", headers=staff)
    assert twice.status_code == 409
    assert twice.json() == {"error": "Kitap zaten iade edilmiş"}

    assert client.get(f"/api/books/{book.id}").json()["book"]["available_copies"] == 1


def test_recommendations_endpoint(client, worker, customer, make_book, auth_headers):
    read = make_book(title="Beyaz Gemi", author="Cengiz Aytmatov", category="Roman")
    make_book(title="Cemile", author="Cengiz Aytmatov", category="Roman")
    staff = auth_headers(worker)
    rental = client.post("/api/rentals", json={"book_id": read.id, "customer_id": customer.id}, headers=staff)
    client.post(f"/api/rentals/{rental.json()['rental']['id']}/return", headers=staff)

    response = client.get("/api/recommendations", headers=auth_headers(customer))

    assert response.status_code == 200
    [item] = response.json()["recommendations"]
    assert item["title"] == "Cemile"
    assert item["score"] == 1.0
    assert item["current_score"] == 1.0


def test_purchase_suggestions(client, worker, customer, auth_headers):
    staff = auth_headers(worker)
    assert client.get("/api/purchase-suggestions", headers=auth_headers(customer)).status_code == 403

    created = client.post(
        "/api/purchase-suggestions",
        json={"book_title": "Tutunamayanlar", "reason": "Çok soruluyor", "priority": 15},
        headers=staff,
    )
    assert created.status_code == 201
    suggestion = created.json()["suggestion"]
    assert suggestion["priority"] == 10
    assert suggestion["status"] == "PENDING"

    url = f"/api/purchase-suggestions/{suggestion['id']}/status"
    assert client.patch(url, json={"status": "PURCHASED"}, headers=staff).status_code == 400
    assert client.patch(url, json={"status": "APPROVED"}, headers=staff).json()["suggestion"]["status"] == "APPROVED"

    listing = client.get("/api/purchase-suggestions", headers=staff).json()["suggestions"]
    assert [s["book_title"] for s in listing] == ["Tutunamayanlar"]


def test_users_listing_for_staff(client, worker, customer, auth_headers):
    response = client.get("/api/users", params={"role": "CUSTOMER"}, headers=auth_headers(worker))
    assert [u["email"] for u in response.json()["users"]] == ["musteri@example.com"]
    assert client.get("/api/users", headers=auth_headers(customer)).status_code == 403


def test_identity_card_access(client, worker, customer, make_user, auth_headers):
    other = make_user(role=Role.CUSTOMER)

    own = client.get(f"/api/users/{customer.id}/card", headers=auth_headers(customer))
    assert own.status_code == 200
    assert own.headers["content-type"] == "application/pdf"
    assert own.content.startswith(b"%PDF")

    assert client.get(f"/api/users/{other.id}/card", headers=auth_headers(customer)).status_code == 403
    assert client.get(f"/api/users/{other.id}/card", headers=auth_headers(worker)).status_code == 200
    assert client.get("/api/users/yok/card", headers=auth_headers(worker)).status_code == 404


def test_isbn_search_endpoint(client, worker, customer, auth_headers):
    def handler(request):
        if request.url.host == "openlibrary.org":
            return httpx.Response(200, json={f"ISBN:{ISBN}": {"title": "Bulunan", "authors": [{"name": "Yazar"}]}})
        return httpx.Response(404)

    def lookup_override():
        return ISBNLookupService(HTTPClient(transport=httpx.MockTransport(handler)), openlibrary_url="https://openlibrary.org")

    app.dependency_overrides[get_isbn_lookup] = lookup_override

    assert client.get(f"/api/books/search-isbn/{ISBN}", headers=auth_headers(customer)).status_code == 403

    response = client.get(f"/api/books/search-isbn/{ISBN}", headers=auth_headers(worker))
    assert response.status_code == 200
    assert response.json()["book"]["title"] == "Bulunan"
    assert response.json()["source"] == "Open Library"

    invalid = client.get("/api/books/search-isbn/12345", headers=auth_headers(worker))
    assert invalid.status_code == 400
