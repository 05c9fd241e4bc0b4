import asyncio

import httpx
import pytest

from kutuphane.errors import UpstreamFailure, ValidationError
from kutuphane.services.http_client import HTTPClient
from kutuphane.services.isbn_lookup import ISBNLookupService, extract_year

ISBN = "9780441172719"

OPEN_LIBRARY_HIT = {
    f"ISBN:{ISBN}": {
        "title": "Dune",
        "authors": [{"name": "Frank Herbert"}],
        "publish_date": "September 1990",
        "notes": {"type": "/type/text", "value": "Arrakis"},
        "cover": {"medium": "http://covers.openlibrary.org/b/id/1-M.jpg"},
    }
}

GOOGLE_HIT = {
    "totalItems": 1,
    "items": [
        {
            "volumeInfo": {
                "title": "Dune",
                "authors": ["Frank Herbert", "Brian Herbert"],
                "publishedDate": "2005-08-02",
                "description": "Bilim kurgu klasiği",
                "imageLinks": {"smallThumbnail": "http://books.google.com/s.jpg", "thumbnail": "http://books.google.com/t.jpg"},
            }
        }
    ],
}


def _service(handler, **kwargs):
    client = HTTPClient(transport=httpx.MockTransport(handler))
    return ISBNLookupService(
        client,
        openlibrary_url="https://openlibrary.test",
        google_books_url="https://books.test/books/v1",
        enable_google_books=True,
        **kwargs,
    )


def _lookup(service, isbn=ISBN):
    async def run():
        try:
            return await service.lookup(isbn)
        finally:
            await service.client.close()

    return asyncio.run(run())


def test_open_library_hit():
    calls = []

    def handler(request):
        calls.append(request.url.host)
        assert request.url.params["bibkeys"] == f"ISBN:{ISBN}"
        assert request.url.params["jscmd"] == "data"
        return httpx.Response(200, json=OPEN_LIBRARY_HIT)

    book = _lookup(_service(handler), "978-0-441-17271-9")

    assert calls == ["openlibrary.test"]
    assert book.title == "Dune"
    assert book.author == "Frank Herbert"
    assert book.published_year == 1990
    assert book.description == "Arrakis"
    assert book.image_url == "https://covers.openlibrary.org/b/id/1-M.jpg"
    assert book.source == "Open Library"


def test_falls_back_to_google_books():
    def handler(request):
        if request.url.host == "openlibrary.test":
            return httpx.Response(200, json={})
        assert request.url.params["q"] == f"isbn:{ISBN}"
        assert request.url.params["key"] == "anahtar"
        return httpx.Response(200, json=GOOGLE_HIT)

    book = _lookup(_service(handler, google_books_api_key="anahtar"))

    assert book.source == "Google Books"
    assert book.author == "Frank Herbert, Brian Herbert"
    assert book.published_year == 2005
    assert book.image_url == "https://books.google.com/t.jpg"


def test_open_library_error_falls_through():
    def handler(request):
        if request.url.host == "openlibrary.test":
            raise httpx.ConnectError("bağlantı yok")
        return httpx.Response(200, json=GOOGLE_HIT)

    assert _lookup(_service(handler)).source == "Google Books"


def test_not_found_everywhere_is_404():
    def handler(request):
        if request.url.host == "openlibrary.test":
            return httpx.Response(200, json={})
        return httpx.Response(200, json={"totalItems": 0})

    with pytest.raises(UpstreamFailure) as exc:
        _lookup(_service(handler))
    assert exc.value.status_code == 404


def test_all_sources_failing_is_500():
    def handler(request):
        return httpx.Response(503, text="bakımda")

    with pytest.raises(UpstreamFailure) as exc:
        _lookup(_service(handler))
    assert exc.value.status_code == 500


def test_invalid_isbn_never_calls_upstream():
    def handler(request):
        raise AssertionError("çağrılmamalı")

    with pytest.raises(ValidationError):
        _lookup(_service(handler), "9780321765723")


def test_google_books_can_be_disabled():
    def handler(request):
        assert request.url.host == "openlibrary.test"
        return httpx.Response(200, json={})

    service = _service(handler)
    service.enable_google_books = False
    with pytest.raises(UpstreamFailure) as exc:
        _lookup(service)
    assert exc.value.status_code == 404


@pytest.mark.parametrize(
    "value, expected",
    [("1965", 1965), ("June 4, 1965", 1965), ("2005-08-02", 2005), ("tarihsiz", None), (None, None)],
)
def test_extract_year(value, expected):
    assert extract_year(value) == expected


def test_default_client_sends_ascii_user_agent():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["user-agent"]
        return httpx.Response(200, json={})

    async def run():
        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            await client.get("https://openlibrary.org/api/books")

    asyncio.run(run())
    assert seen["ua"].isascii()
    assert seen["ua"].startswith("kutuphane/")
