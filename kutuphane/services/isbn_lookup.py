import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import httpx

from kutuphane.config import settings
from kutuphane.errors import UpstreamFailure, ValidationError
from kutuphane.services.http_client import HTTPClient
from kutuphane.validators import ISBNValidator

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Bu ISBN ile kitap bulunamadı. Lütfen bilgileri manuel olarak girin."
FAILED_MESSAGE = "Kitap bilgisi çekilemedi. Lütfen bilgileri manuel olarak girin."


@dataclass
class BookMetadata:
    """Harici kaynaklardan normalleştirilmiş kitap bilgisi"""
    isbn: str
    title: str
    author: str = ""
    description: str = ""
    published_year: Optional[int] = None
    image_url: Optional[str] = None
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_year(value: Optional[str]) -> Optional[int]:
    """Tarih metnindeki ilk dört haneli sayıyı yıl olarak al."""
    if not value:
        return None
    match = re.search(r"\d{4}", str(value))
    return int(match.group(0)) if match else None


def _https(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    return re.sub(r"^http://", "https://", url)


class ISBNLookupService:
    """Open Library'yi, bulamazsa Google Books'u sorgulayan ISBN arama servisi"""

    def __init__(
        self,
        client: HTTPClient,
        openlibrary_url: Optional[str] = None,
        google_books_url: Optional[str] = None,
        google_books_api_key: Optional[str] = None,
        enable_google_books: Optional[bool] = None,
    ):
        self.client = client
        self.openlibrary_url = (openlibrary_url or settings.openlibrary_url).rstrip("/")
        self.google_books_url = (google_books_url or settings.google_books_url).rstrip("/")
        self.api_key = google_books_api_key or settings.google_books_api_key
        self.enable_google_books = (
            settings.enable_google_books if enable_google_books is None else enable_google_books
        )

    async def lookup(self, isbn: str) -> BookMetadata:
        """
        Fetch book metadata by ISBN.

        Args:
            isbn: ISBN-10 or ISBN-13, hyphens and spaces allowed

        Returns:
            BookMetadata from the first source that knows the ISBN

        Raises:
            ValidationError: checksum or length is wrong
            UpstreamFailure: 404 when no source has it, 500 when every source failed
        """
        clean_isbn = ISBNValidator.normalize_isbn(isbn)
        if not ISBNValidator.is_valid_isbn(clean_isbn):
            raise ValidationError("Geçersiz ISBN formatı.")

        sources = [("Open Library", self._fetch_open_library)]
        if self.enable_google_books:
            sources.append(("Google Books", self._fetch_google_books))

        failures = 0
        for name, fetch in sources:
            try:
                book = await fetch(clean_isbn)
            except (httpx.HTTPError, ValueError) as e:
                failures += 1
                logger.warning(f"{name} API hatası (ISBN {clean_isbn}): {e}")
                continue
            if book is not None:
                logger.info(f"Kitap {name} üzerinden bulundu: {book.title}")
                return book
            logger.info(f"{name} kaynağında kitap bulunamadı: ISBN {clean_isbn}")

        if failures == len(sources):
            raise UpstreamFailure(FAILED_MESSAGE, status_code=500)
        raise UpstreamFailure(NOT_FOUND_MESSAGE)

    async def _get_json(self, url: str, params: Dict[str, Any], timeout: float) -> Optional[Dict[str, Any]]:
        response = await self.client.get(url, params=params, timeout=timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def _fetch_open_library(self, isbn: str) -> Optional[BookMetadata]:
        params = {"bibkeys": f"ISBN:{isbn}", "format": "json", "jscmd": "data"}
        data = await self._get_json(f"{self.openlibrary_url}/api/books", params, settings.openlibrary_timeout)
        entry = (data or {}).get(f"ISBN:{isbn}")
        if not entry or not entry.get("title"):
            return None

        authors = entry.get("authors") or []
        description = entry.get("subtitle") or ""
        if not description:
            excerpts = entry.get("excerpts") or []
            if excerpts:
                description = excerpts[0].get("text", "")
        if not description:
            notes = entry.get("notes")
            description = notes.get("value", "") if isinstance(notes, dict) else (notes or "")

        cover = entry.get("cover") or {}
        image_url = cover.get("large") or cover.get("medium") or cover.get("small")

        return BookMetadata(
            isbn=isbn,
            title=entry["title"],
            author=authors[0].get("name", "") if authors else "",
            description=description,
            published_year=extract_year(entry.get("publish_date")),
            image_url=_https(image_url),
            source="Open Library",
        )

    async def _fetch_google_books(self, isbn: str) -> Optional[BookMetadata]:
        params: Dict[str, Any] = {"q": f"isbn:{isbn}", "maxResults": 1}
        # API anahtarı varsa ekle
        if self.api_key:
            params["key"] = self.api_key
        data = await self._get_json(f"{self.google_books_url}/volumes", params, settings.google_books_timeout)
        items = (data or {}).get("items") or []
        if not items:
            return None

        volume_info = items[0].get("volumeInfo", {})
        if not volume_info.get("title"):
            return None

        image_links = volume_info.get("imageLinks", {})
        image_url = None
        # Mevcut en yüksek çözünürlüğü tercih et
        for key in ["extraLarge", "large", "medium", "small", "thumbnail", "smallThumbnail"]:
            if image_links.get(key):
                image_url = image_links[key]
                break

        return BookMetadata(
            isbn=isbn,
            title=volume_info["title"],
            author=", ".join(volume_info.get("authors", [])),
            description=volume_info.get("description") or volume_info.get("subtitle") or "",
            published_year=extract_year(volume_info.get("publishedDate")),
            image_url=_https(image_url),
            source="Google Books",
        )
