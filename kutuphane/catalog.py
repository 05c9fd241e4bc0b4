import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kutuphane.config import settings
from kutuphane.database import transaction
from kutuphane.errors import Conflict, NotFound, ValidationError
from kutuphane.models import ACTIVE_RENTAL_STATUSES, Book, Rental
from kutuphane.pagination import normalize_page, pagination_info
from kutuphane.validators import ISBNValidator, TextValidator

logger = logging.getLogger(__name__)

# Birleştirmede yalnızca yeni değer boş değilse üzerine yazılan alanlar
MERGEABLE_FIELDS = ("location", "description", "category", "image_url")


class Catalog:
    """Kitap koleksiyonunu ve envanter sayaçlarını yönetir."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ------------------------- Okuma işlemleri ------------------------- #
    @staticmethod
    def _search_clause(term: str):
        return or_(
            Book.title.icontains(term, autoescape=True),
            Book.author.icontains(term, autoescape=True),
            Book.isbn.icontains(term, autoescape=True),
        )

    def list_books(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Book], Dict[str, int]]:
        """Başlık/yazar/ISBN üzerinde büyük-küçük harf duyarsız arama ile sayfalı kitap listesi."""
        page, limit = normalize_page(page, limit, settings.default_page_size, settings.max_page_size)

        conditions = []
        term = TextValidator.clean(search)
        if term:
            conditions.append(self._search_clause(term))
        category = TextValidator.clean(category)
        if category:
            conditions.append(Book.category == category)

        total = self.db.scalar(select(func.count()).select_from(Book).where(*conditions)) or 0
        books = self.db.scalars(
            select(Book)
            .where(*conditions)
            .order_by(Book.title.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(books), pagination_info(page, limit, total)

    def categories(self) -> List[str]:
        rows = self.db.scalars(
            select(Book.category).where(Book.category.is_not(None)).distinct().order_by(Book.category)
        ).all()
        return [c for c in rows if c]

    def get_book(self, book_id: str) -> Book:
        book = self.db.get(Book, book_id)
        if book is None:
            raise NotFound("Kitap bulunamadı")
        return book

    def find_by_isbn(self, isbn: Optional[str]) -> Optional[Book]:
        norm = ISBNValidator.normalize_isbn(isbn)
        if not norm:
            return None
        return self.db.scalars(select(Book).where(Book.isbn == norm)).first()

    def search_locations(self, term: Optional[str]) -> List[Book]:
        """Kitapların raf konumlarını ara."""
        term = TextValidator.clean(term)
        if not term:
            raise ValidationError("Arama terimi gereklidir")
        return list(self.db.scalars(select(Book).where(self._search_clause(term)).order_by(Book.title)).all())

    # ------------------------- Yazma işlemleri ------------------------- #
    def add_or_merge_book(
        self,
        *,
        title: Optional[str],
        author: Optional[str],
        location: Optional[str],
        isbn: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        published_year: Optional[int] = None,
        total_copies: Optional[int] = None,
        image_url: Optional[str] = None,
    ) -> Tuple[Book, str]:
        """Yeni bir kitap ekle ya da aynı ISBN'li kayıtla birleştir.

        Dönüş değeri ``(kitap, eylem)``; eylem ``"created"`` veya ``"updated"``.
        """
        title = TextValidator.clean(title)
        author = TextValidator.clean(author)
        location = TextValidator.clean(location)
        if not title or not author or not location:
            raise ValidationError("Başlık, yazar ve konum gereklidir")
        if total_copies is not None and total_copies < 0:
            raise ValidationError("Kopya sayısı negatif olamaz")
        copies = total_copies or 1

        optional = {
            "location": location,
            "description": TextValidator.clean(description),
            "category": TextValidator.clean(category),
            "image_url": TextValidator.clean(image_url),
        }
        norm_isbn = ISBNValidator.normalize_isbn(isbn) or None

        if norm_isbn:
            existing = self.find_by_isbn(norm_isbn)
            if existing is not None:
                return self._merge_copies(existing, copies, optional), "updated"

        book = Book(
            title=title,
            author=author,
            isbn=norm_isbn,
            published_year=published_year,
            total_copies=copies,
            available_copies=copies,
            **optional,
        )
        try:
            with transaction(self.db):
                self.db.add(book)
        except IntegrityError as exc:
            # Eşzamanlı bir ekleme aynı ISBN'i almış olabilir: birleştirmeyi bir kez dene
            existing = self.find_by_isbn(norm_isbn) if norm_isbn else None
            if existing is None:
                raise Conflict("Bu ISBN ile bir kitap zaten mevcut") from exc
            return self._merge_copies(existing, copies, optional), "updated"

        logger.info("Kitap eklendi: %s (%s kopya)", book.title, copies)
        return book, "created"

    def _merge_copies(self, book: Book, copies: int, optional: Dict[str, Optional[str]]) -> Book:
        values: Dict[str, Any] = {
            "total_copies": Book.total_copies + copies,
            "available_copies": Book.available_copies + copies,
        }
        for field in MERGEABLE_FIELDS:
            if optional.get(field):
                values[field] = optional[field]

        stmt = (
            update(Book)
            .where(Book.id == book.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with transaction(self.db):
            self.db.execute(stmt)
        self.db.refresh(book)
        logger.info(
            "ISBN %s birleştirildi: +%s kopya (toplam=%s, mevcut=%s)",
            book.isbn, copies, book.total_copies, book.available_copies,
        )
        return book

    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Book:
        """Kısmi güncelleme; mevcut kopya sayısı toplamı aşamaz."""
        book = self.get_book(book_id)
        observed_available = book.available_copies
        values: Dict[str, Any] = {}

        for key in ("title", "author", "location"):
            if key in fields:
                cleaned = TextValidator.clean(fields[key])
                if cleaned:
                    values[key] = cleaned

        if "isbn" in fields:
            new_isbn = ISBNValidator.normalize_isbn(fields["isbn"]) or None
            if new_isbn and new_isbn != book.isbn:
                other = self.find_by_isbn(new_isbn)
                if other is not None and other.id != book.id:
                    raise Conflict("Bu ISBN ile başka bir kitap zaten mevcut")
            values["isbn"] = new_isbn

        for key in ("description", "category", "image_url"):
            if key in fields:
                values[key] = TextValidator.clean(fields[key])
        if "published_year" in fields:
            values["published_year"] = fields["published_year"]

        final_total = book.total_copies
        final_available = observed_available
        if fields.get("total_copies") is not None:
            final_total = fields["total_copies"]
            values["total_copies"] = final_total
        if fields.get("available_copies") is not None:
            final_available = fields["available_copies"]
            values["available_copies"] = final_available

        if final_total < 0 or final_available < 0:
            raise ValidationError("Kopya sayıları negatif olamaz")
        if final_available > final_total:
            raise ValidationError("Mevcut kopya sayısı toplam kopya sayısından fazla olamaz")

        if not values:
            return book

        # Doğrulanan mevcut kopya sayısı değişmediyse yaz (karşılaştır-ve-ayarla)
        stmt = (
            update(Book)
            .where(Book.id == book.id, Book.available_copies == observed_available)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            with transaction(self.db):
                result = self.db.execute(stmt)
                if result.rowcount == 0:
                    raise Conflict("Kitap eşzamanlı olarak değiştirildi, lütfen tekrar deneyin")
        except IntegrityError as exc:
            raise Conflict("Bu ISBN ile başka bir kitap zaten mevcut") from exc

        self.db.refresh(book)
        return book

    def delete_book(self, book_id: str) -> None:
        """Aktif (BORROWED/OVERDUE) kiralaması olmayan bir kitabı sil."""
        book = self.get_book(book_id)
        has_active = (
            select(Rental.id)
            .where(Rental.book_id == book.id, Rental.status.in_(ACTIVE_RENTAL_STATUSES))
            .exists()
        )
        stmt = (
            delete(Book)
            .where(Book.id == book.id, ~has_active)
            .execution_options(synchronize_session=False)
        )
        with transaction(self.db):
            result = self.db.execute(stmt)
            if result.rowcount == 0:
                active = self.db.scalar(
                    select(func.count())
                    .select_from(Rental)
                    .where(Rental.book_id == book.id, Rental.status.in_(ACTIVE_RENTAL_STATUSES))
                )
                raise ValidationError(
                    f"Bu kitap şu anda {active} aktif kiralama kaydına sahip. "
                    "Önce tüm kitapların iade edilmesi gerekiyor."
                )
        self.db.expunge(book)
        logger.info("Kitap silindi: %s", book_id)
