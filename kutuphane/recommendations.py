import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kutuphane.config import settings
from kutuphane.database import transaction
from kutuphane.models import Book, Recommendation, Rental

logger = logging.getLogger(__name__)

BASE_SCORE = 0.5
CATEGORY_WEIGHT = 0.3
AUTHOR_WEIGHT = 0.2
DEFAULT_REASON = "Size uygun görünüyor."


@dataclass
class ScoredBook:
    book: Book
    score: float
    reason: str
    current_score: float
    current_reason: str


def score_book(book: Book, read_categories: Set[str], read_authors: Set[str]) -> Tuple[float, str]:
    """Kitabı okuma geçmişine göre puanla; ``(puan, gerekçe)`` döndürür."""
    score = BASE_SCORE
    reasons = []
    if book.category and book.category in read_categories:
        score += CATEGORY_WEIGHT
        reasons.append(f"{book.category} kategorisinden kitaplar okumuşsunuz.")
    if book.author in read_authors:
        score += AUTHOR_WEIGHT
        reasons.append(f"{book.author} yazarından kitap okumuşsunuz.")
    return round(min(score, 1.0), 2), " ".join(reasons) or DEFAULT_REASON


class RecommendationEngine:
    """Kiralama geçmişinden kişisel kitap önerileri üretir."""

    def __init__(self, db: Session, limit: Optional[int] = None) -> None:
        self.db = db
        self.limit = limit or settings.recommendation_limit

    def recommend(self, user_id: str) -> List[ScoredBook]:
        history = self.db.execute(
            select(Book.id, Book.category, Book.author)
            .join(Rental, Rental.book_id == Book.id)
            .where(Rental.customer_id == user_id)
        ).all()
        rented_ids = {row.id for row in history}
        read_categories = {row.category for row in history if row.category}
        read_authors = {row.author for row in history if row.author}
        if not read_categories:
            return []

        candidates = self.db.scalars(
            select(Book)
            .where(
                Book.category.in_(sorted(read_categories)),
                Book.id.not_in(list(rented_ids)),
                Book.available_copies > 0,
            )
            .order_by(Book.created_at.desc())
            .limit(self.limit)
        ).all()
        if not candidates:
            return []

        persisted = self._persisted(user_id, (b.id for b in candidates))
        results: List[ScoredBook] = []
        new_rows: List[Recommendation] = []
        for book in candidates:
            score, reason = score_book(book, read_categories, read_authors)
            existing = persisted.get(book.id)
            if existing is None:
                new_rows.append(Recommendation(user_id=user_id, book_id=book.id, score=score, reason=reason))
                results.append(ScoredBook(book, score, reason, score, reason))
            else:
                results.append(ScoredBook(book, existing[0], existing[1], score, reason))

        if new_rows:
            self._store(user_id, new_rows, results)

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def _persisted(self, user_id: str, book_ids: Iterable[str]):
        rows = self.db.execute(
            select(Recommendation.book_id, Recommendation.score, Recommendation.reason).where(
                Recommendation.user_id == user_id, Recommendation.book_id.in_(list(book_ids))
            )
        ).all()
        return {row.book_id: (row.score, row.reason) for row in rows}

    def _store(self, user_id: str, new_rows: List[Recommendation], results: List[ScoredBook]) -> None:
        try:
            with transaction(self.db):
                self.db.add_all(new_rows)
        except IntegrityError:
            # Eşzamanlı bir istek aynı çifti önce yazdı: kalıcı değerleri kullan
            logger.info("Öneri kayıtları eşzamanlı olarak oluşturulmuş, kalıcı değerler yeniden okunuyor")
            persisted = self._persisted(user_id, (r.book.id for r in results))
            for item in results:
                if item.book.id in persisted:
                    item.score, item.reason = persisted[item.book.id]
        else:
            logger.info("Kullanıcı %s için %s yeni öneri kaydedildi", user_id, len(new_rows))
