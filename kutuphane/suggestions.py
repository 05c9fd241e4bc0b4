import logging
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from kutuphane.database import transaction
from kutuphane.errors import NotFound, ValidationError
from kutuphane.models import PurchaseSuggestion, SuggestionStatus
from kutuphane.validators import ISBNValidator, TextValidator

logger = logging.getLogger(__name__)

MIN_PRIORITY = 1
MAX_PRIORITY = 10
DEFAULT_PRIORITY = 5

ALLOWED_TRANSITIONS: Dict[SuggestionStatus, FrozenSet[SuggestionStatus]] = {
    SuggestionStatus.PENDING: frozenset({SuggestionStatus.APPROVED, SuggestionStatus.REJECTED}),
    SuggestionStatus.APPROVED: frozenset({SuggestionStatus.PURCHASED}),
    SuggestionStatus.REJECTED: frozenset(),
    SuggestionStatus.PURCHASED: frozenset(),
}


def clamp_priority(priority: Optional[int]) -> int:
    if priority is None:
        return DEFAULT_PRIORITY
    return max(MIN_PRIORITY, min(MAX_PRIORITY, int(priority)))


class PurchaseSuggestionBoard:
    """Satın alma önerileri ve onay akışı."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(
        self,
        *,
        book_title: Optional[str],
        reason: Optional[str],
        suggested_by: str,
        author: Optional[str] = None,
        isbn: Optional[str] = None,
        priority: Optional[int] = None,
    ) -> PurchaseSuggestion:
        book_title = TextValidator.clean(book_title)
        reason = TextValidator.clean(reason)
        if not book_title or not reason:
            raise ValidationError("Kitap başlığı ve sebep gereklidir")

        suggestion = PurchaseSuggestion(
            book_title=book_title,
            author=TextValidator.clean(author),
            isbn=ISBNValidator.normalize_isbn(isbn) or None,
            reason=reason,
            priority=clamp_priority(priority),
            status=SuggestionStatus.PENDING,
            suggested_by=suggested_by,
        )
        with transaction(self.db):
            self.db.add(suggestion)
        logger.info("Satın alma önerisi oluşturuldu: %s (öncelik %s)", book_title, suggestion.priority)
        return suggestion

    def list_suggestions(self) -> List[PurchaseSuggestion]:
        rows = self.db.scalars(
            select(PurchaseSuggestion)
            .options(selectinload(PurchaseSuggestion.suggester))
            .order_by(PurchaseSuggestion.priority.desc(), PurchaseSuggestion.created_at.desc())
        ).all()
        return list(rows)

    def get(self, suggestion_id: str) -> PurchaseSuggestion:
        suggestion = self.db.get(PurchaseSuggestion, suggestion_id)
        if suggestion is None:
            raise NotFound("Öneri bulunamadı")
        return suggestion

    def update_status(self, suggestion_id: str, status: str) -> PurchaseSuggestion:
        try:
            target = SuggestionStatus(str(status).strip().upper())
        except ValueError:
            raise ValidationError(f"Geçersiz öneri durumu: {status}") from None

        suggestion = self.get(suggestion_id)
        current = suggestion.status
        if target == current:
            return suggestion
        if target not in ALLOWED_TRANSITIONS[current]:
            raise ValidationError(f"{current.value} durumundan {target.value} durumuna geçilemez")

        with transaction(self.db):
            suggestion.status = target
        logger.info("Öneri %s durumu: %s -> %s", suggestion_id, current.value, target.value)
        return suggestion
