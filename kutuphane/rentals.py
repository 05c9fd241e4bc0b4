import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from kutuphane.config import settings
from kutuphane.database import transaction
from kutuphane.errors import AlreadyReturned, NotFound, Unavailable, ValidationError
from kutuphane.models import Book, Rental, RentalStatus, User, utcnow
from kutuphane.pagination import normalize_page, pagination_info

logger = logging.getLogger(__name__)


def parse_status(value: Optional[str]) -> Optional[RentalStatus]:
    if value is None or not value.strip():
        return None
    try:
        return RentalStatus(value.strip().upper())
    except ValueError:
        raise ValidationError(f"Geçersiz kiralama durumu: {value}") from None


class RentalLedger:
    """Kiralama kayıtları, durum geçişleri ve envanter sayaçlarının mutabakatı.

    Kiralama ve iade, kitabın ``available_copies`` sayacını aynı işlem içinde
    koşullu bir UPDATE ile değiştirir; böylece iki eşzamanlı istek son kopyayı
    birlikte alamaz. Gecikme işaretlemesi her okuma yolunda tembel yapılır.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def issue_rental(
        self,
        book_id: str,
        customer_id: str,
        worker_id: str,
        due_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Rental:
        due_days = settings.default_due_days if due_days is None else due_days
        if due_days < 1:
            raise ValidationError("Kiralama süresi en az 1 gün olmalıdır")
        if not book_id or not customer_id:
            raise ValidationError("Kitap ID ve müşteri ID gereklidir")
        now = now or utcnow()

        if self.db.get(Book, book_id) is None:
            raise NotFound("Kitap bulunamadı")
        if self.db.get(User, customer_id) is None:
            raise NotFound("Müşteri bulunamadı")

        take_copy = (
            update(Book)
            .where(Book.id == book_id, Book.available_copies > 0)
            .values(available_copies=Book.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        rental = Rental(
            book_id=book_id,
            customer_id=customer_id,
            worker_id=worker_id,
            borrowed_at=now,
            due_date=now + timedelta(days=due_days),
            status=RentalStatus.BORROWED,
        )
        with transaction(self.db):
            if self.db.execute(take_copy).rowcount == 0:
                raise Unavailable("Kitap şu anda mevcut değil")
            self.db.add(rental)

        logger.info(
            "Kiralama oluşturuldu: kitap=%s müşteri=%s iade=%s",
            book_id, customer_id, rental.due_date.date().isoformat(),
        )
        return rental

    def return_rental(self, rental_id: str, now: Optional[datetime] = None) -> Rental:
        now = now or utcnow()
        rental = self.db.get(Rental, rental_id)
        if rental is None:
            raise NotFound("Kiralama kaydı bulunamadı")

        mark_returned = (
            update(Rental)
            .where(Rental.id == rental_id, Rental.status != RentalStatus.RETURNED)
            .values(status=RentalStatus.RETURNED, returned_at=now)
            .execution_options(synchronize_session=False)
        )
        restock = (
            update(Book)
            .where(Book.id == rental.book_id, Book.available_copies < Book.total_copies)
            .values(available_copies=Book.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        with transaction(self.db):
            if self.db.execute(mark_returned).rowcount == 0:
                raise AlreadyReturned("Kitap zaten iade edilmiş")
            if self.db.execute(restock).rowcount == 0:
                logger.warning("Kitap %s için mevcut kopya zaten toplama eşit, sayaç artırılmadı", rental.book_id)

        self.db.refresh(rental)
        logger.info("Kiralama iade edildi: %s (kitap=%s)", rental_id, rental.book_id)
        return rental

    def sweep_overdue(
        self,
        customer_id: Optional[str] = None,
        rental_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Süresi geçmiş BORROWED kayıtlarını OVERDUE yap; değişen satır sayısını döndür."""
        now = now or utcnow()
        stmt = update(Rental).where(Rental.status == RentalStatus.BORROWED, Rental.due_date < now)
        if customer_id is not None:
            stmt = stmt.where(Rental.customer_id == customer_id)
        if rental_id is not None:
            stmt = stmt.where(Rental.id == rental_id)
        stmt = stmt.values(status=RentalStatus.OVERDUE).execution_options(synchronize_session=False)

        with transaction(self.db):
            changed = self.db.execute(stmt).rowcount
        if changed:
            logger.info("%s kiralama gecikmiş olarak işaretlendi", changed)
        return changed

    def get_rental(self, rental_id: str, now: Optional[datetime] = None) -> Rental:
        self.sweep_overdue(rental_id=rental_id, now=now)
        rental = self.db.get(Rental, rental_id)
        if rental is None:
            raise NotFound("Kiralama kaydı bulunamadı")
        return rental

    def list_customer_rentals(self, customer_id: str, now: Optional[datetime] = None) -> List[Rental]:
        self.sweep_overdue(customer_id=customer_id, now=now)
        rentals = self.db.scalars(
            select(Rental)
            .options(selectinload(Rental.book))
            .where(Rental.customer_id == customer_id)
            .order_by(Rental.borrowed_at.desc())
        ).all()
        return list(rentals)

    def list_all_rentals(
        self,
        status: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Rental], Dict[str, int]]:
        status_filter = parse_status(status)
        page, limit = normalize_page(page, limit, settings.rentals_page_size, settings.max_page_size)
        self.sweep_overdue(now=now)

        conditions = []
        if status_filter is not None:
            conditions.append(Rental.status == status_filter)

        total = self.db.scalar(select(func.count()).select_from(Rental).where(*conditions)) or 0
        rentals = self.db.scalars(
            select(Rental)
            .options(selectinload(Rental.book), selectinload(Rental.customer))
            .where(*conditions)
            .order_by(Rental.borrowed_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(rentals), pagination_info(page, limit, total)
