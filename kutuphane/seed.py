"""Örnek veriler: bir çalışan, bir müşteri ve birkaç Türk edebiyatı kitabı."""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from kutuphane.auth import find_user_by_email, register_user
from kutuphane.catalog import Catalog
from kutuphane.models import Role

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "123456"

DEMO_USERS = [
    {"email": "calisan@kutuphane.com", "name": "Test Çalışan", "role": Role.WORKER},
    {"email": "musteri@example.com", "name": "Test Müşteri", "role": Role.CUSTOMER},
]

DEMO_BOOKS = [
    {
        "title": "Suç ve Ceza",
        "author": "Fyodor Dostoyevski",
        "isbn": "9789750719307",
        "description": "Rus edebiyatının en önemli eserlerinden biri",
        "category": "Klasik",
        "published_year": 1866,
        "total_copies": 5,
        "location": "A-1-1",
    },
    {
        "title": "1984",
        "author": "George Orwell",
        "isbn": "9789750719314",
        "description": "Distopya edebiyatının başyapıtı",
        "category": "Distopya",
        "published_year": 1949,
        "total_copies": 4,
        "location": "A-1-2",
    },
    {
        "title": "Simyacı",
        "author": "Paulo Coelho",
        "isbn": "9789750807813",
        "description": "Kişisel gelişim ve felsefe",
        "category": "Felsefe",
        "published_year": 1988,
        "total_copies": 6,
        "location": "B-2-1",
    },
    {
        "title": "Beyaz Gemi",
        "author": "Cengiz Aytmatov",
        "isbn": "9789750807820",
        "description": "Modern Türk edebiyatı klasikleri",
        "category": "Roman",
        "published_year": 1970,
        "total_copies": 3,
        "location": "B-2-2",
    },
    {
        "title": "İnce Memed",
        "author": "Yaşar Kemal",
        "isbn": "9789750807837",
        "description": "Türk edebiyatının önemli eseri",
        "category": "Roman",
        "published_year": 1955,
        "total_copies": 7,
        "location": "B-2-3",
    },
]


def seed_demo_data(db: Session) -> Dict[str, int]:
    """Örnek verileri ekle. Var olan kullanıcı ve ISBN'ler atlanır, tekrar çalıştırmak güvenlidir."""
    users_created = 0
    for entry in DEMO_USERS:
        if find_user_by_email(db, entry["email"]) is None:
            register_user(db, entry["email"], DEMO_PASSWORD, entry["name"], entry["role"])
            users_created += 1

    catalog = Catalog(db)
    books_created = 0
    for entry in DEMO_BOOKS:
        if catalog.find_by_isbn(entry["isbn"]) is None:
            catalog.add_or_merge_book(**entry)
            books_created += 1

    logger.info("Örnek veriler yüklendi: %s kullanıcı, %s kitap", users_created, books_created)
    return {"users": users_created, "books": books_created}
