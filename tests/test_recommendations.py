from kutuphane.models import Book, Recommendation
from kutuphane.recommendations import DEFAULT_REASON, RecommendationEngine, score_book
from kutuphane.rentals import RentalLedger


def _rent_and_return(db, book, customer, worker):
    ledger = RentalLedger(db)
    ledger.return_rental(ledger.issue_rental(book.id, customer.id, worker.id).id)


def test_no_history_means_no_recommendations(db, make_book, customer):
    make_book(category="Roman")
    assert RecommendationEngine(db).recommend(customer.id) == []


def test_category_and_author_scoring(db, make_book, worker, customer):
    read = make_book(title="Beyaz Gemi", author="Cengiz Aytmatov", category="Roman")
    same_author = make_book(title="Cemile", author="Cengiz Aytmatov", category="Roman")
    same_category = make_book(title="İnce Memed", author="Yaşar Kemal", category="Roman")
    make_book(title="Simyacı", author="Paulo Coelho", category="Felsefe")
    _rent_and_return(db, read, customer, worker)

    results = RecommendationEngine(db).recommend(customer.id)

    assert [r.book.id for r in results] == [same_author.id, same_category.id]
    top, second = results
    assert top.score == 1.0
    assert top.reason == "Roman kategorisinden kitaplar okumuşsunuz. Cengiz Aytmatov yazarından kitap okumuşsunuz."
    assert second.score == 0.8
    assert second.reason == "Roman kategorisinden kitaplar okumuşsunuz."


def test_excludes_rented_and_unavailable_books(db, make_book, worker, customer, make_user):
    read = make_book(title="Beyaz Gemi", category="Roman")
    empty = make_book(title="Tek Kopya", category="Roman", total_copies=1)
    RentalLedger(db).issue_rental(empty.id, make_user().id, worker.id)
    _rent_and_return(db, read, customer, worker)

    results = RecommendationEngine(db).recommend(customer.id)

    ids = [r.book.id for r in results]
    assert read.id not in ids
    assert empty.id not in ids


def test_candidate_pool_is_limited(db, make_book, worker, customer):
    read = make_book(title="Okunan", category="Roman")
    for i in range(5):
        make_book(title=f"Aday {i}", category="Roman")
    _rent_and_return(db, read, customer, worker)

    assert len(RecommendationEngine(db, limit=3).recommend(customer.id)) == 3


def test_recommendation_rows_are_written_once(db, make_book, worker, customer):
    read = make_book(title="Beyaz Gemi", author="Cengiz Aytmatov", category="Roman")
    candidate = make_book(title="Cemile", author="Yaşar Kemal", category="Roman")
    _rent_and_return(db, read, customer, worker)
    engine = RecommendationEngine(db)

    first = engine.recommend(customer.id)
    assert first[0].score == 0.8

    # Yazar sonradan eşleşir; kalıcı puan değişmez, güncel puan görünür
    other_by_author = make_book(title="Toprak Ana", author="Yaşar Kemal", category="Roman")
    _rent_and_return(db, other_by_author, customer, worker)
    second = engine.recommend(customer.id)

    item = next(r for r in second if r.book.id == candidate.id)
    assert item.score == 0.8
    assert item.current_score == 1.0
    rows = db.query(Recommendation).filter_by(user_id=customer.id, book_id=candidate.id).all()
    assert len(rows) == 1
    assert rows[0].score == 0.8


def test_score_book_default_reason():
    book = Book(title="X", author="Y", category="Şiir", location="A", total_copies=1, available_copies=1)
    assert score_book(book, set(), set()) == (0.5, DEFAULT_REASON)
