import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, Response, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import text
from sqlalchemy.orm import Session

from kutuphane import auth
from kutuphane.auth import Principal, authorize
from kutuphane.catalog import Catalog
from kutuphane.config import configure_logging, settings
from kutuphane.database import get_db, init_db
from kutuphane.errors import LibraryError, Unauthorized
from kutuphane.models import Role, utcnow
from kutuphane.recommendations import RecommendationEngine
from kutuphane.rentals import RentalLedger
from kutuphane.schemas import (
    AuthResponse,
    BookCreateModel,
    BookListResponse,
    BookLocationResponse,
    BookModel,
    BookMutationResponse,
    BookResponse,
    BookUpdateModel,
    CategoriesResponse,
    ISBNLookupResponse,
    LoginRequest,
    MessageResponse,
    RecommendationListResponse,
    RecommendedBookModel,
    RegisterRequest,
    RentalCreateModel,
    RentalListResponse,
    RentalResponse,
    SuggestionCreateModel,
    SuggestionListResponse,
    SuggestionResponse,
    SuggestionStatusModel,
    UserListResponse,
    UserResponse,
)
from kutuphane.services.http_client import cleanup_http_client, get_http_client
from kutuphane.services.identity_card import render_identity_card
from kutuphane.services.isbn_lookup import ISBNLookupService
from kutuphane.suggestions import PurchaseSuggestionBoard

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Başlangıçta kaynakları başlat
    configure_logging()
    init_db()
    await get_http_client()
    try:
        yield
    finally:
        # Kapanışta kaynakları temizle
        await cleanup_http_client()


app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    if exc.status_code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# --- Güvenlik ---
bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Optional[Principal]:
    """Token varsa doğrula; yoksa None döndür."""
    if credentials is None or not credentials.credentials:
        return None
    return auth.decode_access_token(credentials.credentials)


def get_current_user(principal: Optional[Principal] = Depends(get_optional_user)) -> Principal:
    if principal is None:
        raise Unauthorized("Token bulunamadı")
    return principal


def require(action: str):
    """Verilen eylem için yetki politikasını uygulayan bağımlılık üret."""

    def dependency(principal: Principal = Depends(get_current_user)) -> Principal:
        return authorize(principal, action)

    return dependency


async def get_isbn_lookup() -> ISBNLookupService:
    return ISBNLookupService(await get_http_client())


# --- Sağlık Kontrolü ---
@app.get("/")
def root():
    return {"message": settings.app_name, "version": settings.app_version}


@app.get("/health")
def health(db: Session = Depends(get_db)):
    """Hafif sağlık uç noktası; hızlı bir veritabanı sorgusu yapar."""
    db_ok = True
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Sağlık kontrolünde veritabanı hatası")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": utcnow().isoformat() + "Z",
        "db": db_ok,
        "services": {"google_books": settings.enable_google_books},
    }


# --- Kimlik ---
@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterRequest,
    principal: Optional[Principal] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    if payload.role != Role.CUSTOMER:
        authorize(principal, "users:create_staff")
    user = auth.register_user(db, payload.email, payload.password, payload.name, payload.role)
    return {
        "message": "Kullanıcı başarıyla oluşturuldu",
        "token": auth.create_access_token(user),
        "user": user,
    }


@app.post("/api/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = auth.authenticate(db, payload.email, payload.password)
    return {"message": "Giriş başarılı", "token": auth.create_access_token(user), "user": user}


@app.get("/api/auth/me", response_model=UserResponse)
def me(principal: Principal = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"user": auth.get_user(db, principal.id)}


# --- Kitaplar ---
@app.get("/api/books", response_model=BookListResponse)
def list_books(
    search: Optional[str] = None,
    category: Optional[str] = None,
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    books, pagination = Catalog(db).list_books(search=search, category=category, page=page, limit=limit)
    return {"books": books, "pagination": pagination}


@app.get("/api/books/categories", response_model=CategoriesResponse)
def list_categories(db: Session = Depends(get_db)):
    return {"categories": Catalog(db).categories()}


@app.get("/api/books/search/location", response_model=BookLocationResponse)
def search_locations(
    search: Optional[str] = None,
    principal: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"books": Catalog(db).search_locations(search)}


@app.get("/api/books/search-isbn/{isbn}", response_model=ISBNLookupResponse)
async def search_isbn(
    isbn: str,
    principal: Principal = Depends(require("books:lookup")),
    lookup: ISBNLookupService = Depends(get_isbn_lookup),
):
    book = await lookup.lookup(isbn)
    return {"book": book.to_dict(), "source": book.source}


@app.get("/api/books/{book_id}", response_model=BookResponse)
def get_book(book_id: str, db: Session = Depends(get_db)):
    return {"book": Catalog(db).get_book(book_id)}


@app.post("/api/books", response_model=BookMutationResponse)
def create_book(
    payload: BookCreateModel,
    response: Response,
    principal: Principal = Depends(require("books:write")),
    db: Session = Depends(get_db),
):
    book, action = Catalog(db).add_or_merge_book(**payload.model_dump())
    if action == "created":
        response.status_code = 201
        message = "Kitap başarıyla eklendi"
    else:
        message = (
            "Bu kitap zaten mevcut. Kopya sayısı artırıldı. "
            f"(Toplam: {book.total_copies}, Mevcut: {book.available_copies})"
        )
    return {"message": message, "book": book, "action": action}


@app.patch("/api/books/{book_id}", response_model=BookMutationResponse)
def update_book(
    book_id: str,
    payload: BookUpdateModel,
    principal: Principal = Depends(require("books:write")),
    db: Session = Depends(get_db),
):
    book = Catalog(db).update_book(book_id, payload.model_dump(exclude_unset=True))
    return {"message": "Kitap başarıyla güncellendi", "book": book, "action": "updated"}


@app.delete("/api/books/{book_id}", response_model=MessageResponse)
def delete_book(
    book_id: str,
    principal: Principal = Depends(require("books:write")),
    db: Session = Depends(get_db),
):
    Catalog(db).delete_book(book_id)
    return {"message": "Kitap başarıyla silindi"}


# --- Öneriler ---
@app.get("/api/recommendations", response_model=RecommendationListResponse)
def recommendations(principal: Principal = Depends(get_current_user), db: Session = Depends(get_db)):
    items = []
    for scored in RecommendationEngine(db).recommend(principal.id):
        book = BookModel.model_validate(scored.book).model_dump()
        items.append(
            RecommendedBookModel(
                **book, score=scored.score, reason=scored.reason, current_score=scored.current_score
            )
        )
    return {"recommendations": items}


# --- Kiralamalar ---
@app.post("/api/rentals", response_model=RentalResponse, status_code=201)
def create_rental(
    payload: RentalCreateModel,
    principal: Principal = Depends(require("rentals:issue")),
    db: Session = Depends(get_db),
):
    rental = RentalLedger(db).issue_rental(
        payload.book_id, payload.customer_id, principal.id, due_days=payload.due_days
    )
    return {"message": "Kitap başarıyla kiralandı", "rental": rental}


@app.get("/api/rentals/my-rentals", response_model=RentalListResponse)
def my_rentals(principal: Principal = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"rentals": RentalLedger(db).list_customer_rentals(principal.id)}


@app.get("/api/rentals/all", response_model=RentalListResponse)
def all_rentals(
    status: Optional[str] = None,
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    principal: Principal = Depends(require("rentals:list_all")),
    db: Session = Depends(get_db),
):
    rentals, pagination = RentalLedger(db).list_all_rentals(status=status, page=page, limit=limit)
    return {"rentals": rentals, "pagination": pagination}


@app.post("/api/rentals/{rental_id}/return", response_model=RentalResponse)
def return_rental(
    rental_id: str,
    principal: Principal = Depends(require("rentals:return")),
    db: Session = Depends(get_db),
):
    rental = RentalLedger(db).return_rental(rental_id)
    return {"message": "Kitap başarıyla iade edildi", "rental": rental}


# --- Satın Alma Önerileri ---
@app.get("/api/purchase-suggestions", response_model=SuggestionListResponse)
def list_suggestions(
    principal: Principal = Depends(require("suggestions:manage")),
    db: Session = Depends(get_db),
):
    return {"suggestions": PurchaseSuggestionBoard(db).list_suggestions()}


@app.post("/api/purchase-suggestions", response_model=SuggestionResponse, status_code=201)
def create_suggestion(
    payload: SuggestionCreateModel,
    principal: Principal = Depends(require("suggestions:manage")),
    db: Session = Depends(get_db),
):
    suggestion = PurchaseSuggestionBoard(db).create(suggested_by=principal.id, **payload.model_dump())
    return {"message": "Satın alma önerisi oluşturuldu", "suggestion": suggestion}


@app.patch("/api/purchase-suggestions/{suggestion_id}/status", response_model=SuggestionResponse)
def update_suggestion_status(
    suggestion_id: str,
    payload: SuggestionStatusModel,
    principal: Principal = Depends(require("suggestions:manage")),
    db: Session = Depends(get_db),
):
    suggestion = PurchaseSuggestionBoard(db).update_status(suggestion_id, payload.status)
    return {"message": "Öneri durumu güncellendi", "suggestion": suggestion}


# --- Kullanıcılar ---
@app.get("/api/users", response_model=UserListResponse)
def list_users(
    role: Optional[str] = None,
    search: Optional[str] = None,
    principal: Principal = Depends(require("users:list")),
    db: Session = Depends(get_db),
):
    return {"users": auth.list_users(db, role=role, search=search)}


@app.get("/api/users/{user_id}/card")
def identity_card(
    user_id: str,
    principal: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if principal.id != user_id:
        authorize(principal, "users:card_any")
    user = auth.get_user(db, user_id)
    pdf = render_identity_card(user)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="kimlik-{user.id}.pdf"'},
    )
