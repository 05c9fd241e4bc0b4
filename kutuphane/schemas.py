from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from kutuphane.models import RentalStatus, Role, SuggestionStatus


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Kimlik ---
class RegisterRequest(BaseModel):
    email: str
    password: str
    name: str
    role: Role = Role.CUSTOMER


class LoginRequest(BaseModel):
    email: str
    password: str


class UserModel(ORMModel):
    id: str
    email: str
    name: str
    role: Role


class AuthResponse(BaseModel):
    message: str
    token: str | None = None
    user: UserModel


class UserResponse(BaseModel):
    user: UserModel


class UserListResponse(BaseModel):
    users: List[UserModel]


# --- Kitaplar ---
class BookCreateModel(BaseModel):
    title: str | None = None
    author: str | None = None
    isbn: str | None = Field(default=None, description="Aynı ISBN varsa kopya sayısı artırılır")
    description: str | None = None
    category: str | None = None
    published_year: int | None = Field(default=None, ge=0, le=9999)
    total_copies: int | None = Field(default=None, ge=0)
    location: str | None = Field(default=None, description="Raf konumu, ör. A-1-3")
    image_url: str | None = None


class BookUpdateModel(BaseModel):
    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    description: str | None = None
    category: str | None = None
    published_year: int | None = Field(default=None, ge=0, le=9999)
    total_copies: int | None = Field(default=None, ge=0)
    available_copies: int | None = Field(default=None, ge=0)
    location: str | None = None
    image_url: str | None = None


class BookModel(ORMModel):
    id: str
    title: str
    author: str
    isbn: str | None = None
    description: str | None = None
    category: str | None = None
    published_year: int | None = None
    image_url: str | None = None
    total_copies: int
    available_copies: int
    location: str
    created_at: datetime | None = None


class PaginationModel(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class BookListResponse(BaseModel):
    books: List[BookModel]
    pagination: PaginationModel


class BookResponse(BaseModel):
    book: BookModel


class BookMutationResponse(BaseModel):
    message: str
    book: BookModel
    action: str


class BookLocationModel(ORMModel):
    id: str
    title: str
    author: str
    isbn: str | None = None
    location: str
    available_copies: int
    total_copies: int


class BookLocationResponse(BaseModel):
    books: List[BookLocationModel]


class CategoriesResponse(BaseModel):
    categories: List[str]


class BookMetadataModel(BaseModel):
    """Harici kaynaklardan gelen ISBN arama sonucu"""
    isbn: str
    title: str
    author: str = ""
    description: str = ""
    published_year: int | None = None
    image_url: str | None = None
    source: str = ""


class ISBNLookupResponse(BaseModel):
    book: BookMetadataModel
    source: str


# --- Kiralamalar ---
class RentalCreateModel(BaseModel):
    book_id: str
    customer_id: str
    due_days: int | None = Field(default=None, ge=1, le=365)


class RentalModel(ORMModel):
    id: str
    book_id: str
    customer_id: str
    worker_id: str
    borrowed_at: datetime
    due_date: datetime
    status: RentalStatus
    returned_at: datetime | None = None
    book: BookModel | None = None
    customer: UserModel | None = None


class RentalResponse(BaseModel):
    message: str
    rental: RentalModel


class RentalListResponse(BaseModel):
    rentals: List[RentalModel]
    pagination: PaginationModel | None = None


# --- Öneriler ---
class RecommendedBookModel(BookModel):
    score: float
    reason: str
    current_score: float


class RecommendationListResponse(BaseModel):
    recommendations: List[RecommendedBookModel]


# --- Satın alma önerileri ---
class SuggestionCreateModel(BaseModel):
    book_title: str | None = None
    author: str | None = None
    isbn: str | None = None
    reason: str | None = None
    priority: int | None = Field(default=None, description="1-10 aralığına sıkıştırılır")


class SuggestionStatusModel(BaseModel):
    status: str


class SuggestionModel(ORMModel):
    id: str
    book_title: str
    author: str | None = None
    isbn: str | None = None
    reason: str
    priority: int
    status: SuggestionStatus
    suggested_by: str
    created_at: datetime
    suggester: UserModel | None = None


class SuggestionResponse(BaseModel):
    message: str
    suggestion: SuggestionModel


class SuggestionListResponse(BaseModel):
    suggestions: List[SuggestionModel]


class MessageResponse(BaseModel):
    message: str
