"""Kimlik doğrulama ve yetkilendirme.

Şifreler bcrypt ile özetlenir, oturumlar HS256 imzalı JWT ile taşınır.
Korunan her uç nokta tek bir politika fonksiyonuna, ``authorize``'a danışır;
hangi rolün hangi eylemi yapabileceği ``PERMISSIONS`` tablosunda tutulur.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, List, Optional

import bcrypt
import jwt
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kutuphane.config import settings
from kutuphane.database import transaction
from kutuphane.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from kutuphane.models import Role, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

_STAFF = frozenset({Role.WORKER, Role.ADMIN})

PERMISSIONS: Dict[str, FrozenSet[Role]] = {
    "books:write": _STAFF,
    "books:lookup": _STAFF,
    "rentals:issue": _STAFF,
    "rentals:return": _STAFF,
    "rentals:list_all": _STAFF,
    "suggestions:manage": _STAFF,
    "users:list": _STAFF,
    "users:card_any": _STAFF,
    "users:create_staff": frozenset({Role.ADMIN}),
}


@dataclass(frozen=True)
class Principal:
    """Doğrulanmış bir token'ın taşıdığı kimlik."""

    id: str
    email: str
    role: Role


def can(principal: Optional[Principal], action: str) -> bool:
    if action not in PERMISSIONS:
        raise ValueError(f"Bilinmeyen eylem: {action}")
    return principal is not None and principal.role in PERMISSIONS[action]


def authorize(principal: Optional[Principal], action: str) -> Principal:
    """Eylem izinliyse kimliği döndür; kimlik yoksa 401, rol yetmiyorsa 403."""
    if principal is None:
        raise Unauthorized("Token bulunamadı")
    if not can(principal, action):
        raise Forbidden("Bu işlem için yetkiniz yok")
    return principal


# ------------------------- Şifre ve token ------------------------- #
def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Bozuk ya da bcrypt olmayan özet
        return False


def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    minutes = settings.jwt_expiration_minutes if expires_minutes is None else expires_minutes
    payload = {
        "sub": user.id,
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token süresi dolmuş") from None
    except jwt.InvalidTokenError:
        raise Unauthorized("Geçersiz token") from None

    try:
        return Principal(id=payload["sub"], email=payload["email"], role=Role(payload["role"]))
    except (KeyError, ValueError):
        raise Unauthorized("Geçersiz token") from None


# ------------------------- Kullanıcı işlemleri ------------------------- #
def register_user(db: Session, email: str, password: str, name: str, role: Role = Role.CUSTOMER) -> User:
    """Yeni bir kullanıcı oluştur. Email küçük harfe çevrilerek saklanır."""
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not email or not password or not name:
        raise ValidationError("Email, şifre ve isim gereklidir")
    if "@" not in email:
        raise ValidationError("Geçersiz email adresi")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Şifre en az {MIN_PASSWORD_LENGTH} karakter olmalıdır")
    if find_user_by_email(db, email) is not None:
        raise Conflict("Bu email adresi zaten kayıtlı")

    user = User(email=email, password_hash=hash_password(password), name=name, role=Role(role))
    try:
        with transaction(db):
            db.add(user)
    except IntegrityError as exc:
        raise Conflict("Bu email adresi zaten kayıtlı") from exc
    logger.info("Kullanıcı oluşturuldu: %s (%s)", email, user.role.value)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    if not email or not password:
        raise ValidationError("Email ve şifre gereklidir")
    user = find_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise Unauthorized("Geçersiz email veya şifre")
    return user


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.scalars(select(User).where(User.email == email.strip().lower())).first()


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("Kullanıcı bulunamadı")
    return user


def list_users(db: Session, role: Optional[str] = None, search: Optional[str] = None) -> List[User]:
    stmt = select(User).order_by(User.name)
    if role:
        try:
            stmt = stmt.where(User.role == Role(role.strip().upper()))
        except ValueError:
            raise ValidationError(f"Geçersiz rol: {role}") from None
    if search and search.strip():
        term = search.strip()
        stmt = stmt.where(or_(User.name.icontains(term, autoescape=True), User.email.icontains(term, autoescape=True)))
    return list(db.scalars(stmt).all())
