"""Uygulama hata sınıflandırması.

Servisler bu istisnaları yükseltir; API katmanı her birini tek bir işleyici
ile ``{"error": mesaj}`` gövdesine ve ilgili HTTP durum koduna çevirir.
"""


class LibraryError(Exception):
    """Tüm alan hatalarının temel sınıfı."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(LibraryError):
    """Eksik/hatalı alanlar veya iş kuralı ihlali."""
    status_code = 400


class Unauthorized(LibraryError):
    status_code = 401


class Forbidden(LibraryError):
    status_code = 403


class NotFound(LibraryError):
    status_code = 404


class Conflict(LibraryError):
    """Benzersizlik ihlali veya eşzamanlı değişiklik."""
    status_code = 409


class AlreadyReturned(Conflict):
    pass


class Unavailable(LibraryError):
    """Kitabın mevcut kopyası yok."""
    status_code = 400


class UpstreamFailure(LibraryError):
    """Harici bibliyografik kaynaklar sonuç vermedi.

    Hiçbir kaynakta kayıt yoksa 404, tüm kaynaklar hata verdiyse 500.
    """
    status_code = 404
