import re
from typing import Optional


class ISBNValidator:
    """ISBN-10 ve ISBN-13 için normalleştirme ve sağlama toplamı kontrolü."""

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        s = re.sub(r"[^0-9Xx]", "", raw)
        return s.upper()

    @staticmethod
    def is_valid_isbn(isbn: Optional[str]) -> bool:
        s = ISBNValidator.normalize_isbn(isbn)
        if len(s) == 10:
            # ISBN-10: 1..10 ağırlıklı kontrol toplamı
            total = 0
            for i, ch in enumerate(s[:-1], 1):
                if not ch.isdigit():
                    return False
                total += i * int(ch)
            check = s[-1]
            if check == "X":
                check_val = 10
            elif check.isdigit():
                check_val = int(check)
            else:
                return False
            return (total + 10 * check_val) % 11 == 0
        elif len(s) == 13 and s.isdigit():
            # ISBN-13 kontrol toplamı
            total = 0
            for i, ch in enumerate(s[:-1]):
                factor = 1 if i % 2 == 0 else 3
                total += factor * int(ch)
            check_val = (10 - (total % 10)) % 10
            return check_val == int(s[-1])
        return False


class TextValidator:
    """Serbest metin alanları için basit temizleme yardımcıları."""

    @staticmethod
    def clean(text: Optional[str]) -> Optional[str]:
        """Baştaki/sondaki boşlukları at; boş metni None'a çevir."""
        if text is None:
            return None
        t = text.strip()
        return t or None

