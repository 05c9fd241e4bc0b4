import math
from typing import Dict, Optional, Tuple

from kutuphane.errors import ValidationError


def normalize_page(page: Optional[int], limit: Optional[int], default_limit: int, max_limit: int) -> Tuple[int, int]:
    """Sayfa ve limit değerlerini doğrula; eksik olanlara varsayılanları uygula."""
    page = 1 if page is None else page
    limit = default_limit if limit is None else limit
    if page < 1:
        raise ValidationError("Sayfa numarası 1 veya daha büyük olmalıdır")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"Limit 1 ile {max_limit} arasında olmalıdır")
    return page, limit


def pagination_info(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit),
    }
