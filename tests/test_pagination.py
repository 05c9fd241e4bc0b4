import pytest

from kutuphane.errors import ValidationError
from kutuphane.pagination import normalize_page, pagination_info


def test_defaults_applied():
    assert normalize_page(None, None, 20, 100) == (1, 20)


@pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 101)])
def test_out_of_range_rejected(page, limit):
    with pytest.raises(ValidationError):
        normalize_page(page, limit, 20, 100)


def test_page_count():
    assert pagination_info(1, 20, 0)["pages"] == 0
    assert pagination_info(2, 3, 4) == {"page": 2, "limit": 3, "total": 4, "pages": 2}
    assert pagination_info(1, 5, 5)["pages"] == 1
