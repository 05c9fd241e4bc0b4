import io
import logging

from barcode import Code128
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw, ImageFont

from kutuphane.models import User, utcnow

logger = logging.getLogger(__name__)

# A4, 150 dpi
PAGE_SIZE = (1240, 1754)
DPI = 150
MARGIN = 100

BARCODE_OPTIONS = {
    "module_width": 0.3,
    "module_height": 15.0,
    "quiet_zone": 2.0,
    "font_size": 10,
    "text_distance": 5.0,
    "dpi": DPI,
}


def _font(size: int):
    return ImageFont.load_default(size=size)


def render_barcode(value: str) -> Image.Image:
    """Verilen değer için CODE128 barkod görüntüsü üret."""
    return Code128(value, writer=ImageWriter()).render(BARCODE_OPTIONS)


def render_identity_card(user: User) -> bytes:
    """Üyelik kimliğini tek sayfalık PDF olarak üret.

    Sayfada başlık, üyenin adı, e-postası, üye numarası ve üye numarasının
    CODE128 barkodu bulunur.
    """
    page = Image.new("RGB", PAGE_SIZE, "white")
    draw = ImageDraw.Draw(page)
    width = PAGE_SIZE[0]

    draw.text((width // 2, 140), "Kütüphane Üyelik Kimliği", font=_font(56), fill="black", anchor="mm")
    draw.line((MARGIN, 210, width - MARGIN, 210), fill="black", width=3)

    draw.text((MARGIN, 260), "Üye Bilgileri", font=_font(40), fill="black")
    y = 350
    for label, value in (("İsim:", user.name), ("Email:", user.email), ("Üye ID:", user.id)):
        draw.text((MARGIN, y), label, font=_font(30), fill="#444444")
        draw.text((MARGIN + 200, y), value, font=_font(30), fill="black")
        y += 70

    y += 40
    draw.text((MARGIN, y), "Üye Barkodu:", font=_font(30), fill="#444444")
    barcode_image = render_barcode(user.id).convert("RGB")
    page.paste(barcode_image, ((width - barcode_image.width) // 2, y + 60))

    footer = f"Oluşturulma tarihi: {utcnow().strftime('%d.%m.%Y')}"
    draw.text((width // 2, PAGE_SIZE[1] - MARGIN), footer, font=_font(24), fill="#666666", anchor="mm")

    buffer = io.BytesIO()
    page.save(buffer, format="PDF", resolution=float(DPI))
    logger.info("Üyelik kimliği oluşturuldu: %s", user.email)
    return buffer.getvalue()
