"""Stamp a buyer specific footer onto every page of a PDF.

The footer is drawn with reportlab on a one page overlay sized like the
target page, then merged on top of that page with pypdf. Placement is
measured from each page's own mediabox, so documents mixing portrait,
landscape or offset pages all get the footer near their bottom-left corner.
"""
import io
import logging

from pypdf import PdfReader, PdfWriter, Transformation
from reportlab.pdfgen import canvas

from app.services.errors import CorruptSource, EncodingError

logger = logging.getLogger(__name__)

WATERMARK_FONT = "Helvetica"
WATERMARK_FONT_SIZE = 10
WATERMARK_X = 36
WATERMARK_Y = 20
WATERMARK_GREY = 0.6
WATERMARK_OPACITY = 0.6

# Standard Type1 fonts in reportlab use WinAnsiEncoding
FONT_ENCODING = "cp1252"


def build_watermark_text(email: str, title: str, order_id: int) -> str:
    return f"Purchased by {email} | {title} | Order {order_id}"


def check_renderable(text: str):
    """Raise EncodingError unless Helvetica can draw every character."""
    if not text:
        raise EncodingError("Watermark text is empty")

    for ch in text:
        if ord(ch) < 32 or ord(ch) == 127:
            raise EncodingError(f"Watermark text contains control character {ch!r}")

    try:
        text.encode(FONT_ENCODING)
    except UnicodeEncodeError as e:
        bad = e.object[e.start:e.end]
        raise EncodingError(f"Watermark text contains characters {WATERMARK_FONT} cannot render: {bad!r}") from e


def _render_overlay(width: float, height: float, text: str):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.setFont(WATERMARK_FONT, WATERMARK_FONT_SIZE)
    c.setFillColorRGB(WATERMARK_GREY, WATERMARK_GREY, WATERMARK_GREY)
    c.setFillAlpha(WATERMARK_OPACITY)
    c.drawString(WATERMARK_X, WATERMARK_Y, text)
    c.showPage()
    c.save()

    return PdfReader(io.BytesIO(buf.getvalue())).pages[0]


def _open_source(source_bytes: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(source_bytes))
        page_count = len(reader.pages)
    except Exception as e:
        raise CorruptSource(f"Cannot parse source PDF: {e}") from e

    if reader.is_encrypted:
        raise CorruptSource("Source PDF is encrypted")
    if page_count == 0:
        raise CorruptSource("Source PDF has no pages")

    return reader


def derive(source_bytes: bytes, watermark_text: str) -> bytes:
    """Return a copy of ``source_bytes`` with ``watermark_text`` on every page.

    Page count, page order and existing content are preserved. Raises
    ``EncodingError`` for text the footer font cannot draw and
    ``CorruptSource`` for bytes that are not a usable PDF; nothing is
    returned in either case.
    """
    check_renderable(watermark_text)
    reader = _open_source(source_bytes)

    writer = PdfWriter()
    overlays = {}

    try:
        for page in reader.pages:
            writer.add_page(page)

        for page in writer.pages:
            if page.rotation % 360:
                # bake /Rotate into the content so "bottom-left" is what the reader sees
                page.transfer_rotation_to_content()

            box = page.cropbox
            left, bottom = float(box.left), float(box.bottom)
            width, height = float(box.width), float(box.height)

            size = (round(width, 2), round(height, 2))
            if size not in overlays:
                overlays[size] = _render_overlay(width, height, watermark_text)

            page.merge_transformed_page(
                overlays[size],
                Transformation().translate(left, bottom),
            )

        out = io.BytesIO()
        writer.write(out)
    except Exception as e:
        raise CorruptSource(f"Cannot rebuild source PDF: {e}") from e

    logger.info(f"Watermarked {len(writer.pages)} pages")
    return out.getvalue()
