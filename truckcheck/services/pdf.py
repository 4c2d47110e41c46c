import asyncio
import logging
import re
from io import BytesIO
from typing import List, Optional, Tuple

from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..config import Settings, get_settings
from ..errors import ExportError
from ..schemas.reports import Report
from .layout import Document, build_print_document
from .raster import RASTER_SCALE, Rasterizer, decode_image, load_trusted_image
from .styles import freeze_styles, neutralized_color_functions

logger = logging.getLogger(__name__)

# --- PAGE SETUP ---
PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 10 * mm
JPEG_QUALITY = 90

# Letters, digits, Arabic script, underscore and hyphen
FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9\u0600-\u06FF_-]")


# ==========================================
# 1. PAGINATION
# ==========================================
def page_rows(raster_width: int) -> int:
    """Raster rows that fit in one page's usable height when the raster spans the usable width."""
    usable_w = PAGE_WIDTH - 2 * MARGIN
    usable_h = PAGE_HEIGHT - 2 * MARGIN
    px_per_pt = raster_width / usable_w
    return max(1, int(usable_h * px_per_pt))


def slice_rows(height: int, rows: int) -> List[Tuple[int, int]]:
    """Consecutive [top, bottom) bands covering [0, height); the last one may be shorter."""
    return [(top, min(top + rows, height)) for top in range(0, height, rows)]


def render_pdf(raster: Image.Image, output, title: Optional[str] = None) -> int:
    """Write the raster as A4 pages, one band per page at the margin offset. Returns the page count."""
    usable_w = PAGE_WIDTH - 2 * MARGIN
    px_per_pt = raster.width / usable_w
    bands = slice_rows(raster.height, page_rows(raster.width))

    c = canvas.Canvas(output, pagesize=A4)
    if title: c.setTitle(title)
    for top, bottom in bands:
        band = raster.crop((0, top, raster.width, bottom))
        encoded = BytesIO()
        band.save(encoded, format="JPEG", quality=JPEG_QUALITY)
        encoded.seek(0)

        band_h = (bottom - top) / px_per_pt
        c.drawImage(ImageReader(encoded), MARGIN, PAGE_HEIGHT - MARGIN - band_h, width=usable_w, height=band_h)
        c.showPage()
    c.save()
    return len(bands)


def report_filename(report: Report) -> str:
    truck = FILENAME_UNSAFE.sub("", report.truck_number or "")
    date = FILENAME_UNSAFE.sub("", report.date or "")
    return f"report-{truck}-{date}.pdf"


# ==========================================
# 2. EXPORT PIPELINE
# ==========================================
async def wait_for_images(document: Document, settle_delay: float = 0.0):
    """Decode every image of the print view. A failed image counts as settled."""
    pending = [el for el in document.images() if el.src and el.image is None]
    results = await asyncio.gather(
        *(asyncio.to_thread(load_trusted_image if el.trusted else decode_image, el.src) for el in pending),
        return_exceptions=True,
    )
    for el, result in zip(pending, results):
        if isinstance(result, Exception):
            logger.warning("Image %s... failed to load: %s", el.src[:40], result)
            el.image_failed = True
        else:
            el.image = result
    # Layout stabilization, one fixed delay
    if settle_delay:
        await asyncio.sleep(settle_delay)


class ExportResult:
    def __init__(self, filename: str, buffer: BytesIO, pages: int):
        self.filename = filename
        self.buffer = buffer
        self.pages = pages


class ReportExporter:
    """
    Turns one stored report into a paginated PDF.

    State goes idle -> exporting -> idle whatever the outcome. While exporting,
    further calls to `export()` return None instead of starting a second run.
    """
    IDLE = "idle"
    EXPORTING = "exporting"

    def __init__(self, settings: Optional[Settings] = None, diagram_src: Optional[str] = None):
        settings = settings or get_settings()
        self.settle_delay = settings.export_settle_delay
        self.timeout = settings.export_timeout
        self.font_path = settings.font_path
        self.diagram_src = diagram_src or settings.truck_image_path
        self.state = self.IDLE
        self.document: Optional[Document] = None

    @property
    def busy(self) -> bool:
        return self.state == self.EXPORTING

    async def export(self, report: Report, dark: bool = False) -> Optional[ExportResult]:
        if self.busy:
            logger.info("Export of report %s ignored, one is already running", report.id)
            return None

        self.state = self.EXPORTING
        try:
            return await asyncio.wait_for(self._run(report, dark), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ExportError(f"PDF export timed out after {self.timeout:g}s") from e
        except ExportError:
            raise
        except Exception as e:
            logger.exception("PDF export failed for report %s", report.id)
            raise ExportError(str(e) or "PDF export failed") from e
        finally:
            self.state = self.IDLE

    async def _run(self, report: Report, dark: bool) -> ExportResult:
        self.document = await asyncio.to_thread(build_print_document, report, diagram_src=self.diagram_src, dark=dark)
        await wait_for_images(self.document, self.settle_delay)
        raster = await asyncio.to_thread(self.capture, self.document)

        buffer = BytesIO()
        pages = await asyncio.to_thread(render_pdf, raster, buffer, title=f"Inspection report #{report.id}")
        buffer.seek(0)
        filename = report_filename(report)
        logger.info("Exported report %s as %s (%s pages)", report.id, filename, pages)
        return ExportResult(filename, buffer, pages)

    def capture(self, document: Document) -> Image.Image:
        """Rasterize a prepared clone; the live document's styles are restored on every exit path."""
        with neutralized_color_functions(document):
            clone = document.clone()
            freeze_styles(clone, light=True)
            rasterizer = Rasterizer(scale=RASTER_SCALE, font_path=self.font_path, rows_for_width=page_rows)
            return rasterizer.rasterize(clone)
