import base64
import logging
import os
import re
from functools import lru_cache
from io import BytesIO
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote_to_bytes

import arabic_reshaper
import requests
from bidi.algorithm import get_display
from PIL import Image, ImageColor, ImageDraw, ImageFont, ImageOps

logger = logging.getLogger(__name__)

RASTER_SCALE = 2
MARKER_RADIUS = 8

# Bundled face covering Latin and the Arabic presentation forms
DEFAULT_FONT_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "fonts", "DejaVuSans.ttf")


# ==========================================
# 1. IMAGE SOURCES
# ==========================================
def _open(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    # Phone photos carry their rotation in EXIF
    return ImageOps.exif_transpose(img)


def decode_image(src: str) -> Image.Image:
    """Decode an image embedded in a report. Only data URIs are accepted."""
    if not src.startswith("data:"):
        raise ValueError(f"not a data URI: {src[:40]!r}")
    header, _, payload = src.partition(",")
    data = base64.b64decode(payload) if header.endswith(";base64") else unquote_to_bytes(payload)
    return _open(data)


def load_trusted_image(src: str) -> Image.Image:
    """Configured assets (reference diagram): data URI, http(s) URL or local path."""
    if src.startswith("data:"):
        return decode_image(src)
    if src.startswith("http"):
        response = requests.get(src, timeout=10)
        response.raise_for_status()
        return _open(response.content)
    with open(src, "rb") as f:
        return _open(f.read())


# ==========================================
# 2. FONTS, TEXT & VALUES
# ==========================================
@lru_cache(maxsize=64)
def get_font(size: int, font_path: Optional[str] = None):
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError as e:
            logger.warning("Font %s unusable (%s), falling back to the bundled face", font_path, e)
    return ImageFont.truetype(DEFAULT_FONT_PATH, size)


@lru_cache(maxsize=4096)
def shape_text(text: str) -> str:
    """Joined Arabic letter forms in visual (left to right) order, ready for `draw.text`."""
    return get_display(arabic_reshaper.reshape(text))


LENGTH_RE = re.compile(r"^(-?\d+(?:\.\d+)?)(px)?$")

def parse_length(value: str) -> Optional[float]:
    """CSS px length, or None for auto/none."""
    match = LENGTH_RE.match((value or "").strip())
    return float(match.group(1)) if match else None

def parse_ratio(value: str) -> Optional[float]:
    """CSS aspect-ratio (`2` or `2 / 1`) as width / height, or None for auto."""
    parts = [parse_length(p) for p in (value or "").split("/")]
    if not parts or any(p is None or p <= 0 for p in parts) or len(parts) > 2:
        return None
    return parts[0] / parts[1] if len(parts) == 2 else parts[0]

def parse_edges(value: str) -> Tuple[float, float, float, float]:
    """Shorthand (1, 2 or 4 lengths) -> (top, right, bottom, left)."""
    parts = [parse_length(p) or 0.0 for p in (value or "0").split()]
    if len(parts) == 1:
        return parts[0], parts[0], parts[0], parts[0]
    if len(parts) == 2:
        return parts[0], parts[1], parts[0], parts[1]
    if len(parts) == 4:
        return tuple(parts)
    raise ValueError(f"unsupported box shorthand: {value!r}")

def parse_color(value: str):
    """RGB tuple, or None when transparent. Only the syntaxes Pillow knows are accepted."""
    value = (value or "").strip()
    if not value or value == "transparent":
        return None
    try:
        return ImageColor.getrgb(value)[:3]
    except ValueError:
        raise ValueError(f"unsupported color value: {value!r}")


# ==========================================
# 3. RASTERIZER
# ==========================================
class Rasterizer:
    """Lays out a frozen document (inline styles only) and paints it to one tall RGB image.

    Blocks flagged `avoid_split` are pushed to the next page boundary when they
    would straddle one, provided they fit on a page at all.
    """

    def __init__(self, scale: int = RASTER_SCALE, font_path: Optional[str] = None,
                 rows_for_width: Optional[Callable[[int], int]] = None):
        self.scale = scale
        self.font_path = font_path
        self.rows_for_width = rows_for_width
        self.page_rows: Optional[int] = None

    def px(self, value: Optional[float]) -> int:
        return int(round((value or 0) * self.scale))

    def font(self, style):
        return get_font(self.px(parse_length(style.get("font-size", "14px")) or 14), self.font_path)

    def line_height(self, style) -> int:
        size = parse_length(style.get("font-size", "14px")) or 14
        return self.px(size * float(style.get("line-height") or 1.4))

    def rasterize(self, document) -> Image.Image:
        root = document.root
        width = self.px(parse_length(root.style.get("width", "auto")) or 800)
        self.page_rows = self.rows_for_width(width) if self.rows_for_width else None

        height = max(1, self._layout(root, 0, 0, width))
        background = parse_color(root.style.get("background-color")) or (255, 255, 255)
        image = Image.new("RGB", (width, height), background)
        self._paint(root, image, ImageDraw.Draw(image))
        return image

    # --- LAYOUT ---
    def _layout(self, el, x: int, y: int, width: int) -> int:
        st = el.style
        own_width = parse_length(st.get("width", "auto"))
        if own_width is not None and el.parent is not None:
            width = min(width, self.px(own_width))
        top, right, bottom, left = [self.px(v) for v in parse_edges(st.get("padding", "0"))]
        b_top, b_right, b_bottom, b_left = [self.px(v) for v in parse_edges(st.get("border-width", "0"))]

        inner_x = x + b_left + left
        inner_w = max(1, width - b_left - b_right - left - right)
        cursor = y + b_top + top

        if el.tag == "img":
            cursor += self._image_size(el, inner_w)[1]
        if el.text:
            el.lines = self._wrap(el.text, self.font(st), inner_w)
            cursor += len(el.lines) * self.line_height(st)

        columns = max(1, int(st.get("columns", "1") or 1))
        if columns > 1:
            cursor = self._layout_grid(el, inner_x, cursor, inner_w, columns)
        else:
            for child in el.children:
                cursor = self._place(
                    child.avoid_split, lambda cy, child=child: self._layout(child, inner_x, cy, inner_w), cursor,
                ) + self.px(parse_length(child.style.get("margin-bottom", "0")))

        height = cursor + bottom + b_bottom - y
        el.box = (x, y, width, height)
        return height

    def _layout_grid(self, el, x: int, y: int, width: int, columns: int) -> int:
        gap = self.px(parse_length(el.style.get("gap", "0")))
        cell_w = max(1, (width - gap * (columns - 1)) // columns)
        rtl = el.style.get("direction") == "rtl"
        cursor = y
        for start in range(0, len(el.children), columns):
            cells = el.children[start:start + columns]

            def layout_row(row_y, cells=cells):
                row_h = 0
                for i, cell in enumerate(cells):
                    slot = columns - 1 - i if rtl else i
                    cell_h = self._layout(cell, x + slot * (cell_w + gap), row_y, cell_w)
                    row_h = max(row_h, cell_h + self.px(parse_length(cell.style.get("margin-bottom", "0"))))
                return row_h

            cursor = self._place(any(c.avoid_split for c in cells), layout_row, cursor)
        return cursor

    def _place(self, avoid_split: bool, layout: Callable[[int], int], y: int) -> int:
        """Lay out a block at y, moving it below the next page boundary if it must not be split."""
        height = layout(y)
        if avoid_split and self.page_rows:
            page_top = (y // self.page_rows) * self.page_rows
            boundary = page_top + self.page_rows
            if y + height > boundary and y > page_top and height <= self.page_rows:
                y = boundary
                height = layout(y)
        return y + height

    def _image_size(self, el, max_width: int) -> Tuple[int, int]:
        max_height = parse_length(el.style.get("max-height", "none"))
        if el.image is None:
            ratio = parse_ratio(el.style.get("aspect-ratio", "auto"))
            return (max_width, int(max_width / ratio)) if ratio else (0, 0)
        iw, ih = el.image.size
        factor = max_width / iw
        if max_height is not None:
            factor = min(factor, self.px(max_height) / ih)
        return max(1, int(iw * factor)), max(1, int(ih * factor))

    def _wrap(self, text: str, font, width: int) -> List[str]:
        lines = []
        for paragraph in text.splitlines() or [""]:
            line = ""
            for word in paragraph.split():
                candidate = f"{line} {word}" if line else word
                if font.getlength(shape_text(candidate)) <= width:
                    line = candidate
                    continue
                if line:
                    lines.append(line)
                # Words wider than the box are broken per character
                line = ""
                for char in word:
                    if line and font.getlength(shape_text(line + char)) > width:
                        lines.append(line)
                        line = ""
                    line += char
            lines.append(line)
        return lines

    # --- PAINT ---
    def _paint(self, el, image: Image.Image, draw: ImageDraw.ImageDraw):
        st = el.style
        x, y, w, h = el.box
        background = parse_color(st.get("background-color"))
        if background and el.parent is not None:
            draw.rectangle([x, y, x + w - 1, y + h - 1], fill=background)
        self._paint_border(el, draw)

        top, right, bottom, left = [self.px(v) for v in parse_edges(st.get("padding", "0"))]
        b_top, b_right, _, b_left = [self.px(v) for v in parse_edges(st.get("border-width", "0"))]
        inner_x, inner_w = x + b_left + left, w - b_left - b_right - left - right
        cursor = y + b_top + top

        if el.tag == "img":
            cursor += self._paint_image(el, image, draw, inner_x, cursor, inner_w)
        if el.lines:
            self._paint_text(el, draw, inner_x, cursor, inner_w)

        for child in el.children:
            self._paint(child, image, draw)

    def _paint_border(self, el, draw):
        color = parse_color(el.style.get("border-color"))
        if not color:
            return
        x, y, w, h = el.box
        b_top, b_right, b_bottom, b_left = [self.px(v) for v in parse_edges(el.style.get("border-width", "0"))]
        if b_top: draw.rectangle([x, y, x + w - 1, y + b_top - 1], fill=color)
        if b_bottom: draw.rectangle([x, y + h - b_bottom, x + w - 1, y + h - 1], fill=color)
        if b_left: draw.rectangle([x, y, x + b_left - 1, y + h - 1], fill=color)
        if b_right: draw.rectangle([x + w - b_right, y, x + w - 1, y + h - 1], fill=color)

    def _paint_image(self, el, image, draw, x: int, y: int, width: int) -> int:
        dw, dh = self._image_size(el, width)
        if not dh:
            return 0
        left = x + (width - dw) // 2
        if el.image is not None:
            picture = el.image.convert("RGBA").resize((dw, dh), Image.Resampling.LANCZOS)
            # Transparent signature strokes land on the card background
            image.paste(picture, (left, y), picture)
        else:
            fill = parse_color(el.style.get("background-color")) or (245, 245, 244)
            draw.rectangle([left, y, left + dw - 1, y + dh - 1], fill=fill)

        radius = self.px(MARKER_RADIUS)
        for mx, my, color in el.markers:
            cx, cy = left + dw * mx / 100, y + dh * my / 100
            draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius],
                         fill=parse_color(color), outline=(255, 255, 255), width=self.px(2))
        return dh

    def _paint_text(self, el, draw, x: int, y: int, width: int):
        st = el.style
        font = self.font(st)
        color = parse_color(st.get("color")) or (0, 0, 0)
        bold = st.get("font-weight") in ("bold", "700", "800", "900")
        align = st.get("text-align", "start")
        if align == "start":
            align = "right" if st.get("direction") == "rtl" else "left"
        line_h = self.line_height(st)

        for i, line in enumerate(el.lines):
            line = shape_text(line)
            length = font.getlength(line)
            if align == "right":
                lx = x + width - length
            elif align == "center":
                lx = x + (width - length) / 2
            else:
                lx = x
            ly = y + i * line_h
            draw.text((lx, ly), line, font=font, fill=color)
            if bold:
                draw.text((lx + 1, ly), line, font=font, fill=color)
