from typing import Dict, Iterator, List, Optional

from ..constants import (
    BRAND_NAME_AR, BRAND_NAME_EN, SEVERITY_COLORS, SEVERITY_LABELS,
    SIGNATURE_ROLES, TOOL_INVENTORY_ITEMS, WEEKLY_INSPECTION_ITEMS,
)
from ..schemas.reports import Report
from .styles import PRINT_STYLESHEET, StyleSheet


class Element:
    """One block of the print view. Images carry a `src` (data URI, path or URL)."""

    def __init__(self, tag="div", classes=(), text="", src=None, children=(),
                 style=None, avoid_split=False, markers=None, element_id=None, trusted=False):
        self.tag = tag
        self.classes = list(classes)
        self.text = text
        self.src = src
        self.style: Dict[str, str] = dict(style or {})
        self.avoid_split = avoid_split
        self.markers = list(markers or [])  # (x %, y %, color)
        self.id = element_id
        # Trusted sources come from configuration, not from report data
        self.trusted = trusted
        self.parent: Optional["Element"] = None
        self.children: List["Element"] = []
        for child in children:
            self.append(child)

        # Filled in by the image readiness wait and the rasterizer
        self.image = None
        self.image_failed = False
        self.box = None
        self.lines: List[str] = []

    def append(self, child: "Element") -> "Element":
        child.parent = self
        self.children.append(child)
        return child

    def iter(self) -> Iterator["Element"]:
        yield self
        for child in self.children:
            yield from child.iter()

    def clone(self) -> "Element":
        copy = Element(self.tag, self.classes, self.text, self.src,
                       [child.clone() for child in self.children],
                       self.style, self.avoid_split, self.markers, self.id, self.trusted)
        # Decoded images are never mutated, the clone shares them
        copy.image = self.image
        copy.image_failed = self.image_failed
        return copy

    def __repr__(self):
        return f"<Element {self.tag}.{'.'.join(self.classes)}>"


class Document:
    def __init__(self, root: Element, stylesheets: List[StyleSheet]):
        self.root = root
        self.stylesheets = stylesheets

    def clone(self) -> "Document":
        return Document(self.root.clone(), [StyleSheet(sheet.text) for sheet in self.stylesheets])

    def images(self) -> List[Element]:
        return [el for el in self.root.iter() if el.tag == "img"]


# ==========================================
# PRINT VIEW OF A REPORT
# ==========================================
def _div(classes="", *children, **kwargs) -> Element:
    return Element("div", classes.split(), children=children, **kwargs)

def _text(tag, classes, text, **kwargs) -> Element:
    return Element(tag, classes.split(), text=text, **kwargs)

def _photos(images) -> Element:
    return _div("photo-grid", *[Element("img", ["photo"], src=src) for src in images])


def _header(report: Report) -> Element:
    return _div(
        "header",
        _div("brand", _text("h1", "brand-ar", BRAND_NAME_AR), _text("p", "brand-en", BRAND_NAME_EN)),
        _div("doc-heading",
             _text("h2", "doc-title", "تقرير فحص المركبة"),
             _text("p", "report-no", f"#{str(report.id).zfill(5)}")),
    )


def _info(report: Report) -> Element:
    cells = [("اسم السائق", report.driver_name), ("رقم المركبة", report.truck_number), ("التاريخ", report.date)]
    return _div("info-grid", *[
        _div("card", _text("p", "label", label), _text("p", "value", value or "-")) for label, value in cells
    ])


def _damage_map(report: Report, diagram_src: Optional[str]) -> Element:
    points = report.damage_points if isinstance(report.damage_points, list) else []
    markers = [(p.x, p.y, SEVERITY_COLORS.get(p.severity, SEVERITY_COLORS["medium"])) for p in points]
    return _div(
        "section", _text("h3", "section-title", "مخطط أضرار المركبة"),
        Element("img", ["diagram"], src=diagram_src, markers=markers, trusted=True),
        avoid_split=True,
    )


def _damage_list(report: Report) -> Element:
    section = _div("section", _text("h3", "section-title", "أضرار المركبة الموثقة"))
    points = report.damage_points
    if isinstance(points, str):
        section.append(_text("p", "raw", points))
    elif not points:
        section.append(_text("p", "muted", "لا توجد أضرار مسجلة"))
    else:
        for p in points:
            item = section.append(_div(
                "damage-item card",
                _div("damage-row",
                     _text("span", f"badge {p.severity}", SEVERITY_LABELS.get(p.severity, p.severity)),
                     _text("p", "description", p.description or "-")),
                avoid_split=True,
            ))
            if p.images:
                item.append(_text("p", "label", f"صور الضرر ({len(p.images)}):"))
                item.append(_photos(p.images))
    return section


def _inspection(report: Report) -> Element:
    values = report.inspection_values if isinstance(report.inspection_values, dict) else {}
    section = _div("section", _text("h3", "section-title", "نتائج الفحص الأسبوعي"))
    if isinstance(report.inspection_values, str):
        section.append(_text("p", "raw", report.inspection_values))
    grid = section.append(_div("checklist"))
    for item_id, label in WEEKLY_INSPECTION_ITEMS:
        ok = bool(values.get(item_id))
        grid.append(_div(
            "check-row",
            _text("span", "check-label", label),
            _text("span", "status ok" if ok else "status fail", "✓ سليم" if ok else "✗ غير سليم"),
        ))
    return section


def _tools(report: Report) -> Element:
    counts = report.tool_values if isinstance(report.tool_values, dict) else {}
    images = report.tool_images if isinstance(report.tool_images, dict) else {}
    section = _div("section", _text("h3", "section-title", "جرد العدة والمواد"))
    for raw in (report.tool_values, report.tool_images):
        if isinstance(raw, str):
            section.append(_text("p", "raw", raw))
    for item_id, name, expected in TOOL_INVENTORY_ITEMS:
        count = counts.get(item_id) or 0
        item = section.append(_div(
            "tool-item card",
            _div("tool-row",
                 _text("span", "tool-name", f"{name} (المطلوب: {expected})"),
                 _text("span", "status fail" if count < expected else "status ok", f"المتوفر: {count}")),
            avoid_split=True,
        ))
        photos = images.get(item_id) or []
        if photos:
            item.append(_text("p", "label", f"الصور المرتبطة ({len(photos)}):"))
            item.append(_photos(photos))
    return section


def _signatures(report: Report) -> Element:
    grid = _div("signature-grid")
    for field, label in SIGNATURE_ROLES:
        data = getattr(report, field, None)
        sig = grid.append(_div("signature card", _text("p", "label", label)))
        if data:
            sig.append(Element("img", ["signature-img"], src=data))
        else:
            sig.append(_text("p", "muted", "لم يتم التوقيع"))
    return _div("section", _text("h3", "section-title", "التوقيعات والاعتمادات"), grid, avoid_split=True)


def build_print_document(report: Report, diagram_src: Optional[str] = None, dark: bool = False) -> Document:
    """The on-screen print layout of one report, styled by the live stylesheet."""
    root = _div(
        "page",
        _header(report), _info(report), _damage_map(report, diagram_src),
        _damage_list(report), _inspection(report), _tools(report), _signatures(report),
        element_id="print-section",
    )
    if dark:
        root.classes.append("dark")
    return Document(root, [StyleSheet(PRINT_STYLESHEET)])
