"""
Print stylesheet and the style preparation done before rasterizing.

The live palette is written with `oklch()` colors, which Pillow cannot
parse. Before capture the color functions are rewritten to plain `rgb()`
(restored afterwards), and the cloned tree gets every element's resolved
values inlined so the rasterizer never runs the cascade itself.
"""
import math
import re
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from PIL import ImageColor

# --- LIVE PALETTE (oklch) ---
PRINT_STYLESHEET = """
/* base */
.page { width: 800px; padding: 40px; background-color: oklch(98.5% 0.001 106.423); color: oklch(21.6% 0.006 56.043);
        font-size: 14px; direction: rtl; text-align: start; line-height: 1.5; }
.page.dark { background-color: #1c1917; color: #fafaf9; }
.dark .card { background-color: #292524; border-color: #44403c; }
.dark .muted, .dark .label { color: #a8a29e; }

/* header */
.header { columns: 2; padding: 0 0 24px 0; margin-bottom: 32px; border-width: 0 0 2px 0; border-color: oklch(64.5% 0.246 16.439); }
.brand-ar { font-size: 30px; font-weight: bold; color: oklch(21.6% 0.006 56.043); }
.brand-en { font-size: 18px; font-weight: bold; color: oklch(26.8% 0.007 34.298); }
.doc-heading { text-align: left; }
.doc-title { font-size: 24px; font-weight: bold; color: oklch(64.5% 0.246 16.439); }
.report-no { font-size: 16px; color: oklch(55.3% 0.013 58.071); }

/* blocks */
.info-grid { columns: 3; gap: 16px; margin-bottom: 32px; }
.card { background-color: #ffffff; border-width: 1px; border-color: oklch(92.3% 0.003 48.717); padding: 16px; margin-bottom: 12px; }
.label { font-size: 12px; font-weight: bold; color: oklch(55.3% 0.013 58.071); }
.value { font-size: 18px; font-weight: bold; }
.muted { color: oklch(70.9% 0.01 56.259); }
.raw { font-size: 11px; color: oklch(55.3% 0.013 58.071); }
.section { margin-bottom: 32px; }
.section-title { font-size: 20px; font-weight: bold; padding: 0 16px 0 0; margin-bottom: 16px;
                 border-width: 0 4px 0 0; border-color: oklch(71.2% 0.194 13.428); }
.diagram { aspect-ratio: 2 / 1; background-color: oklch(97% 0.001 106.424); border-width: 1px;
           border-color: oklch(92.3% 0.003 48.717); }

/* damage */
.damage-row, .tool-row, .check-row { columns: 2; gap: 12px; }
.badge { font-size: 12px; font-weight: bold; padding: 4px 8px; text-align: center; }
.badge.high { background-color: oklch(93.6% 0.032 17.717); color: oklch(50.5% 0.213 27.518); }
.badge.medium { background-color: oklch(95.4% 0.038 75.164); color: oklch(55.3% 0.195 38.402); }
.badge.low { background-color: oklch(97.3% 0.071 103.193); color: oklch(47.6% 0.114 61.907); }
.photo-grid { columns: 2; gap: 12px; padding: 8px 0 0 0; }
.photo { max-height: 300px; margin-bottom: 12px; }

/* checklist */
.checklist { columns: 2; gap: 8px; }
.check-row { padding: 8px 12px; margin-bottom: 8px; border-width: 1px; border-color: oklch(92.3% 0.003 48.717); }
.status { font-weight: bold; text-align: left; }
.status.ok { color: oklch(62.7% 0.194 149.214); }
.status.fail { color: oklch(57.7% 0.245 27.325); }
.tool-item .status.ok { background-color: oklch(98.2% 0.018 155.826); }
.tool-item .status.fail { background-color: oklch(97.1% 0.013 17.38); }

/* signatures */
.signature-grid { columns: 2; gap: 16px; }
.signature-img { max-height: 120px; }
"""

# Resolved and inlined on the capture clone. Only these survive rasterization.
FROZEN_PROPERTIES = (
    "background-color", "color", "border-color", "border-width",
    "padding", "margin-bottom", "width", "max-height", "aspect-ratio", "columns", "gap",
    "font-size", "font-weight", "line-height", "text-align", "direction",
)

INHERITED = {"color", "font-size", "font-weight", "line-height", "text-align", "direction"}

INITIAL = {
    "background-color": "transparent",
    "color": "#000000",
    "border-color": "transparent",
    "border-width": "0",
    "padding": "0",
    "margin-bottom": "0",
    "width": "auto",
    "max-height": "none",
    "aspect-ratio": "auto",
    "columns": "1",
    "gap": "0",
    "font-size": "14px",
    "font-weight": "normal",
    "line-height": "1.4",
    "text-align": "start",
    "direction": "ltr",
}

# Dark palette value -> light counterpart, per property
DARK_TO_LIGHT = {
    "background-color": {"#1c1917": "#fafaf9", "#292524": "#ffffff", "#0c0a09": "#ffffff"},
    "color": {"#fafaf9": "#1c1917", "#e7e5e4": "#292524", "#a8a29e": "#78716c"},
    "border-color": {"#44403c": "#e7e5e4", "#292524": "#e7e5e4"},
}


# ==========================================
# 1. STYLESHEETS & SELECTORS
# ==========================================
class Rule:
    def __init__(self, selector: str, declarations: Dict[str, str]):
        self.selector = selector
        self.compounds = [_parse_compound(part) for part in selector.split()]
        self.declarations = declarations

    @property
    def specificity(self) -> Tuple[int, int, int]:
        ids = sum(1 for tag, cls, el_id in self.compounds if el_id)
        classes = sum(len(cls) for tag, cls, el_id in self.compounds)
        tags = sum(1 for tag, cls, el_id in self.compounds if tag)
        return ids, classes, tags

    def matches(self, element) -> bool:
        *ancestors, last = self.compounds
        if not _compound_matches(last, element):
            return False
        node = element.parent
        for compound in reversed(ancestors):
            while node is not None and not _compound_matches(compound, node):
                node = node.parent
            if node is None:
                return False
            node = node.parent
        return True


COMPOUND_RE = re.compile(r"^([a-z0-9]+)?((?:[.#][\w-]+)*)$", re.I)

def _parse_compound(text: str):
    match = COMPOUND_RE.match(text)
    if not match:
        raise ValueError(f"unsupported selector: {text!r}")
    tag, rest = match.group(1), match.group(2)
    classes = re.findall(r"\.([\w-]+)", rest)
    ids = re.findall(r"#([\w-]+)", rest)
    return tag, classes, ids[0] if ids else None

def _compound_matches(compound, element) -> bool:
    tag, classes, el_id = compound
    if tag and element.tag != tag: return False
    if el_id and element.id != el_id: return False
    return all(c in element.classes for c in classes)


class StyleSheet:
    """Style text plus its parsed rules. Rules are re-parsed when the text changes."""

    def __init__(self, text: str):
        self._text = text
        self._rules: Optional[List[Rule]] = None

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str):
        self._text = value
        self._rules = None

    @property
    def rules(self) -> List[Rule]:
        if self._rules is None:
            self._rules = parse_rules(self._text)
        return self._rules


RULE_RE = re.compile(r"([^{}]+)\{([^{}]*)\}")
COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)

def parse_rules(text: str) -> List[Rule]:
    rules = []
    for selectors, body in RULE_RE.findall(COMMENT_RE.sub("", text)):
        declarations = {}
        for decl in body.split(";"):
            if ":" not in decl: continue
            prop, value = decl.split(":", 1)
            declarations[prop.strip().lower()] = value.strip()
        for selector in selectors.split(","):
            if selector.strip():
                rules.append(Rule(selector.strip(), declarations))
    return rules


# ==========================================
# 2. CASCADE
# ==========================================
def computed_style(element, stylesheets, cache=None) -> Dict[str, str]:
    """Effective values of FROZEN_PROPERTIES: inline, then best matching rule, then inherited or initial."""
    if cache is not None and id(element) in cache:
        return cache[id(element)]

    matched = []
    for sheet in stylesheets:
        for rule in sheet.rules:
            if rule.matches(element):
                matched.append(rule)
    # Later sheets and later rules win ties
    ordered = sorted(enumerate(matched), key=lambda item: (item[1].specificity, item[0]))

    declared = {}
    for _, rule in ordered:
        declared.update(rule.declarations)
    declared.update(element.style)

    parent_style = computed_style(element.parent, stylesheets, cache) if element.parent is not None else None
    style = {}
    for prop in FROZEN_PROPERTIES:
        if prop in declared:
            style[prop] = declared[prop]
        elif prop in INHERITED and parent_style is not None:
            style[prop] = parent_style[prop]
        else:
            style[prop] = INITIAL[prop]

    if cache is not None:
        cache[id(element)] = style
    return style


# ==========================================
# 3. COLOR FUNCTION NEUTRALIZATION
# ==========================================
COLOR_FUNCTION_RE = re.compile(r"\b(oklch|oklab)\(([^()]*)\)", re.I)

def _number(token: str, percent_scale: float = 1.0) -> float:
    token = token.strip().lower()
    if token == "none":
        return 0.0
    if token.endswith("%"):
        return float(token[:-1]) / 100 * percent_scale
    if token.endswith("deg"):
        return float(token[:-3])
    return float(token)

def _srgb_channel(value: float) -> int:
    value = min(1.0, max(0.0, value))
    value = 12.92 * value if value <= 0.0031308 else 1.055 * value ** (1 / 2.4) - 0.055
    return int(round(value * 255))

def oklab_to_rgb(lightness: float, a: float, b: float) -> Tuple[int, int, int]:
    l_ = lightness + 0.3963377774 * a + 0.2158037573 * b
    m_ = lightness - 0.1055613458 * a - 0.0638541728 * b
    s_ = lightness - 0.0894841775 * a - 1.2914855480 * b
    l, m, s = l_ ** 3, m_ ** 3, s_ ** 3
    return (
        _srgb_channel(4.0767416621 * l - 3.3077115913 * m + 0.2309699292 * s),
        _srgb_channel(-1.2684380046 * l + 2.6097574011 * m - 0.3413193965 * s),
        _srgb_channel(-0.0041960863 * l - 0.7034186147 * m + 1.7076147010 * s),
    )

def color_function_to_rgb(name: str, args: str) -> str:
    """Opaque `rgb()` equivalent of an oklch()/oklab() call. Alpha is dropped."""
    channels = args.split("/")[0].replace(",", " ").split()
    if len(channels) != 3:
        raise ValueError(f"malformed {name}() color: {args!r}")
    lightness = _number(channels[0])
    if name.lower() == "oklch":
        chroma = _number(channels[1], 0.4)
        hue = math.radians(_number(channels[2]))
        a, b = chroma * math.cos(hue), chroma * math.sin(hue)
    else:
        a, b = _number(channels[1], 0.4), _number(channels[2], 0.4)
    return "rgb({}, {}, {})".format(*oklab_to_rgb(lightness, a, b))

def neutralize(text: str) -> str:
    return COLOR_FUNCTION_RE.sub(lambda m: color_function_to_rgb(m.group(1), m.group(2)), text)


@contextmanager
def neutralized_color_functions(document):
    """Rewrite color functions in every stylesheet and inline style; restore the original text on exit."""
    saved_sheets = [(sheet, sheet.text) for sheet in document.stylesheets]
    saved_inline = [(el, dict(el.style)) for el in document.root.iter() if el.style]
    try:
        for sheet in document.stylesheets:
            sheet.text = neutralize(sheet.text)
        for el, style in saved_inline:
            el.style = {prop: neutralize(value) for prop, value in style.items()}
        yield document
    finally:
        for sheet, text in saved_sheets:
            sheet.text = text
        for el, style in saved_inline:
            el.style = style


# ==========================================
# 4. FREEZE + LIGHT SCHEME (capture clone only)
# ==========================================
def _same_color(a: str, b: str) -> bool:
    try:
        return ImageColor.getrgb(a)[:3] == ImageColor.getrgb(b)[:3]
    except ValueError:
        return False

def to_light(prop: str, value: str) -> str:
    for dark, light in DARK_TO_LIGHT.get(prop, {}).items():
        if _same_color(value, dark):
            return light
    return value


def freeze_styles(document, light: bool = True):
    """Resolve, strip the stylesheets, then reapply the resolved values inline."""
    if light:
        for el in document.root.iter():
            if "dark" in el.classes:
                el.classes.remove("dark")

    cache = {}
    resolved = [(el, computed_style(el, document.stylesheets, cache)) for el in document.root.iter()]
    document.stylesheets = []

    for el, style in resolved:
        if light:
            style = {prop: to_light(prop, value) for prop, value in style.items()}
        el.style = dict(style)
    return document
