"""Stylesheet parsing and cascade resolution.

Only simple selectors (``tag``, ``#id``, ``.class``) take part in the
cascade. Rules are applied in document order and a later match overwrites
an earlier one property by property; selector specificity is not computed.
"""

import logging
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

import cssutils

from epub_rn.core.archive import Archive
from epub_rn.errors import EntryNotFound
from epub_rn.models.book import PackageDocument
from epub_rn.models.nodes import RnStyles

# cssutils reports every value outside CSS 2.1 at ERROR level
cssutils.log.setLevel(logging.CRITICAL)
cssutils.log.raiseExceptions = False
cssutils.ser.prefs.minimizeColorHash = False

log = logging.getLogger(__name__)

# cssutils keeps parser state in module globals
_CSSUTILS_LOCK = threading.Lock()

EM_SIZE = 16.0
PT_TO_PX = 1.33

_NUMBER_RE = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+))([a-z]*)$", re.IGNORECASE)
_TAG_SELECTOR_RE = re.compile(r"^[A-Za-z][\w-]*$")
_ID_SELECTOR_RE = re.compile(r"^#(-?[_A-Za-z][\w-]*)$")
_CLASS_SELECTOR_RE = re.compile(r"^\.(-?[_A-Za-z][\w-]*)$")

# CSS property -> RnStyles field, by value kind
LENGTH_PROPERTIES = {
    "font-size": "fontSize",
    "line-height": "lineHeight",
    "text-indent": "textIndent",
    "margin-top": "marginTop",
    "margin-bottom": "marginBottom",
    "margin-left": "marginLeft",
    "margin-right": "marginRight",
    "padding-top": "paddingTop",
    "padding-bottom": "paddingBottom",
    "padding-left": "paddingLeft",
    "padding-right": "paddingRight",
    "width": "width",
    "height": "height",
    "min-width": "minWidth",
    "max-width": "maxWidth",
    "min-height": "minHeight",
    "max-height": "maxHeight",
    "top": "top",
    "bottom": "bottom",
    "left": "left",
    "right": "right",
    "flex-basis": "flexBasis",
    "border-width": "borderWidth",
    "border-top-width": "borderTopWidth",
    "border-bottom-width": "borderBottomWidth",
    "border-left-width": "borderLeftWidth",
    "border-right-width": "borderRightWidth",
    "border-radius": "borderRadius",
}

NUMBER_PROPERTIES = {
    "opacity": "opacity",
    "flex": "flex",
    "flex-grow": "flexGrow",
    "flex-shrink": "flexShrink",
}

KEYWORD_PROPERTIES = {
    "font-weight": "fontWeight",
    "font-style": "fontStyle",
    "color": "color",
    "text-align": "textAlign",
    "text-transform": "textTransform",
    "background-color": "backgroundColor",
    "position": "position",
    "display": "display",
    "flex-direction": "flexDirection",
    "justify-content": "justifyContent",
    "align-items": "alignItems",
    "align-self": "alignSelf",
    "flex-wrap": "flexWrap",
    "border-color": "borderColor",
    "border-top-color": "borderTopColor",
    "border-bottom-color": "borderBottomColor",
    "border-left-color": "borderLeftColor",
    "border-right-color": "borderRightColor",
    "border-style": "borderStyle",
    "overflow": "overflow",
}

BORDER_STYLES = {
    "none", "hidden", "dotted", "dashed", "solid",
    "double", "groove", "ridge", "inset", "outset",
}


def parse_size_value(value: str) -> float | None:
    """Convert a CSS length to the implicit unit (px / dp).

    ``px`` and bare numbers pass through, ``em``/``rem`` scale by 16 and
    ``pt`` by 1.33. Percentages and any other unit give None.
    """
    match = _NUMBER_RE.match(value.strip())
    if not match:
        return None
    number = float(match.group(1))
    unit = match.group(2).lower()
    if unit in ("", "px"):
        return number
    if unit in ("em", "rem"):
        return number * EM_SIZE
    if unit == "pt":
        return number * PT_TO_PX
    return None


def _parse_number(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def _box_sides(values: list[str]) -> tuple[str, str, str, str] | None:
    """Expand a 1-4 value box shorthand into (top, right, bottom, left)."""
    if len(values) == 1:
        return values[0], values[0], values[0], values[0]
    if len(values) == 2:
        return values[0], values[1], values[0], values[1]
    if len(values) == 3:
        return values[0], values[1], values[2], values[1]
    if len(values) == 4:
        return values[0], values[1], values[2], values[3]
    return None


def convert_property(name: str, value: str) -> dict[str, float | int | str]:
    """Map one CSS declaration onto RnStyles fields.

    Returns an empty dict for unrecognized properties and unparseable values.
    """
    name = name.strip().lower()
    value = value.strip()
    if value.lower().endswith("!important"):
        value = value[: -len("!important")].strip()
    if not name or not value:
        return {}

    if name in LENGTH_PROPERTIES:
        size = parse_size_value(value)
        return {} if size is None else {LENGTH_PROPERTIES[name]: size}

    if name in NUMBER_PROPERTIES:
        number = _parse_number(value)
        return {} if number is None else {NUMBER_PROPERTIES[name]: number}

    if name == "z-index":
        try:
            return {"zIndex": int(value)}
        except ValueError:
            return {}

    if name in KEYWORD_PROPERTIES:
        return {KEYWORD_PROPERTIES[name]: value}

    if name == "font-family":
        # A render target takes one family; keep the preferred one
        family = value.split(",", 1)[0].strip().strip("\"'").strip()
        return {"fontFamily": family} if family else {}

    if name in ("text-decoration", "text-decoration-line"):
        lowered = value.lower()
        for keyword in ("underline", "line-through", "none"):
            if keyword in lowered:
                return {"textDecorationLine": keyword}
        return {}

    if name in ("margin", "padding"):
        sides = _box_sides(value.split())
        if sides is None:
            return {}
        converted: dict[str, float | int | str] = {}
        for side, raw in zip(("Top", "Right", "Bottom", "Left"), sides):
            size = parse_size_value(raw)
            if size is not None:
                converted[f"{name}{side}"] = size
        return converted

    if name == "border":
        converted = {}
        for token in value.split():
            if token.lower() in BORDER_STYLES:
                converted["borderStyle"] = token.lower()
            elif (size := parse_size_value(token)) is not None:
                converted["borderWidth"] = size
            else:
                converted["borderColor"] = token
        return converted

    return {}


def parse_declarations(declarations: Iterable[tuple[str, str]]) -> RnStyles:
    """Fold (property, value) pairs into RnStyles; later pairs win."""
    values: dict[str, float | int | str] = {}
    for name, value in declarations:
        values.update(convert_property(name, value))
    return RnStyles(**values)


def parse_inline_style(style_attr: str | None) -> RnStyles:
    """Parse the contents of a ``style=""`` attribute."""
    if not style_attr or not style_attr.strip():
        return RnStyles()
    try:
        with _CSSUTILS_LOCK:
            declaration = cssutils.parseStyle(style_attr, validate=False)
            pairs = [(prop.name, prop.value) for prop in declaration.getProperties(all=True)]
    except Exception as e:
        log.debug("Unparseable inline style %r: %s", style_attr, e)
        return RnStyles()
    return parse_declarations(pairs)


def css_selector_to_style_name(selector: str) -> str:
    """Key under which a selector's styles are exposed in the output."""
    return selector.strip().replace(".", "").replace("#", "").replace(" ", "_")


@dataclass(frozen=True)
class StyleRule:
    """One simple selector and its parsed declarations."""

    selector: str
    styles: RnStyles

    def matches(self, tag: str, element_id: str | None, classes: Iterable[str]) -> bool:
        if self.selector.startswith("#"):
            return element_id is not None and self.selector[1:] == element_id
        if self.selector.startswith("."):
            return self.selector[1:] in classes
        return self.selector.lower() == tag.lower()


def is_simple_selector(selector: str) -> bool:
    return bool(
        _TAG_SELECTOR_RE.match(selector)
        or _ID_SELECTOR_RE.match(selector)
        or _CLASS_SELECTOR_RE.match(selector)
    )


def parse_stylesheet(css_text: str) -> list[tuple[str, RnStyles]]:
    """Parse a stylesheet into (selector, styles) pairs in document order.

    Selector groups become one pair per selector. At-rules are skipped and
    malformed rules dropped.
    """
    rules: list[tuple[list[str], list[tuple[str, str]]]] = []
    # Serializing values also goes through cssutils globals
    with _CSSUTILS_LOCK:
        sheet = cssutils.parseString(css_text, validate=False)
        for rule in sheet:
            if rule.type != rule.STYLE_RULE:
                continue
            selectors = [selector.selectorText.strip() for selector in rule.selectorList]
            pairs = [(prop.name, prop.value) for prop in rule.style.getProperties(all=True)]
            rules.append((selectors, pairs))

    parsed: list[tuple[str, RnStyles]] = []
    for selectors, pairs in rules:
        styles = parse_declarations(pairs)
        for selector_text in selectors:
            if selector_text:
                parsed.append((selector_text, styles))
    return parsed


@dataclass
class StyleResolver:
    """Ordered style rules from every stylesheet of a book."""

    rules: list[StyleRule] = field(default_factory=list)
    style_keys: dict[str, RnStyles] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_css(cls, *css_texts: str) -> "StyleResolver":
        resolver = cls()
        for css_text in css_texts:
            resolver.add_stylesheet(css_text)
        return resolver

    @classmethod
    def from_package(cls, archive: Archive, package: PackageDocument) -> "StyleResolver":
        """Load every ``text/css`` manifest entry, in manifest order."""
        resolver = cls()
        for entry in package.entries_where(lambda e: e.is_stylesheet):
            try:
                css_text = archive.read_text(entry.href)
            except EntryNotFound as e:
                message = f"Stylesheet {entry.href} missing: {e}"
                log.warning(message)
                resolver.warnings.append(message)
                continue
            if not css_text.strip():
                log.debug("Stylesheet %s is empty", entry.href)
                continue
            try:
                resolver.add_stylesheet(css_text)
            except Exception as e:
                message = f"Stylesheet {entry.href} could not be parsed: {e}"
                log.warning(message)
                resolver.warnings.append(message)
        log.info("Loaded %d style rules", len(resolver.rules))
        return resolver

    def add_stylesheet(self, css_text: str) -> None:
        for selector, styles in parse_stylesheet(css_text):
            key = css_selector_to_style_name(selector)
            self.style_keys[key] = self.style_keys.get(key, RnStyles()).merge(styles)
            if is_simple_selector(selector):
                self.rules.append(StyleRule(selector=selector, styles=styles))

    def resolve(
        self,
        tag: str,
        element_id: str | None = None,
        classes: Iterable[str] = (),
    ) -> RnStyles:
        """Merged styles of every rule matching the element, last match wins."""
        class_set = frozenset(classes)
        resolved = RnStyles()
        for rule in self.rules:
            if rule.matches(tag, element_id, class_set):
                resolved = resolved.merge(rule.styles)
        return resolved

    def style_map(self) -> dict[str, RnStyles]:
        """Styles keyed by flattened selector name, for the output document."""
        return {key: styles for key, styles in self.style_keys.items() if not styles.is_empty()}
