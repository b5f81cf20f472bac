"""XHTML chapter to render tree transformation.

The walk is a pure function of (element, inherited style). Lookup tables
(style rules, image map, TOC) are read-only and shared, so chapters can be
transformed independently and in any order.
"""

import logging
import posixpath
import re
import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from urllib.parse import urlparse

from bs4 import (
    BeautifulSoup,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    PageElement,
    ProcessingInstruction,
    Tag,
    XMLParsedAsHTMLWarning,
)

from epub_rn.core.archive import Archive, resolve_href
from epub_rn.core.styles import StyleResolver, parse_inline_style
from epub_rn.errors import EntryNotFound
from epub_rn.models.book import PackageDocument, SpineItemInfo, TocItem
from epub_rn.models.config import ConversionConfig
from epub_rn.models.nodes import (
    ImageNode,
    RnNode,
    RnStyles,
    ScrollViewNode,
    TextNode,
    ViewNode,
)
from epub_rn.models.output import ChapterStructure

# Chapters are XHTML; the lenient HTML parser is used on purpose
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

log = logging.getLogger(__name__)

CONTENT_MEDIA_TYPES = frozenset(
    {"application/xhtml+xml", "text/html", "text/x-oeb1-document"}
)

SKIPPED_TAGS = frozenset(
    {"head", "title", "meta", "link", "script", "style", "template", "noscript"}
)

INLINE_TAGS = frozenset(
    {
        "a", "abbr", "b", "bdi", "bdo", "big", "br", "cite", "code", "del",
        "dfn", "em", "font", "i", "img", "image", "ins", "kbd", "mark", "q",
        "rb", "rp", "rt", "ruby", "s", "samp", "small", "span", "strike",
        "strong", "sub", "sup", "time", "tt", "u", "var", "wbr",
    }
)

HEADING_RE = re.compile(r"^h[1-6]$")

SCROLL_OVERFLOW = frozenset({"scroll", "auto"})

# Presentation each tag carries before any stylesheet applies
INTRINSIC_STYLES: dict[str, RnStyles] = {
    "h1": RnStyles(fontSize=24.0, fontWeight="bold"),
    "h2": RnStyles(fontSize=20.0, fontWeight="bold"),
    "h3": RnStyles(fontSize=18.0, fontWeight="bold"),
    "h4": RnStyles(fontSize=16.0, fontWeight="bold"),
    "h5": RnStyles(fontSize=14.0, fontWeight="bold"),
    "h6": RnStyles(fontSize=12.0, fontWeight="bold"),
    "b": RnStyles(fontWeight="bold"),
    "strong": RnStyles(fontWeight="bold"),
    "i": RnStyles(fontStyle="italic"),
    "em": RnStyles(fontStyle="italic"),
    "cite": RnStyles(fontStyle="italic"),
    "u": RnStyles(textDecorationLine="underline"),
    "s": RnStyles(textDecorationLine="line-through"),
    "strike": RnStyles(textDecorationLine="line-through"),
    "code": RnStyles(fontFamily="monospace", fontSize=14.0),
    "tt": RnStyles(fontFamily="monospace", fontSize=14.0),
    "pre": RnStyles(fontFamily="monospace", fontSize=14.0, marginTop=8.0, marginBottom=8.0),
    "sup": RnStyles(fontSize=12.0),
    "sub": RnStyles(fontSize=12.0),
    "small": RnStyles(fontSize=12.0),
    "big": RnStyles(fontSize=20.0),
    "center": RnStyles(textAlign="center"),
    "blockquote": RnStyles(
        marginLeft=16.0,
        marginRight=16.0,
        marginTop=8.0,
        marginBottom=8.0,
        fontStyle="italic",
    ),
}


@dataclass(frozen=True)
class ChapterInputs:
    """Everything a chapter transformation reads, built once per book."""

    archive: Archive
    package: PackageDocument
    resolver: StyleResolver
    images: Mapping[str, str]
    toc: Sequence[TocItem] = ()
    config: ConversionConfig = field(default_factory=ConversionConfig)
    images_by_name: Mapping[str, str] = field(init=False)

    def __post_init__(self) -> None:
        by_name: dict[str, str] = {}
        for path, uri in self.images.items():
            by_name.setdefault(posixpath.basename(path), uri)
        object.__setattr__(self, "images_by_name", by_name)

    def toc_label(self, chapter_path: str) -> str | None:
        for item in self.toc:
            if item.path == chapter_path:
                return item.label
        return None


@dataclass(frozen=True)
class _Scope:
    """Style context handed from an element to its children."""

    chapter_path: str
    text_styles: RnStyles  # style given to text directly inside the element
    preserve_whitespace: bool = False
    # Whether the content starts / ends against a block boundary
    at_start: bool = True
    at_end: bool = True

    @property
    def inherited(self) -> RnStyles:
        return self.text_styles.inherited()


@dataclass
class ChapterResult:
    """A transformed chapter and the problems met while building it."""

    chapter: ChapterStructure
    warnings: list[str] = field(default_factory=list)


def _is_text(node: PageElement) -> bool:
    return isinstance(node, NavigableString) and not isinstance(
        node, (Comment, Declaration, Doctype, ProcessingInstruction)
    )


def _rendered_children(tag: Tag) -> list[Tag | str]:
    """Rendered children in document order, adjacent text runs joined."""
    children: list[Tag | str] = []
    for child in tag.children:
        if isinstance(child, Tag):
            if (child.name or "").lower() not in SKIPPED_TAGS:
                children.append(child)
        elif _is_text(child):
            if children and isinstance(children[-1], str):
                children[-1] += str(child)
            else:
                children.append(str(child))
    return children


def _is_block(node: Tag | str | None) -> bool:
    return isinstance(node, Tag) and (node.name or "").lower() not in INLINE_TAGS


def _drop_boundary_whitespace(children: list[Tag | str], scope: _Scope) -> list[Tag | str]:
    """Remove whitespace-only runs that touch a block boundary."""
    kept: list[Tag | str] = []
    for index, child in enumerate(children):
        if isinstance(child, str) and not child.strip():
            prev = children[index - 1] if index > 0 else None
            nxt = children[index + 1] if index + 1 < len(children) else None
            if (
                (prev is None and scope.at_start)
                or (nxt is None and scope.at_end)
                or _is_block(prev)
                or _is_block(nxt)
            ):
                continue
        kept.append(child)
    return kept


def _classes(tag: Tag) -> list[str]:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return list(classes)


def element_style(tag: Tag, resolver: StyleResolver) -> RnStyles:
    """Intrinsic tag style, then the stylesheet cascade, then ``style=""``."""
    name = (tag.name or "").lower()
    element_id = tag.get("id")
    cascade = resolver.resolve(
        name,
        element_id if isinstance(element_id, str) else None,
        _classes(tag),
    )
    inline = parse_inline_style(tag.get("style"))
    return INTRINSIC_STYLES.get(name, RnStyles()).merge(cascade).merge(inline)


def _clean_text(
    text: str,
    prev: Tag | str | None,
    nxt: Tag | str | None,
    scope: _Scope,
) -> str:
    """Apply the whitespace rules to one text run.

    Whitespace-only runs survive only between inline siblings, collapsed to
    one space. Other runs lose whitespace touching a block boundary and are
    otherwise kept verbatim.
    """
    if scope.preserve_whitespace:
        return text

    at_start = prev is None and scope.at_start
    at_end = nxt is None and scope.at_end

    if not text.strip():
        if at_start or at_end or _is_block(prev) or _is_block(nxt):
            return ""
        return " "

    if at_start or _is_block(prev):
        text = text.lstrip()
    if at_end or _is_block(nxt):
        text = text.rstrip()
    return text


def resolve_image_source(src: str, inputs: ChapterInputs, chapter_path: str) -> str:
    """Data URI for an image reference, or ``src`` unchanged when unknown."""
    src = src.strip()
    if not src or src.startswith("data:") or urlparse(src).scheme in ("http", "https"):
        return src

    path = resolve_href(chapter_path, src).split("#", 1)[0]
    if path in inputs.images:
        return inputs.images[path]
    resolved = inputs.archive.resolve(path)
    if resolved is not None and resolved in inputs.images:
        return inputs.images[resolved]
    if inputs.config.image_filename_fallback:
        by_name = inputs.images_by_name.get(posixpath.basename(path))
        if by_name is not None:
            return by_name
    log.debug("Image %s not in manifest, keeping raw src", src)
    return src


def _image_node(tag: Tag, style: RnStyles, inputs: ChapterInputs, scope: _Scope) -> ImageNode | None:
    src = tag.get("src") or tag.get("xlink:href") or tag.get("href")
    if not isinstance(src, str) or not src.strip():
        return None
    alt = tag.get("alt")
    return ImageNode(
        source=resolve_image_source(src, inputs, scope.chapter_path),
        alt=alt if isinstance(alt, str) and alt else None,
        styles=style.or_none(),
    )


def transform_children(tag: Tag, inputs: ChapterInputs, scope: _Scope) -> list[RnNode]:
    """Transform the rendered children of ``tag`` in document order."""
    children = _rendered_children(tag)
    if not scope.preserve_whitespace:
        children = _drop_boundary_whitespace(children, scope)
    nodes: list[RnNode] = []
    for index, child in enumerate(children):
        prev = children[index - 1] if index > 0 else None
        nxt = children[index + 1] if index + 1 < len(children) else None

        if isinstance(child, Tag):
            node = transform_element(
                child,
                inputs,
                scope,
                at_start=(prev is None and scope.at_start) or _is_block(prev),
                at_end=(nxt is None and scope.at_end) or _is_block(nxt),
            )
            if node is not None:
                nodes.append(node)
            continue

        text = _clean_text(child, prev, nxt, scope)
        if text:
            nodes.append(TextNode(content=text, styles=scope.text_styles.or_none()))
    return nodes


def transform_element(
    tag: Tag,
    inputs: ChapterInputs,
    scope: _Scope,
    at_start: bool = True,
    at_end: bool = True,
) -> RnNode | None:
    """Transform one element; None when it renders nothing.

    ``at_start`` / ``at_end`` tell an inline element whether it touches a
    block boundary, so its outer text can be trimmed like its parent's.
    """
    name = (tag.name or "").lower()
    if name in SKIPPED_TAGS:
        return None
    if name == "br":
        return TextNode(content="\n", styles=scope.text_styles.or_none())

    style = element_style(tag, inputs.resolver)
    if name in ("img", "image"):
        return _image_node(tag, style, inputs, scope)

    block = _is_block(tag)
    child_scope = _Scope(
        chapter_path=scope.chapter_path,
        text_styles=scope.inherited.merge(style),
        preserve_whitespace=scope.preserve_whitespace or name == "pre",
        at_start=block or at_start,
        at_end=block or at_end,
    )
    children = transform_children(tag, inputs, child_scope)

    classes = _classes(tag)
    scrollable = style.overflow in SCROLL_OVERFLOW or bool(
        inputs.config.scroll_classes.intersection(classes)
    )
    if scrollable:
        return ScrollViewNode(children=children, styles=style.or_none())

    # An element wrapping a single text run becomes that run
    if len(children) == 1 and isinstance(children[0], TextNode):
        only = children[0]
        return TextNode(content=only.content, styles=style.merge(only.styles).or_none())

    return ViewNode(children=children, styles=style.or_none())


def _document_root(soup: BeautifulSoup) -> Tag:
    return soup.body or soup.find("html") or soup


def infer_title(root: Tag) -> str | None:
    """Text of the first non-empty heading under ``root``."""
    for heading in root.find_all(HEADING_RE):
        text = " ".join(heading.get_text().split())
        if text:
            return text
    return None


def render_document(
    html: bytes | str, inputs: ChapterInputs, chapter_path: str
) -> tuple[ViewNode, str | None]:
    """Parse one XHTML document into its root View and inferred heading title."""
    soup = BeautifulSoup(html, "lxml")
    root = _document_root(soup)

    if root is soup:
        root_style = RnStyles()
    else:
        root_style = element_style(root, inputs.resolver)
    scope = _Scope(chapter_path=chapter_path, text_styles=root_style)

    view = ViewNode(
        children=transform_children(root, inputs, scope),
        styles=root_style.or_none(),
    )
    return view, infer_title(root)


def _placeholder(spine_index: int, item: SpineItemInfo, message: str) -> ChapterResult:
    log.warning(message)
    chapter = ChapterStructure(
        spine_index=spine_index,
        idref=item.idref,
        linear=item.linear,
        title=None,
        content=TextNode(content=""),
    )
    return ChapterResult(chapter=chapter, warnings=[message])


def transform_chapter(
    inputs: ChapterInputs, spine_index: int, item: SpineItemInfo
) -> ChapterResult:
    """Convert one spine item. Never raises; failures become placeholders."""
    entry = inputs.package.manifest.get(item.idref)
    if entry is None:
        return _placeholder(
            spine_index, item, f"Spine item {item.idref!r} is not in the manifest"
        )
    if entry.media_type.lower() not in CONTENT_MEDIA_TYPES:
        return _placeholder(
            spine_index,
            item,
            f"Spine item {item.idref!r} has unsupported media type {entry.media_type}",
        )

    try:
        data = inputs.archive.read(entry.href)
    except EntryNotFound as e:
        return _placeholder(spine_index, item, f"Chapter {entry.href} missing: {e}")

    chapter_path = inputs.archive.resolve(entry.href) or entry.href
    try:
        content, title = render_document(data, inputs, chapter_path)
    except Exception as e:
        return _placeholder(
            spine_index, item, f"Chapter {entry.href} could not be parsed: {e}"
        )

    if title is None:
        title = inputs.toc_label(chapter_path)

    chapter = ChapterStructure(
        spine_index=spine_index,
        idref=item.idref,
        linear=item.linear,
        title=title,
        content=content,
    )
    return ChapterResult(chapter=chapter)
