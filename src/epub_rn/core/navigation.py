"""Table of contents extraction from the EPUB3 Nav or EPUB2 NCX document."""

import logging
import warnings
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag, XMLParsedAsHTMLWarning

from epub_rn.core.archive import Archive, resolve_href
from epub_rn.core.package import element_text, local_name, parse_xml
from epub_rn.errors import EntryNotFound
from epub_rn.models.book import ManifestEntry, PackageDocument, TocItem

# Nav documents are XHTML; parsing them as HTML is intended
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

log = logging.getLogger(__name__)

NCX_MEDIA_TYPE = "application/x-dtbncx+xml"


@dataclass
class NavigationResult:
    """Flattened TOC plus anything that was dropped on the way."""

    toc: list[TocItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def find_nav_entry(package: PackageDocument) -> ManifestEntry | None:
    """Manifest item flagged with the EPUB3 ``nav`` property."""
    for entry in package.manifest.values():
        if entry.has_property("nav"):
            return entry
    return None


def find_ncx_entry(package: PackageDocument) -> ManifestEntry | None:
    """NCX named by the spine's toc attribute, else the first NCX in the manifest."""
    if package.toc_id and package.toc_id in package.manifest:
        return package.manifest[package.toc_id]
    for entry in package.manifest.values():
        if entry.media_type.lower() == NCX_MEDIA_TYPE:
            return entry
    return None


def _make_item(
    archive: Archive,
    doc_path: str,
    label: str,
    href: str,
    result: NavigationResult,
) -> None:
    label = " ".join(label.split())
    href = href.strip()
    if not label or not href:
        message = f"Dropped TOC entry without label or target in {doc_path}"
        log.warning(message)
        result.warnings.append(message)
        return

    content_path = resolve_href(doc_path, href)
    target = content_path.split("#", 1)[0]
    resolved = archive.resolve(target)
    if resolved is None:
        message = f"Dropped TOC entry {label!r}: target {href} not in archive"
        log.warning(message)
        result.warnings.append(message)
        return

    fragment = content_path[len(target):]
    result.toc.append(TocItem(label=label, content_path=resolved + fragment))


def parse_nav_document(archive: Archive, doc_path: str, data: bytes) -> NavigationResult:
    """Flatten the ``<nav epub:type="toc">`` list of an EPUB3 Nav document."""
    result = NavigationResult()
    soup = BeautifulSoup(data, "lxml")

    navs = soup.find_all("nav")
    toc_nav = next(
        (nav for nav in navs if "toc" in (nav.get("epub:type") or "").split()),
        navs[0] if navs else None,
    )
    if toc_nav is None:
        return result

    for anchor in toc_nav.find_all("a"):
        if not isinstance(anchor, Tag):
            continue
        _make_item(archive, doc_path, anchor.get_text(), anchor.get("href") or "", result)
    return result


def parse_ncx_document(archive: Archive, doc_path: str, data: bytes) -> NavigationResult:
    """Flatten every navPoint of an NCX document in document order."""
    result = NavigationResult()
    root = parse_xml(data)
    if root is None:
        message = f"NCX document {doc_path} is not valid XML"
        log.warning(message)
        result.warnings.append(message)
        return result

    # //navPoint is document order, which is the pre-order walk of the tree
    for nav_point in root.xpath("//*[local-name()='navPoint']"):
        label = ""
        src = ""
        for child in nav_point:
            name = local_name(child)
            if name == "navLabel" and not label:
                texts = child.xpath("./*[local-name()='text']")
                label = element_text(texts[0]) if texts else element_text(child)
            elif name == "content" and not src:
                src = child.get("src") or ""
        _make_item(archive, doc_path, label, src, result)
    return result


def _load(
    archive: Archive, entry: ManifestEntry, result: NavigationResult
) -> bytes | None:
    try:
        return archive.read(entry.href)
    except EntryNotFound as e:
        message = f"Navigation document {entry.href} missing: {e}"
        log.warning(message)
        result.warnings.append(message)
        return None


def extract_toc(archive: Archive, package: PackageDocument) -> NavigationResult:
    """Build the flat table of contents.

    The EPUB3 Nav document wins; the NCX is used when there is no Nav or
    the Nav yields no entries. A book without either simply has an empty
    TOC.
    """
    result = NavigationResult()

    nav_entry = find_nav_entry(package)
    if nav_entry is not None:
        data = _load(archive, nav_entry, result)
        if data is not None:
            parsed = parse_nav_document(archive, nav_entry.href, data)
            result.warnings.extend(parsed.warnings)
            if parsed.toc:
                result.toc = parsed.toc
                return result

    ncx_entry = find_ncx_entry(package)
    if ncx_entry is not None:
        data = _load(archive, ncx_entry, result)
        if data is not None:
            parsed = parse_ncx_document(archive, ncx_entry.href, data)
            result.warnings.extend(parsed.warnings)
            result.toc = parsed.toc

    if not result.toc:
        log.info("No table of contents found")
    return result
