"""Container and OPF package document parsing."""

import logging

from lxml import etree

from epub_rn.core.archive import Archive, resolve_href
from epub_rn.errors import EntryNotFound, InvalidPackageDocument, MissingRootfile
from epub_rn.models.book import EpubMetadata, ManifestEntry, PackageDocument, SpineItemInfo

log = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"

# OPF metadata element -> EpubMetadata field
DC_FIELDS = {
    "title": "title",
    "creator": "author",
    "language": "language",
    "publisher": "publisher",
    "description": "description",
    "date": "date",
    "identifier": "identifier",
    "rights": "rights",
    "subject": "subject",
}


def xml_parser() -> etree.XMLParser:
    """Recovering parser that never touches the network or expands entities."""
    return etree.XMLParser(
        recover=True,
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        huge_tree=True,
    )


def parse_xml(data: bytes) -> etree._Element | None:
    """Parse XML bytes, returning None when nothing could be recovered."""
    try:
        return etree.fromstring(data, xml_parser())
    except etree.XMLSyntaxError:
        return None


def local_name(element: etree._Element) -> str:
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def children_named(parent: etree._Element, name: str) -> list[etree._Element]:
    """Direct children with local name ``name``, namespace-agnostic."""
    return [child for child in parent if local_name(child) == name]


def first_descendant(root: etree._Element, name: str) -> etree._Element | None:
    found = root.xpath("descendant-or-self::*[local-name()=$name][1]", name=name)
    return found[0] if found else None


def element_text(element: etree._Element) -> str:
    return " ".join("".join(element.itertext()).split())


def find_rootfile(archive: Archive) -> str:
    """Path of the OPF package document named by container.xml.

    Raises:
        MissingRootfile: If container.xml is absent, unreadable or has no rootfile
    """
    try:
        data = archive.read(CONTAINER_PATH)
    except EntryNotFound as e:
        raise MissingRootfile(f"{CONTAINER_PATH} not found", e) from e

    root = parse_xml(data)
    if root is None:
        raise MissingRootfile(f"{CONTAINER_PATH} is not valid XML")

    for rootfile in root.xpath("//*[local-name()='rootfile']"):
        full_path = (rootfile.get("full-path") or "").strip()
        if full_path:
            return resolve_href("", full_path)

    raise MissingRootfile(f"{CONTAINER_PATH} does not name a rootfile")


def _parse_metadata(root: etree._Element) -> EpubMetadata:
    metadata = first_descendant(root, "metadata")
    if metadata is None:
        return EpubMetadata()

    values: dict[str, str] = {}
    # Some EPUB2 files wrap DC elements in <dc-metadata>
    for element in metadata.iter():
        field = DC_FIELDS.get(local_name(element))
        if field is None or field in values:
            continue
        text = element_text(element)
        if text:
            values[field] = text
    return EpubMetadata(**values)


def _parse_manifest(
    manifest: etree._Element, opf_path: str, warnings: list[str]
) -> dict[str, ManifestEntry]:
    entries: dict[str, ManifestEntry] = {}
    for item in children_named(manifest, "item"):
        item_id = (item.get("id") or "").strip()
        href = (item.get("href") or "").strip()
        media_type = (item.get("media-type") or "").strip()
        if not (item_id and href and media_type):
            message = (
                f"Skipped manifest item missing id/href/media-type "
                f"(line {item.sourceline})"
            )
            log.warning(message)
            warnings.append(message)
            continue

        if item_id in entries:
            message = f"Duplicate manifest id {item_id!r}, keeping the last one"
            log.warning(message)
            warnings.append(message)
            # Re-insert so manifest order follows the winning entry
            del entries[item_id]

        entries[item_id] = ManifestEntry(
            id=item_id,
            href=resolve_href(opf_path, href),
            media_type=media_type,
            properties=(item.get("properties") or "").strip() or None,
        )
    return entries


def _parse_spine(spine: etree._Element, warnings: list[str]) -> list[SpineItemInfo]:
    items: list[SpineItemInfo] = []
    for itemref in children_named(spine, "itemref"):
        idref = (itemref.get("idref") or "").strip()
        if not idref:
            message = f"Skipped spine itemref without idref (line {itemref.sourceline})"
            log.warning(message)
            warnings.append(message)
            continue
        items.append(
            SpineItemInfo(
                idref=idref,
                id=itemref.get("id") or None,
                properties=(itemref.get("properties") or "").strip() or None,
                linear=(itemref.get("linear") or "yes").strip().lower() != "no",
            )
        )
    return items


def load_package(archive: Archive) -> PackageDocument:
    """Locate and parse the OPF package document.

    Raises:
        MissingRootfile: If container.xml does not lead to a package document
        InvalidPackageDocument: If the OPF is missing, unparseable or lacks
            a manifest or spine
    """
    opf_path = find_rootfile(archive)

    try:
        data = archive.read(opf_path)
    except EntryNotFound as e:
        raise InvalidPackageDocument(f"Package document {opf_path} not found", e) from e

    root = parse_xml(data)
    if root is None:
        raise InvalidPackageDocument(f"Package document {opf_path} is not valid XML")

    manifest = first_descendant(root, "manifest")
    if manifest is None:
        raise InvalidPackageDocument(f"Package document {opf_path} has no manifest")
    spine = first_descendant(root, "spine")
    if spine is None:
        raise InvalidPackageDocument(f"Package document {opf_path} has no spine")

    warnings: list[str] = []
    package = PackageDocument(
        opf_path=opf_path,
        metadata=_parse_metadata(root),
        manifest=_parse_manifest(manifest, opf_path, warnings),
        spine=_parse_spine(spine, warnings),
        toc_id=(spine.get("toc") or "").strip() or None,
        warnings=warnings,
    )
    log.info(
        "Parsed %s: %d manifest items, %d spine items",
        opf_path,
        len(package.manifest),
        len(package.spine),
    )
    return package
