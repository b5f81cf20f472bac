"""Image extraction into self-contained data URIs."""

import base64
import logging
from dataclasses import dataclass, field

from epub_rn.core.archive import Archive
from epub_rn.errors import EntryNotFound
from epub_rn.models.book import PackageDocument

log = logging.getLogger(__name__)


def to_data_uri(media_type: str, data: bytes) -> str:
    """Encode bytes as ``data:<media-type>;base64,<payload>``."""
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{payload}"


@dataclass
class ImageExtraction:
    """Image data URIs keyed by archive path."""

    images: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def extract_images(archive: Archive, package: PackageDocument) -> ImageExtraction:
    """Inline every ``image/*`` manifest entry.

    Large images are kept; an entry that cannot be read is skipped with a
    warning.
    """
    result = ImageExtraction()
    for entry in package.entries_where(lambda e: e.is_image):
        try:
            data = archive.read(entry.href)
        except EntryNotFound as e:
            message = f"Image {entry.href} skipped: {e}"
            log.warning(message)
            result.warnings.append(message)
            continue
        # Keyed by the real entry name so lookups match the archive
        path = archive.resolve(entry.href) or entry.href
        result.images[path] = to_data_uri(entry.media_type, data)
        log.debug("Inlined %s (%d KB)", path, len(data) // 1024)

    log.info("Extracted %d images", len(result.images))
    return result
