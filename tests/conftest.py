"""Shared fixtures: EPUB containers built in memory."""

import io
import zipfile

import pytest

from epub_rn.core.archive import Archive
from epub_rn.core.package import load_package

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

# 1x1 transparent PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


def xhtml(body: str, title: str = "Chapter") -> str:
    """Wrap body markup in a minimal XHTML document."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml" '
        'xmlns:epub="http://www.idpf.org/2007/ops">\n'
        f"<head><title>{title}</title></head>\n"
        f"<body>{body}</body>\n"
        "</html>\n"
    )


def build_opf(
    manifest: list[tuple[str, str, str] | tuple[str, str, str, str]],
    spine: list[str],
    metadata: str = "<dc:title>Test Book</dc:title><dc:creator>Test Author</dc:creator>",
    toc_id: str | None = None,
) -> str:
    """Build an OPF document from (id, href, media-type[, properties]) tuples."""
    items = []
    for entry in manifest:
        item_id, href, media_type = entry[:3]
        properties = f' properties="{entry[3]}"' if len(entry) > 3 else ""
        items.append(
            f'<item id="{item_id}" href="{href}" media-type="{media_type}"{properties}/>'
        )
    itemrefs = "".join(f'<itemref idref="{idref}"/>' for idref in spine)
    toc_attr = f' toc="{toc_id}"' if toc_id else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<package xmlns="http://www.idpf.org/2007/opf" version="3.0" '
        'unique-identifier="uid">\n'
        '<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">'
        f"{metadata}</metadata>\n"
        f"<manifest>{''.join(items)}</manifest>\n"
        f"<spine{toc_attr}>{itemrefs}</spine>\n"
        "</package>\n"
    )


def make_epub(files: dict[str, str | bytes], opf_path: str | None = "OEBPS/content.opf") -> bytes:
    """Zip ``files`` into EPUB bytes, adding mimetype and container.xml."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        if opf_path is not None:
            zf.writestr("META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path))
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def make_archive(files: dict[str, str | bytes]) -> Archive:
    return Archive(
        {
            name: content.encode("utf-8") if isinstance(content, str) else content
            for name, content in files.items()
        }
    )


@pytest.fixture
def simple_book_files() -> dict[str, str | bytes]:
    """Two chapters, a stylesheet, a cover image, an EPUB3 nav and an NCX."""
    opf = build_opf(
        manifest=[
            ("nav", "nav.xhtml", "application/xhtml+xml", "nav"),
            ("ncx", "toc.ncx", "application/x-dtbncx+xml"),
            ("css", "styles/main.css", "text/css"),
            ("cover", "images/cover.png", "image/png", "cover-image"),
            ("ch1", "text/ch1.xhtml", "application/xhtml+xml"),
            ("ch2", "text/ch2.xhtml", "application/xhtml+xml"),
        ],
        spine=["ch1", "ch2"],
        metadata=(
            "<dc:title>Test Book</dc:title>"
            "<dc:creator>Test Author</dc:creator>"
            "<dc:language>en</dc:language>"
            "<dc:identifier id=\"uid\">urn:uuid:1234</dc:identifier>"
        ),
        toc_id="ncx",
    )
    nav = xhtml(
        '<nav epub:type="toc"><ol>'
        '<li><a href="text/ch1.xhtml">Chapter One</a></li>'
        '<li><a href="text/ch2.xhtml#start">Chapter Two</a></li>'
        "</ol></nav>"
    )
    ncx = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1"><navMap>'
        '<navPoint id="n1"><navLabel><text>One (NCX)</text></navLabel>'
        '<content src="text/ch1.xhtml"/></navPoint>'
        "</navMap></ncx>"
    )
    return {
        "OEBPS/content.opf": opf,
        "OEBPS/nav.xhtml": nav,
        "OEBPS/toc.ncx": ncx,
        "OEBPS/styles/main.css": "p { color: red; font-size: 14; }\n#lead { font-weight: bold; }\n",
        "OEBPS/images/cover.png": PNG_BYTES,
        "OEBPS/text/ch1.xhtml": xhtml(
            '<h1>Chapter One</h1>\n<p id="lead">Hello</p>\n'
            '<img src="../images/cover.png" alt="Cover"/>'
        ),
        "OEBPS/text/ch2.xhtml": xhtml('<p id="start">Second</p>'),
    }


@pytest.fixture
def simple_epub(simple_book_files) -> bytes:
    return make_epub(simple_book_files)


@pytest.fixture
def simple_archive(simple_book_files) -> Archive:
    return make_archive(
        {"META-INF/container.xml": CONTAINER_XML.format(opf_path="OEBPS/content.opf"),
         **simple_book_files}
    )


@pytest.fixture
def simple_package(simple_archive):
    return load_package(simple_archive)
