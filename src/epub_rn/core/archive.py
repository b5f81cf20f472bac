"""Read-only snapshot of an EPUB (ZIP) container."""

import io
import logging
import posixpath
import zipfile
import zlib
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from urllib.parse import unquote

from epub_rn.errors import CorruptArchive, EntryNotFound

log = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Normalize an archive path: forward slashes, no leading slash, no dot segments."""
    path = path.replace("\\", "/").lstrip("/")
    if not path:
        return ""
    normalized = posixpath.normpath(path)
    return "" if normalized == "." else normalized


def resolve_href(base_path: str, href: str) -> str:
    """Resolve ``href`` relative to the document at ``base_path``.

    The fragment, if any, is kept. Percent-escapes in the path are decoded
    since ZIP entry names are stored unescaped.
    """
    target, _, fragment = href.partition("#")
    target = unquote(target.strip())
    if target:
        resolved = normalize_path(posixpath.join(posixpath.dirname(base_path), target))
    else:
        resolved = normalize_path(base_path)
    return f"{resolved}#{fragment}" if fragment else resolved


class Archive(Mapping[str, bytes]):
    """Fully materialized mapping of archive path to entry bytes.

    Nothing keeps the ZIP open once the snapshot is built, so an archive
    can be shared freely between threads.
    """

    def __init__(self, entries: Mapping[str, bytes], warnings: list[str] | None = None):
        self._entries = MappingProxyType(dict(entries))
        self._folded: dict[str, str] = {}
        for name in self._entries:
            self._folded.setdefault(name.lower(), name)
        self.warnings: tuple[str, ...] = tuple(warnings or ())

    def __getitem__(self, path: str) -> bytes:
        return self.read(path)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.resolve(path) is not None

    def names(self) -> list[str]:
        """Entry names in archive order."""
        return list(self._entries)

    def resolve(self, path: str) -> str | None:
        """Map a possibly escaped or miscased path onto an entry name."""
        candidates = [normalize_path(path)]
        unescaped = normalize_path(unquote(path))
        if unescaped != candidates[0]:
            candidates.append(unescaped)

        for candidate in candidates:
            if candidate in self._entries:
                return candidate
        # Case mismatches between manifest and ZIP are common in the wild
        for candidate in candidates:
            name = self._folded.get(candidate.lower())
            if name is not None:
                return name
        return None

    def read(self, path: str) -> bytes:
        """Raw bytes of the entry at ``path``.

        Raises:
            EntryNotFound: If no entry matches ``path``
        """
        name = self.resolve(path)
        if name is None:
            raise EntryNotFound(path)
        return self._entries[name]

    def read_text(self, path: str) -> str:
        """Entry decoded as UTF-8; a BOM is dropped and bad bytes replaced."""
        return self.read(path).decode("utf-8-sig", errors="replace")


def open_archive(data: bytes) -> Archive:
    """Open EPUB bytes and snapshot every file entry.

    Args:
        data: Complete EPUB container bytes

    Returns:
        Archive snapshot

    Raises:
        CorruptArchive: If the bytes are not a readable ZIP file
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(bytes(data)))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as e:
        raise CorruptArchive("Not a readable EPUB container", e) from e

    entries: dict[str, bytes] = {}
    warnings: list[str] = []
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            name = normalize_path(info.filename)
            if not name:
                continue
            try:
                entries[name] = zf.read(info)
            except (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, OSError) as e:
                # Encrypted, unsupported compression or CRC failure
                message = f"Skipped unreadable archive entry {info.filename}: {e}"
                log.warning(message)
                warnings.append(message)

    log.debug("Opened archive with %d entries", len(entries))
    return Archive(entries, warnings)
