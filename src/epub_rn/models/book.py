"""Data models for the EPUB package (metadata, manifest, spine, navigation)."""

from pydantic import BaseModel, ConfigDict, Field


class EpubMetadata(BaseModel):
    """Dublin Core metadata. A missing field means the source had none."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    author: str | None = None
    language: str | None = None
    publisher: str | None = None
    description: str | None = None
    date: str | None = None
    identifier: str | None = None
    rights: str | None = None
    subject: str | None = None


class ManifestEntry(BaseModel):
    """Single manifest item."""

    model_config = ConfigDict(frozen=True)

    id: str
    href: str  # Archive path, resolved against the OPF directory
    media_type: str
    properties: str | None = None

    @property
    def is_image(self) -> bool:
        return self.media_type.lower().startswith("image/")

    @property
    def is_stylesheet(self) -> bool:
        return self.media_type.lower() == "text/css"

    def has_property(self, name: str) -> bool:
        return name in (self.properties or "").split()


class SpineItemInfo(BaseModel):
    """Single spine itemref, in reading order."""

    model_config = ConfigDict(frozen=True)

    idref: str
    id: str | None = None
    properties: str | None = None
    linear: bool = True


class TocItem(BaseModel):
    """Flattened table of contents entry."""

    model_config = ConfigDict(frozen=True)

    label: str
    content_path: str  # Archive path, may carry a #fragment

    @property
    def path(self) -> str:
        """Content path without its fragment."""
        return self.content_path.split("#", 1)[0]


class EpubStructure(BaseModel):
    """Counts describing the book's structure."""

    model_config = ConfigDict(frozen=True)

    spine_count: int
    resource_count: int
    toc_count: int


class PackageDocument(BaseModel):
    """Parsed OPF package document."""

    model_config = ConfigDict(frozen=True)

    opf_path: str
    metadata: EpubMetadata = Field(default_factory=EpubMetadata)
    manifest: dict[str, ManifestEntry] = Field(default_factory=dict)
    spine: list[SpineItemInfo] = Field(default_factory=list)
    toc_id: str | None = None  # spine@toc, points at the NCX
    warnings: list[str] = Field(default_factory=list)

    def entries_where(self, predicate) -> list[ManifestEntry]:
        """Manifest entries matching ``predicate``, in manifest order."""
        return [entry for entry in self.manifest.values() if predicate(entry)]
