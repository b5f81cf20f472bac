"""Data models for conversion output."""

from pydantic import BaseModel, ConfigDict, Field

from epub_rn.models.book import EpubMetadata, EpubStructure, SpineItemInfo, TocItem
from epub_rn.models.nodes import RnNode, RnStyles


class ChapterStructure(BaseModel):
    """One spine item converted to a render tree."""

    model_config = ConfigDict(frozen=True)

    spine_index: int
    idref: str
    linear: bool = True
    title: str | None = None
    content: RnNode


class CompleteEpubInfo(BaseModel):
    """Complete conversion result, serialized as book.json."""

    model_config = ConfigDict(frozen=True)

    metadata: EpubMetadata
    structure: EpubStructure
    toc: list[TocItem] = Field(default_factory=list)
    spine: list[SpineItemInfo] = Field(default_factory=list)
    styles: dict[str, RnStyles] = Field(default_factory=dict)
    images: dict[str, str] = Field(default_factory=dict)  # archive path -> data URI
    chapters: list[ChapterStructure] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
