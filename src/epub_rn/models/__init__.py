"""Data models."""

from epub_rn.models.book import (
    EpubMetadata,
    EpubStructure,
    ManifestEntry,
    PackageDocument,
    SpineItemInfo,
    TocItem,
)
from epub_rn.models.config import ConversionConfig
from epub_rn.models.nodes import (
    ImageNode,
    RnNode,
    RnStyles,
    ScrollViewNode,
    TextNode,
    ViewNode,
    iter_nodes,
    node_text,
)
from epub_rn.models.output import ChapterStructure, CompleteEpubInfo

__all__ = [
    # Package models
    "EpubMetadata",
    "ManifestEntry",
    "SpineItemInfo",
    "TocItem",
    "EpubStructure",
    "PackageDocument",
    # Render models
    "RnStyles",
    "RnNode",
    "TextNode",
    "ViewNode",
    "ScrollViewNode",
    "ImageNode",
    "iter_nodes",
    "node_text",
    # Output models
    "ChapterStructure",
    "CompleteEpubInfo",
    # Configuration
    "ConversionConfig",
]
