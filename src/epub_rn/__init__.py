"""Convert EPUB books into render-ready JSON document trees."""

from epub_rn.core.converter import convert, convert_and_save
from epub_rn.errors import (
    ConversionError,
    CorruptArchive,
    EntryNotFound,
    InvalidPackageDocument,
    MissingRootfile,
    OutputWriteError,
    SourceFileNotFound,
)
from epub_rn.models import CompleteEpubInfo, ConversionConfig

__version__ = "0.1.0"

__all__ = [
    "convert",
    "convert_and_save",
    "CompleteEpubInfo",
    "ConversionConfig",
    "ConversionError",
    "CorruptArchive",
    "EntryNotFound",
    "MissingRootfile",
    "InvalidPackageDocument",
    "SourceFileNotFound",
    "OutputWriteError",
]
