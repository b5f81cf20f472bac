"""Conversion configuration."""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCROLL_CLASSES = frozenset({"scroll", "scrollable", "scroll-view"})


class ConversionConfig(BaseModel):
    """Options for a single conversion call."""

    model_config = ConfigDict(frozen=True)

    # 1 keeps everything on the calling thread
    max_workers: int = Field(default=1, ge=1)
    # Elements carrying one of these classes become ScrollView nodes
    scroll_classes: frozenset[str] = DEFAULT_SCROLL_CLASSES
    # Match <img src> against image file names when the resolved path misses
    image_filename_fallback: bool = True
    output_filename: str = "book.json"
