"""Conversion engine."""

from epub_rn.core.converter import convert, convert_and_save

__all__ = ["convert", "convert_and_save"]
