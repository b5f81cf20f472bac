"""Conversion entry points: EPUB bytes in, CompleteEpubInfo out."""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from epub_rn.core.archive import open_archive
from epub_rn.core.content import ChapterInputs, ChapterResult, transform_chapter
from epub_rn.core.navigation import extract_toc
from epub_rn.core.output_writer import OutputWriter
from epub_rn.core.package import load_package
from epub_rn.core.resources import extract_images
from epub_rn.core.styles import StyleResolver
from epub_rn.errors import ConversionError, SourceFileNotFound
from epub_rn.models.book import EpubStructure
from epub_rn.models.config import ConversionConfig
from epub_rn.models.output import CompleteEpubInfo

log = logging.getLogger(__name__)


def convert(data: bytes, config: ConversionConfig | None = None) -> CompleteEpubInfo:
    """Convert EPUB container bytes into a CompleteEpubInfo document.

    Args:
        data: Complete EPUB file contents
        config: Conversion options (defaults apply when omitted)

    Returns:
        The converted book. Non-fatal problems are listed in ``warnings``.

    Raises:
        CorruptArchive: If the bytes are not a ZIP container
        MissingRootfile: If container.xml is missing or names no package
        InvalidPackageDocument: If the OPF is unusable
    """
    config = config or ConversionConfig()
    archive = open_archive(data)
    package = load_package(archive)

    # Navigation, styles and images only read the archive and package
    if config.max_workers > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            nav_future = pool.submit(extract_toc, archive, package)
            styles_future = pool.submit(StyleResolver.from_package, archive, package)
            images_future = pool.submit(extract_images, archive, package)
            navigation = nav_future.result()
            resolver = styles_future.result()
            images = images_future.result()
    else:
        navigation = extract_toc(archive, package)
        resolver = StyleResolver.from_package(archive, package)
        images = extract_images(archive, package)

    inputs = ChapterInputs(
        archive=archive,
        package=package,
        resolver=resolver,
        images=images.images,
        toc=tuple(navigation.toc),
        config=config,
    )

    def run(indexed_item) -> ChapterResult:
        index, item = indexed_item
        return transform_chapter(inputs, index, item)

    spine_items = list(enumerate(package.spine))
    if config.max_workers > 1 and len(spine_items) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            # map() yields in submission order, so spine order is kept
            chapter_results = list(pool.map(run, spine_items))
    else:
        chapter_results = [run(indexed) for indexed in spine_items]

    warnings = [
        *archive.warnings,
        *package.warnings,
        *navigation.warnings,
        *resolver.warnings,
        *images.warnings,
    ]
    for result in chapter_results:
        warnings.extend(result.warnings)

    info = CompleteEpubInfo(
        metadata=package.metadata,
        structure=EpubStructure(
            spine_count=len(package.spine),
            resource_count=len(package.manifest),
            toc_count=len(navigation.toc),
        ),
        toc=navigation.toc,
        spine=package.spine,
        styles=resolver.style_map(),
        images=images.images,
        chapters=[result.chapter for result in chapter_results],
        warnings=warnings,
    )
    log.info(
        "Converted %r: %d chapters, %d images, %d warnings",
        info.metadata.title,
        len(info.chapters),
        len(info.images),
        len(warnings),
    )
    return info


def convert_and_save(
    path: str | Path,
    output_dir: str | Path,
    config: ConversionConfig | None = None,
) -> CompleteEpubInfo:
    """Read an EPUB file, convert it and write ``<output_dir>/book.json``.

    Raises:
        SourceFileNotFound: If ``path`` does not exist
        ConversionError: If ``path`` cannot be read (a directory, no permission)
        OutputWriteError: If the JSON file cannot be written
        ConversionError: Any fatal conversion error from ``convert``
    """
    config = config or ConversionConfig()
    source = Path(path)
    try:
        data = source.read_bytes()
    except FileNotFoundError as e:
        raise SourceFileNotFound(f"File not found: {source}", e) from e
    except OSError as e:
        raise ConversionError(f"Could not read {source}", e) from e

    info = convert(data, config)
    OutputWriter(Path(output_dir), config.output_filename).write(info)
    return info
