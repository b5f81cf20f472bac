"""Tests for convert and convert_and_save."""

import json

import pytest

from conftest import build_opf, make_epub, xhtml
from epub_rn import convert, convert_and_save
from epub_rn.errors import (
    ConversionError,
    CorruptArchive,
    InvalidPackageDocument,
    MissingRootfile,
    OutputWriteError,
    SourceFileNotFound,
)
from epub_rn.models import (
    CompleteEpubInfo,
    ConversionConfig,
    ImageNode,
    ScrollViewNode,
    TextNode,
    ViewNode,
    iter_nodes,
    node_text,
)


class TestConvert:
    """Tests for convert."""

    def test_counts_match_contents(self, simple_epub):
        info = convert(simple_epub)

        assert info.structure.spine_count == len(info.spine) == 2
        assert info.structure.toc_count == len(info.toc) == 2
        assert info.structure.resource_count == 6
        assert len(info.chapters) == len(info.spine)

    def test_metadata(self, simple_epub):
        info = convert(simple_epub)

        assert info.metadata.title == "Test Book"
        assert info.metadata.author == "Test Author"

    def test_chapters_in_spine_order(self, simple_epub):
        info = convert(simple_epub)

        assert [chapter.idref for chapter in info.chapters] == ["ch1", "ch2"]
        assert [chapter.spine_index for chapter in info.chapters] == [0, 1]
        assert info.chapters[0].title == "Chapter One"
        assert info.chapters[1].title == "Chapter Two"

    def test_cascade_applied(self, simple_epub):
        info = convert(simple_epub)

        hello = next(
            node
            for node in iter_nodes(info.chapters[0].content)
            if isinstance(node, TextNode) and node.content == "Hello"
        )
        assert hello.styles.color == "red"
        assert hello.styles.fontSize == 14.0
        assert hello.styles.fontWeight == "bold"

    def test_images_inlined(self, simple_epub):
        info = convert(simple_epub)

        images = [
            node for node in iter_nodes(info.chapters[0].content) if isinstance(node, ImageNode)
        ]
        assert len(images) == 1
        assert images[0].source.startswith("data:image/png;base64,")
        assert images[0].source == info.images["OEBPS/images/cover.png"]

    def test_style_map(self, simple_epub):
        info = convert(simple_epub)

        assert set(info.styles) == {"p", "lead"}

    def test_deterministic(self, simple_epub):
        first = convert(simple_epub)
        second = convert(simple_epub)

        assert first.model_dump_json() == second.model_dump_json()

    def test_parallel_matches_sequential(self, simple_epub):
        sequential = convert(simple_epub)
        parallel = convert(simple_epub, ConversionConfig(max_workers=4))

        assert parallel.model_dump_json() == sequential.model_dump_json()

    def test_parallel_matches_sequential_with_malformed_inline_styles(self):
        paragraph = '<p style="color: red; font-size: ??; margin-top: 4px; bad">Line {}</p>'
        files = {
            f"OEBPS/ch{index}.xhtml": xhtml("".join(paragraph.format(n) for n in range(40)))
            for index in range(30)
        }
        files["OEBPS/content.opf"] = build_opf(
            manifest=[
                (f"ch{index}", f"ch{index}.xhtml", "application/xhtml+xml")
                for index in range(30)
            ],
            spine=[f"ch{index}" for index in range(30)],
        )
        data = make_epub(files)

        sequential = convert(data)
        styled = [
            node
            for chapter in sequential.chapters
            for node in iter_nodes(chapter.content)
            if isinstance(node, TextNode) and node.styles is not None and node.styles.color == "red"
        ]
        assert styled

        for _ in range(3):
            parallel = convert(data, ConversionConfig(max_workers=8))
            assert parallel.model_dump_json() == sequential.model_dump_json()

    def test_trees_are_well_formed(self, simple_epub):
        info = convert(simple_epub)

        for chapter in info.chapters:
            assert isinstance(chapter.content, ViewNode)
            for node in iter_nodes(chapter.content):
                assert isinstance(node, (TextNode, ViewNode, ScrollViewNode, ImageNode))

    def test_unknown_idref_gives_placeholder(self):
        data = make_epub(
            {
                "OEBPS/content.opf": build_opf(
                    manifest=[
                        ("a", "a.xhtml", "application/xhtml+xml"),
                        ("b", "b.xhtml", "application/xhtml+xml"),
                    ],
                    spine=["a", "ghost", "b"],
                ),
                "OEBPS/a.xhtml": xhtml("<p>First</p>"),
                "OEBPS/b.xhtml": xhtml("<p>Last</p>"),
            }
        )

        info = convert(data)

        assert len(info.chapters) == 3
        assert node_text(info.chapters[0].content) == "First"
        assert info.chapters[1].content == TextNode(content="")
        assert node_text(info.chapters[2].content) == "Last"
        assert any("ghost" in warning for warning in info.warnings)

    def test_missing_container_raises(self):
        data = make_epub({"OEBPS/content.opf": build_opf([], [])}, opf_path=None)

        with pytest.raises(MissingRootfile):
            convert(data)

    def test_corrupt_bytes_raise(self):
        with pytest.raises(CorruptArchive):
            convert(b"PK\x03\x04 truncated")

    def test_rootfile_pointing_nowhere_raises(self):
        data = make_epub({}, opf_path="OEBPS/missing.opf")

        with pytest.raises(InvalidPackageDocument):
            convert(data)

    def test_result_is_serializable(self, simple_epub):
        info = convert(simple_epub)

        dumped = json.loads(info.model_dump_json())

        root = dumped["chapters"][0]["content"]
        assert root["type"] == "View"
        assert {child["type"] for child in root["children"]} == {"Text", "Image"}
        # Unset style properties are not emitted
        assert dumped["styles"]["lead"] == {"fontWeight": "bold"}

    def test_json_round_trip(self, simple_epub):
        info = convert(simple_epub)

        assert CompleteEpubInfo.model_validate_json(info.model_dump_json()) == info


class TestConvertAndSave:
    """Tests for convert_and_save."""

    def test_writes_book_json(self, simple_epub, tmp_path):
        source = tmp_path / "book.epub"
        source.write_bytes(simple_epub)
        output_dir = tmp_path / "out" / "nested"

        info = convert_and_save(source, output_dir)

        written = output_dir / "book.json"
        assert written.exists()
        assert json.loads(written.read_text(encoding="utf-8"))["metadata"]["title"] == "Test Book"
        assert info.metadata.title == "Test Book"

    def test_custom_output_filename(self, simple_epub, tmp_path):
        source = tmp_path / "book.epub"
        source.write_bytes(simple_epub)

        convert_and_save(source, tmp_path, ConversionConfig(output_filename="out.json"))

        assert (tmp_path / "out.json").exists()

    def test_missing_source_raises(self, tmp_path):
        with pytest.raises(SourceFileNotFound) as exc_info:
            convert_and_save(tmp_path / "nope.epub", tmp_path / "out")

        assert isinstance(exc_info.value, FileNotFoundError)

    def test_unreadable_source_raises_conversion_error(self, tmp_path):
        with pytest.raises(ConversionError) as exc_info:
            convert_and_save(tmp_path, tmp_path / "out")

        assert not isinstance(exc_info.value, SourceFileNotFound)
        assert isinstance(exc_info.value.cause, OSError)

    def test_unwritable_output_raises(self, simple_epub, tmp_path):
        source = tmp_path / "book.epub"
        source.write_bytes(simple_epub)
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")

        with pytest.raises(OutputWriteError):
            convert_and_save(source, blocker / "out")
