"""
Unit tests for document segmentation.

Covers slide splitting (rules, headings, fallback) and the per-slide
partition into typed segments.
"""

from mdx_presenter import (
    DEFAULT_SLIDE_TITLE,
    KIND_CODE,
    KIND_HEADING,
    KIND_IMAGE,
    KIND_LIST_ITEM,
    KIND_TABLE,
    KIND_TEXT,
    segment_content,
    segment_document,
)


def kinds(segments):
    return [s.kind for s in segments]


class TestSlideSplitting:
    """Tests for splitting a document into slides."""

    def test_segment_when_sample_then_four_slides(self, slides):
        """Rule and level-1/2 headings each start a slide."""
        assert [s.id for s in slides] == ["slide-1", "slide-2", "slide-3", "slide-4"]
        assert [s.title for s in slides] == ["", "Introduction", "Details", ""]

    def test_segment_when_heading_then_heading_line_kept_in_content(self, slides):
        assert slides[1].raw_content.startswith("# Introduction")
        assert slides[1].segments[0].kind == KIND_HEADING

    def test_segment_when_heading_inside_fence_then_no_split(self, slides):
        details = slides[2]
        assert kinds(details.segments) == [KIND_HEADING, KIND_TABLE, KIND_CODE]
        assert "# not a slide heading" in details.segments[2].content

    def test_segment_when_no_boundaries_then_single_fallback_slide(self):
        doc = "First line of notes.\nSecond line.\n\nThird paragraph."
        result = segment_document(doc)
        assert len(result) == 1
        assert result[0].title == DEFAULT_SLIDE_TITLE
        assert result[0].raw_content == doc

    def test_segment_when_empty_then_no_slides(self):
        assert segment_document("") == []
        assert segment_document("   \n\n\t\n") == []

    def test_segment_when_rule_not_blank_delimited_then_not_a_boundary(self):
        doc = "Some text\n---\n\nMore text"
        result = segment_document(doc)
        assert len(result) == 1
        assert result[0].title == DEFAULT_SLIDE_TITLE

    def test_segment_when_rules_then_sections_become_slides(self):
        doc = "Alpha\n\n---\n\nBeta\n\n***\n\nGamma"
        result = segment_document(doc)
        assert [s.raw_content for s in result] == ["Alpha", "Beta", "Gamma"]
        assert all(s.title == "" for s in result)

    def test_segment_when_whitespace_only_section_then_dropped(self):
        doc = "# One\n\n---\n\n   \n\n---\n\n# Two"
        result = segment_document(doc)
        assert [s.title for s in result] == ["One", "Two"]

    def test_segment_when_level3_heading_then_no_split(self):
        doc = "# Top\n\n### Sub\n\ntext"
        result = segment_document(doc)
        assert len(result) == 1
        assert kinds(result[0].segments) == [KIND_HEADING, KIND_HEADING, KIND_TEXT]

    def test_segment_when_closing_hashes_then_stripped_from_title(self):
        result = segment_document("## Closing ##\n\nbody")
        assert result[0].title == "Closing"

    def test_segment_when_called_twice_then_identical(self, sample_document):
        assert segment_document(sample_document) == segment_document(sample_document)

    def test_segment_when_crlf_then_same_as_lf(self, sample_document):
        assert segment_document(sample_document.replace("\n", "\r\n")) == segment_document(sample_document)


class TestSegmentPartition:
    """Tests for partitioning slide content into segments."""

    def test_partition_when_table_with_delimiter_then_one_table(self):
        segments = segment_content("a|b\n-|-\n1|2")
        assert kinds(segments) == [KIND_TABLE]
        assert segments[0].content == "a|b\n-|-\n1|2"

    def test_partition_when_pipe_without_delimiter_then_text(self):
        segments = segment_content("a|b\ntext")
        assert kinds(segments) == [KIND_TEXT, KIND_TEXT]
        assert segments[0].content == "a|b"

    def test_partition_when_table_followed_by_blank_then_stops(self):
        segments = segment_content("| h |\n| --- |\n| 1 |\n\n| x |")
        assert kinds(segments) == [KIND_TABLE, KIND_TEXT]
        assert segments[0].content.count("\n") == 2

    def test_partition_when_list_items_then_never_merged(self):
        segments = segment_content("- item1\n- item2")
        assert kinds(segments) == [KIND_LIST_ITEM, KIND_LIST_ITEM]
        assert [s.content for s in segments] == ["- item1", "- item2"]

    def test_partition_when_indented_continuation_then_absorbed(self):
        segments = segment_content("1. step\n  detail\n   - nested\n2. next")
        assert kinds(segments) == [KIND_LIST_ITEM, KIND_LIST_ITEM]
        assert segments[0].content == "1. step\n  detail\n   - nested"

    def test_partition_when_single_space_indent_then_new_segment(self):
        segments = segment_content("* item\n not continued")
        assert kinds(segments) == [KIND_LIST_ITEM, KIND_TEXT]

    def test_partition_when_blank_line_then_continuation_ends(self):
        segments = segment_content("+ item\n\n  indented after blank")
        assert kinds(segments) == [KIND_LIST_ITEM, KIND_TEXT]

    def test_partition_when_unterminated_fence_then_consumes_to_end(self):
        segments = segment_content("intro\n```\ncode\n# still code\n- still code")
        assert kinds(segments) == [KIND_TEXT, KIND_CODE]
        assert segments[1].content == "```\ncode\n# still code\n- still code"

    def test_partition_when_fence_closed_then_includes_closing_line(self):
        segments = segment_content("~~~\nx\n~~~\nafter")
        assert kinds(segments) == [KIND_CODE, KIND_TEXT]
        assert segments[0].content == "~~~\nx\n~~~"

    def test_partition_when_fence_blank_lines_then_kept_inside(self):
        segments = segment_content("```\na\n\nb\n```")
        assert len(segments) == 1
        assert segments[0].content == "```\na\n\nb\n```"

    def test_partition_when_shorter_fence_then_does_not_close(self):
        segments = segment_content("````\n```\nstill\n````")
        assert len(segments) == 1

    def test_partition_when_image_line_then_image(self):
        segments = segment_content("![alt](pic.png)\nSee ![inline](x.png) here")
        assert kinds(segments) == [KIND_IMAGE, KIND_TEXT]

    def test_partition_when_headings_then_single_line_each(self):
        segments = segment_content("###### six\n####### seven")
        assert kinds(segments) == [KIND_HEADING, KIND_TEXT]

    def test_partition_when_text_lines_then_one_segment_per_line(self):
        segments = segment_content("line one\nline two\n\nline three")
        assert [s.content for s in segments] == ["line one", "line two", "line three"]

    def test_partition_ids_and_initial_visibility(self, slides):
        segments = slides[1].segments
        assert [s.id for s in segments] == ["segment-1", "segment-2", "segment-3", "segment-4"]
        assert [s.visible for s in segments] == [True, False, False, False]

    def test_partition_when_empty_content_then_no_segments(self):
        assert segment_content("\n\n  \n") == []
