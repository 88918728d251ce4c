"""Tests for fragment assembly."""

import pytest

from decypher.core.analyzer import Analyzer
from decypher.core.classifier import DocumentCategory
from decypher.core.environment import ValueEnvironment
from decypher.core.fragments import (
    DocumentContext,
    ExtractedDocument,
    FragmentAssembler,
    is_continuation,
    is_incomplete_fragment,
)
from decypher.core.parser import parse_javascript

LONG_INSTRUCTION = "IMPORTANT: always read a file before editing it, and keep your edits minimal and focused."


def _assembler(source: str, config) -> FragmentAssembler:
    program = parse_javascript(source).program
    return FragmentAssembler(ValueEnvironment(program, config), Analyzer(program), config)


def _doc(doc_id: str, content: str, category=DocumentCategory.OTHER) -> ExtractedDocument:
    return ExtractedDocument(id=doc_id, content=content, category=category)


@pytest.fixture
def assembler(config) -> FragmentAssembler:
    return _assembler("", config)


class TestFragmentHeuristics:
    """Tests for incompleteness and continuation checks."""

    def test_incomplete_endings(self):
        """Ellipses, dangling markup and mid-word endings are incomplete."""
        assert is_incomplete_fragment("See the docs...")
        assert is_incomplete_fragment("Read the file -")
        assert is_incomplete_fragment("Ends with a word")

    def test_complete_endings(self):
        """Punctuation, closing brackets, fences and tags end a fragment."""
        assert not is_incomplete_fragment("Done.")
        assert not is_incomplete_fragment("(see above)")
        assert not is_incomplete_fragment("```\ncode\n```")
        assert not is_incomplete_fragment("<example>x</example>")
        assert not is_incomplete_fragment("   ")

    def test_continuation_by_indentation(self):
        """Similar indentation across the boundary is a continuation."""
        assert is_continuation("Steps:\n  - one", "  - two")
        assert is_continuation("Steps:\n  - one", "    - two")
        assert not is_continuation("Steps:\n  - one", "      - two")

    def test_continuation_by_anchor(self):
        """A shared Example/Usage anchor near the boundary is a continuation."""
        assert is_continuation("For details see Usage", "Usage: call it with a path")
        assert not is_continuation("plain text", "more text")


class TestMerge:
    """Tests for merge_fragments."""

    def test_merges_continuation_within_window(self, assembler):
        """The continuation is appended and its id recorded."""
        docs = [
            _doc("a", "Steps:\n      - first step"),
            _doc("b", "Unrelated."),
            _doc("c", "      - second step."),
        ]

        merged = assembler.merge_fragments(docs)

        assert [d.id for d in merged] == ["a", "b"]
        assert merged[0].content == "Steps:\n      - first step      - second step."
        assert merged[0].merged_fragment_ids == ["a", "c"]
        assert merged[1].merged_fragment_ids == []

    def test_window_limits_scan(self, config):
        """Continuations beyond the window stay separate."""
        narrow = _assembler("", config.model_copy(update={"merge_window": 1}))
        docs = [
            _doc("a", "Steps:\n      - first step"),
            _doc("b", "Unrelated."),
            _doc("c", "      - second step."),
        ]

        merged = narrow.merge_fragments(docs)
        assert [d.id for d in merged] == ["a", "b", "c"]

    def test_complete_documents_are_untouched(self, assembler):
        """Only incomplete documents look for continuations."""
        docs = [_doc("a", "Steps:\n  - done."), _doc("b", "  - next.")]
        assert len(assembler.merge_fragments(docs)) == 2


class TestDeduplicate:
    """Tests for deduplicate."""

    def test_longer_content_wins_in_place(self, assembler):
        """On a prefix collision the longer document takes the first slot."""
        prefix = "x" * 100
        docs = [_doc("short", prefix), _doc("other", "different"), _doc("long", prefix + " and more")]

        result = assembler.deduplicate(docs)

        assert [d.id for d in result] == ["long", "other"]

    def test_first_seen_kept_on_equal_length(self, assembler):
        """Equal-length duplicates keep the first document."""
        docs = [_doc("first", "same text"), _doc("second", "same text")]
        assert [d.id for d in assembler.deduplicate(docs)] == ["first"]


class TestAssociation:
    """Tests for tool association and section tagging."""

    def test_only_tool_documents_are_associated(self, assembler):
        """Non-tool documents keep a standalone context."""
        text = "Reads a file from the local filesystem. Use this tool to read code."
        docs = [_doc("t", text, DocumentCategory.TOOL), _doc("i", text, DocumentCategory.INSTRUCTION)]

        assembler.associate_tools(docs)

        assert docs[0].associated_tool == "Read"
        assert docs[0].context == DocumentContext.tool_documentation("Read")
        assert docs[1].associated_tool is None
        assert docs[1].context == DocumentContext.standalone()

    def test_sections_follow_system_documents(self, assembler):
        """Headed documents after a System document become its sections."""
        docs = [
            _doc("h0", "## Orphan\nNo parent yet."),
            _doc("sys", "You are Claude.", DocumentCategory.SYSTEM),
            _doc("h1", "## Tone and style\nBe concise."),
            _doc("p", "Plain paragraph."),
        ]

        assembler.tag_sections(docs)

        assert docs[0].context.kind == "standalone"
        assert docs[2].context == DocumentContext.section("sys", "Tone and style")
        assert docs[3].context.kind == "standalone"


class TestAssemble:
    """Tests for the full assembly pipeline."""

    def test_environment_channel_has_lower_threshold(self, config, bash_scenario):
        """A 67 character value is found through the environment only."""
        documents = _assembler(bash_scenario, config).assemble()

        assert len(documents) == 1
        document = documents[0]
        assert document.id == "sym_y"
        assert document.category is DocumentCategory.TOOL
        assert document.associated_tool == "Bash"

    def test_both_channels_deduplicate(self, config):
        """A literal also bound to a name is reported once, from the literal channel."""
        documents = _assembler(f'var a = "{LONG_INSTRUCTION}";', config).assemble()

        assert [d.id for d in documents] == ["lit_0"]
        assert documents[0].category is DocumentCategory.INSTRUCTION

    def test_environment_channel_resolves_templates(self, config):
        """Interpolated names are substituted in environment candidates."""
        source = 'var n = 2000; var t = `Usage: reads up to ${n} lines from the start of the file when no limit is set`;'
        documents = _assembler(source, config).assemble()

        contents = [d.content for d in documents]
        assert "Usage: reads up to 2000 lines from the start of the file when no limit is set" in contents

    def test_to_dict(self):
        """Serialization omits empty optional fields."""
        document = _doc("lit_0", "text", DocumentCategory.TOOL)
        assert document.to_dict() == {
            "id": "lit_0",
            "content": "text",
            "length": 4,
            "category": "Tool",
            "context": {"type": "standalone"},
        }

        document.associated_tool = "Bash"
        document.context = DocumentContext.tool_documentation("Bash")
        data = document.to_dict()
        assert data["associated_tool"] == "Bash"
        assert data["context"] == {"type": "tool_documentation", "tool": "Bash"}
