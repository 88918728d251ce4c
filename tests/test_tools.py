"""Tests for tool record building."""

import pytest

from decypher.core.analyzer import Analyzer
from decypher.core.classifier import DocumentCategory
from decypher.core.environment import ValueEnvironment
from decypher.core.extractor import extract_source
from decypher.core.fragments import DocumentContext, ExtractedDocument
from decypher.core.parser import parse_javascript
from decypher.core.schemas import SchemaTree
from decypher.core.tools import (
    ToolProperties,
    ToolRecord,
    ToolRecordBuilder,
    compute_confidence,
    fuse_records,
    unescape_js,
)

WRITE_PROSE = (
    "Writes a file to the local filesystem. This tool will overwrite the existing "
    "file if there is one at the provided path."
)


def _builder(source: str, config, documents=()) -> ToolRecordBuilder:
    program = parse_javascript(source).program
    environment = ValueEnvironment(program, config)
    return ToolRecordBuilder(environment, Analyzer(program), documents, config)


def _tool_doc(tool: str, content: str) -> ExtractedDocument:
    return ExtractedDocument(
        id=f"doc_{tool}",
        content=content,
        category=DocumentCategory.TOOL,
        context=DocumentContext.tool_documentation(tool),
        associated_tool=tool,
    )


class TestConfidence:
    """Tests for compute_confidence."""

    def test_weights(self):
        """Each evidence channel adds its weight."""
        assert compute_confidence("Bash", "", "", None) == 0.2
        assert compute_confidence("Bash", "d" * 20, "", None) == 0.4
        assert compute_confidence("Bash", "d" * 20, "p" * 100, None) == 0.8
        assert compute_confidence("Bash", "d" * 20, "p" * 100, SchemaTree(type="object")) == 1.0

    def test_thresholds(self):
        """Short evidence does not count."""
        assert compute_confidence("Bash", "d" * 19, "p" * 99, None) == 0.2


class TestToolRecord:
    """Tests for ToolRecord."""

    def test_name_is_required(self):
        """Records cannot be created without a name."""
        with pytest.raises(ValueError):
            ToolRecord(name="")

    def test_placeholder(self):
        """Generated and generic descriptions are placeholders."""
        assert ToolRecord(name="Glob", short_description="Tool: Glob").is_placeholder
        assert ToolRecord(name="Glob").is_placeholder
        assert not ToolRecord(name="Glob", full_prompt="Fast file pattern matching").is_placeholder

    def test_to_dict(self):
        """Serialization includes properties and a rounded confidence."""
        record = ToolRecord(
            name="Read",
            short_description="Reads files",
            input_schema=SchemaTree(type="object", properties={}),
            properties=ToolProperties(is_read_only=True, user_facing_name="Read"),
            confidence=0.6000000001,
        )
        data = record.to_dict()

        assert data["confidence"] == 0.6
        assert data["input_schema"] == {"type": "object", "properties": {}}
        assert "output_schema" not in data
        assert data["properties"]["is_read_only"] is True
        assert data["properties"]["user_facing_name"] == "Read"


class TestUnescape:
    """Tests for unescape_js."""

    def test_escapes(self):
        """Common JavaScript escapes are decoded."""
        assert unescape_js(r"a\nb\tc") == "a\nb\tc"
        assert unescape_js(r"say \"hi\"") == 'say "hi"'
        assert unescape_js(r"A\x42\u{43}") == "ABC"
        assert unescape_js(r"back\\slash") == "back\\slash"

    def test_surrogate_pairs_are_joined(self):
        """UTF-16 escape pairs decode to one character; lone halves are replaced."""
        assert unescape_js(r"smile \uD83D\uDE00") == "smile \U0001F600"
        assert unescape_js(r"half \uD83D only") == "half \ufffd only"

    def test_code_point_out_of_range_is_kept(self):
        """Braced escapes beyond U+10FFFF stay as written."""
        assert unescape_js(r"a\u{110000}b") == r"a\u{110000}b"
        assert unescape_js(r"\u{10FFFF}") == "\U0010FFFF"


class TestTextDiscovery:
    """Tests for the regenerated text channel."""

    def test_is_likely_tool_name(self, config):
        """Known names pass; constants and odd shapes do not."""
        builder = _builder("", config)

        assert builder.is_likely_tool_name("Bash")
        assert builder.is_likely_tool_name("LSP")
        assert builder.is_likely_tool_name("Configuration")
        assert not builder.is_likely_tool_name("SIGINT")
        assert not builder.is_likely_tool_name("HTTPError")
        assert not builder.is_likely_tool_name("Ab")
        assert not builder.is_likely_tool_name("lowercase")
        assert not builder.is_likely_tool_name("A" * 21)

    def test_co_declared_and_following_template(self, config):
        """Descriptions come from the same statement or the next template."""
        code = (
            'var a = "Bash", b = "Executes a given bash command in a persistent shell.";\n'
            'var c = "Read";\n'
            'var d = `Reads a file from the local filesystem.`;\n'
        )
        records = _builder(code, config).discover_from_text(code)

        assert [r.name for r in records] == ["Bash", "Read"]
        assert records[0].full_prompt == "Executes a given bash command in a persistent shell."
        assert records[1].full_prompt == "Reads a file from the local filesystem."
        assert records[0].confidence == pytest.approx(0.4)

    def test_multiple_names_in_one_statement(self, config):
        """Comma-separated declarators each yield a name."""
        code = 'var a = "Read", b = "Write";\n'
        records = _builder(code, config).discover_from_text(code)

        assert [r.name for r in records] == ["Read", "Write"]

    def test_following_template_is_resolved(self, config):
        """Interpolations in the description are substituted."""
        code = 'var n = 2000;\nvar c = "Read";\nvar d = `Reads up to ${n} lines.`;\n'
        records = _builder(code, config).discover_from_text(code)

        assert records[0].full_prompt == "Reads up to 2000 lines."

    def test_proximity_description(self, config):
        """A nearby quoted prose span of plausible length is used."""
        code = f'var q = "Write";\nfoo();\nregister("{WRITE_PROSE}");\n'
        records = _builder(code, config).discover_from_text(code)

        assert records[0].name == "Write"
        assert records[0].full_prompt == WRITE_PROSE
        assert records[0].confidence == pytest.approx(0.8)

    def test_placeholder_when_nothing_found(self, config):
        """Names without evidence keep a placeholder description."""
        code = 'var z = "Glob";\n'
        records = _builder(code, config).discover_from_text(code)

        assert records[0].short_description == "Tool: Glob"
        assert records[0].full_prompt == ""
        assert records[0].confidence == pytest.approx(0.2)

    def test_excluded_constants(self, config):
        """Signal and error constants are not tools."""
        code = 'var s = "SIGINT";\nvar e = "ERROR";\n'
        assert _builder(code, config).discover_from_text(code) == []

    def test_input_schema_link(self, config):
        """The schema named next to the tool name is attached."""
        code = (
            'var a = "Bash";\n'
            'var s = k.object({command: k.string()});\n'
            'var t = {name: a, inputSchema: s};\n'
        )
        records = _builder(code, config).discover_from_text(code)

        assert records[0].input_schema.properties["command"].type == "string"
        assert records[0].confidence == pytest.approx(0.4)


class TestObjectDiscovery:
    """Tests for the tool object channel."""

    def test_fixture_objects(self, config, minified_tools):
        """Names, prompts, schemas and flags are read from tool objects."""
        records = {r.name: r for r in _builder(minified_tools, config).discover_from_objects()}

        assert set(records) == {"Read", "Bash"}

        read = records["Read"]
        assert read.short_description == "Read a file from the local filesystem."
        assert "reads up to 2000 lines" in read.full_prompt
        assert set(read.input_schema.properties) == {"file_path", "offset"}
        assert read.properties.is_read_only is True
        assert read.properties.is_enabled is True
        assert read.properties.user_facing_name == "Read"

        bash = records["Bash"]
        assert bash.full_prompt.startswith("Executes a given bash command")
        assert bash.input_schema.properties["command"].description == "The command to execute"
        assert bash.properties.is_concurrency_safe is False
        assert bash.confidence == pytest.approx(1.0)

    def test_objects_without_tool_shape(self, config):
        """Objects need a name and a prompt, description or schema."""
        code = (
            'var a = {name: "Plain", value: 1};\n'
            'var b = {description(){ return "x"; }};\n'
            'var c = {name: unknownName, inputSchema: s};\n'
        )
        assert _builder(code, config).discover_from_objects() == []


class TestEnrichment:
    """Tests for document enrichment."""

    def test_placeholder_is_replaced(self, config):
        """Placeholder records take the associated document."""
        prose = "Fast file pattern matching tool that works with any codebase size."
        builder = _builder("", config, [_tool_doc("Glob", prose)])
        record = ToolRecord(name="Glob", short_description="Tool: Glob", confidence=0.9)

        builder.enrich([record])

        assert record.full_prompt == prose
        assert record.confidence == 1.0

    def test_enriched_once(self, config):
        """A record is upgraded at most once."""
        first = "Fast file pattern matching across the workspace."
        builder = _builder("", config, [_tool_doc("Glob", first)])
        record = ToolRecord(name="Glob", short_description="Tool: Glob", confidence=0.2)

        builder.enrich([record])
        builder.documents = [_tool_doc("Glob", first + " " + "More detail. " * 20)]
        builder.enrich([record])

        assert record.full_prompt == first

    def test_confident_record_needs_longer_document(self, config):
        """A confident record is only replaced by a much longer document."""
        current = "Reads a file from the local filesystem. " * 8
        record = ToolRecord(name="Read", short_description=current[:200], full_prompt=current, confidence=0.9)

        short_doc = _tool_doc("Read", "Reads a file from the local filesystem. " * 10)
        builder = _builder("", config, [short_doc])
        assert not builder.should_replace(record, short_doc)

        builder.enrich([record])
        assert record.full_prompt == current
        assert record.confidence == 0.9

        long_doc = _tool_doc("Read", "Reads a file from the local filesystem. " * 16)
        assert builder.should_replace(record, long_doc)

    def test_low_confidence_alone_triggers_replacement(self, config):
        """A real description below the confidence threshold takes a similar-length document."""
        current = "Reads a file from the local filesystem. " * 3
        record = ToolRecord(name="Read", short_description=current, full_prompt=current, confidence=0.6)
        document = _tool_doc("Read", "Reads a file from the local filesystem. " * 4)
        builder = _builder("", config, [document])

        assert not record.is_placeholder
        assert document.length < len(current) * config.enrichment_length_ratio
        assert builder.should_replace(record, document)

        builder.enrich([record])

        assert record.full_prompt == document.content
        assert record.confidence == 1.0

    def test_search_tool_placeholder_is_replaced(self, config):
        """The generic search tool text counts as a placeholder even when confident."""
        current = "A powerful search tool built on ripgrep for fast content search."
        record = ToolRecord(name="Grep", short_description=current, full_prompt=current, confidence=0.9)
        document = _tool_doc("Grep", "Searches file contents with regular expressions across the codebase.")
        builder = _builder("", config, [document])

        assert record.is_placeholder
        assert builder.should_replace(record, document)

        builder.enrich([record])

        assert record.full_prompt == document.content
        assert record.confidence == 1.0

    def test_rule_strategy(self, config):
        """Documents matched by the tool's rule are used when none is associated."""
        prose = "Reads a file from the local filesystem. You can access any file directly."
        document = ExtractedDocument(id="d", content=prose, category=DocumentCategory.INSTRUCTION)
        builder = _builder("", config, [document])

        assert builder.find_best_document("Read") is document
        assert builder.find_best_document("Bash") is None


class TestFuse:
    """Tests for fuse_records."""

    def test_fuse_keeps_best_evidence(self):
        """The longer prompt, the first schema and the object flags survive."""
        schema = SchemaTree(type="object", properties={})
        text_record = ToolRecord(name="Read", short_description="Tool: Read", input_schema=schema, confidence=0.4)
        object_record = ToolRecord(
            name="Read",
            short_description="Read a file",
            full_prompt="p" * 120,
            properties=ToolProperties(is_read_only=True),
            confidence=0.6,
        )

        fused = fuse_records(text_record, object_record)

        assert fused.full_prompt == "p" * 120
        assert fused.short_description == "Read a file"
        assert fused.input_schema is schema
        assert fused.properties.is_read_only is True
        assert fused.confidence >= 0.6


class TestBuild:
    """Tests for the complete builder."""

    def test_bash_scenario(self, bash_scenario):
        """A bare name next to a short Bash description yields a confident record."""
        result = extract_source(bash_scenario)

        assert [tool.name for tool in result.tools] == ["Bash"]
        bash = result.tools[0]
        assert bash.confidence >= 0.6
        assert bash.full_prompt.startswith("Execute bash commands")

    def test_bash_scenario_with_optional_chaining(self, bash_scenario):
        """A later statement using optional chaining does not hide the description."""
        result = extract_source(bash_scenario + " var z=a?.b;")

        assert [tool.name for tool in result.tools] == ["Bash"]
        assert result.tools[0].confidence >= 0.6
        assert result.tools[0].full_prompt.startswith("Execute bash commands")

    def test_fixture_tools(self, minified_tools):
        """Text and object evidence are fused and enriched."""
        result = extract_source(minified_tools)
        tools = {tool.name: tool for tool in result.tools}

        assert set(tools) == {"Read", "Bash"}
        assert tools["Bash"].confidence == 1.0
        assert tools["Read"].confidence == 1.0
        assert tools["Read"].properties.user_facing_name == "Read"
        assert tools["Bash"].input_schema is not None
