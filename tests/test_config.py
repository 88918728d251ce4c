"""Tests for configuration and debug logging."""

import decypher.debug as debug_module
from decypher.config import KNOWN_TOOLS, Config
from decypher.debug import close_debug_logger, debug_log, setup_debug_logger


class TestConfig:
    """Tests for Config."""

    def test_defaults(self):
        """Defaults match the documented thresholds."""
        config = Config()

        assert config.use_babel_parser is True
        assert config.max_resolution_rounds == 10
        assert config.merge_window == 5
        assert config.literal_min_prompt_length == 80
        assert config.symbol_min_prompt_length == 60
        assert config.known_tools == KNOWN_TOOLS
        assert config.known_tools is not KNOWN_TOOLS

    def test_environment_override(self, monkeypatch):
        """DECYPHER_ environment variables override defaults."""
        monkeypatch.setenv("DECYPHER_MERGE_WINDOW", "3")
        monkeypatch.setenv("DECYPHER_SCHEMA_NAMESPACES", '["k", "v"]')

        config = Config()

        assert config.merge_window == 3
        assert config.schema_namespaces == ["k", "v"]

    def test_prefixes_are_upper_cased(self):
        """Excluded prefixes are normalized to upper case."""
        config = Config(excluded_name_prefixes=["sig", "Http"])
        assert config.excluded_name_prefixes == ["SIG", "HTTP"]

    def test_span_bounds_are_ordered(self):
        """A maximum span below the minimum is raised to it."""
        config = Config(description_min_span=100, description_max_span=50)
        assert config.description_max_span == 100


class TestDebugLog:
    """Tests for the debug logger."""

    def test_noop_without_logger(self):
        """Logging before setup does nothing."""
        assert debug_module.debug_logger is None
        debug_log("info", "ignored")

    def test_writes_structured_data(self, tmp_path):
        """Messages and their data are written to the log file."""
        log_file = tmp_path / "debug.log"
        setup_debug_logger(log_file)
        try:
            debug_log("debug", "Environment built", {"bindings": 3})
            debug_log("warning", "Something odd")
        finally:
            close_debug_logger()

        content = log_file.read_text(encoding="utf-8")
        assert "Environment built" in content
        assert '"bindings": 3' in content
        assert "WARNING" in content
        assert debug_module.debug_logger is None
