"""Pytest configuration and fixtures."""

import pytest
from pathlib import Path

import decypher.core.parser as parser_module
from decypher.config import Config
from decypher.core.environment import ValueEnvironment


@pytest.fixture(autouse=True)
def esprima_backend(monkeypatch):
    """Parse with esprima unless a test opts into the Node.js backend."""
    monkeypatch.setattr(parser_module, "_babel_ready", False)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def minified_tools(fixtures_dir: Path) -> str:
    """Return contents of the minified tool bundle sample."""
    return (fixtures_dir / "minified_tools.js").read_text(encoding="utf-8")


@pytest.fixture
def config() -> Config:
    """Return a default configuration."""
    return Config()


@pytest.fixture
def build_env(config: Config):
    """Return a factory building a ValueEnvironment from source."""

    def build(source_code: str, **overrides) -> ValueEnvironment:
        cfg = config.model_copy(update=overrides) if overrides else config
        return ValueEnvironment.from_source(source_code, cfg)

    return build


@pytest.fixture
def bash_scenario() -> str:
    """Return a tool name bound next to a short description."""
    return 'var x4="Bash"; var y="Execute bash commands in a persistent shell. Usage: run shell code.";'
