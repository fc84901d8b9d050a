"""Tests for pipeline configuration loading."""

import pytest

from stagerunner.config import (
    EXAMPLE_CONFIG,
    load_pipeline_from_yaml,
    parse_pipeline,
    save_pipeline_to_yaml,
    write_example_config,
)
from stagerunner.errors import ConfigError
from stagerunner.models import Stage


@pytest.fixture
def write_config(tmp_path):
    """Write YAML text to a pipeline file and return its path."""
    def _write(text: str):
        path = tmp_path / "pipeline.yaml"
        path.write_text(text, encoding="utf-8")
        return path
    return _write


class TestLoadPipeline:
    """Tests for reading pipeline files."""

    def test_load_string_and_list_commands(self, write_config):
        """Test both command forms."""
        path = write_config(
            "stages:\n"
            "  - label: Run rust clippy check\n"
            "    command: cargo clippy --all-targets -- -D warnings\n"
            "  - label: Build documentation\n"
            "    command: [cargo, doc, --no-deps]\n"
        )

        stages = load_pipeline_from_yaml(path)

        assert [s.label for s in stages] == ["Run rust clippy check", "Build documentation"]
        assert stages[0].command.argv == ["cargo", "clippy", "--all-targets", "--", "-D", "warnings"]
        assert stages[1].command.argv == ["cargo", "doc", "--no-deps"]

    def test_quoted_arguments(self, write_config):
        """Test that string commands honour shell-style quoting."""
        path = write_config(
            "stages:\n"
            "  - label: echo\n"
            "    command: echo 'hello world' \"$HOME\"\n"
        )

        stages = load_pipeline_from_yaml(path)

        assert stages[0].command.args == ("hello world", "$HOME")

    def test_env_merging(self, write_config):
        """Test that stage env overrides pipeline env and values become strings."""
        path = write_config(
            "env:\n"
            "  RUST_BACKTRACE: 1\n"
            "  CI: true\n"
            "stages:\n"
            "  - label: doc\n"
            "    command: cargo doc\n"
            "    env:\n"
            "      RUST_BACKTRACE: full\n"
            "  - label: test\n"
            "    command: cargo test\n"
        )

        doc, test = load_pipeline_from_yaml(path)

        assert doc.command.env == {"RUST_BACKTRACE": "full", "CI": "true"}
        assert test.command.env == {"RUST_BACKTRACE": "1", "CI": "true"}

    def test_empty_stage_list(self, write_config):
        """Test that an explicitly empty pipeline loads as no stages."""
        assert load_pipeline_from_yaml(write_config("stages: []\n")) == []

    def test_missing_file(self, tmp_path):
        """Test that a missing file is an error, not an empty pipeline."""
        with pytest.raises(ConfigError, match="not found"):
            load_pipeline_from_yaml(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, write_config):
        """Test that YAML syntax errors are reported."""
        with pytest.raises(ConfigError):
            load_pipeline_from_yaml(write_config("stages: [unclosed\n"))

    @pytest.mark.parametrize(
        "text, message",
        [
            ("", "expected a mapping"),
            ("env: {}\n", "missing required 'stages'"),
            ("stages: lint\n", "must be a list"),
            ("stages: []\nsteps: []\n", "unknown top-level"),
            ("stages:\n  - cargo test\n", "expected a mapping"),
            ("stages:\n  - label: test\n", "missing required"),
            ("stages:\n  - label: test\n    command: ''\n", "is empty"),
            ("stages:\n  - label: test\n    command: []\n", "is empty"),
            ("stages:\n  - label: test\n    command: 3\n", "string or a list"),
            ("stages:\n  - label: test\n    command: x\n    retries: 2\n", "unknown key"),
            ("stages:\n  - label: test\n    command: x\n    env: [A]\n", "mapping"),
            ("stages:\n  - label: ' '\n    command: x\n", "stage 1"),
            ("stages:\n  - label:\n    command: x\n", "non-empty string"),
            ("stages:\n  - label: [a]\n    command: x\n", "non-empty string"),
            ("stages:\n  - label: \"a\\nb\"\n    command: x\n", "line breaks"),
        ],
    )
    def test_malformed_config(self, write_config, text, message):
        """Test that malformed pipelines raise ConfigError."""
        with pytest.raises(ConfigError, match=message):
            load_pipeline_from_yaml(write_config(text))

    def test_error_names_stage_position(self):
        """Test that errors say which stage is wrong."""
        data = {
            "stages": [
                {"label": "ok", "command": "true"},
                {"label": "broken"},
            ]
        }
        with pytest.raises(ConfigError, match="stage 2"):
            parse_pipeline(data, source="ci.yaml")

    def test_null_label_rejected(self):
        """Test that a null label is not turned into the text 'None'."""
        with pytest.raises(ConfigError, match="'label' must be a non-empty string"):
            parse_pipeline({"stages": [{"label": None, "command": "true"}]})


class TestSavePipeline:
    """Tests for writing pipeline files."""

    def test_save_then_load(self, tmp_path):
        """Test that saved pipelines load back unchanged."""
        stages = [
            Stage.from_argv("lint", ["cargo", "clippy", "--", "-D", "warnings"]),
            Stage.from_argv("test", ["cargo", "test"], env={"RUST_BACKTRACE": "1"}),
        ]
        path = tmp_path / "nested" / "pipeline.yaml"

        save_pipeline_to_yaml(stages, path)

        assert load_pipeline_from_yaml(path) == stages


class TestExampleConfig:
    """Tests for the bundled example pipeline."""

    def test_example_config(self, tmp_path):
        """Test that the example pipeline is valid and in the expected order."""
        path = tmp_path / "pipeline.yaml"
        write_example_config(path)

        assert path.read_text(encoding="utf-8") == EXAMPLE_CONFIG

        stages = load_pipeline_from_yaml(path)
        assert [s.label for s in stages] == [
            "Run rust clippy check",
            "Build documentation",
            "Run rust failpoints test",
            "Run rust doc check",
            "Run rust test with coverage",
        ]
        assert all(s.command.program == "cargo" for s in stages)
        assert stages[-1].command.args == (
            "llvm-cov", "nextest", "--lcov", "--output-path", "lcov.info", "--", "--no-fail-fast",
        )
