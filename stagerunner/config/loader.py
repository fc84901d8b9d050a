"""Load pipeline definitions from YAML files."""

import logging
import shlex
from pathlib import Path
from typing import Any, List, Sequence
import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from ..models import CommandSpec, Stage

logger = logging.getLogger(__name__)

_PIPELINE_KEYS = {"env", "stages"}
_STAGE_KEYS = {"label", "command", "env"}


def load_pipeline_from_yaml(config_path: Path) -> List[Stage]:
    """
    Load an ordered list of stages from a YAML file.

    Expected format:

    ```yaml
    env:                        # optional, applied to every stage
      RUST_BACKTRACE: "1"
    stages:
      - label: Run rust clippy check
        command: cargo clippy --all-targets --all-features --locked -- -D warnings

      - label: Build documentation
        command: [cargo, doc, --document-private-items, --no-deps]
        env:
          RUSTDOCFLAGS: "-D warnings"
    ```

    A string ``command`` is split with shell-like quoting rules; no shell is
    involved, so variables and globs are passed through literally.

    Args:
        config_path: Path to the YAML pipeline file

    Returns:
        Stages in declaration order

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Pipeline config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading pipeline config {config_path}: {e}") from e

    stages = parse_pipeline(data, source=str(config_path))
    logger.info(f"Loaded {len(stages)} stage(s) from {config_path}")
    return stages


def parse_pipeline(data: Any, source: str = "<config>") -> List[Stage]:
    """
    Build stages from already-parsed configuration data.

    Args:
        data: Mapping with a ``stages`` list and optional ``env`` mapping
        source: Name used in error messages
    """
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: expected a mapping with a 'stages' list")

    unknown = set(data) - _PIPELINE_KEYS
    if unknown:
        raise ConfigError(f"{source}: unknown top-level key(s): {', '.join(sorted(unknown))}")

    if "stages" not in data:
        raise ConfigError(f"{source}: missing required 'stages' list")

    stages_data = data["stages"]
    if stages_data is None:
        stages_data = []
    if not isinstance(stages_data, list):
        raise ConfigError(f"{source}: 'stages' must be a list")

    shared_env = _parse_env(data.get("env"), f"{source}: env")

    return [
        _parse_stage(stage_data, shared_env, f"{source}: stage {position}")
        for position, stage_data in enumerate(stages_data, start=1)
    ]


def _parse_stage(data: Any, shared_env: dict[str, str], where: str) -> Stage:
    """Parse a single stage entry."""
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: expected a mapping with 'label' and 'command'")

    unknown = set(data) - _STAGE_KEYS
    if unknown:
        raise ConfigError(f"{where}: unknown key(s): {', '.join(sorted(unknown))}")

    if "label" not in data or "command" not in data:
        raise ConfigError(f"{where}: missing required 'label' or 'command' field")

    # An empty `label:` in YAML is null, not an empty string
    if data["label"] is None or isinstance(data["label"], (dict, list, bool)):
        raise ConfigError(f"{where}: 'label' must be a non-empty string")
    label = str(data["label"])
    argv = _parse_command(data["command"], f"{where} ({label})")

    # Stage overrides win over pipeline-wide values
    env = {**shared_env, **_parse_env(data.get("env"), f"{where} ({label}): env")}

    try:
        return Stage(
            label=label,
            command=CommandSpec(program=argv[0], args=tuple(argv[1:]), env=env),
        )
    except ValidationError as e:
        raise ConfigError(f"{where}: {e}") from e


def _parse_command(command: Any, where: str) -> List[str]:
    if isinstance(command, str):
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise ConfigError(f"{where}: cannot parse command: {e}") from e
    elif isinstance(command, list):
        argv = [str(arg) for arg in command]
    else:
        raise ConfigError(f"{where}: 'command' must be a string or a list")

    if not argv:
        raise ConfigError(f"{where}: 'command' is empty")
    return argv


def _parse_env(env: Any, where: str) -> dict[str, str]:
    if env is None:
        return {}
    if not isinstance(env, dict):
        raise ConfigError(f"{where}: must be a mapping of NAME: value")
    # YAML turns `1` and `true` into int/bool; the environment only holds strings
    return {str(k): _env_value(v) for k, v in env.items()}


def _env_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def save_pipeline_to_yaml(stages: Sequence[Stage], config_path: Path) -> None:
    """
    Save stages to a YAML file in the format read by load_pipeline_from_yaml.

    Args:
        stages: Stages in execution order
        config_path: Path to write the YAML file
    """
    data = {
        "stages": [
            _stage_to_dict(stage)
            for stage in stages
        ]
    }

    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    logger.info(f"Saved {len(stages)} stage(s) to {config_path}")


def _stage_to_dict(stage: Stage) -> dict:
    entry: dict[str, Any] = {
        "label": stage.label,
        "command": stage.command.argv,
    }
    if stage.command.env:
        entry["env"] = dict(stage.command.env)
    return entry


# Example pipeline: the Rust compute-node CI checks
EXAMPLE_CONFIG = """# stagerunner pipeline
#
# Stages run top to bottom. The first stage that exits non-zero (or cannot
# be started) stops the pipeline and its exit code becomes ours.

stages:
  - label: Run rust clippy check
    command: cargo clippy --all-targets --all-features --locked -- -D warnings

  - label: Build documentation
    command: cargo doc --document-private-items --no-deps

  - label: Run rust failpoints test
    command: cargo nextest run failpoints --features failpoints --no-fail-fast

  - label: Run rust doc check
    command: cargo test --doc

  # Leaves lcov.info in the working directory
  - label: Run rust test with coverage
    command: cargo llvm-cov nextest --lcov --output-path lcov.info -- --no-fail-fast
"""


def write_example_config(config_path: Path) -> None:
    """Write the example pipeline configuration file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(EXAMPLE_CONFIG)
    logger.info(f"Wrote example pipeline configuration to {config_path}")
