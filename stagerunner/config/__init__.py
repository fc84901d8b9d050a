"""Pipeline configuration loading."""

from .loader import (
    load_pipeline_from_yaml,
    parse_pipeline,
    save_pipeline_to_yaml,
    write_example_config,
    EXAMPLE_CONFIG,
)

__all__ = [
    "load_pipeline_from_yaml",
    "parse_pipeline",
    "save_pipeline_to_yaml",
    "write_example_config",
    "EXAMPLE_CONFIG",
]
