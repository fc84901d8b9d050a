"""Pipeline execution engine."""

from .executor import PipelineExecutor, run_pipeline, MARKER

__all__ = [
    "PipelineExecutor",
    "run_pipeline",
    "MARKER",
]
