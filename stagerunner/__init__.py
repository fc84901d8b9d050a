"""stagerunner - run CI stages in order and stop at the first failure."""

from .models import CommandSpec, Stage, StageResult, StageStatus, RunResult, RunStatus
from .engine import PipelineExecutor, run_pipeline
from .errors import (
    StagerunnerError,
    ConfigError,
    StageError,
    StageFailure,
    StageLaunchError,
    PipelineAborted,
)

__version__ = "0.1.0"

__all__ = [
    "CommandSpec",
    "Stage",
    "StageResult",
    "StageStatus",
    "RunResult",
    "RunStatus",
    "PipelineExecutor",
    "run_pipeline",
    "StagerunnerError",
    "ConfigError",
    "StageError",
    "StageFailure",
    "StageLaunchError",
    "PipelineAborted",
]
