"""Core data models for stagerunner."""

from .enums import StageStatus, RunStatus
from .stage import CommandSpec, Stage
from .result import StageResult, RunResult

__all__ = [
    "StageStatus",
    "RunStatus",
    "CommandSpec",
    "Stage",
    "StageResult",
    "RunResult",
]
