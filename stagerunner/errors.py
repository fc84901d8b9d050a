"""Exception hierarchy for stagerunner."""

from typing import Optional


class StagerunnerError(Exception):
    """Base class for all stagerunner errors."""


class ConfigError(StagerunnerError):
    """The pipeline configuration is missing or invalid."""


class StageError(StagerunnerError):
    """A stage stopped the pipeline."""
    
    def __init__(self, message: str, index: int, label: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.index = index
        self.label = label
        self.exit_code = exit_code


class StageFailure(StageError):
    """The stage command ran and exited with a non-zero status."""


class StageLaunchError(StageError):
    """The stage command could not be started."""


class PipelineAborted(StageError):
    """The run was interrupted while a stage was executing."""
