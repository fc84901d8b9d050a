"""Enumerations for stagerunner."""

from enum import Enum


class StageStatus(str, Enum):
    """Status of a single stage within a pipeline run."""
    
    PENDING = "pending"
    """Stage has not started."""
    
    RUNNING = "running"
    """Stage command is currently executing."""
    
    PASSED = "passed"
    """Stage command exited with status zero."""
    
    FAILED = "failed"
    """Stage command ran and exited with a non-zero status."""
    
    LAUNCH_FAILED = "launch_failed"
    """Stage command could not be started (missing binary, permission denied)."""
    
    ABORTED = "aborted"
    """Run was interrupted while this stage was executing."""
    
    SKIPPED = "skipped"
    """Stage never ran because an earlier stage stopped the pipeline."""


class RunStatus(str, Enum):
    """Final status of a pipeline run."""
    
    SUCCESS = "success"
    """Every stage exited with status zero."""
    
    FAILED = "failed"
    """A stage failed or could not be launched; later stages were not run."""
    
    ABORTED = "aborted"
    """The run was interrupted by the host."""
