"""Result models - the outcome of a pipeline run and of each of its stages."""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..errors import PipelineAborted, StageFailure, StageLaunchError
from .enums import RunStatus, StageStatus


def utcnow() -> datetime:
    """Timezone-aware current time used for all result timestamps."""
    return datetime.now(timezone.utc)


class StageResult(BaseModel):
    """
    Records what happened to one declared stage during a run.
    
    Every declared stage gets a result, including the ones that never ran
    because an earlier stage stopped the pipeline (those end up SKIPPED).
    """
    
    model_config = ConfigDict(use_enum_values=True)
    
    index: int
    """1-based position of the stage in the pipeline."""
    
    label: str
    """Label of the stage."""
    
    status: StageStatus = StageStatus.PENDING
    """Current status of this stage."""
    
    exit_code: Optional[int] = None
    """
    Exit code reported for this stage:
    - the child's own exit status when it exited normally
    - 128 + N when the child was killed by signal N
    - 127 / 126 when the command could not be launched
    """
    
    signal: Optional[int] = None
    """Signal number that terminated the child, if any."""
    
    error_message: Optional[str] = None
    """Launch error or abort reason."""
    
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    
    def start(self) -> None:
        """Mark the stage as running."""
        self.status = StageStatus.RUNNING
        self.started_at = utcnow()
    
    def succeed(self) -> None:
        """Mark the stage as passed."""
        self.status = StageStatus.PASSED
        self.exit_code = 0
        self.completed_at = utcnow()
    
    def fail(self, exit_code: int, signal: Optional[int] = None) -> None:
        """Mark the stage as failed with a non-zero exit status."""
        self.status = StageStatus.FAILED
        self.exit_code = exit_code
        self.signal = signal
        self.completed_at = utcnow()
    
    def fail_launch(self, error: str, exit_code: int) -> None:
        """Mark the stage as never having started."""
        self.status = StageStatus.LAUNCH_FAILED
        self.exit_code = exit_code
        self.error_message = error
        self.completed_at = utcnow()
    
    def abort(self, reason: str = "interrupted") -> None:
        """Mark the stage as interrupted while running."""
        self.status = StageStatus.ABORTED
        self.error_message = reason
        self.completed_at = utcnow()
    
    def skip(self) -> None:
        """Mark the stage as not run."""
        self.status = StageStatus.SKIPPED
    
    @property
    def ran(self) -> bool:
        """Whether the stage's command was actually attempted."""
        return self.status not in (StageStatus.PENDING, StageStatus.SKIPPED)
    
    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate how long this stage took."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None
    
    @property
    def is_terminal(self) -> bool:
        """Check if this stage is in a terminal state."""
        return self.status in (
            StageStatus.PASSED,
            StageStatus.FAILED,
            StageStatus.LAUNCH_FAILED,
            StageStatus.ABORTED,
            StageStatus.SKIPPED,
        )


class RunResult(BaseModel):
    """
    The outcome of one pipeline run.
    
    A run is transient: nothing about it is persisted by the executor.
    Callers that want a record can serialize this model (see the CLI's
    ``--report`` option).
    """
    
    model_config = ConfigDict(use_enum_values=True)
    
    status: RunStatus
    """Final status of the run."""
    
    stages: list[StageResult] = Field(default_factory=list)
    """One result per declared stage, in declaration order."""
    
    failed_stage_index: Optional[int] = None
    """1-based index of the stage that stopped the pipeline."""
    
    failed_stage_label: Optional[str] = None
    """Label of the stage that stopped the pipeline."""
    
    exit_code: Optional[int] = None
    """Exit code of the stage that stopped the pipeline."""
    
    launch_error: Optional[str] = None
    """Launch error text when the stopping stage could not be started."""
    
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    
    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS
    
    @property
    def executed(self) -> list[str]:
        """Labels of the stages whose commands were attempted, in order."""
        return [s.label for s in self.stages if s.ran]
    
    @property
    def failed_stage(self) -> Optional[StageResult]:
        """The result of the stage that stopped the pipeline, if any."""
        if self.failed_stage_index is None:
            return None
        return self.stages[self.failed_stage_index - 1]
    
    @property
    def process_exit_code(self) -> int:
        """
        Exit code a host process should use to mirror this run.
        
        0 on success, 130 when aborted, otherwise the stopping stage's
        exit code (never 0).
        """
        if self.status == RunStatus.SUCCESS:
            return 0
        if self.status == RunStatus.ABORTED:
            return 130
        return self.exit_code or 1
    
    def raise_for_status(self) -> None:
        """
        Raise the matching StageError if the run did not succeed.
        
        Raises:
            StageLaunchError: The stopping stage could not be started
            StageFailure: The stopping stage exited non-zero
            PipelineAborted: The run was interrupted
        """
        if self.status == RunStatus.SUCCESS:
            return
        
        index = self.failed_stage_index or 0
        label = self.failed_stage_label or ""
        
        if self.status == RunStatus.ABORTED:
            raise PipelineAborted(
                f"Pipeline aborted during stage {index} ({label})",
                index, label, self.exit_code,
            )
        if self.launch_error is not None:
            raise StageLaunchError(
                f"Stage {index} ({label}) could not be launched: {self.launch_error}",
                index, label, self.exit_code,
            )
        raise StageFailure(
            f"Stage {index} ({label}) failed with exit code {self.exit_code}",
            index, label, self.exit_code,
        )
    
    def summary(self) -> str:
        """One-line human-readable outcome."""
        if self.status == RunStatus.SUCCESS:
            return f"Pipeline succeeded: {len(self.executed)} stage(s) passed"
        
        if self.failed_stage_index is None:
            # Only an abort between stages leaves no stopping stage
            return "Pipeline aborted between stages"

        where = f"stage {self.failed_stage_index} ({self.failed_stage_label})"
        if self.status == RunStatus.ABORTED:
            return f"Pipeline aborted at {where}"
        if self.launch_error is not None:
            return f"Pipeline failed at {where}: could not launch: {self.launch_error}"
        
        stage = self.failed_stage
        if stage is not None and stage.signal is not None:
            return f"Pipeline failed at {where}: killed by signal {stage.signal}"
        return f"Pipeline failed at {where}: exit code {self.exit_code}"
