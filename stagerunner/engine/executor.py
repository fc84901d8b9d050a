"""Pipeline executor - runs stages one after another and stops at the first failure."""

import asyncio
import os
import sys
from typing import Optional, Callable, Awaitable, Sequence, TextIO
import logging

from ..models import Stage, StageResult, StageStatus, RunResult, RunStatus
from ..models.result import utcnow

logger = logging.getLogger(__name__)

MARKER = "---"
"""Token that starts every stage announcement line on stdout."""

EXIT_COMMAND_NOT_FOUND = 127
EXIT_CANNOT_EXECUTE = 126

TERMINATE_GRACE_SECONDS = 5.0
"""How long an interrupted child gets to exit after SIGTERM before SIGKILL."""


class PipelineExecutor:
    """
    Executes an ordered sequence of stages with fail-fast semantics.

    For each stage, in declaration order:
    - Announce it on stdout as ``--- <label>``
    - Launch its command with the inherited environment plus the stage's
      overrides, sharing this process's stdout/stderr
    - Wait for the command to exit
    - Stop the whole pipeline on a non-zero exit or a launch error

    The executor keeps no state between runs; one instance can run any
    number of pipelines.

    Usage:
        executor = PipelineExecutor()
        result = await executor.run([
            Stage.from_argv("Run rust clippy check", ["cargo", "clippy"]),
            Stage.from_argv("Run rust doc check", ["cargo", "test", "--doc"]),
        ])
        if not result.succeeded:
            print(result.summary())
    """

    def __init__(
        self,
        marker_stream: Optional[TextIO] = None,
        terminate_grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ):
        self._marker_stream = marker_stream
        self._terminate_grace_seconds = terminate_grace_seconds

        # Observer callbacks
        self._on_stage_start: Optional[Callable[[Stage, StageResult], Awaitable[None]]] = None
        self._on_stage_complete: Optional[Callable[[Stage, StageResult], Awaitable[None]]] = None
        self._on_run_complete: Optional[Callable[[RunResult], Awaitable[None]]] = None

    def on_stage_start(
        self,
        callback: Callable[[Stage, StageResult], Awaitable[None]],
    ) -> None:
        """Register callback for when a stage is about to launch."""
        self._on_stage_start = callback

    def on_stage_complete(
        self,
        callback: Callable[[Stage, StageResult], Awaitable[None]],
    ) -> None:
        """Register callback for when a stage reaches a terminal state."""
        self._on_stage_complete = callback

    def on_run_complete(
        self,
        callback: Callable[[RunResult], Awaitable[None]],
    ) -> None:
        """Register callback for when a run finishes, including aborted runs."""
        self._on_run_complete = callback

    async def run(self, stages: Sequence[Stage]) -> RunResult:
        """
        Run every stage in order until one fails.

        Args:
            stages: The stages to execute, in execution order

        Returns:
            RunResult describing the outcome. Stage failures are reported
            in the result, never raised.

        Raises:
            asyncio.CancelledError: The run was cancelled. The running
                stage's child is terminated and the aborted RunResult is
                passed to the run-complete callback before re-raising.
            Exception: Anything raised by a callback. The run is settled
                the same way before the exception propagates.
        """
        stages = list(stages)
        run = RunResult(
            status=RunStatus.SUCCESS,
            stages=[StageResult(index=i, label=s.label) for i, s in enumerate(stages, start=1)],
        )

        if not stages:
            logger.warning("Pipeline has no stages; nothing to run")
        else:
            logger.info(f"Running pipeline with {len(stages)} stage(s)")

        try:
            for stage, result in zip(stages, run.stages):
                await self._run_stage(stage, result, total=len(stages))
                if result.status != StageStatus.PASSED:
                    self._stop(run, result, RunStatus.FAILED)
                    break
        except BaseException as e:
            # Cancellation, Ctrl-C or a raising callback: never report success
            self._interrupt(run, e)
            raise
        finally:
            run.completed_at = utcnow()
            if run.status == RunStatus.SUCCESS:
                logger.info(run.summary())
            else:
                logger.error(run.summary())

            if self._on_run_complete:
                await self._on_run_complete(run)

        return run

    async def _run_stage(self, stage: Stage, result: StageResult, total: int) -> None:
        """Announce, launch and wait for a single stage."""
        command = stage.command
        self._announce(stage)
        logger.info(f"Stage {result.index}/{total} '{stage.label}': {command.display()}")
        if command.env:
            logger.debug(f"Stage '{stage.label}' environment overrides: {sorted(command.env)}")

        result.start()
        if self._on_stage_start:
            await self._on_stage_start(stage, result)

        # Resolved at launch so later changes to the host environment are seen
        env = {**os.environ, **command.env}

        try:
            process = await asyncio.create_subprocess_exec(
                command.program,
                *command.args,
                env=env,
            )
        except asyncio.CancelledError:
            result.abort()
            raise
        except OSError as e:
            exit_code = (
                EXIT_COMMAND_NOT_FOUND if isinstance(e, FileNotFoundError) else EXIT_CANNOT_EXECUTE
            )
            result.fail_launch(f"{command.program}: {e.strerror or e}", exit_code)
            logger.error(f"Stage '{stage.label}' could not be launched: {e}")
        else:
            try:
                returncode = await process.wait()
            except asyncio.CancelledError:
                result.abort()
                logger.warning(f"Stage '{stage.label}' interrupted; terminating pid {process.pid}")
                await self._terminate(process)
                raise
            self._record_exit(stage, result, returncode)

        if self._on_stage_complete:
            await self._on_stage_complete(stage, result)

    def _announce(self, stage: Stage) -> None:
        """Write the stage marker line before any of the stage's own output."""
        stream = self._marker_stream or sys.stdout
        stream.write(f"{MARKER} {stage.label}\n")
        stream.flush()

    def _record_exit(self, stage: Stage, result: StageResult, returncode: int) -> None:
        if returncode == 0:
            result.succeed()
            logger.info(
                f"Stage '{stage.label}' passed in {result.duration_seconds:.2f}s"
            )
        elif returncode < 0:
            # Negative return codes mean the child was killed by a signal
            result.fail(128 - returncode, signal=-returncode)
            logger.error(f"Stage '{stage.label}' killed by signal {-returncode}")
        else:
            result.fail(returncode)
            logger.error(f"Stage '{stage.label}' failed with exit code {returncode}")

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Send SIGTERM, then SIGKILL if the child outlives the grace period."""
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), self._terminate_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"pid {process.pid} ignored SIGTERM for {self._terminate_grace_seconds}s; killing"
            )
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    @staticmethod
    def _interrupt(run: RunResult, error: BaseException) -> None:
        """Settle a run that was cut short by an exception."""
        if isinstance(error, (asyncio.CancelledError, KeyboardInterrupt)):
            reason = "interrupted"
        else:
            reason = f"{type(error).__name__}: {error}"
            logger.error(f"Pipeline run stopped by {reason}")

        stopped = next(
            (
                r for r in run.stages
                if r.status in (
                    StageStatus.RUNNING,
                    StageStatus.ABORTED,
                    StageStatus.FAILED,
                    StageStatus.LAUNCH_FAILED,
                )
            ),
            None,
        )
        if stopped is None:
            # Raised between stages; nothing was left running
            run.status = RunStatus.ABORTED
            for pending in run.stages:
                if pending.status == StageStatus.PENDING:
                    pending.skip()
            return

        if stopped.status == StageStatus.RUNNING:
            stopped.abort(reason)
        if stopped.status == StageStatus.ABORTED:
            PipelineExecutor._stop(run, stopped, RunStatus.ABORTED)
        else:
            PipelineExecutor._stop(run, stopped, RunStatus.FAILED)

    @staticmethod
    def _stop(run: RunResult, result: StageResult, status: RunStatus) -> None:
        """Record the stopping stage and mark every later stage as skipped."""
        run.status = status
        run.failed_stage_index = result.index
        run.failed_stage_label = result.label
        run.exit_code = result.exit_code
        if result.status == StageStatus.LAUNCH_FAILED:
            run.launch_error = result.error_message
        for later in run.stages[result.index:]:
            later.skip()


def run_pipeline(stages: Sequence[Stage]) -> RunResult:
    """Blocking convenience wrapper: run ``stages`` on a fresh event loop."""
    return asyncio.run(PipelineExecutor().run(stages))
