"""Command-line entry point for running a pipeline file."""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

import aiofiles

from .config import load_pipeline_from_yaml, write_example_config
from .engine import PipelineExecutor
from .errors import ConfigError
from .models import RunResult

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stagerunner",
        description="Run CI stages in order and stop at the first failure.",
        epilog=(
            "Exit status: 0 when every stage passes; otherwise the failing stage's "
            "exit code (128+N if killed by signal N, 127 if its program was not "
            "found, 126 if it could not be executed), 130 when interrupted and "
            "2 for configuration errors."
        ),
    )
    parser.add_argument(
        "config",
        nargs="?",
        default="pipeline.yaml",
        help="Pipeline YAML file (default: pipeline.yaml)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the stages that would run, then exit",
    )
    parser.add_argument(
        "--report",
        metavar="PATH",
        help="Write the run result as JSON to PATH",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level",
    )
    parser.add_argument(
        "--write-example",
        metavar="PATH",
        help="Write an example pipeline file to PATH and exit",
    )
    return parser


async def write_report(result: RunResult, report_path: Path) -> None:
    """Serialize a run result to a JSON file."""
    report_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(report_path, "w", encoding="utf-8") as f:
        await f.write(result.model_dump_json(indent=2))
    logger.info(f"Wrote run report to {report_path}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the pipeline described by a YAML file; returns the process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.write_example:
        write_example_config(Path(args.write_example))
        return 0

    try:
        stages = load_pipeline_from_yaml(Path(args.config))
    except ConfigError as e:
        logger.error(str(e))
        return EXIT_CONFIG_ERROR

    if args.dry_run:
        for stage_number, stage in enumerate(stages, start=1):
            print(f"{stage_number}. {stage.label}: {stage.command.display()}")
        return 0

    executor = PipelineExecutor()
    if args.report:
        report_path = Path(args.report)

        async def _report(result: RunResult) -> None:
            # The pipeline's exit code matters more than the report
            try:
                await write_report(result, report_path)
            except OSError as e:
                logger.error(f"Could not write run report to {report_path}: {e}")

        executor.on_run_complete(_report)

    try:
        result = asyncio.run(executor.run(stages))
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted")
        return EXIT_INTERRUPTED

    return result.process_exit_code
