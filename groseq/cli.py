"""Command-line interface for groseq."""

import argparse
import datetime
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import load_config
from .pipeline import build_pipeline_stages, run_pipeline
from .pipeline_core import PipelineRunner
from .pipeline_core.error_handling import (
    ConfigurationError,
    MissingArgumentError,
    PipelineEnvironmentError,
    PipelineError,
    StageExecutionError,
)
from .validators import build_run_config
from .version import __version__

logger = logging.getLogger("groseq")

USAGE = "groseq --fastq FILE --bt2-index IDX --outdir DIR [--opts]"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def create_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser for the groseq CLI.

    Required options are checked during validation rather than by argparse,
    so that a missing option is reported together with the usage text.
    """
    parser = argparse.ArgumentParser(
        prog="groseq",
        usage=USAGE,
        description=(
            "groseq: trim the 3' adapter, align with bowtie2, filter and sort with "
            "samtools and build a HOMER tag directory and UCSC track for one sample."
        ),
        add_help=False,
    )

    # Core Input/Output
    io_group = parser.add_argument_group("Arguments (defaults in parentheses)")
    io_group.add_argument("--fastq", metavar="FILE", help="Input fastq file (.fq/.fastq, optionally .gz)")
    io_group.add_argument("--bt2-index", metavar="IDX", help="Specify bowtie2 genome index to use")
    io_group.add_argument(
        "--bt2-opt",
        metavar="STRING",
        help="Specify bowtie2 parameters (--sensitive -p <threads> -t)",
    )
    io_group.add_argument(
        "--outdir", metavar="DIR", help="Output directory; must be empty or not exist"
    )
    io_group.add_argument("-h", "--help", action="store_true", help="This helpful help screen.")

    # Run parameters
    run_group = parser.add_argument_group("Run Parameters")
    run_group.add_argument(
        "--threads", type=int, help="Threads for bowtie2 and samtools sort (4)"
    )
    run_group.add_argument(
        "--mem-max", metavar="SIZE", help="Memory per samtools sort thread (2G)"
    )
    run_group.add_argument(
        "--mapq-min", type=int, metavar="N", help="Drop alignments below this MAPQ (10)"
    )
    run_group.add_argument("--adapter", metavar="SEQ", help="3' adapter sequence to trim")
    run_group.add_argument(
        "--homer-genome",
        metavar="GENOME",
        help="Genome passed to makeTagDirectory for the GC check (none)",
    )

    # General Options
    general_group = parser.add_argument_group("General Options")
    general_group.add_argument(
        "--version",
        action="version",
        version=f"groseq {__version__}",
        help="Show the current version and exit",
    )
    general_group.add_argument(
        "-c",
        "--config",
        help="Path to a JSON configuration file with run defaults",
        default=None,
    )
    general_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN", "ERROR"],
        default="INFO",
        help="Set the logging level",
    )
    general_group.add_argument(
        "--log-file", help="Path to a file to write logs to (in addition to stderr)."
    )
    general_group.add_argument(
        "--list-stages",
        action="store_true",
        help="List the pipeline stages and their output subdirectories, then exit",
    )

    return parser


def configure_logging(log_level: str, log_file: Optional[str] = None) -> None:
    """Set the package log level and optionally add a file handler."""
    logging.getLogger("groseq").setLevel(LOG_LEVEL_MAP[log_level])

    if log_file:
        # Ensure the log file directory exists
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(log_file)
        fh.setLevel(LOG_LEVEL_MAP[log_level])
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(fh)
        logger.debug(f"Logging to file enabled: {log_file}")


def list_stages() -> None:
    """Print the fixed stage order."""
    plan = PipelineRunner().dry_run(build_pipeline_stages())
    print("Pipeline stages (executed in this order):")
    for position, (name, subdirectory) in enumerate(plan, start=1):
        print(f"  {position}. {name:20s} -> <outdir>/{subdirectory}/")


def main(argv: Optional[List[str]] = None) -> int:
    """Run main entry point for the groseq CLI.

    Steps:
        1. Parse arguments; no arguments or --help shows the help and fails.
        2. Configure logging and load config defaults.
        3. Validate options, input reads, output directory and bowtie2 index.
        4. Run the pipeline.

    Returns
    -------
    int
        0 on success, 1 on any configuration or stage error, 130 on interrupt.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    parser = create_parser()
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        parser.print_help()
        return 1

    try:
        args: argparse.Namespace = parser.parse_args(argv)
    except SystemExit as e:
        # --version exits 0; usage errors are reported like any other error
        return 0 if e.code == 0 else 1

    if args.help:
        parser.print_help()
        return 1

    configure_logging(args.log_level, args.log_file)
    logger.debug(f"CLI arguments: {args}")

    if args.list_stages:
        list_stages()
        return 0

    start_time = datetime.datetime.now()
    logger.info(f"Run started at {start_time.isoformat()}")

    try:
        cfg: Dict[str, Any] = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not load configuration: {e}")
        return 1
    logger.debug(f"Configuration loaded: {cfg}")

    try:
        config = build_run_config(args, cfg)
    except MissingArgumentError as e:
        logger.error(f"Error: {e}")
        parser.print_help()
        return 1
    except (ConfigurationError, PipelineEnvironmentError) as e:
        logger.error(f"Error: {e}")
        return 1

    try:
        run_pipeline(config)
    except StageExecutionError as e:
        logger.error(f"Pipeline failed at stage '{e.stage}'; check {e.log_path} for details")
        return 1
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Error: could not prepare output directory {config.output_root_dir}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.error("Run interrupted; partial outputs are left in place")
        return 130

    elapsed = datetime.datetime.now() - start_time
    logger.info(f"Run completed successfully in {elapsed.total_seconds():.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
